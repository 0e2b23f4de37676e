"""Commit command - create a commit from staged changes."""

import click

from kit.cli.context import get_repository, kit_errors
from kit.cli.output import info, warning
from kit.operations.commit import create_commit, write_tree


@click.command('commit')
@click.option('-m', '--message', required=True, help='Commit message')
@click.option('--author', default=None, help='Override author ("Name <email>")')
@click.option('--allow-empty', is_flag=True, help='Allow a commit that changes nothing')
@kit_errors
def commit_cmd(message, author, allow_empty):
    """
    Record the staged changes as a new commit.

    The current branch (or a detached HEAD) moves to the new commit.

    Examples:
        kit commit -m "Initial commit"
        kit commit -m "Fix" --author "Jane Doe <jane@example.com>"
    """
    repo = get_repository()
    index = repo.load_index()

    head_tree = repo.refs.head_tree()
    unchanged = (write_tree(repo.objects, index) == head_tree
                 if head_tree is not None else len(index) == 0)
    if unchanged and not allow_empty:
        click.echo(warning("Nothing to commit, working tree clean"))
        click.echo(info("Use 'kit add' to stage changes"))
        raise click.Abort()

    commit_hash = create_commit(repo, message, author=author, index=index)

    branch = repo.refs.current_branch() or 'detached HEAD'
    summary = message.splitlines()[0] if message else ''
    click.echo(f"[{branch} {commit_hash[:7]}] {summary}")
