"""Rm command - remove paths from the index."""

import click

from kit.cli.context import get_repository, kit_errors
from kit.cli.output import success, error


@click.command('rm')
@click.argument('paths', nargs=-1, required=True)
@click.option('--cached', is_flag=True, help='Only remove from the index')
@click.option('-r', 'recursive', is_flag=True, help='Allow recursive removal of a directory')
@kit_errors
def rm_cmd(paths, cached, recursive):
    """
    Unstage files, leaving them in the working tree.

    Examples:
        kit rm --cached file.txt
        kit rm --cached -r build
    """
    if not cached:
        click.echo(error("Only 'rm --cached' is supported; working tree files are never deleted"),
                   err=True)
        raise click.Abort()

    repo = get_repository()
    scanner = repo.workspace()
    removed = []

    with repo.locked_index() as index:
        for user_path in paths:
            target = scanner.relative_path(user_path)
            if target in index:
                index.remove(target)
                removed.append(target)
                continue

            if not index.contains_directory(target):
                click.echo(error(f"pathspec '{user_path}' did not match any files"), err=True)
                raise click.Abort()
            if not recursive:
                click.echo(error(f"not removing '{user_path}' recursively without -r"), err=True)
                raise click.Abort()

            for path in index.paths():
                if not target or path.startswith(target + '/'):
                    index.remove(path)
                    removed.append(path)

        index.persist()

    for path in removed:
        click.echo(f"rm '{path}'")
    click.echo(success(f"Removed {len(removed)} path(s) from the index"))
