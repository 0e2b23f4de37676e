"""Object inspection - list trees and show raw objects."""

import click
from colorama import Fore, Style

from kit.cli.context import get_repository, kit_errors, resolve_treeish
from kit.cli.output import error
from kit.core.objects import Blob, Commit, Tree


def format_entry(entry, path: str) -> str:
    """Format a tree entry the way Git does: '<mode> <type> <hash>\\t<path>'."""
    return f"{entry.mode.zfill(6)} {entry.type} {entry.hash}\t{path}"


@click.command('ls-tree')
@click.option('-r', '--recursive', is_flag=True, help='Recurse into sub-trees')
@click.option('--name-only', is_flag=True, help='Show only file names')
@click.argument('treeish', required=False, default='HEAD')
@kit_errors
def ls_tree_cmd(recursive, name_only, treeish):
    """
    List contents of a tree object.

    TREEISH can be HEAD, a branch name, or a (short) commit or tree hash.

    Examples:
        kit ls-tree                  # Show tree for HEAD
        kit ls-tree -r HEAD          # Recursively list all files
        kit ls-tree --name-only HEAD # Only show file names
    """
    repo = get_repository()
    tree_hash = resolve_treeish(repo, treeish)

    if recursive:
        entries = repo.objects.walk_tree(tree_hash)
    else:
        entries = ((entry.name, entry) for entry in repo.objects.resolve_tree(tree_hash))

    for path, entry in entries:
        click.echo(path if name_only else format_entry(entry, path))


@click.command('cat-file')
@click.option('-t', '--type', 'show_type', is_flag=True, help='Show object type')
@click.option('-s', '--size', 'show_size', is_flag=True, help='Show object size')
@click.option('-p', '--pretty', is_flag=True, help='Pretty-print object content')
@click.argument('object_hash')
@kit_errors
def cat_file_cmd(show_type, show_size, pretty, object_hash):
    """
    Show object content, type, or size.

    Examples:
        kit cat-file -t abc123     # Show object type
        kit cat-file -s abc123     # Show object size
        kit cat-file -p abc123     # Pretty-print object content
    """
    if sum((show_type, show_size, pretty)) != 1:
        click.echo(error("Exactly one of -t, -s or -p is required"), err=True)
        raise click.Abort()

    repo = get_repository()
    full_hash = repo.objects.resolve_prefix(object_hash)
    if not full_hash:
        click.echo(error(f"Not a valid object name: {object_hash}"), err=True)
        raise click.Abort()

    if show_type or show_size:
        obj_type, data = repo.objects.read_raw(full_hash)
        click.echo(obj_type if show_type else len(data))
        return

    obj = repo.objects.read(full_hash)
    if isinstance(obj, Blob):
        click.echo(obj.data, nl=False)
    elif isinstance(obj, Tree):
        for entry in obj:
            click.echo(format_entry(entry, entry.name))
    elif isinstance(obj, Commit):
        click.echo(f"{Fore.YELLOW}tree {obj.tree}{Style.RESET_ALL}")
        for parent in obj.parents:
            click.echo(f"{Fore.YELLOW}parent {parent}{Style.RESET_ALL}")
        click.echo(f"author {obj.author} {obj.author_time} {obj.author_timezone}")
        click.echo(f"committer {obj.committer} {obj.committer_time} {obj.committer_timezone}")
        click.echo()
        click.echo(obj.message, nl=False)
