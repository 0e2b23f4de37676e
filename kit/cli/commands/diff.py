"""Diff command - show changes between the work tree, index and last commit."""

import sys

import click

from kit.cli.context import get_repository, kit_errors
from kit.operations.diff import DiffEngine


@click.command('diff')
@click.option('--cached', '--staged', 'cached', is_flag=True,
              help='Show staged changes (index vs last commit)')
@click.option('-U', '--unified', 'context', type=int, default=3, show_default=True,
              help='Lines of context around each change')
@click.option('--color/--no-color', default=None, help='Force or disable colored output')
@click.argument('paths', nargs=-1)
@kit_errors
def diff_cmd(cached, context, color, paths):
    """
    Show changes as a unified diff.

    Without --cached, compares the working tree to the index. With
    --cached, compares the index to the last commit.

    Examples:
        kit diff
        kit diff --cached
        kit diff src/main.py
    """
    repo = get_repository()
    scanner = repo.workspace()
    selected = [scanner.relative_path(p) for p in paths]

    engine = DiffEngine(repo, context=context)
    if cached:
        diffs = engine.diff_index_to_snapshot(selected)
    else:
        diffs = engine.diff_workspace_to_index(selected)

    if not diffs:
        return

    if color is None:
        color = sys.stdout.isatty()
    click.echo(engine.format_diff(diffs, color=color))
