"""Status command - show working tree status."""

import click
from colorama import Fore, Style

from kit.cli.context import get_repository, kit_errors
from kit.cli.output import success, info
from kit.operations.status import (
    IndexChange,
    StatusEngine,
    WorkspaceChange,
    refresh_index,
)

STAGED_LABELS = {
    IndexChange.ADDED: 'new file:   ',
    IndexChange.MODIFIED: 'modified:   ',
    IndexChange.DELETED: 'deleted:    ',
}
UNSTAGED_LABELS = {
    WorkspaceChange.MODIFIED: 'modified:   ',
    WorkspaceChange.DELETED: 'deleted:    ',
}
SHORT_STAGED = {IndexChange.ADDED: 'A', IndexChange.MODIFIED: 'M', IndexChange.DELETED: 'D'}
SHORT_UNSTAGED = {WorkspaceChange.MODIFIED: 'M', WorkspaceChange.DELETED: 'D'}


def print_short(report):
    """Two-column porcelain-style output."""
    for path in sorted(report.index_changes):
        staged = SHORT_STAGED.get(report.index_changes[path], ' ')
        unstaged = SHORT_UNSTAGED.get(report.workspace_changes[path], ' ')
        if staged != ' ' or unstaged != ' ':
            click.echo(f"{staged}{unstaged} {path}")
    for path in report.untracked:
        click.echo(f"?? {path}")


@click.command('status')
@click.option('-s', '--short', is_flag=True, help='Give the output in the short format')
@kit_errors
def status_cmd(short):
    """
    Show the working tree status.

    Displays:
    - Changes staged for commit (index vs last commit)
    - Changes not staged for commit (working tree vs index)
    - Untracked files (directories with no tracked files are shown once)

    Examples:
        kit status
        kit status -s
    """
    repo = get_repository()
    index = repo.load_index()
    report = StatusEngine.for_repository(repo, index=index).compute()
    refresh_index(repo, report, index)

    if short:
        print_short(report)
        return

    refs_mgr = repo.refs
    if refs_mgr.is_detached_head():
        commit_hash = refs_mgr.resolve_head()
        click.echo(f"{Fore.YELLOW}HEAD detached at {commit_hash[:7]}{Style.RESET_ALL}")
    else:
        branch = refs_mgr.current_branch() or "main"
        click.echo(f"On branch {Fore.CYAN}{branch}{Style.RESET_ALL}")
        if refs_mgr.resolve_head() is None:
            click.echo()
            click.echo("No commits yet")

    click.echo()

    staged = report.staged()
    if staged:
        click.echo(Fore.GREEN + "Changes to be committed:" + Style.RESET_ALL)
        click.echo(info("  (use \"kit rm --cached <file>...\" to unstage)"))
        click.echo()
        for path in sorted(staged):
            click.echo(f"  {Fore.GREEN}{STAGED_LABELS[staged[path]]}{path}{Style.RESET_ALL}")
        click.echo()

    unstaged = report.unstaged()
    if unstaged:
        click.echo(Fore.YELLOW + "Changes not staged for commit:" + Style.RESET_ALL)
        click.echo(info("  (use \"kit add <file>...\" to update what will be committed)"))
        click.echo()
        for path in sorted(unstaged):
            click.echo(f"  {Fore.YELLOW}{UNSTAGED_LABELS[unstaged[path]]}{path}{Style.RESET_ALL}")
        click.echo()

    if report.untracked:
        click.echo(Fore.RED + "Untracked files:" + Style.RESET_ALL)
        click.echo(info("  (use \"kit add <file>...\" to include in what will be committed)"))
        click.echo()
        for path in report.untracked:
            click.echo(f"  {Fore.RED}{path}{Style.RESET_ALL}")
        click.echo()

    if report.is_clean:
        click.echo(success("Nothing to commit, working tree clean"))
    elif not staged:
        click.echo(info("No changes added to commit (use \"kit add\")"))
