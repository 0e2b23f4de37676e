"""Initialize a new Kit repository."""

import click
from pathlib import Path

from kit.core.repository import Repository
from kit.cli.context import kit_errors
from kit.cli.output import success, info


@click.command('init')
@click.argument('path', default='.')
@click.option('-b', '--initial-branch', default='main', show_default=True,
              help='Name of the branch HEAD points to')
@kit_errors
def init_cmd(path, initial_branch):
    """
    Initialize a new Kit repository.

    Creates a .git directory that Git itself can read.

    Examples:
        kit init                    # Initialize in current directory
        kit init my-project         # Initialize in my-project directory
    """
    repo_path = Path(path).resolve()

    if not repo_path.exists():
        repo_path.mkdir(parents=True)
        click.echo(info(f"Created directory {repo_path}"))

    repo = Repository(str(repo_path))
    repo.init(initial_branch=initial_branch)

    click.echo(success(f"Initialized empty Kit repository in {repo.git_dir}"))
