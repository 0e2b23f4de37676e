"""Main CLI entry point for Kit."""

import click
from colorama import init

from kit import __version__
from kit.cli.output import BANNER
from kit.cli.commands import (init_cmd, add_cmd, rm_cmd, commit_cmd, status_cmd,
                              diff_cmd, ls_tree_cmd, cat_file_cmd)
from kit.logging_utils import configure_logging

# Initialize colorama for cross-platform colored output
init(autoreset=True)


class KitGroup(click.Group):
    """Custom Group class to display banner before help."""

    def format_help(self, ctx, formatter):
        """Override to add banner before help text."""
        click.echo(BANNER)
        super().format_help(ctx, formatter)


@click.group(cls=KitGroup)
@click.version_option(version=__version__)
@click.option('-v', '--verbose', is_flag=True, help='Log debug output to stderr')
def cli(verbose):
    configure_logging('DEBUG' if verbose else None)


# Register commands
cli.add_command(init_cmd)
cli.add_command(add_cmd)
cli.add_command(rm_cmd)
cli.add_command(commit_cmd)
cli.add_command(status_cmd)
cli.add_command(diff_cmd)
cli.add_command(ls_tree_cmd)
cli.add_command(cat_file_cmd)


def main():
    """Main entry point."""
    cli()


if __name__ == '__main__':
    main()
