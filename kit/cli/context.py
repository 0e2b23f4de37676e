"""Shared helpers for CLI commands: repository lookup and error reporting."""

import functools
import logging
import os

import click

from kit.core.errors import KitError, LockConflict, NotARepository
from kit.core.objects import Commit
from kit.core.repository import Repository
from kit.cli.output import error, info

logger = logging.getLogger(__name__)


def get_repository() -> Repository:
    """Find the enclosing repository or abort."""
    repo = Repository.find_repository()
    if repo is None:
        raise NotARepository(os.getcwd())
    return repo


def kit_errors(func):
    """
    Report core errors and exit with status 1.

    LockConflict is reported as a concurrent operation, with the lock
    file named so a stale lock can be removed by hand.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except LockConflict as e:
            logger.debug("Lock conflict: %s", e.to_dict())
            click.echo(error("Another operation is in progress"), err=True)
            click.echo(info(e.message), err=True)
            raise click.Abort()
        except KitError as e:
            logger.debug("Command failed: %s", e.to_dict())
            click.echo(error(e.message), err=True)
            raise click.Abort()
    return wrapper


def resolve_treeish(repo: Repository, name: str) -> str:
    """
    Resolve HEAD, a branch name or a (short) hash to a tree hash.

    Aborts if nothing matches.
    """
    if name == 'HEAD':
        obj_hash = repo.refs.resolve_head()
    else:
        obj_hash = (repo.refs.read_ref(f'refs/heads/{name}')
                    or repo.refs.read_ref(f'refs/tags/{name}')
                    or repo.objects.resolve_prefix(name))
    if obj_hash is None:
        click.echo(error(f"Not a valid object name: {name}"), err=True)
        raise click.Abort()

    obj = repo.objects.read(obj_hash)
    return obj.tree if isinstance(obj, Commit) else obj_hash
