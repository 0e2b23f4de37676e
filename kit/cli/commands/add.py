"""Add command - stage files for commit."""

import click

from kit.cli.context import get_repository, kit_errors
from kit.cli.output import success, error, warning
from kit.utils.ignore import is_path_ignored


@click.command('add')
@click.argument('paths', nargs=-1, required=True)
@click.option('-f', '--force', is_flag=True, help='Add ignored files')
@kit_errors
def add_cmd(paths, force):
    """
    Add file contents to the staging area.

    Directories are added recursively. Tracked files that no longer exist
    are removed from the index. Files matching .gitignore patterns are
    skipped unless --force is used.

    Examples:
        kit add file.txt
        kit add src
        kit add .
        kit add -f ignored_file.txt
    """
    repo = get_repository()
    matcher = repo.ignore_matcher()
    scanner = repo.workspace(None if force else matcher)

    staged = []
    removed = []
    ignored = []

    with repo.locked_index() as index:
        for user_path in paths:
            target = scanner.relative_path(user_path)
            metadata = scanner.stat(target) if target else None

            if metadata:
                if not force and target not in index and is_path_ignored(matcher, target):
                    ignored.append(target)
                    continue
                candidates = [target]
            else:
                # A directory (or the root): its files plus tracked paths beneath it
                dir_ignored = bool(target) and not force and is_path_ignored(matcher, target, True)
                candidates = [] if dir_ignored else list(scanner.walk(target))
                tracked = [p for p in index.paths()
                           if not target or p == target or p.startswith(target + '/')]
                seen = set(candidates)
                candidates.extend(p for p in tracked if p not in seen)
                if dir_ignored and not candidates:
                    ignored.append(target + '/')
                    continue
                if not candidates:
                    click.echo(error(f"pathspec '{user_path}' did not match any files"), err=True)
                    raise click.Abort()

            for path in candidates:
                blob_hash = index.add_file(repo.objects, scanner, path)
                (staged if blob_hash else removed).append(path)

        index.persist()

    for path in ignored:
        click.echo(warning(f"Ignored: {path} (use -f to add anyway)"))
    if staged:
        click.echo(success(f"Staged {len(staged)} file(s)"))
    if removed:
        click.echo(success(f"Removed {len(removed)} deleted file(s) from the index"))
