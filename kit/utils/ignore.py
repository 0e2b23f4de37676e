"""Ignore pattern matching for .gitignore and info/exclude files."""

import logging
import re
from pathlib import Path
from typing import Callable, Dict, List, Tuple

from kit.utils.paths import split_path

logger = logging.getLogger(__name__)


class IgnorePattern:
    """Represents a single ignore pattern."""

    def __init__(self, pattern: str, negation: bool = False, directory_only: bool = False):
        """
        Initialize an ignore pattern.

        Args:
            pattern: The glob pattern to match
            negation: If True, this pattern negates (un-ignores) matching files
            directory_only: If True, only match directories
        """
        self.original = pattern
        self.negation = negation
        self.directory_only = directory_only
        # A slash anywhere but the end anchors the pattern to the root;
        # otherwise it matches a name at any depth.
        self.anchored = '/' in pattern
        self._regex = self._compile_pattern(pattern.lstrip('/'))

    def _compile_pattern(self, pattern: str) -> 're.Pattern':
        """Convert a gitignore-style glob to a regex over a full relative path."""
        regex_parts = []
        i = 0

        while i < len(pattern):
            c = pattern[i]

            if c == '*':
                if pattern.startswith('**/', i):
                    # **/ matches zero or more directories
                    regex_parts.append('(?:.*/)?')
                    i += 3
                elif pattern.startswith('**', i):
                    regex_parts.append('.*')
                    i += 2
                else:
                    regex_parts.append('[^/]*')
                    i += 1
            elif c == '?':
                regex_parts.append('[^/]')
                i += 1
            elif c == '[':
                j = i + 1
                if j < len(pattern) and pattern[j] in '!^':
                    j += 1
                if j < len(pattern) and pattern[j] == ']':
                    j += 1
                while j < len(pattern) and pattern[j] != ']':
                    j += 1
                if j < len(pattern):
                    char_class = pattern[i + 1:j]
                    if char_class[:1] in ('!', '^'):
                        char_class = '^' + char_class[1:]
                    regex_parts.append('[' + char_class.replace('\\', '\\\\') + ']')
                    i = j + 1
                else:
                    regex_parts.append(re.escape(c))
                    i += 1
            elif c == '\\' and i + 1 < len(pattern):
                regex_parts.append(re.escape(pattern[i + 1]))
                i += 2
            else:
                regex_parts.append(re.escape(c))
                i += 1

        body = ''.join(regex_parts)
        if self.anchored:
            return re.compile('^' + body + '$')
        return re.compile('(?:^|/)' + body + '$')

    def matches(self, path: str, is_dir: bool = False) -> bool:
        """
        Check if a path matches this pattern.

        Args:
            path: The path to check (relative to repo root)
            is_dir: Whether the path is a directory
        """
        if self.directory_only and not is_dir:
            return False
        return bool(self._regex.search(path))

    def __repr__(self) -> str:
        return f"IgnorePattern({self.original!r})"


class IgnoreMatcher:
    """Matches paths against a set of ignore patterns."""

    def __init__(self):
        """Initialize empty matcher."""
        self.patterns: List[IgnorePattern] = []
        self._cache: Dict[Tuple[str, bool], bool] = {}

    def add_pattern(self, pattern: str) -> None:
        """
        Add a pattern to the matcher.

        Args:
            pattern: A gitignore-style pattern
        """
        pattern = pattern.rstrip('\n').rstrip('\r')
        # Trailing spaces are ignored unless escaped
        if not pattern.endswith('\\ '):
            pattern = pattern.rstrip(' ')
        if not pattern or pattern.startswith('#'):
            return

        negation = False
        if pattern.startswith('!'):
            negation = True
            pattern = pattern[1:]
        elif pattern.startswith('\\'):
            pattern = pattern[1:]

        directory_only = False
        if pattern.endswith('/'):
            directory_only = True
            pattern = pattern.rstrip('/')

        if not pattern:
            return

        self.patterns.append(IgnorePattern(pattern, negation, directory_only))
        self._cache.clear()

    def add_patterns(self, patterns: List[str]) -> None:
        """Add multiple patterns."""
        for pattern in patterns:
            self.add_pattern(pattern)

    def load_file(self, path: Path) -> bool:
        """
        Load patterns from an ignore file.

        Returns:
            True if the file was loaded, False if it is absent or unreadable
        """
        try:
            content = path.read_text(encoding='utf-8', errors='surrogateescape')
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("Could not read ignore file %s: %s", path, e)
            return False

        for line in content.splitlines():
            self.add_pattern(line)
        return True

    def is_ignored(self, path: str, is_dir: bool = False) -> bool:
        """
        Check if a path should be ignored.

        The last matching pattern wins. Negation patterns can
        un-ignore previously ignored files.
        """
        cache_key = (path, is_dir)
        if cache_key in self._cache:
            return self._cache[cache_key]

        ignored = False
        for pattern in self.patterns:
            if pattern.matches(path, is_dir):
                ignored = not pattern.negation

        self._cache[cache_key] = ignored
        return ignored

    def __call__(self, path: str, is_dir: bool) -> bool:
        return self.is_ignored(path, is_dir)


def get_ignore_matcher(repo_root: Path, git_dir: Path = None) -> Callable[[str, bool], bool]:
    """
    Create an IgnoreMatcher for a repository.

    Loads patterns from, lowest priority first:
    1. <git_dir>/info/exclude
    2. .gitignore in the repository root

    Returns:
        Configured IgnoreMatcher, usable as a ``(path, is_dir)`` predicate
    """
    repo_root = Path(repo_root)
    git_dir = Path(git_dir) if git_dir is not None else repo_root / '.git'

    matcher = IgnoreMatcher()
    matcher.load_file(git_dir / 'info' / 'exclude')
    matcher.load_file(repo_root / '.gitignore')
    return matcher


def is_path_ignored(predicate: Callable[[str, bool], bool], path: str, is_dir: bool = False) -> bool:
    """
    Check a path and every directory above it against an ignore predicate.

    A file inside an ignored directory is ignored even if no pattern
    names it, since the directory is never entered.
    """
    parent, _ = split_path(path)
    if parent and is_path_ignored(predicate, parent, True):
        return True
    return predicate(path, is_dir)
