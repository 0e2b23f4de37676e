"""Utilities module for common helper functions.

This module contains:
- Repository path encoding, ordering and validation
- Ignore file handling (.gitignore, info/exclude)
"""

from kit.utils.ignore import IgnoreMatcher, IgnorePattern, get_ignore_matcher

__all__ = [
    'IgnoreMatcher', 'IgnorePattern', 'get_ignore_matcher',
]
