"""Kit - a format-compatible Git storage core implemented in Python."""

__version__ = '0.1.0'

from kit.core.repository import Repository
from kit.core.objects import KitObject, Blob, Tree, Commit

__all__ = [
    'Repository',
    'KitObject',
    'Blob',
    'Tree',
    'Commit',
]
