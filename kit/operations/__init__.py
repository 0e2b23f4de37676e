"""Operations module for high-level Kit operations.

This module contains the business logic built on the core:
- Status computation (snapshot vs index vs work tree)
- Diff computation (Myers edit scripts, hunks, unified output)
- Tree and commit creation from the index
"""

from kit.operations.status import StatusEngine, StatusReport, IndexChange, WorkspaceChange
from kit.operations.diff import DiffEngine, FileDiff, Hunk, Edit, EditType, edit_script, edit_distance
from kit.operations.commit import write_tree, create_commit

__all__ = [
    'StatusEngine', 'StatusReport', 'IndexChange', 'WorkspaceChange',
    'DiffEngine', 'FileDiff', 'Hunk', 'Edit', 'EditType', 'edit_script', 'edit_distance',
    'write_tree', 'create_commit',
]
