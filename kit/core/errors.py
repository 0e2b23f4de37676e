"""Error definitions for the Kit storage core."""

from typing import Any, Dict, Optional


class KitError(Exception):
    """Base exception for all errors surfaced by the Kit core."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize error with code, message, and optional details."""
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for machine-readable output."""
        result = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ObjectNotFound(KitError):
    """No object with the requested hash exists in the store."""

    def __init__(self, obj_hash: str):
        super().__init__(
            code="OBJECT_NOT_FOUND",
            message=f"Object {obj_hash} not found",
            details={"hash": obj_hash},
        )


class CorruptObject(KitError):
    """Stored object has a malformed header, stream, or body."""

    def __init__(self, obj_hash: str, reason: str):
        super().__init__(
            code="CORRUPT_OBJECT",
            message=f"Object {obj_hash} is corrupt: {reason}",
            details={"hash": obj_hash, "reason": reason},
        )


class IndexCorrupt(KitError):
    """Index file failed signature, length, or checksum validation."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            code="INDEX_CORRUPT",
            message=f"Index file {path} is corrupt: {reason}",
            details={"path": path, "reason": reason},
        )


class LockConflict(KitError):
    """Another operation already holds the lock file."""

    def __init__(self, lock_path: str):
        super().__init__(
            code="LOCK_CONFLICT",
            message=(
                f"Unable to create '{lock_path}': File exists. "
                "Another kit process seems to be running in this repository. "
                "If no other process is running, remove the file manually and retry."
            ),
            details={"lock_path": lock_path},
        )


class StoreIOError(KitError):
    """Filesystem failure while reading or writing repository metadata."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            code="STORE_IO_ERROR",
            message=f"I/O error on {path}: {reason}",
            details={"path": path, "reason": reason},
        )


class WorkspaceIOError(KitError):
    """Filesystem failure while reading the working tree."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            code="WORKSPACE_IO_ERROR",
            message=f"Cannot read {path}: {reason}",
            details={"path": path, "reason": reason},
        )


class InvalidPath(KitError):
    """Path escapes the repository or cannot be stored in the index."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            code="INVALID_PATH",
            message=f"Invalid path '{path}': {reason}",
            details={"path": path, "reason": reason},
        )


class NotARepository(KitError):
    """No repository metadata directory was found."""

    def __init__(self, path: str):
        super().__init__(
            code="NOT_A_REPOSITORY",
            message=f"Not a kit repository (or any of the parent directories): {path}",
            details={"path": path},
        )


class RepositoryExists(KitError):
    """A repository is already initialized at the target location."""

    def __init__(self, path: str):
        super().__init__(
            code="REPOSITORY_EXISTS",
            message=f"Repository already exists at {path}",
            details={"path": path},
        )


class IdentityUnknown(KitError):
    """No author name or email is configured."""

    def __init__(self, missing: str):
        super().__init__(
            code="IDENTITY_UNKNOWN",
            message=(
                f"Author identity unknown: {missing} is not set. "
                "Set user.name and user.email in the repository or global config."
            ),
            details={"missing": missing},
        )


class InvalidConfig(KitError, ValueError):
    """A configuration value cannot be interpreted."""

    def __init__(self, name: str, value: str, expected: str):
        super().__init__(
            code="INVALID_CONFIG",
            message=f"Bad {expected} config value '{value}' for '{name}'",
            details={"name": name, "value": value},
        )


class RefConflict(KitError):
    """A reference moved after it was read."""

    def __init__(self, ref_name: str, expected: Optional[str], actual: Optional[str]):
        super().__init__(
            code="REF_CONFLICT",
            message=(
                f"Cannot update {ref_name}: expected {expected or 'no commit'}, "
                f"found {actual or 'no commit'}"
            ),
            details={"ref": ref_name, "expected": expected, "actual": actual},
        )
