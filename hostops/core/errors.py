"""
Typed errors raised by mutating operations.

Read-only queries never raise; they degrade to Unknown / None / [].
Mutations raise one of the errors below, and only after any rollback
has finished. Every error carries a message fit to show a user.
"""

from __future__ import annotations

from enum import StrEnum


class HostOpsError(Exception):
    """Base class for all hostops errors."""


class ConfigError(HostOpsError):
    """Raised when hostops configuration is invalid or unreadable."""


class CatalogError(HostOpsError):
    """Raised when the capability catalog cannot be reached or decoded."""


# ── Site transactions ───────────────────────────────────────────


class TransactionErrorKind(StrEnum):
    FILE_WRITE_FAILED = "file_write_failed"
    SYMLINK_FAILED = "symlink_failed"
    VALIDATION_FAILED = "validation_failed"
    UNKNOWN = "unknown"


_TRANSACTION_DEFAULTS = {
    TransactionErrorKind.FILE_WRITE_FAILED: "Failed to write configuration file",
    TransactionErrorKind.SYMLINK_FAILED: "Failed to enable site",
    TransactionErrorKind.VALIDATION_FAILED: "Configuration validation failed",
    TransactionErrorKind.UNKNOWN: "Unknown error",
}


class TransactionError(HostOpsError):
    """A site create/update/delete failed; the host was rolled back."""

    def __init__(self, kind: TransactionErrorKind, message: str = ""):
        self.kind = kind
        self.message = message or _TRANSACTION_DEFAULTS[kind]
        super().__init__(self.message)

    @classmethod
    def file_write_failed(cls, message: str = "") -> TransactionError:
        return cls(TransactionErrorKind.FILE_WRITE_FAILED, message)

    @classmethod
    def symlink_failed(cls, message: str = "") -> TransactionError:
        return cls(TransactionErrorKind.SYMLINK_FAILED, message)

    @classmethod
    def validation_failed(cls, message: str) -> TransactionError:
        return cls(TransactionErrorKind.VALIDATION_FAILED, message)

    @classmethod
    def unknown(cls, message: str) -> TransactionError:
        return cls(TransactionErrorKind.UNKNOWN, message)


# ── Installation / version switching ────────────────────────────


class InstallationErrorKind(StrEnum):
    VERSION_NOT_AVAILABLE = "version_not_available"
    INSTALLATION_FAILED = "installation_failed"
    INSUFFICIENT_PERMISSIONS = "insufficient_permissions"
    SWITCH_FAILED = "switch_failed"


class InstallationError(HostOpsError):
    """An install or version switch halted."""

    def __init__(self, kind: InstallationErrorKind, detail: str = ""):
        self.kind = kind
        self.detail = detail
        super().__init__(self._render())

    def _render(self) -> str:
        if self.kind == InstallationErrorKind.VERSION_NOT_AVAILABLE:
            return self.detail or "The requested version is not available"
        if self.kind == InstallationErrorKind.INSUFFICIENT_PERMISSIONS:
            return self.detail or "Insufficient permissions (sudo access is required)"
        if self.kind == InstallationErrorKind.SWITCH_FAILED:
            return f"Version switch failed: {self.detail or 'unknown reason'}"
        return f"Installation failed: {self.detail or 'unknown reason'}"

    @classmethod
    def version_not_available(cls, detail: str = "") -> InstallationError:
        return cls(InstallationErrorKind.VERSION_NOT_AVAILABLE, detail)

    @classmethod
    def installation_failed(cls, detail: str) -> InstallationError:
        return cls(InstallationErrorKind.INSTALLATION_FAILED, detail)

    @classmethod
    def insufficient_permissions(cls, detail: str = "") -> InstallationError:
        return cls(InstallationErrorKind.INSUFFICIENT_PERMISSIONS, detail)

    @classmethod
    def switch_failed(cls, reason: str) -> InstallationError:
        return cls(InstallationErrorKind.SWITCH_FAILED, reason)


# ── Databases ───────────────────────────────────────────────────


class DatabaseErrorKind(StrEnum):
    INVALID_NAME = "invalid_name"
    ALREADY_EXISTS = "already_exists"
    COMMAND_FAILED = "command_failed"


class DatabaseError(HostOpsError):
    """A database or database-user mutation failed."""

    def __init__(self, kind: DatabaseErrorKind, message: str):
        self.kind = kind
        self.message = message
        super().__init__(message)

    @classmethod
    def invalid_name(cls, name: str) -> DatabaseError:
        return cls(DatabaseErrorKind.INVALID_NAME, f"Invalid name: {name!r}")

    @classmethod
    def already_exists(cls, name: str) -> DatabaseError:
        return cls(DatabaseErrorKind.ALREADY_EXISTS, f"Database already exists: {name}")

    @classmethod
    def command_failed(cls, message: str) -> DatabaseError:
        return cls(DatabaseErrorKind.COMMAND_FAILED, message or "Database command failed")
