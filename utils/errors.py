"""
Exception classes shared by the storage and backup layers.

These are raised inside the I/O modules and converted into tagged result
objects at the public boundary, so route handlers and the gradebook service
never need to catch them directly.
"""


class RepotaError(Exception):
    """Base exception for all gradebook errors."""

    kind = "error"

    def __init__(self, message: str, detail: str | None = None):
        self.message = message
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message, "detail": self.detail}


class QuotaExceededError(RepotaError):
    """Raised when a write would exceed the storage capacity."""

    kind = "quota_exceeded"

    def __init__(self, message: str = "Storage quota exceeded"):
        super().__init__(
            message=message,
            detail="Cannot save more data. Please backup and clear old students or photos.",
        )


class StorageUnavailableError(RepotaError):
    """Raised when the primary database cannot be opened or written."""

    kind = "storage_unavailable"


class BackupError(RepotaError):
    """Base class for backup import/export failures."""

    kind = "backup_error"


class WrongPasswordError(BackupError):
    """Raised when the AES-GCM tag check fails on decrypt."""

    kind = "wrong_password"

    def __init__(self, message: str = "Incorrect password. Please try again."):
        super().__init__(
            message=message,
            detail="The file was encrypted with a different password.",
        )


class InvalidBackupFileError(BackupError):
    """Raised for malformed, truncated or unsupported backup files."""

    kind = "invalid_file"

    def __init__(self, message: str = "Invalid backup file", detail: str | None = None):
        super().__init__(
            message=message,
            detail=detail or "Please check the file and try again.",
        )


class ValidationError(RepotaError):
    """Raised when a student or settings payload fails validation."""

    kind = "validation_error"

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = list(errors or [])
        super().__init__(message=message, detail="; ".join(self.errors) or None)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class StudentNotFoundError(RepotaError):
    """Raised when a student id or undo token does not exist."""

    kind = "not_found"


class DuplicateComponentError(RepotaError):
    """Raised when a component name collides with one already in the library."""

    kind = "duplicate_component"
