"""Custom exception hierarchy for Threadboard."""


class ThreadboardError(Exception):
    """Base exception for all Threadboard errors."""

    def __init__(self, message: str = "An error occurred in Threadboard"):
        self.message = message
        super().__init__(self.message)


class ValidationError(ThreadboardError):
    """A draft or filter value is malformed.

    `field` names the first failing field so the UI can show the message
    next to the right input.
    """

    def __init__(self, field: str, message: str = "Invalid value"):
        self.field = field
        super().__init__(f"{field}: {message}")


class PermissionDeniedError(ThreadboardError):
    """Acting user may not perform this mutation."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message)


class BackendError(ThreadboardError):
    """Base exception for comment backend failures."""

    def __init__(self, message: str = "A backend error occurred"):
        super().__init__(message)


class ReadError(BackendError):
    """Reading from a comment backend failed."""

    def __init__(self, message: str = "Failed to read comments"):
        super().__init__(message)


class WriteError(BackendError):
    """Writing to a comment backend failed or was rejected."""

    def __init__(self, message: str = "Failed to write comment"):
        super().__init__(message)


class DataError(ThreadboardError):
    """Base exception for data-related errors."""

    def __init__(self, message: str = "A data error occurred"):
        super().__init__(message)


class StorageError(DataError):
    """Local persistence is unavailable or holds corrupt data."""

    def __init__(self, message: str = "Local storage error"):
        super().__init__(message)


class DatabaseError(DataError):
    """Database operation failed."""

    def __init__(self, message: str = "Database operation failed"):
        super().__init__(message)


class ConfigError(DataError):
    """Configuration is invalid or missing."""

    def __init__(self, message: str = "Configuration error"):
        super().__init__(message)
