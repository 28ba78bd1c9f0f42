"""Exceptions shared by every app."""


class CoreError(Exception):
    """Base exception for project-wide infrastructure errors."""
    pass


class LockTimeoutError(CoreError):
    """Raised when a keyed lock could not be acquired within its timeout."""

    def __init__(self, key, timeout):
        self.key = key
        self.timeout = timeout
        super().__init__(f"Could not acquire lock {key!r} within {timeout}s")
