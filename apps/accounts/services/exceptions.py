"""Domain-specific exceptions for accounts services."""


class AccountsServiceError(Exception):
    """Base exception for accounts services."""
    pass


class UserNotFoundError(AccountsServiceError):
    """Raised when user does not exist."""
    pass


class PrivilegeNotFoundError(AccountsServiceError):
    """Raised when a grant expected during reconciliation is missing."""
    pass


class StorageUnavailableError(AccountsServiceError):
    """Raised when a user's upload directory cannot be created or written."""
    pass


class InvalidFilenameError(AccountsServiceError):
    """Raised when an upload name could escape the user's directory."""
    pass


class FileQuotaExceededError(AccountsServiceError):
    """Raised when an upload would exceed the per-user size or count limit."""
    pass
