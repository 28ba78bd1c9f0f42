"""Services for accounts business logic."""

from .exceptions import (
    AccountsServiceError,
    UserNotFoundError,
    PrivilegeNotFoundError,
    StorageUnavailableError,
    InvalidFilenameError,
    FileQuotaExceededError,
)
from .file_storage import (
    UploadOutcome,
    get_user_file_dir,
    list_user_files,
    upload_user_file,
    delete_user_file,
    get_upload_records,
)
from .privileges import (
    PrivilegeDelta,
    get_privileges,
    set_privileges,
    has_privilege,
    is_allowed_edit_by,
)
from .statistics import (
    STATUS_CATEGORIES,
    refresh_submit_info,
    get_accepted_problem_ids,
    get_submission_statistics,
    get_last_submit_language,
)
from .account_management import (
    user_cache_key,
    get_cached_user,
    destroy_user_account,
)

__all__ = [
    # Exceptions
    'AccountsServiceError',
    'UserNotFoundError',
    'PrivilegeNotFoundError',
    'StorageUnavailableError',
    'InvalidFilenameError',
    'FileQuotaExceededError',
    # File storage
    'UploadOutcome',
    'get_user_file_dir',
    'list_user_files',
    'upload_user_file',
    'delete_user_file',
    'get_upload_records',
    # Privileges
    'PrivilegeDelta',
    'get_privileges',
    'set_privileges',
    'has_privilege',
    'is_allowed_edit_by',
    # Statistics
    'STATUS_CATEGORIES',
    'refresh_submit_info',
    'get_accepted_problem_ids',
    'get_submission_statistics',
    'get_last_submit_language',
    # Account management
    'user_cache_key',
    'get_cached_user',
    'destroy_user_account',
]
