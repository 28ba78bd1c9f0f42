"""
User file storage service.

Every user owns a flat directory ``UPLOAD_DIR/user-upload/<user id>/``.
Uploads and deletions for one user are serialized with the keyed lock
``('accounts.user_files', user_id)``; listing takes no lock and may see
either side of a concurrent change, never a half-written file, because
files only ever appear or disappear through atomic renames and unlinks.
"""

import errno
import logging
import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from django.conf import settings
from django.db.models import QuerySet

from apps.accounts.models import UploadedFile, upload_file_type
from apps.core.locks import lock, with_lock

from .exceptions import (
    FileQuotaExceededError,
    InvalidFilenameError,
    StorageUnavailableError,
)

logger = logging.getLogger(__name__)

USER_FILES_LOCK = 'accounts.user_files'


@dataclass(frozen=True)
class UploadOutcome:
    """What an upload replaced and what the directory held before it."""

    filename: str
    size: int
    replace: bool
    old_size: int  # bytes held by the other files
    old_count: int


def get_user_file_dir(user_id: int) -> Path:
    return Path(settings.UPLOAD_DIR) / 'user-upload' / str(user_id)


def _staging_dir() -> Path:
    # Sits on the same filesystem as the user directories
    return Path(settings.UPLOAD_DIR) / 'user-upload' / '.staging'


def _validate_filename(filename: str) -> None:
    if (
        not filename
        or filename in ('.', '..')
        or '/' in filename
        or '\\' in filename
        or '\x00' in filename
    ):
        raise InvalidFilenameError(f"Invalid filename: {filename!r}")


def list_user_files(*, user_id: int) -> Optional[dict]:
    """
    List the regular files in a user's upload directory.

    Args:
        user_id: Owner of the directory

    Returns:
        ``{'files': [{'filename': str, 'size': int}, ...], 'zip': None}``
        sorted by filename, or None if the directory is missing or
        unreadable
    """
    directory = get_user_file_dir(user_id)

    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda entry: entry.name)
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.warning("Cannot read upload directory %s: %s", directory, e)
        return None

    files = []
    for entry in entries:
        try:
            if not entry.is_file():
                continue
            size = entry.stat().st_size
        except FileNotFoundError:
            # Deleted while listing
            continue
        except OSError as e:
            logger.warning("Cannot stat %s in %s: %s", entry.name, directory, e)
            return None
        files.append({'filename': entry.name, 'size': size})

    return {
        'files': files,
        'zip': None,
    }


def _check_quota(*, size: int, replace: bool, old_size: int, old_count: int) -> None:
    size_limit = getattr(settings, 'USER_FILE_SIZE_LIMIT', 0)
    if size_limit and old_size + size > size_limit:
        raise FileQuotaExceededError(
            f"Upload would use {old_size + size} bytes, limit is {size_limit}"
        )

    count_limit = getattr(settings, 'USER_FILE_COUNT_LIMIT', 0)
    if count_limit and not replace and old_count + 1 > count_limit:
        raise FileQuotaExceededError(
            f"Upload would exceed the limit of {count_limit} files"
        )


def _move_into_place(source: Path, target: Path) -> None:
    try:
        os.replace(source, target)
        return
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise

    # Source is on another filesystem: stage a copy, then rename it over the target
    staging = _staging_dir()
    staging.mkdir(parents=True, exist_ok=True)
    fd, partial = tempfile.mkstemp(dir=staging)
    os.close(fd)
    try:
        shutil.copyfile(source, partial)
        os.replace(partial, target)
    except BaseException:
        if os.path.exists(partial):
            os.remove(partial)
        raise

    try:
        os.remove(source)
    except OSError as e:
        logger.warning("Stored %s but could not remove %s: %s", target, source, e)


def normalize_line_endings(path: Path) -> None:
    """
    Run the configured line-ending normalizer on ``path``.

    Best effort: any failure is logged and ignored.
    """
    command = list(getattr(settings, 'LINE_ENDING_NORMALIZER', None) or [])
    if not command:
        return

    try:
        subprocess.run(
            [*command, str(path)],
            check=True,
            capture_output=True,
            timeout=getattr(settings, 'LINE_ENDING_NORMALIZER_TIMEOUT', 10),
        )
    except Exception as e:  # never reaches the caller
        logger.debug("Line ending normalization skipped for %s: %s", path, e)


def upload_user_file(
    *,
    user_id: int,
    filename: str,
    source_path,
    size: int,
    no_limit: bool = False
) -> UploadOutcome:
    """
    Move an uploaded file into a user's directory.

    An existing file with the same name is overwritten and reported as a
    replacement, so its old size is not counted against the quota.

    Args:
        user_id: Owner of the directory
        filename: Name to store the file under
        source_path: Path of the uploaded content; it is moved, not copied
        size: Size of the uploaded content in bytes
        no_limit: Skip the USER_FILE_SIZE_LIMIT/USER_FILE_COUNT_LIMIT checks

    Returns:
        UploadOutcome describing the directory before the upload

    Raises:
        InvalidFilenameError: If filename is not a plain file name
        FileQuotaExceededError: If a configured limit would be exceeded
        StorageUnavailableError: If the directory cannot be written
        LockTimeoutError: If the user's file lock is busy for too long
    """
    _validate_filename(filename)

    def store():
        directory = get_user_file_dir(user_id)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailableError(f"Cannot create {directory}: {e}") from e

        listing = list_user_files(user_id=user_id)
        if listing is None:
            # The directory exists, so it could not be read
            raise StorageUnavailableError(f"Cannot list {directory}")

        old_size, old_count, replace = 0, len(listing['files']), False
        for file in listing['files']:
            if file['filename'] != filename:
                old_size += file['size']
            else:
                replace = True

        if not no_limit:
            _check_quota(size=size, replace=replace, old_size=old_size, old_count=old_count)

        target = directory / filename
        try:
            _move_into_place(Path(source_path), target)
        except OSError as e:
            raise StorageUnavailableError(f"Cannot store {target}: {e}") from e

        normalize_line_endings(target)

        try:
            stored_size = target.stat().st_size
        except OSError:
            stored_size = size

        UploadedFile.objects.update_or_create(
            type=upload_file_type(user_id),
            filename=filename,
            defaults={'size': stored_size},
        )

        logger.info(
            "User %s uploaded %s (%d bytes, %s)",
            user_id, filename, stored_size, 'replaced' if replace else 'new',
        )
        return UploadOutcome(
            filename=filename,
            size=stored_size,
            replace=replace,
            old_size=old_size,
            old_count=old_count,
        )

    return with_lock((USER_FILES_LOCK, user_id), store)


def delete_user_file(*, user_id: int, filename: str) -> None:
    """
    Remove a file from a user's directory. A missing file is not an error.

    Raises:
        InvalidFilenameError: If filename is not a plain file name
        StorageUnavailableError: If the file exists but cannot be removed
        LockTimeoutError: If the user's file lock is busy for too long
    """
    _validate_filename(filename)

    with lock((USER_FILES_LOCK, user_id)):
        path = get_user_file_dir(user_id) / filename
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageUnavailableError(f"Cannot remove {path}: {e}") from e

        UploadedFile.objects.filter(
            type=upload_file_type(user_id),
            filename=filename,
        ).delete()

    logger.info("User %s deleted %s", user_id, filename)


def get_upload_records(*, user_id: int) -> QuerySet[UploadedFile]:
    """Tracking records of a user's uploads, ordered by filename."""
    return UploadedFile.objects.filter(type=upload_file_type(user_id))
