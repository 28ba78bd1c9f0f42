"""
Service tests for per-user file storage.

Tests cover:
- Listing (missing directory, non-file entries, sizes)
- Replace vs. add accounting on upload
- Quotas and the no_limit bypass
- Best-effort line-ending normalization
- Serialization of uploads and deletes under the user's lock
"""

import errno
import os
import subprocess
import threading
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from django.db import connection

from apps.accounts.models import UploadedFile
from apps.accounts.services import (
    FileQuotaExceededError,
    InvalidFilenameError,
    StorageUnavailableError,
    delete_user_file,
    get_upload_records,
    get_user_file_dir,
    list_user_files,
    upload_user_file,
)
from apps.core.exceptions import LockTimeoutError
from apps.core.locks import is_locked, lock


# =============================================================================
# Listing
# =============================================================================

@pytest.mark.django_db
class TestListUserFiles:
    """Tests for list_user_files()."""

    def test_missing_directory_returns_none(self, upload_dir, user):
        """A user who never uploaded has no listing."""
        assert list_user_files(user_id=user.id) is None

    def test_empty_directory(self, upload_dir, user):
        """An existing empty directory lists no files."""
        get_user_file_dir(user.id).mkdir(parents=True)

        assert list_user_files(user_id=user.id) == {'files': [], 'zip': None}

    def test_lists_files_with_sizes_sorted(self, upload_dir, user):
        """Files are reported by name and size, sorted by name."""
        directory = get_user_file_dir(user.id)
        directory.mkdir(parents=True)
        (directory / 'b.txt').write_bytes(b'12345')
        (directory / 'a.in').write_bytes(b'xy')

        listing = list_user_files(user_id=user.id)

        assert listing['files'] == [
            {'filename': 'a.in', 'size': 2},
            {'filename': 'b.txt', 'size': 5},
        ]
        assert listing['zip'] is None

    def test_skips_directories(self, upload_dir, user):
        """Non-file entries are left out silently."""
        directory = get_user_file_dir(user.id)
        (directory / 'nested').mkdir(parents=True)
        (directory / 'data.txt').write_bytes(b'abc')

        listing = list_user_files(user_id=user.id)

        assert [f['filename'] for f in listing['files']] == ['data.txt']

    def test_unreadable_directory_returns_none(self, upload_dir, user):
        """Read errors degrade to "no files" instead of raising."""
        get_user_file_dir(user.id).mkdir(parents=True)

        with patch('apps.accounts.services.file_storage.os.scandir', side_effect=PermissionError('denied')):
            assert list_user_files(user_id=user.id) is None

    def test_unstatable_entry_returns_none(self, upload_dir, user):
        """An entry that cannot be inspected makes the listing unreadable."""
        get_user_file_dir(user.id).mkdir(parents=True)
        entry = MagicMock()
        entry.name = 'locked.txt'
        entry.is_file.return_value = True
        entry.stat.side_effect = PermissionError(errno.EACCES, 'Permission denied')
        scandir = MagicMock()
        scandir.return_value.__enter__.return_value = [entry]

        with patch('apps.accounts.services.file_storage.os.scandir', scandir):
            assert list_user_files(user_id=user.id) is None

    def test_unreadable_directory_fails_upload(self, upload_dir, user, make_source):
        """Uploads refuse to guess the quota state of an unreadable directory."""
        source = make_source()
        entry = MagicMock()
        entry.name = 'locked.txt'
        entry.is_file.side_effect = PermissionError(errno.EACCES, 'Permission denied')
        scandir = MagicMock()
        scandir.return_value.__enter__.return_value = [entry]

        with patch('apps.accounts.services.file_storage.os.scandir', scandir):
            with pytest.raises(StorageUnavailableError):
                upload_user_file(user_id=user.id, filename='a.txt', source_path=source, size=7)

        assert source.exists()

    def test_users_are_isolated(self, upload_dir, user, other_user, make_source):
        """One user's uploads never show up in another's listing."""
        upload_user_file(user_id=user.id, filename='mine.txt', source_path=make_source(), size=7)

        assert list_user_files(user_id=other_user.id) is None


# =============================================================================
# Upload
# =============================================================================

@pytest.mark.django_db
class TestUploadUserFile:
    """Tests for upload_user_file()."""

    def test_upload_creates_directory_and_moves_file(self, upload_dir, user, make_source):
        """The source is moved into the user's directory."""
        source = make_source(b'hello')

        outcome = upload_user_file(user_id=user.id, filename='hello.txt', source_path=source, size=5)

        target = get_user_file_dir(user.id) / 'hello.txt'
        assert target.read_bytes() == b'hello'
        assert not source.exists()
        assert outcome.filename == 'hello.txt'
        assert outcome.size == 5
        assert outcome.replace is False
        assert outcome.old_size == 0
        assert outcome.old_count == 0

    def test_new_file_counts_existing_files(self, upload_dir, user, make_source):
        """Adding a file reports the other files' total size and count."""
        upload_user_file(user_id=user.id, filename='a.txt', source_path=make_source(b'aaa'), size=3)
        upload_user_file(user_id=user.id, filename='b.txt', source_path=make_source(b'bbbb'), size=4)

        outcome = upload_user_file(user_id=user.id, filename='c.txt', source_path=make_source(b'c'), size=1)

        assert outcome.replace is False
        assert outcome.old_size == 7
        assert outcome.old_count == 2

    def test_same_name_is_a_replace(self, upload_dir, user, make_source):
        """Re-uploading a name replaces it and excludes its old size."""
        upload_user_file(user_id=user.id, filename='a.txt', source_path=make_source(b'aaa'), size=3)
        upload_user_file(user_id=user.id, filename='b.txt', source_path=make_source(b'bbbbbbbbbb'), size=10)

        outcome = upload_user_file(user_id=user.id, filename='b.txt', source_path=make_source(b'new'), size=3)

        assert outcome.replace is True
        assert outcome.old_size == 3
        assert outcome.old_count == 2
        assert (get_user_file_dir(user.id) / 'b.txt').read_bytes() == b'new'
        listing = list_user_files(user_id=user.id)
        assert len(listing['files']) == 2

    def test_upload_tracks_record(self, upload_dir, user, make_source):
        """Each stored file has one tracking record tagged with its owner."""
        upload_user_file(user_id=user.id, filename='a.txt', source_path=make_source(b'aaa'), size=3)
        upload_user_file(user_id=user.id, filename='a.txt', source_path=make_source(b'aaaaa'), size=5)

        records = list(get_upload_records(user_id=user.id))

        assert len(records) == 1
        assert records[0].type == f'upload-by-user-{user.id}'
        assert records[0].filename == 'a.txt'
        assert records[0].size == 5

    @pytest.mark.parametrize('filename', ['', '.', '..', '../escape', 'a/b', 'a\\b', 'nul\x00'])
    def test_rejects_unsafe_filenames(self, upload_dir, user, make_source, filename):
        """Names that could leave the user's directory are refused."""
        source = make_source()

        with pytest.raises(InvalidFilenameError):
            upload_user_file(user_id=user.id, filename=filename, source_path=source, size=7)

        assert source.exists()

    def test_missing_source_is_storage_error(self, upload_dir, user, tmp_path):
        """A source that cannot be moved surfaces as StorageUnavailableError."""
        with pytest.raises(StorageUnavailableError):
            upload_user_file(
                user_id=user.id,
                filename='ghost.txt',
                source_path=tmp_path / 'does-not-exist',
                size=1,
            )

    def test_cross_device_move_falls_back_to_copy(self, upload_dir, user, make_source):
        """When rename fails with EXDEV the file is copied then swapped in."""
        real_replace = os.replace
        calls = []

        def replace(src, dst):
            calls.append((src, dst))
            if len(calls) == 1:
                raise OSError(errno.EXDEV, 'Invalid cross-device link')
            return real_replace(src, dst)

        source = make_source(b'moved')
        with patch('apps.accounts.services.file_storage.os.replace', side_effect=replace):
            upload_user_file(user_id=user.id, filename='x.txt', source_path=source, size=5)

        assert (get_user_file_dir(user.id) / 'x.txt').read_bytes() == b'moved'
        assert not source.exists()
        assert len(calls) == 2

    def test_cross_device_source_cleanup_failure_still_stores(self, upload_dir, user, make_source):
        """A source left behind after the copy does not undo the upload."""
        real_replace = os.replace
        real_remove = os.remove
        source = make_source(b'moved')
        calls = []

        def replace(src, dst):
            calls.append((src, dst))
            if len(calls) == 1:
                raise OSError(errno.EXDEV, 'Invalid cross-device link')
            return real_replace(src, dst)

        def remove(path):
            if Path(path) == source:
                raise PermissionError(errno.EACCES, 'Permission denied')
            return real_remove(path)

        with patch('apps.accounts.services.file_storage.os.replace', side_effect=replace), \
                patch('apps.accounts.services.file_storage.os.remove', side_effect=remove):
            outcome = upload_user_file(user_id=user.id, filename='x.txt', source_path=source, size=5)

        assert outcome.filename == 'x.txt'
        assert (get_user_file_dir(user.id) / 'x.txt').read_bytes() == b'moved'
        assert UploadedFile.objects.filter(filename='x.txt').exists()
        assert source.exists()


# =============================================================================
# Quotas
# =============================================================================

@pytest.mark.django_db
class TestUploadQuota:
    """Tests for USER_FILE_SIZE_LIMIT / USER_FILE_COUNT_LIMIT."""

    def test_size_limit_exceeded(self, upload_dir, settings, user, make_source):
        """Uploads pushing the total past the size limit are rejected."""
        settings.USER_FILE_SIZE_LIMIT = 10
        upload_user_file(user_id=user.id, filename='a.txt', source_path=make_source(b'x' * 6), size=6)

        source = make_source(b'y' * 5)
        with pytest.raises(FileQuotaExceededError):
            upload_user_file(user_id=user.id, filename='b.txt', source_path=source, size=5)

        assert source.exists()
        assert not (get_user_file_dir(user.id) / 'b.txt').exists()

    def test_replace_does_not_double_count(self, upload_dir, settings, user, make_source):
        """Replacing a file only counts the new size against the limit."""
        settings.USER_FILE_SIZE_LIMIT = 10
        upload_user_file(user_id=user.id, filename='a.txt', source_path=make_source(b'x' * 6), size=6)

        outcome = upload_user_file(user_id=user.id, filename='a.txt', source_path=make_source(b'y' * 9), size=9)

        assert outcome.replace is True
        assert (get_user_file_dir(user.id) / 'a.txt').stat().st_size == 9

    def test_count_limit_allows_replace(self, upload_dir, settings, user, make_source):
        """The count limit blocks new names but not replacements."""
        settings.USER_FILE_COUNT_LIMIT = 1
        upload_user_file(user_id=user.id, filename='a.txt', source_path=make_source(), size=7)

        upload_user_file(user_id=user.id, filename='a.txt', source_path=make_source(), size=7)
        with pytest.raises(FileQuotaExceededError):
            upload_user_file(user_id=user.id, filename='b.txt', source_path=make_source(), size=7)

    def test_no_limit_bypasses_quota(self, upload_dir, settings, user, make_source):
        """no_limit skips both limits."""
        settings.USER_FILE_SIZE_LIMIT = 1
        settings.USER_FILE_COUNT_LIMIT = 1
        upload_user_file(user_id=user.id, filename='a.txt', source_path=make_source(), size=7, no_limit=True)
        upload_user_file(user_id=user.id, filename='b.txt', source_path=make_source(), size=7, no_limit=True)

        assert len(list_user_files(user_id=user.id)['files']) == 2


# =============================================================================
# Line-ending normalization
# =============================================================================

@pytest.mark.django_db
class TestLineEndingNormalization:
    """Tests for the best-effort normalization pass."""

    def test_normalizer_runs_on_stored_file(self, upload_dir, settings, user, make_source):
        """The configured command receives the stored path."""
        settings.LINE_ENDING_NORMALIZER = ['dos2unix', '-q']

        with patch('apps.accounts.services.file_storage.subprocess.run') as mock_run:
            upload_user_file(user_id=user.id, filename='crlf.txt', source_path=make_source(b'a\r\n'), size=3)

        args = mock_run.call_args[0][0]
        assert args == ['dos2unix', '-q', str(get_user_file_dir(user.id) / 'crlf.txt')]

    @pytest.mark.parametrize('error', [
        FileNotFoundError('dos2unix'),
        subprocess.CalledProcessError(1, 'dos2unix'),
        subprocess.TimeoutExpired('dos2unix', 10),
        RuntimeError('anything else'),
    ])
    def test_normalizer_failure_is_swallowed(self, upload_dir, settings, user, make_source, error):
        """A failing normalizer never fails the upload."""
        settings.LINE_ENDING_NORMALIZER = ['dos2unix', '-q']

        with patch('apps.accounts.services.file_storage.subprocess.run', side_effect=error):
            outcome = upload_user_file(user_id=user.id, filename='a.txt', source_path=make_source(b'a\r\n'), size=3)

        assert outcome.filename == 'a.txt'
        assert (get_user_file_dir(user.id) / 'a.txt').read_bytes() == b'a\r\n'

    def test_empty_command_skips_normalization(self, upload_dir, user, make_source):
        """No command configured means no subprocess."""
        with patch('apps.accounts.services.file_storage.subprocess.run') as mock_run:
            upload_user_file(user_id=user.id, filename='a.txt', source_path=make_source(), size=7)

        mock_run.assert_not_called()


# =============================================================================
# Delete
# =============================================================================

@pytest.mark.django_db
class TestDeleteUserFile:
    """Tests for delete_user_file()."""

    def test_delete_removes_file_and_record(self, upload_dir, user, make_source):
        """Deleting removes the file and its tracking record."""
        upload_user_file(user_id=user.id, filename='a.txt', source_path=make_source(), size=7)

        delete_user_file(user_id=user.id, filename='a.txt')

        assert not (get_user_file_dir(user.id) / 'a.txt').exists()
        assert not UploadedFile.objects.filter(filename='a.txt').exists()
        assert list_user_files(user_id=user.id) == {'files': [], 'zip': None}

    def test_delete_missing_file_is_not_an_error(self, upload_dir, user):
        """Absence is fine, even without a directory."""
        delete_user_file(user_id=user.id, filename='never-there.txt')

    def test_delete_rejects_unsafe_filename(self, upload_dir, user):
        with pytest.raises(InvalidFilenameError):
            delete_user_file(user_id=user.id, filename='../x')


# =============================================================================
# Locking
# =============================================================================

@pytest.mark.django_db
class TestFileLocking:
    """Uploads and deletes hold the per-user file lock."""

    def test_upload_holds_user_lock(self, upload_dir, settings, user, make_source):
        """While the file is being stored, the user's lock is taken."""
        settings.LINE_ENDING_NORMALIZER = ['dos2unix']
        observed = []

        def normalizer(*args, **kwargs):
            observed.append(is_locked(('accounts.user_files', user.id)))

        with patch('apps.accounts.services.file_storage.subprocess.run', side_effect=normalizer):
            upload_user_file(user_id=user.id, filename='a.txt', source_path=make_source(), size=7)

        assert observed == [True]
        assert not is_locked(('accounts.user_files', user.id))

    def test_upload_times_out_on_busy_lock(self, upload_dir, settings, user, make_source):
        """A user lock held elsewhere makes the upload wait, then give up."""
        settings.LOCK_ACQUIRE_TIMEOUT = 0.05
        acquired = threading.Event()
        release = threading.Event()

        def hold():
            with lock(('accounts.user_files', user.id)):
                acquired.set()
                release.wait(5)

        holder = threading.Thread(target=hold)
        holder.start()
        acquired.wait(5)
        source = make_source()
        try:
            with pytest.raises(LockTimeoutError):
                upload_user_file(user_id=user.id, filename='a.txt', source_path=source, size=7)
            with pytest.raises(LockTimeoutError):
                delete_user_file(user_id=user.id, filename='a.txt')
        finally:
            release.set()
            holder.join()

        assert source.exists()
        assert list_user_files(user_id=user.id) is None


@pytest.mark.django_db(transaction=True)
class TestConcurrentUploads:
    """Uploads from several threads."""

    def _run(self, target, count):
        errors = []

        def worker(index):
            try:
                target(index)
            except Exception as e:
                errors.append(e)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return errors

    def test_other_users_do_not_block(self, upload_dir, user, other_user, make_source):
        """A held lock for one user does not delay another user's upload."""
        source = make_source()
        with lock(('accounts.user_files', user.id)):
            errors = self._run(
                lambda i: upload_user_file(
                    user_id=other_user.id,
                    filename='free.txt',
                    source_path=source,
                    size=7,
                ),
                1,
            )

        assert errors == []
        assert list_user_files(user_id=other_user.id)['files'] == [
            {'filename': 'free.txt', 'size': 7},
        ]

    def test_parallel_uploads_all_land(self, upload_dir, user, make_source):
        """Distinct names uploaded at once are all stored and tracked."""
        sources = [make_source(b'x' * (i + 1)) for i in range(8)]

        errors = self._run(
            lambda i: upload_user_file(
                user_id=user.id,
                filename=f'file-{i}.txt',
                source_path=sources[i],
                size=i + 1,
            ),
            8,
        )

        assert errors == []
        listing = list_user_files(user_id=user.id)
        assert len(listing['files']) == 8
        assert sum(f['size'] for f in listing['files']) == sum(range(1, 9))
        assert get_upload_records(user_id=user.id).count() == 8

    def test_count_limit_holds_under_contention(self, upload_dir, settings, user, make_source):
        """Concurrent uploads cannot overshoot the file count limit."""
        settings.USER_FILE_COUNT_LIMIT = 3
        sources = [make_source() for _ in range(8)]

        errors = self._run(
            lambda i: upload_user_file(
                user_id=user.id,
                filename=f'file-{i}.txt',
                source_path=sources[i],
                size=7,
            ),
            8,
        )

        assert len(errors) == 5
        assert all(isinstance(e, FileQuotaExceededError) for e in errors)
        assert len(list_user_files(user_id=user.id)['files']) == 3
