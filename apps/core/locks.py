"""
Keyed locks.

Process-wide mutual exclusion scoped to an arbitrary hashable key, such as
``('accounts.user_files', user.id)``. Callers holding different keys never
block each other; callers holding the same key run one at a time.

Locks live in a table of reference-counted ``threading.RLock`` objects. An
entry is created the first time a key is requested and dropped as soon as
no thread holds or waits for it, so the table only ever contains keys that
are in use.

Usage::

    from apps.core.locks import lock, with_lock

    with lock(('accounts.user_files', user_id)):
        move_file_into_place()

    total = with_lock(('accounts.refresh_submit_info', user_id), recount)
"""

import logging
import threading
from contextlib import contextmanager

from django.conf import settings

from .exceptions import LockTimeoutError

logger = logging.getLogger(__name__)

# Sentinel: fall back to settings.LOCK_ACQUIRE_TIMEOUT
DEFAULT_TIMEOUT = object()


class _LockEntry:
    __slots__ = ('lock', 'refs', 'held')

    def __init__(self):
        self.lock = threading.RLock()
        # Threads holding or waiting for the lock
        self.refs = 0
        # Acquisitions not yet released, re-entrant ones included
        self.held = 0


class KeyedLock:
    """Table of named re-entrant locks."""

    def __init__(self):
        self._mutex = threading.Lock()
        self._entries = {}

    def _checkout(self, key):
        with self._mutex:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _LockEntry()
            entry.refs += 1
            return entry

    def _checkin(self, key, entry):
        with self._mutex:
            entry.refs -= 1
            if entry.refs == 0:
                del self._entries[key]

    def acquire(self, key, timeout=None):
        """
        Acquire the lock for ``key``.

        Args:
            key: Hashable lock identifier
            timeout: Seconds to wait, or None to wait forever

        Raises:
            LockTimeoutError: If the lock was not acquired in time
        """
        entry = self._checkout(key)
        if timeout is None:
            acquired = entry.lock.acquire()
        else:
            acquired = entry.lock.acquire(timeout=max(timeout, 0))

        if not acquired:
            self._checkin(key, entry)
            logger.warning("Timed out after %ss waiting for lock %r", timeout, key)
            raise LockTimeoutError(key, timeout)

        with self._mutex:
            entry.held += 1
        logger.debug("Acquired lock %r", key)

    def release(self, key):
        with self._mutex:
            entry = self._entries.get(key)
            if entry is None or entry.held == 0:
                raise RuntimeError(f"Lock {key!r} is not held")
            entry.held -= 1

        entry.lock.release()
        self._checkin(key, entry)
        logger.debug("Released lock %r", key)

    def is_locked(self, key):
        with self._mutex:
            entry = self._entries.get(key)
            return entry is not None and entry.held > 0

    def __len__(self):
        with self._mutex:
            return len(self._entries)


_registry = KeyedLock()


def _normalize_key(key):
    if isinstance(key, list):
        return tuple(key)
    return key


def _resolve_timeout(timeout):
    if timeout is DEFAULT_TIMEOUT:
        return getattr(settings, 'LOCK_ACQUIRE_TIMEOUT', None)
    return timeout


@contextmanager
def lock(key, *, timeout=DEFAULT_TIMEOUT):
    """Hold the keyed lock for the duration of the ``with`` block."""
    key = _normalize_key(key)
    _registry.acquire(key, _resolve_timeout(timeout))
    try:
        yield
    finally:
        _registry.release(key)


def with_lock(key, fn, *, timeout=DEFAULT_TIMEOUT):
    """
    Run ``fn`` while holding the keyed lock and return its result.

    The lock is released whether ``fn`` returns or raises.

    Args:
        key: Hashable lock identifier (lists are converted to tuples)
        fn: Zero-argument callable
        timeout: Seconds to wait for the lock. Defaults to
            settings.LOCK_ACQUIRE_TIMEOUT; None waits forever.

    Returns:
        Whatever ``fn`` returns

    Raises:
        LockTimeoutError: If the lock was not acquired in time
    """
    with lock(key, timeout=timeout):
        return fn()


def is_locked(key):
    """Whether some thread currently holds ``key``."""
    return _registry.is_locked(_normalize_key(key))
