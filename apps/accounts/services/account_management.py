"""Account management service."""

import logging

from django.conf import settings
from django.core.cache import cache

from apps.accounts.models import User
from apps.core.locks import lock

from .exceptions import UserNotFoundError

logger = logging.getLogger(__name__)

USER_LOCK = 'accounts.user'


def user_cache_key(user_id: int) -> str:
    return f"accounts.user:{user_id}"


def get_cached_user(*, user_id: int) -> User:
    """
    Read a user through the cache.

    A miss loads the row and fills the cache while holding the account
    lock, so it cannot interleave with ``destroy_user_account``.

    Args:
        user_id: User's ID

    Returns:
        User instance

    Raises:
        UserNotFoundError: If user does not exist
    """
    key = user_cache_key(user_id)
    user = cache.get(key)
    if user is not None:
        return user

    with lock((USER_LOCK, user_id)):
        user = cache.get(key)
        if user is not None:
            return user

        try:
            user = User.objects.get(pk=user_id)
        except User.DoesNotExist:
            raise UserNotFoundError(f"User with ID {user_id} not found")

        cache.set(key, user, getattr(settings, 'USER_CACHE_TIMEOUT', 300))
        return user


def destroy_user_account(*, user_id: int) -> None:
    """
    Delete an account, then evict its cache entry.

    The row goes first and the cache entry second, both under the account
    lock. Eviction runs even if the deletion fails; evicting a key that is
    not cached is a no-op. Privilege grants cascade with the row; the
    submission log is left untouched.

    Args:
        user_id: User's ID

    Raises:
        UserNotFoundError: If user does not exist
    """
    with lock((USER_LOCK, user_id)):
        try:
            deleted, _ = User.objects.filter(pk=user_id).delete()
        finally:
            cache.delete(user_cache_key(user_id))

    if not deleted:
        raise UserNotFoundError(f"User with ID {user_id} not found")

    logger.info("Destroyed account %s", user_id)
