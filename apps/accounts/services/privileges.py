"""
Privilege management service.

A user's privileges are loose ``UserPrivilege`` rows, at most one per
(user, privilege) thanks to a unique constraint. ``set_privileges``
reconciles the stored set against a requested one with the fewest writes:
stale grants are removed first, missing ones created afterwards, all in one
transaction. Two reconciliations racing for the same user are not
serialized; the unique constraint rejects a duplicate add and the loser's
``IntegrityError`` propagates.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Set, Tuple

from django.db import transaction

from apps.accounts.models import Privilege, User, UserPrivilege

from .exceptions import PrivilegeNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrivilegeDelta:
    """Grants created and removed by one reconciliation."""

    added: Tuple[str, ...]
    removed: Tuple[str, ...]

    @property
    def writes(self) -> int:
        return len(self.added) + len(self.removed)


def get_privileges(*, user_id: int) -> Set[str]:
    """Names of the privileges explicitly granted to a user."""
    return set(
        UserPrivilege.objects
        .filter(user_id=user_id)
        .values_list('privilege', flat=True)
    )


@transaction.atomic
def set_privileges(*, user_id: int, privileges: Iterable[str]) -> PrivilegeDelta:
    """
    Make a user's grants equal to ``privileges``.

    Args:
        user_id: User whose grants change
        privileges: Requested privilege names; duplicates are ignored

    Returns:
        PrivilegeDelta with the names added and removed, each sorted

    Raises:
        PrivilegeNotFoundError: If a grant vanished before it could be removed
        IntegrityError: If a concurrent reconciliation created a grant first
    """
    requested = set(privileges)
    current = get_privileges(user_id=user_id)

    to_remove = sorted(current - requested)
    to_add = sorted(requested - current)

    for privilege in to_remove:
        deleted, _ = UserPrivilege.objects.filter(
            user_id=user_id,
            privilege=privilege,
        ).delete()
        if not deleted:
            raise PrivilegeNotFoundError(
                f"User {user_id} lost privilege {privilege!r} during reconciliation"
            )

    for privilege in to_add:
        UserPrivilege.objects.create(user_id=user_id, privilege=privilege)

    if to_remove or to_add:
        logger.info(
            "Privileges of user %s: added %s, removed %s",
            user_id, to_add, to_remove,
        )

    return PrivilegeDelta(added=tuple(to_add), removed=tuple(to_remove))


def has_privilege(*, user: User, privilege: str) -> bool:
    """
    Whether a user holds a privilege.

    Admins hold every privilege whether or not it was granted.
    """
    if user.is_admin:
        return True

    return UserPrivilege.objects.filter(user_id=user.pk, privilege=privilege).exists()


def is_allowed_edit_by(*, target: User, user: Optional[User]) -> bool:
    """Whether ``user`` may edit the account ``target``."""
    if user is None or not user.is_authenticated:
        return False
    if has_privilege(user=user, privilege=Privilege.MANAGE_USER):
        return True
    return user.is_admin or target.pk == user.pk
