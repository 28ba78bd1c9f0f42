"""Statistics service - Submission counters and verdict breakdowns."""

import logging
from typing import Dict, List, Optional

from django.core.cache import cache

from apps.accounts.models import User
from apps.core.locks import lock
from apps.submissions.models import SubmissionStatus, SubmissionType
from apps.submissions.services import (
    accepted_problem_ids,
    count_submissions,
    latest_submission,
)

from .account_management import USER_LOCK, user_cache_key
from .exceptions import UserNotFoundError

logger = logging.getLogger(__name__)

REFRESH_LOCK = 'accounts.refresh_submit_info'

# Displayed category -> raw verdicts counted under it
STATUS_CATEGORIES = {
    'Accepted': [SubmissionStatus.ACCEPTED],
    'Wrong Answer': [
        SubmissionStatus.WRONG_ANSWER,
        SubmissionStatus.FILE_ERROR,
        SubmissionStatus.OUTPUT_LIMIT_EXCEEDED,
    ],
    'Runtime Error': [SubmissionStatus.RUNTIME_ERROR],
    'Time Limit Exceeded': [SubmissionStatus.TIME_LIMIT_EXCEEDED],
    'Memory Limit Exceeded': [SubmissionStatus.MEMORY_LIMIT_EXCEEDED],
    'Compile Error': [SubmissionStatus.COMPILE_ERROR],
}


def refresh_submit_info(*, user_id: int) -> User:
    """
    Recompute a user's ``ac_num`` and ``submit_num`` from the submission log.

    Contest submissions are left out of both counters. Two refreshes of the
    same user never interleave, so the stored pair always comes from one
    snapshot; submissions judged after the snapshot show up on the next
    refresh. The cached copy of the user is evicted.

    Args:
        user_id: User to refresh

    Returns:
        The updated User instance

    Raises:
        UserNotFoundError: If the user does not exist
        LockTimeoutError: If another refresh holds the lock for too long
    """
    with lock((REFRESH_LOCK, user_id)):
        try:
            user = User.objects.get(pk=user_id)
        except User.DoesNotExist:
            raise UserNotFoundError(f"User with ID {user_id} not found")

        user.ac_num = len(get_accepted_problem_ids(user_id=user_id))
        user.submit_num = count_submissions(
            user_id=user_id,
            exclude_type=SubmissionType.CONTEST,
        )
        user.save(update_fields=['ac_num', 'submit_num'])

        # Serialized with the cache fill in get_cached_user
        with lock((USER_LOCK, user_id)):
            cache.delete(user_cache_key(user_id))

    logger.info(
        "Refreshed submit info of user %s: ac_num=%d submit_num=%d",
        user_id, user.ac_num, user.submit_num,
    )
    return user


def get_accepted_problem_ids(*, user_id: int) -> List[int]:
    """Distinct problems solved outside contests, ascending."""
    return accepted_problem_ids(user_id=user_id)


def get_submission_statistics(*, user_id: int) -> Dict[str, int]:
    """
    Count a user's normal (non-contest, non-practice) submissions per verdict category.

    Every category of STATUS_CATEGORIES is present in the result, zero when
    the user has no such submissions.

    Example:
        >>> get_submission_statistics(user_id=user.id)
        {'Accepted': 12, 'Wrong Answer': 7, 'Runtime Error': 1,
         'Time Limit Exceeded': 3, 'Memory Limit Exceeded': 0,
         'Compile Error': 2}
    """
    result = {}
    for category, statuses in STATUS_CATEGORIES.items():
        result[category] = sum(
            count_submissions(
                user_id=user_id,
                status=status,
                type=SubmissionType.NORMAL,
            )
            for status in statuses
        )
    return result


def get_last_submit_language(*, user_id: int) -> Optional[str]:
    """Language of the user's most recent submission, or None."""
    submission = latest_submission(user_id=user_id)
    if submission is None:
        return None
    return submission.language
