"""
Submission Log Queries
======================

Read-only query surface over the submission log. Account statistics are
built on top of these functions; nothing here writes to the log.

Example:
    Counting a user's verdicts::

        from apps.submissions.services import count_submissions
        from apps.submissions.models import SubmissionStatus, SubmissionType

        wrong = count_submissions(
            user_id=user.id,
            status=SubmissionStatus.WRONG_ANSWER,
            type=SubmissionType.NORMAL,
        )
"""

from typing import List, Optional

from .models import Submission, SubmissionStatus, SubmissionType


def count_submissions(
    *,
    user_id: int,
    status: Optional[str] = None,
    type: Optional[int] = None,
    exclude_type: Optional[int] = None,
) -> int:
    """
    Count a user's submissions matching the given filters.

    Args:
        user_id: Author of the submissions
        status: Only count this verdict
        type: Only count this submission type
        exclude_type: Skip this submission type

    Returns:
        Number of matching submissions
    """
    queryset = Submission.objects.filter(user_id=user_id)

    if status is not None:
        queryset = queryset.filter(status=status)
    if type is not None:
        queryset = queryset.filter(type=type)
    if exclude_type is not None:
        queryset = queryset.exclude(type=exclude_type)

    return queryset.count()


def accepted_problem_ids(*, user_id: int) -> List[int]:
    """
    Distinct ids of the problems a user has solved outside contests.

    Returns:
        Problem ids in ascending order
    """
    return list(
        Submission.objects
        .filter(user_id=user_id, status=SubmissionStatus.ACCEPTED)
        .exclude(type=SubmissionType.CONTEST)
        .order_by('problem_id')
        .values_list('problem_id', flat=True)
        .distinct()
    )


def latest_submission(*, user_id: int) -> Optional[Submission]:
    """Most recent submission by submit time, or None."""
    return (
        Submission.objects
        .filter(user_id=user_id)
        .order_by('-submit_time', '-id')
        .first()
    )
