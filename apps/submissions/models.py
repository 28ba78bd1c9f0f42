# ==========================================
# apps/submissions/models.py
# ==========================================

from django.db import models


class SubmissionStatus(models.TextChoices):
    """Judge verdicts as written by the judging pipeline."""

    WAITING = 'Waiting', 'Waiting'
    COMPILING = 'Compiling', 'Compiling'
    RUNNING = 'Running', 'Running'
    ACCEPTED = 'Accepted', 'Accepted'
    WRONG_ANSWER = 'Wrong Answer', 'Wrong Answer'
    FILE_ERROR = 'File Error', 'File Error'
    OUTPUT_LIMIT_EXCEEDED = 'Output Limit Exceeded', 'Output Limit Exceeded'
    RUNTIME_ERROR = 'Runtime Error', 'Runtime Error'
    TIME_LIMIT_EXCEEDED = 'Time Limit Exceeded', 'Time Limit Exceeded'
    MEMORY_LIMIT_EXCEEDED = 'Memory Limit Exceeded', 'Memory Limit Exceeded'
    COMPILE_ERROR = 'Compile Error', 'Compile Error'
    PARTIALLY_CORRECT = 'Partially Correct', 'Partially Correct'
    SYSTEM_ERROR = 'System Error', 'System Error'


class SubmissionType(models.IntegerChoices):
    NORMAL = 0, 'Normal'
    CONTEST = 1, 'Contest'
    PRACTICE = 2, 'Practice'


class Submission(models.Model):
    """
    One judged submission.

    The log is written by the judging pipeline; accounts only read it.
    ``user_id`` is a plain column rather than a foreign key so the log
    survives account deletion.
    """

    user_id = models.IntegerField(db_index=True)
    problem_id = models.IntegerField(db_index=True)
    status = models.CharField(max_length=50, choices=SubmissionStatus.choices, default=SubmissionStatus.WAITING)
    type = models.SmallIntegerField(choices=SubmissionType.choices, default=SubmissionType.NORMAL)
    submit_time = models.IntegerField(db_index=True)  # unix seconds
    language = models.CharField(max_length=20, blank=True)

    class Meta:
        db_table = 'submissions'
        indexes = [
            models.Index(fields=['user_id', 'type', 'status'], name='submissions_user_id_0e4d6b_idx'),
            models.Index(fields=['user_id', 'submit_time'], name='submissions_user_id_5c1a9f_idx'),
        ]
        ordering = ['-submit_time', '-id']

    def __str__(self):
        return f"#{self.pk} user {self.user_id} problem {self.problem_id} ({self.status})"
