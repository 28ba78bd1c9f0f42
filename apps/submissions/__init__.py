"""
Submissions App - Read-only Submission Log

Holds the judged submission records produced by the judging pipeline and
the read-only queries the accounts app aggregates into user statistics.
"""
