"""
Tracker package: issue, comment and worklog entities plus payload normalization.
"""

from .models import Issue, Comment, WorklogEntry
from .grouping import group_comments_by_issue

__all__ = ["Issue", "Comment", "WorklogEntry", "group_comments_by_issue"]
