"""
Issue tracker entities consumed by the standup pipeline.
"""

from datetime import datetime
from typing import Optional


class Issue:
    """
    A tracker issue with the fields the pipeline reads.
    """
    def __init__(self, key: str, summary: str = '', description: str = '', status: str = '', priority: str = '', issue_type: str = '', project_key: str = '', created: Optional[datetime] = None, updated: Optional[datetime] = None, issue_id: str = ''):
        self.key = key
        self.summary = summary
        self.description = description
        self.status = status  # e.g. "In Progress", "Done"
        self.priority = priority  # e.g. "High", "Critical"
        self.issue_type = issue_type  # Bug/Story/Task/Epic
        self.project_key = project_key
        self.created = created
        self.updated = updated
        self.issue_id = issue_id

    def text(self) -> str:
        """Summary and description joined for keyword scans."""
        return f"{self.summary} {self.description}".strip()

    def __repr__(self):
        return f"Issue(key={self.key!r}, status={self.status!r}, summary={self.summary!r})"


class Comment:
    """
    A free-text comment on an issue.
    """
    def __init__(self, comment_id: str, body: str, created: Optional[datetime] = None, author: str = '', issue_key: str = ''):
        self.comment_id = comment_id
        self.body = body
        self.created = created
        self.author = author
        self.issue_key = issue_key  # optional, used when comments arrive as a flat list

    def __repr__(self):
        return f"Comment(id={self.comment_id!r}, issue_key={self.issue_key!r})"


class WorklogEntry:
    """
    Logged time against an issue.
    """
    def __init__(self, issue_id: str, comment: str = '', started: Optional[datetime] = None, time_spent_seconds: int = 0, author: str = ''):
        self.issue_id = issue_id
        self.comment = comment
        self.started = started
        self.time_spent_seconds = time_spent_seconds
        self.author = author
