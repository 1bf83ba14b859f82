"""
Normalization helpers.
Turn raw Jira REST payloads into tracker.models entities.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from errors import ValidationError
from tracker.models import Issue, Comment, WorklogEntry

# Jira timestamps look like 2025-01-10T12:00:00.000+0000
_TIMESTAMP_FORMATS = (
    '%Y-%m-%dT%H:%M:%S.%f%z',
    '%Y-%m-%dT%H:%M:%S%z',
    '%Y-%m-%dT%H:%M:%S.%f',
    '%Y-%m-%dT%H:%M:%S',
    '%Y-%m-%d',
)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a Jira timestamp string into an aware datetime, or None."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+0000'
    for fmt in _TIMESTAMP_FORMATS:
        try:
            dt = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    return None


def _collect_adf_text(node: Any, parts: List[str]):
    if isinstance(node, dict):
        if node.get('type') == 'text' and node.get('text'):
            parts.append(node['text'])
        for child in node.get('content') or []:
            _collect_adf_text(child, parts)
        if node.get('type') in ('paragraph', 'heading', 'listItem'):
            parts.append(' ')
    elif isinstance(node, list):
        for child in node:
            _collect_adf_text(child, parts)


def adf_to_text(body: Any) -> str:
    """Flatten an Atlassian Document Format body (or plain string) to text."""
    if body is None:
        return ''
    if isinstance(body, str):
        return body
    parts: List[str] = []
    _collect_adf_text(body, parts)
    return ' '.join(''.join(parts).split())


def _require_mapping(raw: Any, kind: str) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise ValidationError(f"{kind} entry must be an object, got {type(raw).__name__}", details={'entry': repr(raw)[:80]})
    return raw


def _named(value: Any) -> str:
    """Jira nests many fields as {'name': ...}; accept either shape."""
    if isinstance(value, dict):
        return value.get('name') or value.get('value') or ''
    return value or ''


def normalize_issue(raw: Dict[str, Any]) -> Issue:
    """Create an Issue from a raw Jira issue dict.
    Missing fields become empty strings / None.
    """
    raw = _require_mapping(raw, 'issue')
    fields = raw.get('fields') or {}
    key = raw.get('key') or fields.get('key') or ''
    project = fields.get('project') or {}
    project_key = project.get('key', '') if isinstance(project, dict) else (project or '')
    return Issue(
        key=key,
        summary=fields.get('summary') or raw.get('summary') or '',
        description=adf_to_text(fields.get('description')),
        status=_named(fields.get('status')),
        priority=_named(fields.get('priority')),
        issue_type=_named(fields.get('issuetype')),
        project_key=project_key,
        created=parse_timestamp(fields.get('created')),
        updated=parse_timestamp(fields.get('updated')),
        issue_id=str(raw.get('id') or ''),
    )


def normalize_comment(raw: Dict[str, Any], issue_key: str = '') -> Comment:
    raw = _require_mapping(raw, 'comment')
    author = raw.get('author') or {}
    return Comment(
        comment_id=str(raw.get('id') or ''),
        body=adf_to_text(raw.get('body')),
        created=parse_timestamp(raw.get('created')),
        author=author.get('displayName', '') if isinstance(author, dict) else str(author),
        issue_key=issue_key or raw.get('issue_key') or '',
    )


def normalize_worklog(raw: Dict[str, Any]) -> WorklogEntry:
    raw = _require_mapping(raw, 'worklog')
    author = raw.get('author') or {}
    return WorklogEntry(
        issue_id=str(raw.get('issueId') or raw.get('issue_id') or ''),
        comment=adf_to_text(raw.get('comment')),
        started=parse_timestamp(raw.get('started')),
        time_spent_seconds=int(raw.get('timeSpentSeconds') or 0),
        author=author.get('displayName', '') if isinstance(author, dict) else str(author),
    )
