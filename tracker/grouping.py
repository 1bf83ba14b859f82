"""
Associate comments with issues.
Simple, dependency-free heuristics:
- explicit issue_key on the comment
- an issue key mentioned in the comment body
"""
import re
from typing import Dict, List, Optional

from tracker.models import Comment, Issue

DEFAULT_KEY_PATTERN = r"[A-Z][A-Z0-9]+-\d+"


def find_issue_keys_in_text(text: str, key_pattern: Optional[str] = DEFAULT_KEY_PATTERN) -> List[str]:
    """Return issue keys in order of first appearance."""
    if not text:
        return []
    pattern = re.compile(key_pattern)
    seen: List[str] = []
    for m in pattern.finditer(text):
        if m.group(0) not in seen:
            seen.append(m.group(0))
    return seen


def _resolve_key(comment: Comment, known_keys: set, key_pattern: str) -> str:
    if comment.issue_key:
        return comment.issue_key
    for k in find_issue_keys_in_text(comment.body, key_pattern):
        if k in known_keys:
            return k
    return ''


def group_comments_by_issue(comments: List[Comment], issues: List[Issue], key_pattern: Optional[str] = None) -> Dict[str, List[Comment]]:
    """
    Group a flat list of comments by issue key.

    Comments that cannot be tied to a known issue are dropped. Order within each
    group follows the input order.
    """
    key_pattern = key_pattern or DEFAULT_KEY_PATTERN
    known_keys = {i.key for i in issues or [] if i.key}
    grouped: Dict[str, List[Comment]] = {}
    for c in comments or []:
        key = _resolve_key(c, known_keys, key_pattern)
        if key:
            grouped.setdefault(key, []).append(c)
    return grouped
