"""
Structured work model produced by the data aggregator.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from errors import ValidationError
from tracker.models import Comment, Issue


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


def unique(items: List[str]) -> List[str]:
    """Drop empty strings and duplicates, keeping first-seen order."""
    seen = set()
    out = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            out.append(item)
    return out


class Activity:
    """
    Base for typed work records. KEY_FIELDS name the attributes that identify
    a record when deduplicating; description and timestamp are not part of it.
    """
    KEY_FIELDS = ('type', 'action', 'status')

    def dedup_key(self) -> tuple:
        return (self.__class__.__name__,) + tuple(getattr(self, f, '') for f in self.KEY_FIELDS)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.__dict__)
        data['timestamp'] = _iso(data.get('timestamp'))
        return data


class DeploymentActivity(Activity):
    KEY_FIELDS = ('type', 'environment', 'status', 'component')

    def __init__(self, type: str, environment: str, status: str, component: str, description: str = '', timestamp: Optional[datetime] = None):
        self.type = type  # deploy/rollback/hotfix/canary/blue_green
        self.environment = environment
        self.status = status
        self.component = component
        self.description = description
        self.timestamp = timestamp


class InfrastructureWork(Activity):
    KEY_FIELDS = ('type', 'action', 'component', 'status')

    def __init__(self, type: str, action: str, component: str, status: str, description: str = '', timestamp: Optional[datetime] = None):
        self.type = type  # terraform/aws/kubernetes
        self.action = action
        self.component = component
        self.status = status
        self.description = description
        self.timestamp = timestamp


class DatabaseActivity(Activity):
    KEY_FIELDS = ('type', 'action', 'database', 'status')

    def __init__(self, type: str, action: str, database: str, status: str, description: str = '', timestamp: Optional[datetime] = None):
        self.type = type
        self.action = action
        self.database = database
        self.status = status
        self.description = description
        self.timestamp = timestamp


class SecurityActivity(Activity):
    KEY_FIELDS = ('type', 'action', 'component', 'status')

    def __init__(self, type: str, action: str, component: str, status: str, description: str = '', timestamp: Optional[datetime] = None):
        self.type = type  # authentication/secrets
        self.action = action
        self.component = component
        self.status = status
        self.description = description
        self.timestamp = timestamp


class TestingActivity(Activity):
    KEY_FIELDS = ('type', 'action', 'status', 'results')

    def __init__(self, type: str, action: str, status: str, results: str = '', description: str = '', timestamp: Optional[datetime] = None):
        self.type = type
        self.action = action
        self.status = status
        self.results = results
        self.description = description
        self.timestamp = timestamp


class CodeReviewActivity(Activity):
    KEY_FIELDS = ('type', 'action', 'pr_number', 'status')

    def __init__(self, type: str, action: str, status: str, pr_number: str = '', description: str = '', timestamp: Optional[datetime] = None):
        self.type = type
        self.action = action
        self.pr_number = pr_number
        self.status = status
        self.description = description
        self.timestamp = timestamp


def _unique_records(records: List[Activity]) -> List[Activity]:
    seen = set()
    out = []
    for r in records:
        k = r.dedup_key()
        if k not in seen:
            seen.add(k)
            out.append(r)
    return out


class TechnicalContext:
    """
    Technologies, environments, actions and typed activity records.
    Callers append freely and call deduplicate() once they are done.
    """
    RECORD_LISTS = ('deployments', 'infrastructure', 'database_work', 'security_work', 'testing_work', 'code_review_work')

    def __init__(self):
        self.technologies: List[str] = []
        self.environments: List[str] = []
        self.actions: List[str] = []
        self.deployments: List[DeploymentActivity] = []
        self.infrastructure: List[InfrastructureWork] = []
        self.database_work: List[DatabaseActivity] = []
        self.security_work: List[SecurityActivity] = []
        self.testing_work: List[TestingActivity] = []
        self.code_review_work: List[CodeReviewActivity] = []

    def merge(self, other: 'TechnicalContext') -> 'TechnicalContext':
        self.technologies.extend(other.technologies)
        self.environments.extend(other.environments)
        self.actions.extend(other.actions)
        for name in self.RECORD_LISTS:
            getattr(self, name).extend(getattr(other, name))
        return self

    def deduplicate(self) -> 'TechnicalContext':
        self.technologies = unique(self.technologies)
        self.environments = unique(self.environments)
        self.actions = unique(self.actions)
        for name in self.RECORD_LISTS:
            setattr(self, name, _unique_records(getattr(self, name)))
        return self

    def validate(self) -> List[Dict[str, str]]:
        problems = []
        for i, d in enumerate(self.deployments):
            if not d.type:
                problems.append({'field': f"technical_context.deployments[{i}].type", 'value': d.type, 'message': 'Deployment type cannot be empty'})
            if not d.status:
                problems.append({'field': f"technical_context.deployments[{i}].status", 'value': d.status, 'message': 'Deployment status cannot be empty'})
        for i, w in enumerate(self.infrastructure):
            if not w.type:
                problems.append({'field': f"technical_context.infrastructure[{i}].type", 'value': w.type, 'message': 'Infrastructure type cannot be empty'})
        return problems

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'technologies': list(self.technologies),
            'environments': list(self.environments),
            'actions': list(self.actions),
        }
        for name in self.RECORD_LISTS:
            data[name] = [r.to_dict() for r in getattr(self, name)]
        return data


class ProcessedComment:
    """
    A comment with the signals extracted from its text.
    """
    def __init__(self, original: Comment, extracted_actions: List[str], technical_terms: List[str], work_type: str, sentiment: str, importance: int, activity_type: str, completion_status: str, key_topics: List[str], patterns: Optional[Dict[str, Any]] = None):
        self.original = original
        self.extracted_actions = extracted_actions
        self.technical_terms = technical_terms
        self.work_type = work_type
        self.sentiment = sentiment  # positive/negative/neutral
        self.importance = importance  # 0..100
        self.activity_type = activity_type
        self.completion_status = completion_status
        self.key_topics = key_topics
        self.patterns = patterns or {}  # match_all_patterns() result

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.original.comment_id,
            'body': self.original.body,
            'created': _iso(self.original.created),
            'extracted_actions': self.extracted_actions,
            'technical_terms': self.technical_terms,
            'work_type': self.work_type,
            'sentiment': self.sentiment,
            'importance': self.importance,
            'activity_type': self.activity_type,
            'completion_status': self.completion_status,
            'key_topics': self.key_topics,
            'pattern_matches': self.patterns.get('total_matches', 0),
        }


class EnhancedIssue:
    """
    An issue plus its comments and everything derived from them.
    """
    def __init__(self, issue: Issue, comments: List[Comment], processed_comments: List[ProcessedComment], technical_context: TechnicalContext, priority: int, work_type: str, completion_status: str, work_summary: str = '', key_activities: Optional[List[str]] = None):
        self.issue = issue
        self.comments = comments
        self.processed_comments = processed_comments
        self.technical_context = technical_context
        self.priority = priority
        self.work_type = work_type
        self.completion_status = completion_status
        self.work_summary = work_summary
        self.key_activities = key_activities or []

    @property
    def key(self) -> str:
        return self.issue.key

    def to_dict(self) -> Dict[str, Any]:
        return {
            'key': self.issue.key,
            'summary': self.issue.summary,
            'status': self.issue.status,
            'priority_name': self.issue.priority,
            'issue_type': self.issue.issue_type,
            'priority': self.priority,
            'work_type': self.work_type,
            'completion_status': self.completion_status,
            'work_summary': self.work_summary,
            'key_activities': self.key_activities,
            'processed_comments': [c.to_dict() for c in self.processed_comments],
            'technical_context': self.technical_context.to_dict(),
        }


class TimelineEvent:
    def __init__(self, timestamp: datetime, event_type: str, description: str, issue_key: str, source: str, importance: int):
        self.timestamp = timestamp
        self.event_type = event_type  # issue_created/comment_added
        self.description = description
        self.issue_key = issue_key
        self.source = source  # issue/comment
        self.importance = importance

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': _iso(self.timestamp),
            'event_type': self.event_type,
            'description': self.description,
            'issue_key': self.issue_key,
            'source': self.source,
            'importance': self.importance,
        }


_COMPLETED_STATES = ('completed', 'done', 'resolved')
_IN_PROGRESS_STATES = ('in_progress', 'working', 'active')


class ProcessedData:
    """
    Aggregated view of a batch of issues. Issues are unique by key and kept in
    insertion order.
    """
    def __init__(self):
        self.issues: List[EnhancedIssue] = []
        self.technical_context = TechnicalContext()
        self.timeline_events: List[TimelineEvent] = []
        self.warnings: List[Dict[str, str]] = []
        self.processed_at = datetime.now(timezone.utc)
        self._keys = set()

    def add_issue(self, issue: EnhancedIssue):
        """Append an issue; raises ValidationError on an empty or duplicate key."""
        key = issue.issue.key
        if not key:
            raise ValidationError('issue key cannot be empty')
        if key in self._keys:
            raise ValidationError(f"issue {key} already exists", details={'issue_key': key})
        self._keys.add(key)
        self.issues.append(issue)

    def has_issue(self, key: str) -> bool:
        return key in self._keys

    def add_timeline_event(self, event: TimelineEvent):
        if not event.event_type:
            raise ValidationError('event type cannot be empty')
        if not event.description:
            raise ValidationError('event description cannot be empty')
        self.timeline_events.append(event)

    def add_warning(self, kind: str, message: str, source: str = ''):
        self.warnings.append({'type': kind, 'message': message, 'source': source})

    def sorted_timeline(self) -> List[TimelineEvent]:
        return sorted(self.timeline_events, key=lambda e: e.timestamp)

    def validate(self) -> List[Dict[str, str]]:
        problems = []
        for i, ei in enumerate(self.issues):
            if not ei.issue.key:
                problems.append({'field': f"issues[{i}].issue.key", 'value': '', 'message': 'Issue key cannot be empty'})
            for j, pc in enumerate(ei.processed_comments):
                if not pc.original.comment_id:
                    problems.append({'field': f"issues[{i}].processed_comments[{j}].original.id", 'value': '', 'message': 'Comment ID cannot be empty'})
        problems.extend(self.technical_context.validate())
        return problems

    def get_summary(self) -> str:
        if not self.issues:
            return 'No issues processed'
        completed = sum(1 for i in self.issues if i.completion_status.lower() in _COMPLETED_STATES)
        in_progress = sum(1 for i in self.issues if i.completion_status.lower() in _IN_PROGRESS_STATES)
        parts = []
        if completed:
            parts.append(f"{completed} completed")
        if in_progress:
            parts.append(f"{in_progress} in progress")
        if self.technical_context.technologies:
            parts.append('using ' + ', '.join(self.technical_context.technologies[:3]))
        if not parts:
            return f"Processed {len(self.issues)} issues"
        return ', '.join(parts)

    def get_key_activities(self, limit: int = 5) -> List[str]:
        activities: List[str] = []
        for ei in self.issues:
            activities.extend(ei.key_activities)
        return unique(activities)[:limit]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'processed_at': _iso(self.processed_at),
            'summary': self.get_summary(),
            'issues': [i.to_dict() for i in self.issues],
            'technical_context': self.technical_context.to_dict(),
            'timeline_events': [e.to_dict() for e in self.sorted_timeline()],
            'warnings': list(self.warnings),
        }
