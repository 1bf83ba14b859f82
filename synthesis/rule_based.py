"""
Rule-based (embedded) synthesizer.

Deterministic and offline: every summary is built from the phrase cascade in
synthesis.extractors, bucketed into completed / in progress / general work and
truncated to the configured maximum length. Unexpected failures go through
the fallback supervisor; a strict supervisor turns them into ProcessingError.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from aggregate.models import ProcessedData
from errors import ProcessingError
from synthesis.config import SynthesisConfig
from synthesis.extractors import (
    SummaryItem, bucket_for_completion, classify_bucket, compose_summary, extract_phrase, plain_wording,
)
from synthesis.fallback import FallbackSupervisor
from synthesis.observer import DebugObserver
from synthesis.text import truncate_text
from tracker.models import Comment, Issue, WorklogEntry

logger = logging.getLogger(__name__)

NO_ACTIVITY = 'No recent activity to report'
NO_WORK_LOGGED = 'No work logged'
MULTIPLE_COMMENTS = 'Multiple comments added'

STYLE_ITEM_LIMITS = {'technical': 4, 'business': 3, 'brief': 2}
KEY_POINT_TECH_LIMIT = 2

KEY_POINT_TECH_KEYWORDS = (
    'api', 'database', 'migration', 'deployment', 'ci/cd', 'pipeline',
    'security', 'authentication', 'oauth', 'ssl', 'encryption',
    'performance', 'optimization', 'scaling', 'monitoring',
    'docker', 'kubernetes', 'k8s', 'terraform', 'ansible',
    'aws', 'azure', 'gcp', 'cloud', 'serverless',
    'microservice', 'integration', 'endpoint', 'service',
)
KEY_POINT_ACTION_KEYWORDS = (
    'implement', 'fix', 'update', 'upgrade', 'refactor',
    'optimize', 'improve', 'enhance', 'add', 'remove',
    'configure', 'setup', 'install', 'deploy', 'migrate',
    'investigate', 'debug', 'troubleshoot', 'analyze',
    'review', 'test', 'validate', 'verify',
)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _created_key(comment: Comment) -> datetime:
    ts = comment.created
    if ts is None:
        return _EPOCH
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def contextual_prefix(issue: Issue) -> str:
    """Status prefix, 🔥 for urgent priorities and an issue-type suffix."""
    status = (issue.status or '').lower()
    issue_type = (issue.issue_type or '').lower()
    priority = (issue.priority or '').lower()

    if 'progress' in status or 'development' in status:
        prefix = 'Working on'
    elif 'review' in status:
        prefix = 'Under review:'
    elif 'done' in status or 'closed' in status:
        prefix = 'Completed'
    elif 'blocked' in status:
        prefix = 'Blocked:'
    else:
        prefix = 'Planning'

    if 'high' in priority or 'critical' in priority:
        prefix = '🔥 ' + prefix

    if 'bug' in issue_type:
        prefix += ' bug fix:'
    elif 'feature' in issue_type or 'story' in issue_type:
        prefix += ' feature:'
    elif 'task' in issue_type:
        prefix += ' task:'
    return prefix


def _worklog_item(worklogs: List[WorklogEntry]) -> Optional[SummaryItem]:
    if not worklogs:
        return None
    hours = round(sum(w.time_spent_seconds or 0 for w in worklogs) / 3600.0, 1)
    if hours > 0:
        phrase = f"Logged {hours:g}h across {len(worklogs)} worklog entries"
    else:
        phrase = f"Work logged on {len(worklogs)} items"
    return SummaryItem('general', phrase, 'worklog')


class RuleBasedSynthesizer:
    """Embedded synthesizer; never touches the network."""

    def __init__(self, config: Optional[SynthesisConfig] = None, observer: Optional[DebugObserver] = None, supervisor: Optional[FallbackSupervisor] = None):
        self.config = config or SynthesisConfig()
        self.observer = observer or DebugObserver(enabled=self.config.debug)
        self.supervisor = supervisor or FallbackSupervisor(self.config.fallback_strategy, self.observer)

    @property
    def technical(self) -> bool:
        return self.config.include_technical_keywords()

    @property
    def max_items(self) -> int:
        return STYLE_ITEM_LIMITS.get(self.config.summary_style, STYLE_ITEM_LIMITS['technical'])

    def _limit(self, text: str) -> str:
        return truncate_text(text, self.config.max_summary_length)

    def _run(self, step: str, input_text: str, build: Callable[[], str]) -> str:
        self.observer.log_step(step)
        try:
            output = build()
        except Exception as exc:
            self.observer.complete_step(step, error=exc)
            result = self.supervisor.handle_summary_error(exc, input_text)
            if not result.success:
                raise ProcessingError(f"{step} failed", cause=exc) from exc
            logger.warning("%s failed, using %s fallback: %s", step, result.fallback_used, exc)
            return self._limit(str(result.result))
        self.observer.complete_step(step, output)
        self.observer.log_summary_generation(input_text, output)
        return output

    # --- items -------------------------------------------------------------------

    def _ordered_comments(self, comments: List[Comment]) -> List[Comment]:
        if self.config.prioritize_recent_work:
            return sorted(comments, key=_created_key, reverse=True)
        return list(comments)

    def _comment_items(self, comments: List[Comment]) -> List[SummaryItem]:
        items = []
        for comment in self._ordered_comments(comments):
            body = comment.body or ''
            item = SummaryItem.from_text(body, classify_bucket(body), self.technical)
            if item is not None:
                items.append(item)
        return items

    def _issue_items(self, issues: List[Issue], statuses: Optional[Dict[str, str]] = None) -> List[SummaryItem]:
        items = []
        for issue in issues:
            text = issue.text()
            if statuses and issue.key in statuses:
                bucket = bucket_for_completion(statuses[issue.key])
            else:
                bucket = bucket_for_completion(self._issue_completion(issue))
            item = SummaryItem.from_text(text, bucket, self.technical)
            if item is not None:
                items.append(item)
        return items

    @staticmethod
    def _issue_completion(issue: Issue) -> str:
        status = (issue.status or '').lower()
        if any(w in status for w in ('done', 'closed', 'resolved')):
            return 'completed'
        if any(w in status for w in ('progress', 'development', 'active')):
            return 'in_progress'
        if 'blocked' in status:
            return 'blocked'
        if 'review' in status:
            return 'under_review'
        return 'planned'

    def _compose(self, items: List[SummaryItem]) -> str:
        return compose_summary(items, self.max_items, self.config.max_summary_length)

    # --- key points --------------------------------------------------------------

    def extract_key_points(self, issue: Issue) -> List[str]:
        text = issue.text().lower()
        points: List[str] = []
        if self.technical:
            for keyword in KEY_POINT_TECH_KEYWORDS:
                if keyword in text:
                    points.append(keyword)
                    if len(points) >= KEY_POINT_TECH_LIMIT:
                        break
        for keyword in KEY_POINT_ACTION_KEYWORDS:
            if keyword in text:
                points.append(keyword)
                break
        return points

    # --- public API --------------------------------------------------------------

    def summarize_issue(self, issue: Issue) -> str:
        def build() -> str:
            prefix = contextual_prefix(issue)
            phrase = extract_phrase(issue.text(), self.technical)
            if not phrase:
                summary_text = issue.summary if self.technical else plain_wording(issue.summary or '')
                phrase = truncate_text(summary_text, self.config.max_summary_length // 3)
            summary = f"{prefix} {phrase}".strip()
            if self.technical:
                extra = [p for p in self.extract_key_points(issue) if p not in phrase.lower()]
                if extra:
                    summary += f" ({', '.join(extra)})"
            return self._limit(summary)
        return self._run('summarize_issue', issue.text(), build)

    def summarize_issues(self, issues: List[Issue]) -> Dict[str, str]:
        summaries = {}
        for issue in issues:
            try:
                summaries[issue.key] = self.summarize_issue(issue)
            except ProcessingError as exc:
                logger.warning("skipping summary for %s: %s", issue.key, exc)
        return summaries

    def summarize_comments(self, comments: List[Comment]) -> str:
        if not comments:
            return ''
        input_text = ' '.join(c.body or '' for c in comments)

        def build() -> str:
            if len(comments) == 1:
                return self._limit(extract_phrase(comments[0].body or '', self.technical))
            summary = self._compose(self._comment_items(comments))
            return summary or self._limit(MULTIPLE_COMMENTS)
        return self._run('summarize_comments', input_text, build)

    def summarize_worklog(self, worklogs: List[WorklogEntry]) -> str:
        if not worklogs:
            return self._limit(NO_WORK_LOGGED)
        return self._limit(f"Work logged on {len(worklogs)} items")

    def generate_standup_summary(self, issues: List[Issue], worklogs: List[WorklogEntry]) -> str:
        return self.generate_standup_summary_with_comments(issues, [], worklogs)

    def generate_standup_summary_with_comments(self, issues: List[Issue], comments: List[Comment], worklogs: List[WorklogEntry]) -> str:
        if not issues and not comments and not worklogs:
            return self._limit(NO_ACTIVITY)
        input_text = ' '.join([i.text() for i in issues] + [c.body or '' for c in comments])

        def build() -> str:
            items = self._comment_items(comments) + self._issue_items(issues)
            worklog = _worklog_item(worklogs)
            if worklog is not None:
                items.append(worklog)
            return self._compose(items) or self._limit(NO_ACTIVITY)
        return self._run('generate_standup_summary', input_text, build)

    def summarize_processed_data(self, processed: ProcessedData) -> str:
        """Narrative over aggregated issues, using their computed completion status."""
        if processed is None or not processed.issues:
            return self._limit(NO_ACTIVITY)
        input_text = ' '.join(ei.issue.text() for ei in processed.issues)

        def build() -> str:
            comments = [c for ei in processed.issues for c in ei.comments]
            statuses = {ei.key: ei.completion_status for ei in processed.issues}
            items = self._comment_items(comments) + self._issue_items([ei.issue for ei in processed.issues], statuses)
            return self._compose(items) or self._limit(NO_ACTIVITY)
        return self._run('summarize_processed_data', input_text, build)


class DisabledSynthesizer:
    """Used when synthesis is turned off; answers with fixed texts."""

    def __init__(self, config: Optional[SynthesisConfig] = None):
        self.config = config or SynthesisConfig(enabled=False)

    def summarize_issue(self, issue: Issue) -> str:
        text = f"Status: {issue.status} - {issue.summary}" if issue.status else issue.summary
        return truncate_text(text, self.config.max_summary_length)

    def summarize_issues(self, issues: List[Issue]) -> Dict[str, str]:
        return {i.key: self.summarize_issue(i) for i in issues}

    def summarize_comments(self, comments: List[Comment]) -> str:
        return truncate_text(f"{len(comments)} comments", self.config.max_summary_length) if comments else ''

    def summarize_worklog(self, worklogs: List[WorklogEntry]) -> str:
        text = f"Work logged on {len(worklogs)} items" if worklogs else NO_WORK_LOGGED
        return truncate_text(text, self.config.max_summary_length)

    def generate_standup_summary(self, issues: List[Issue], worklogs: List[WorklogEntry]) -> str:
        return self.generate_standup_summary_with_comments(issues, [], worklogs)

    def generate_standup_summary_with_comments(self, issues: List[Issue], comments: List[Comment], worklogs: List[WorklogEntry]) -> str:
        parts = []
        if issues:
            parts.append(f"{len(issues)} issues")
        if comments:
            parts.append(f"{len(comments)} comments")
        if worklogs:
            parts.append(f"{len(worklogs)} worklog entries")
        if not parts:
            return truncate_text(NO_ACTIVITY, self.config.max_summary_length)
        return truncate_text('Recent activity: ' + ', '.join(parts), self.config.max_summary_length)

    def summarize_processed_data(self, processed: ProcessedData) -> str:
        if processed is None or not processed.issues:
            return truncate_text(NO_ACTIVITY, self.config.max_summary_length)
        return truncate_text(processed.get_summary(), self.config.max_summary_length)


__all__ = ["RuleBasedSynthesizer", "DisabledSynthesizer", "contextual_prefix", "NO_ACTIVITY"]
