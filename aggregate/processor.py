"""
Data aggregator.
Applies keyword tables and the pattern matcher to issues and their comments and
builds a ProcessedData work model.
"""
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple, Union

from aggregate import keywords as kw
from aggregate.models import (
    CodeReviewActivity,
    DatabaseActivity,
    DeploymentActivity,
    EnhancedIssue,
    InfrastructureWork,
    ProcessedComment,
    ProcessedData,
    SecurityActivity,
    TechnicalContext,
    TestingActivity,
    TimelineEvent,
    unique,
)
from errors import ValidationError
from patterns.matcher import PatternMatcher
from synthesis.fallback import FallbackSupervisor
from synthesis.observer import DebugObserver
from synthesis.text import truncate_text
from tracker.grouping import group_comments_by_issue
from tracker.models import Comment, Issue

logger = logging.getLogger(__name__)

TIMELINE_COMMENT_LENGTH = 100
MAX_KEY_ACTIVITIES = 5
MAX_SUMMARY_ACTIVITIES = 3

_PR_NUMBER_RE = re.compile(r"(?:#|pr[\s-]?)(\d+)", re.IGNORECASE)
_DATABASE_ENGINES = ('postgresql', 'postgres', 'mysql', 'mongodb', 'redis')


def _aware(ts: Optional[datetime]) -> Optional[datetime]:
    if ts is None:
        return None
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class _IssueOutcome:
    """Result of processing one issue on a worker, merged by the caller."""
    def __init__(self, enhanced: EnhancedIssue, warnings: List[Tuple[str, str, str]]):
        self.enhanced = enhanced
        self.warnings = warnings


class DataAggregator:
    """
    Build ProcessedData from issues and comments.

    max_workers > 1 processes issues on a thread pool; results are merged in
    input order by the calling thread so ProcessedData has a single writer.
    """

    def __init__(self, matcher: Optional[PatternMatcher] = None, supervisor: Optional[FallbackSupervisor] = None, observer: Optional[DebugObserver] = None, max_workers: int = 1):
        self.matcher = matcher or PatternMatcher()
        self.observer = observer or DebugObserver()
        self.supervisor = supervisor or FallbackSupervisor('graceful', observer=self.observer)
        self.max_workers = max(1, int(max_workers or 1))

    # --- issue level ---------------------------------------------------------

    def calculate_issue_priority(self, issue: Issue) -> int:
        priority = (issue.priority or '').lower()
        base = kw.DEFAULT_PRIORITY
        for names, value in kw.PRIORITY_BASE:
            if priority in names:
                base = value
                break
        status = (issue.status or '').lower()
        for words, boost in kw.STATUS_BOOSTS:
            if any(w in status for w in words):
                return base + boost
        return base

    def determine_work_type(self, issue: Issue) -> str:
        issue_type = (issue.issue_type or '').lower()
        text = issue.text().lower()
        if any(t in issue_type for t in kw.BUG_ISSUE_TYPES):
            return 'bug_fix'
        work_type = kw.first_rule_match(text, kw.WORK_TYPE_RULES, '')
        if work_type:
            return work_type
        if any(t in issue_type for t in kw.FEATURE_ISSUE_TYPES):
            return 'feature_development'
        return kw.DEFAULT_WORK_TYPE

    def determine_completion_status(self, issue: Issue) -> str:
        return kw.first_rule_match((issue.status or '').lower(), kw.ISSUE_COMPLETION_RULES, kw.DEFAULT_ISSUE_COMPLETION)

    @staticmethod
    def extract_environment(text: str) -> str:
        lower = (text or '').lower()
        for token, normalized in kw.ENVIRONMENT_TERMS:
            if token in lower:
                return normalized
        return 'unknown'

    # --- comment level -------------------------------------------------------

    @staticmethod
    def extract_actions(text: str) -> List[str]:
        lower = (text or '').lower()
        return [verb for verb in kw.ACTION_VERBS if verb in lower]

    @staticmethod
    def extract_technical_terms(text: str) -> List[str]:
        lower = (text or '').lower()
        return [term for term in kw.TECHNICAL_TERMS if term in lower]

    @staticmethod
    def extract_key_topics(text: str) -> List[str]:
        lower = (text or '').lower()
        return unique([topic for words, topic in kw.TOPIC_RULES if any(w in lower for w in words)])

    @staticmethod
    def determine_sentiment(text: str) -> str:
        lower = (text or '').lower()
        positive = sum(1 for w in kw.POSITIVE_WORDS if w in lower)
        negative = sum(1 for w in kw.NEGATIVE_WORDS if w in lower)
        if positive > negative:
            return 'positive'
        if negative > positive:
            return 'negative'
        return 'neutral'

    @staticmethod
    def calculate_comment_importance(text: str) -> int:
        lower = (text or '').lower()
        importance = kw.IMPORTANCE_BASE
        for words, weight in kw.IMPORTANCE_WEIGHTS:
            importance += weight * sum(1 for w in words if w in lower)
        return min(importance, kw.IMPORTANCE_CAP)

    def process_comment(self, comment: Comment) -> ProcessedComment:
        text = comment.body or ''
        lower = text.lower()
        return ProcessedComment(
            original=comment,
            extracted_actions=self.extract_actions(text),
            technical_terms=self.extract_technical_terms(text),
            work_type=kw.first_rule_match(lower, kw.COMMENT_WORK_TYPE_RULES, kw.DEFAULT_WORK_TYPE),
            sentiment=self.determine_sentiment(text),
            importance=self.calculate_comment_importance(text),
            activity_type=kw.first_rule_match(lower, kw.ACTIVITY_TYPE_RULES, kw.DEFAULT_ACTIVITY_TYPE),
            completion_status=kw.first_rule_match(lower, kw.COMMENT_COMPLETION_RULES, kw.DEFAULT_COMMENT_COMPLETION),
            key_topics=self.extract_key_topics(text),
            patterns=self.matcher.match_all_patterns(text),
        )

    # --- summaries -----------------------------------------------------------

    @staticmethod
    def generate_work_summary(enhanced: EnhancedIssue) -> str:
        summary = enhanced.issue.summary
        if not enhanced.processed_comments:
            return f"{enhanced.completion_status}: {summary}"
        first_actions = [pc.extracted_actions[0] for pc in enhanced.processed_comments if pc.extracted_actions]
        if not first_actions:
            return f"{enhanced.work_type} work on {summary}"
        distinct = unique(first_actions)
        if len(distinct) == 1:
            return f"{distinct[0].title()} {summary.lower()}"
        return 'Multiple activities: ' + ', '.join(distinct[:MAX_SUMMARY_ACTIVITIES])

    def extract_key_activities(self, enhanced: EnhancedIssue) -> List[str]:
        activities = self.extract_actions(enhanced.issue.text())
        for pc in enhanced.processed_comments:
            activities.extend(pc.extracted_actions)
        return unique(activities)[:MAX_KEY_ACTIVITIES]

    # --- technical context ---------------------------------------------------

    def _records_from_work_type(self, ctx: TechnicalContext, enhanced: EnhancedIssue):
        issue = enhanced.issue
        timestamp = _aware(issue.updated) or _now()
        status = enhanced.completion_status
        if enhanced.work_type == 'deployment':
            ctx.deployments.append(DeploymentActivity('deploy', self.extract_environment(issue.text()), status, issue.summary, enhanced.work_summary, timestamp))
        elif enhanced.work_type == 'infrastructure':
            ctx.infrastructure.append(InfrastructureWork('terraform', 'configure', issue.summary, status, enhanced.work_summary, timestamp))
        elif enhanced.work_type == 'database':
            ctx.database_work.append(DatabaseActivity('configuration', 'setup', 'postgresql', status, enhanced.work_summary, timestamp))

    @staticmethod
    def _status_for(record_status: str, comment_status: str) -> str:
        return record_status if record_status != 'unknown' else comment_status

    def _records_from_patterns(self, ctx: TechnicalContext, pc: ProcessedComment):
        patterns = pc.patterns or {}
        ts = _aware(pc.original.created) or _now()
        cstat = pc.completion_status
        for r in patterns.get('infrastructure', []):
            ctx.infrastructure.append(InfrastructureWork(r.type, r.action, r.component, self._status_for(r.status, cstat), r.context, ts))
        for r in patterns.get('deployment', []):
            ctx.deployments.append(DeploymentActivity(r.type, r.environment, self._status_for(r.status, cstat), r.component, r.context, ts))
            if r.environment != 'unknown':
                ctx.environments.append(r.environment)
        for r in patterns.get('database', []):
            lower = r.context.lower()
            engine = next((e for e in _DATABASE_ENGINES if e in lower), 'unknown')
            ctx.database_work.append(DatabaseActivity(r.type, r.action, engine, self._status_for(r.status, cstat), r.context, ts))
        for r in patterns.get('security', []):
            ctx.security_work.append(SecurityActivity(r.type, r.action, r.component, self._status_for(r.status, cstat), r.context, ts))
        for r in patterns.get('testing', []):
            lower = r.context.lower()
            results = 'failed' if 'fail' in lower else ('passed' if 'pass' in lower else '')
            ctx.testing_work.append(TestingActivity(r.type, r.action, self._status_for(r.status, cstat), results, r.context, ts))
        for r in patterns.get('development', []):
            if r.type != 'code_review':
                continue
            m = _PR_NUMBER_RE.search(r.context)
            ctx.code_review_work.append(CodeReviewActivity(r.type, r.action, self._status_for(r.status, cstat), m.group(1) if m else '', r.context, ts))

    def build_technical_context(self, enhanced: EnhancedIssue) -> TechnicalContext:
        ctx = TechnicalContext()
        issue_text = enhanced.issue.text()
        ctx.technologies.extend(self.extract_technical_terms(issue_text))
        env = self.extract_environment(issue_text)
        if env != 'unknown':
            ctx.environments.append(env)
        for pc in enhanced.processed_comments:
            ctx.technologies.extend(pc.technical_terms)
            ctx.actions.extend(pc.extracted_actions)
            self._records_from_patterns(ctx, pc)
        self._records_from_work_type(ctx, enhanced)
        return ctx.deduplicate()

    # --- timeline ------------------------------------------------------------

    @staticmethod
    def create_timeline_events(enhanced: EnhancedIssue) -> List[TimelineEvent]:
        issue = enhanced.issue
        events = [TimelineEvent(
            timestamp=_aware(issue.created) or _aware(issue.updated) or _now(),
            event_type='issue_created',
            description=f"Created {issue.key}: {issue.summary}",
            issue_key=issue.key,
            source='issue',
            importance=enhanced.priority,
        )]
        for pc in enhanced.processed_comments:
            events.append(TimelineEvent(
                timestamp=_aware(pc.original.created) or _now(),
                event_type='comment_added',
                description=f"Comment on {issue.key}: {truncate_text(pc.original.body or '', TIMELINE_COMMENT_LENGTH)}",
                issue_key=issue.key,
                source='comment',
                importance=pc.importance,
            ))
        return events

    # --- orchestration -------------------------------------------------------

    def process_issue(self, issue: Issue, comments: List[Comment]) -> _IssueOutcome:
        warnings: List[Tuple[str, str, str]] = []
        kept: List[Comment] = []
        for c in comments or []:
            if not c.comment_id:
                warnings.append(('validation', f"comment with empty id on {issue.key} skipped", issue.key))
                continue
            kept.append(c)

        processed = [self.process_comment(c) for c in kept]
        enhanced = EnhancedIssue(
            issue=issue,
            comments=kept,
            processed_comments=processed,
            technical_context=TechnicalContext(),
            priority=self.calculate_issue_priority(issue),
            work_type=self.determine_work_type(issue),
            completion_status=self.determine_completion_status(issue),
        )
        enhanced.work_summary = self.generate_work_summary(enhanced)
        enhanced.key_activities = self.extract_key_activities(enhanced)
        enhanced.technical_context = self.build_technical_context(enhanced)
        return _IssueOutcome(enhanced, warnings)

    def _run(self, valid: List[Tuple[Issue, List[Comment]]]) -> List[Union[_IssueOutcome, Exception]]:
        def _safe(pair):
            try:
                return self.process_issue(*pair)
            except Exception as exc:
                return exc

        if self.max_workers > 1 and len(valid) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                return list(pool.map(_safe, valid))
        return [_safe(pair) for pair in valid]

    def _merge(self, data: ProcessedData, issue: Issue, outcome: Union[_IssueOutcome, Exception]):
        if isinstance(outcome, Exception):
            result = self.supervisor.handle_processing_error(outcome, 'issue_processing', [issue])
            msg = f"failed to process issue {issue.key}: {outcome}"
            logger.warning(msg)
            data.add_warning('processing', msg if not result.success else f"{msg} (fallback: {result.fallback_used})", issue.key)
            return
        for kind, message, source in outcome.warnings:
            data.add_warning(kind, message, source)
        try:
            data.add_issue(outcome.enhanced)
        except ValidationError as exc:
            data.add_warning('validation', exc.message, issue.key)
            return
        data.technical_context.merge(outcome.enhanced.technical_context)
        for event in self.create_timeline_events(outcome.enhanced):
            data.add_timeline_event(event)

    def process_issues_with_comments(self, issues: List[Issue], comments_by_issue: Union[Dict[str, List[Comment]], List[Comment], None] = None) -> ProcessedData:
        """
        Process issues and their comments into ProcessedData.

        comments_by_issue maps issue key to comments; a flat list of comments is
        grouped by issue key first. Malformed items are skipped and recorded in
        ProcessedData.warnings; this never raises for partial data.
        """
        issues = list(issues or [])
        if isinstance(comments_by_issue, list):
            comments_by_issue = group_comments_by_issue(comments_by_issue, issues)
        comments_by_issue = comments_by_issue or {}

        self.observer.log_step('aggregate', {'issues': len(issues), 'comment_groups': len(comments_by_issue)})
        data = ProcessedData()
        valid: List[Tuple[Issue, List[Comment]]] = []
        for issue in issues:
            if not issue.key:
                data.add_warning('validation', 'issue with empty key skipped', '')
                continue
            valid.append((issue, comments_by_issue.get(issue.key, [])))

        for (issue, _), outcome in zip(valid, self._run(valid)):
            self._merge(data, issue, outcome)

        data.technical_context.deduplicate()
        for w in data.warnings:
            self.observer.add_warning('data_validation', w['message'], context=w['source'], severity='low')
        self.observer.log_processed_data('aggregate', data)
        self.observer.complete_step('aggregate', {'issues': len(data.issues), 'warnings': len(data.warnings)})
        logger.debug("aggregated %d issues (%d warnings)", len(data.issues), len(data.warnings))
        return data


__all__ = ["DataAggregator"]
