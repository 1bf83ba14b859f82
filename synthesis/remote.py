"""
Remote synthesizer: style-aware prompts sent to the generation service.

Timeouts, connection failures and 5xx responses (after retries) are answered
by the rule-based synthesizer built from the same configuration, unless the
fallback strategy is strict. Any other failure, and cancellation, propagates.
"""
import logging
import threading
from typing import Callable, Dict, List, Optional

from aggregate.models import ProcessedData
from errors import GenerationError
from generation.client import GenerationClient, should_fallback_to_rule_based
from synthesis.config import SynthesisConfig
from synthesis.observer import DebugObserver
from synthesis.prompts import PromptBuilder
from synthesis.rule_based import NO_ACTIVITY, NO_WORK_LOGGED, RuleBasedSynthesizer
from synthesis.text import truncate_text
from tracker.models import Comment, Issue, WorklogEntry

logger = logging.getLogger(__name__)


class RemoteSynthesizer:
    def __init__(self, config: Optional[SynthesisConfig] = None, client: Optional[GenerationClient] = None,
                 observer: Optional[DebugObserver] = None, fallback: Optional[RuleBasedSynthesizer] = None,
                 cancel_event: Optional[threading.Event] = None, deadline: Optional[float] = None):
        self.config = config or SynthesisConfig(mode='remote')
        self.observer = observer or DebugObserver(enabled=self.config.debug)
        self.client = client or GenerationClient(self.config.base_url, self.config.remote_model, self.config.timeout)
        self.fallback = fallback or RuleBasedSynthesizer(self.config, self.observer)
        self.prompts = PromptBuilder(self.config)
        self.cancel_event = cancel_event
        self.deadline = deadline

    def generate(self, prompt: str) -> str:
        """One generation call with the configured retry policy."""
        return self.client.generate(
            prompt,
            max_retries=self.config.max_retries,
            backoff_base=self.config.backoff_base,
            cancel_event=self.cancel_event,
            deadline=self.deadline,
        )

    def test_connection(self) -> List[str]:
        return self.client.test_connection()

    def _limit(self, text: str) -> str:
        return truncate_text(text, self.config.max_summary_length)

    def _synthesize(self, step: str, prompt: str, input_text: str, fallback: Callable[[], str]) -> str:
        self.observer.log_step(step)
        try:
            output = self.generate(prompt)
        except GenerationError as err:
            self.observer.complete_step(step, error=err)
            if should_fallback_to_rule_based(err) and self.config.fallback_strategy != 'strict':
                logger.warning("generation service unavailable, using rule-based summary: %s", err)
                self.observer.add_warning('remote_fallback', str(err), step, 'medium')
                return fallback()
            raise
        if not output.strip():
            self.observer.complete_step(step, error=GenerationError('empty_output', 'generation returned no text'))
            logger.warning("generation service returned an empty summary for %s, using rule-based summary", step)
            self.observer.add_warning('empty_summary', 'Remote summary is empty', step, 'high')
            return fallback()
        output = self._limit(output)
        self.observer.complete_step(step, output)
        self.observer.log_summary_generation(input_text, output)
        return output

    def summarize_issue(self, issue: Issue) -> str:
        return self._synthesize('summarize_issue', self.prompts.issue_prompt(issue), issue.text(),
                                lambda: self.fallback.summarize_issue(issue))

    def summarize_issues(self, issues: List[Issue]) -> Dict[str, str]:
        summaries = {}
        for issue in issues:
            try:
                summaries[issue.key] = self.summarize_issue(issue)
            except GenerationError as err:
                if err.kind == 'cancelled':
                    raise
                logger.warning("summary for %s failed: %s", issue.key, err)
                summaries[issue.key] = self._limit(f"Status: {issue.status} - {issue.summary}")
        return summaries

    def summarize_comments(self, comments: List[Comment]) -> str:
        if not comments:
            return ''
        input_text = ' '.join(c.body or '' for c in comments)
        return self._synthesize('summarize_comments', self.prompts.comments_prompt(comments), input_text,
                                lambda: self.fallback.summarize_comments(comments))

    def summarize_worklog(self, worklogs: List[WorklogEntry]) -> str:
        if not worklogs:
            return self._limit(NO_WORK_LOGGED)
        input_text = ' '.join(w.comment or '' for w in worklogs)
        return self._synthesize('summarize_worklog', self.prompts.worklog_prompt(worklogs), input_text,
                                lambda: self.fallback.summarize_worklog(worklogs))

    def generate_standup_summary(self, issues: List[Issue], worklogs: List[WorklogEntry]) -> str:
        if not issues and not worklogs:
            return self._limit(NO_ACTIVITY)
        input_text = ' '.join(i.text() for i in issues)
        return self._synthesize('generate_standup_summary', self.prompts.standup_prompt(issues, worklogs), input_text,
                                lambda: self.fallback.generate_standup_summary(issues, worklogs))

    def generate_standup_summary_with_comments(self, issues: List[Issue], comments: List[Comment], worklogs: List[WorklogEntry]) -> str:
        if not issues and not comments and not worklogs:
            return self._limit(NO_ACTIVITY)
        input_text = ' '.join([i.text() for i in issues] + [c.body or '' for c in comments])
        prompt = self.prompts.enhanced_standup_prompt(issues, comments, worklogs)
        return self._synthesize('generate_standup_summary', prompt, input_text,
                                lambda: self.fallback.generate_standup_summary_with_comments(issues, comments, worklogs))

    def summarize_processed_data(self, processed: ProcessedData) -> str:
        if processed is None or not processed.issues:
            return self._limit(NO_ACTIVITY)
        issues = [ei.issue for ei in processed.issues]
        comments = [c for ei in processed.issues for c in ei.comments]
        input_text = ' '.join([i.text() for i in issues] + [c.body or '' for c in comments])
        prompt = self.prompts.enhanced_standup_prompt(issues, comments, [])
        return self._synthesize('summarize_processed_data', prompt, input_text,
                                lambda: self.fallback.summarize_processed_data(processed))


__all__ = ["RemoteSynthesizer"]
