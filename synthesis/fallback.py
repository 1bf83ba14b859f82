"""
Fallback supervisor: the degradation policy shared by the aggregator and the
synthesizers.

Strategies:
- strict: report the failure unchanged (success=False)
- minimal: answer with a fixed placeholder for the input type
- graceful: basic processing, then metadata only, then the placeholder;
  always succeeds
"""
import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from errors import StandupError
from synthesis.observer import DebugObserver
from synthesis.text import first_words, split_sentences, truncate_text
from tracker.models import Comment, Issue

logger = logging.getLogger(__name__)

STRATEGIES = ('strict', 'minimal', 'graceful')
DEFAULT_STRATEGY = 'graceful'

BASIC_WORD_LIMIT = 10
FALLBACK_KEYWORDS = (
    'terraform', 'aws', 'kubernetes', 'docker', 'database', 'api',
    'deployment', 'security', 'testing', 'ci/cd', 'pipeline',
)

# (message substrings, severity), first hit wins
SEVERITY_RULES = (
    (('panic', 'fatal'), 'critical'),
    (('timeout', 'connection', 'authentication'), 'high'),
    (('validation', 'format', 'parsing'), 'medium'),
)
UNRECOVERABLE_WORDS = ('panic', 'fatal', 'authentication')

SUGGESTIONS = {
    'processing_error': ('Try running sync to refresh data', 'Check if input data is properly formatted'),
    'summary_error': ('Verify that input text contains meaningful content', 'Try using a different summary style or length'),
    'comment_processing_error': ('Check if comments contain valid text content', 'Verify comment permissions and access'),
    'pattern_matching_error': ('Ensure text contains technical terminology', 'Try with more specific technical keywords'),
}
TIMEOUT_SUGGESTIONS = ('Try again with a smaller dataset', 'Check network connectivity')


class ClassifiedError:
    """
    An error annotated with severity, recoverability and suggestions.
    """
    def __init__(self, type: str, cause: BaseException, context: str = ''):
        self.type = type
        self.cause = cause
        self.message = str(cause)
        self.context = context
        self.timestamp = datetime.now(timezone.utc)
        self.severity = classify_severity(self.message)
        self.recoverable = is_recoverable(self.message)
        self.suggestions = generate_suggestions(type, self.message, context)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'message': self.message,
            'context': self.context,
            'severity': self.severity,
            'recoverable': self.recoverable,
            'suggestions': list(self.suggestions),
        }

    def __str__(self):
        return f"{self.type}: {self.message}"


class FallbackResult:
    def __init__(self, success: bool, result: Any, fallback_used: str, original_error: Optional[ClassifiedError], quality: str):
        self.success = success
        self.result = result
        self.fallback_used = fallback_used
        self.original_error = original_error
        self.quality = quality  # high/medium/low/none

    def __repr__(self):
        return f"FallbackResult(success={self.success}, fallback_used={self.fallback_used!r}, quality={self.quality!r})"


def classify_severity(message: str) -> str:
    lower = (message or '').lower()
    for words, severity in SEVERITY_RULES:
        if any(w in lower for w in words):
            return severity
    return 'low'


def is_recoverable(message: str) -> bool:
    lower = (message or '').lower()
    return not any(w in lower for w in UNRECOVERABLE_WORDS)


def generate_suggestions(error_type: str, message: str, context: str = '') -> List[str]:
    suggestions = list(SUGGESTIONS.get(error_type, ()))
    if error_type == 'processing_error' and 'empty' in (context or '').lower():
        suggestions.append('Ensure there are issues or comments to process')
    if 'timeout' in (message or '').lower():
        suggestions.extend(TIMEOUT_SUGGESTIONS)
    return suggestions


def _is_issue_list(data: Any) -> bool:
    return isinstance(data, list) and bool(data) and all(isinstance(i, Issue) for i in data)


def _is_comment_list(data: Any) -> bool:
    return isinstance(data, list) and bool(data) and all(isinstance(c, Comment) for c in data)


class FallbackSupervisor:
    """Apply the configured fallback strategy to failures."""

    def __init__(self, strategy: str = DEFAULT_STRATEGY, observer: Optional[DebugObserver] = None):
        if strategy not in STRATEGIES:
            logger.warning("unknown fallback strategy %r, using %s", strategy, DEFAULT_STRATEGY)
            strategy = DEFAULT_STRATEGY
        self.strategy = strategy
        self.observer = observer or DebugObserver()
        self.handled: Counter = Counter()

    def classify(self, error_type: str, cause: BaseException, context: str = '') -> ClassifiedError:
        classified = ClassifiedError(error_type, cause, context)
        self.handled[error_type] += 1
        self.observer.add_warning(error_type, classified.message, context, classified.severity)
        return classified

    # --- tiers -----------------------------------------------------------------

    @staticmethod
    def try_basic_processing(data: Any) -> Optional[str]:
        if _is_issue_list(data):
            usable = [i for i in data if i.summary]
            return f"Basic processing of {len(usable)} issues" if usable else None
        if _is_comment_list(data):
            usable = [c for c in data if (c.body or '').strip()]
            return f"Basic processing of {len(usable)} comments" if usable else None
        if isinstance(data, str) and data.strip():
            return first_words(data, BASIC_WORD_LIMIT)
        return None

    @staticmethod
    def try_metadata_processing(data: Any) -> Optional[str]:
        if _is_issue_list(data):
            tally = Counter(i.status for i in data if i.status)
            if not tally:
                return None
            return 'Issues: ' + ', '.join(f"{count} {status}" for status, count in tally.items())
        if _is_comment_list(data):
            return f"Activity with {len(data)} comments"
        return None

    @staticmethod
    def create_minimal_result(data: Any) -> str:
        if _is_issue_list(data):
            return 'Issue activity detected'
        if _is_comment_list(data):
            return 'Comment activity detected'
        if isinstance(data, str):
            return 'Text content available'
        return 'Activity detected'

    def _graceful(self, err: ClassifiedError, data: Any) -> FallbackResult:
        basic = self.try_basic_processing(data)
        if basic is not None:
            return FallbackResult(True, basic, 'basic_processing', err, 'medium')
        metadata = self.try_metadata_processing(data)
        if metadata is not None:
            return FallbackResult(True, metadata, 'metadata_processing', err, 'low')
        return FallbackResult(True, self.create_minimal_result(data), 'minimal_safe', err, 'low')

    def _apply_strategy(self, err: ClassifiedError, data: Any) -> FallbackResult:
        if self.strategy == 'strict':
            return FallbackResult(False, None, 'none', err, 'none')
        if self.strategy == 'minimal':
            return FallbackResult(True, self.create_minimal_result(data), 'minimal', err, 'low')
        return self._graceful(err, data)

    # --- entry points ------------------------------------------------------------

    def handle_processing_error(self, error: BaseException, context: str, input_data: Any) -> FallbackResult:
        return self._apply_strategy(self.classify('processing_error', error, context), input_data)

    def handle_summary_error(self, error: BaseException, input_text: str) -> FallbackResult:
        err = self.classify('summary_error', error, f"Input length: {len(input_text or '')}")
        if self.strategy == 'strict':
            return FallbackResult(False, None, 'none', err, 'none')
        lower = err.message.lower()
        words = (input_text or '').split()
        if 'empty' in lower or 'no content' in lower:
            if not input_text:
                return FallbackResult(True, 'No content available for summary', 'empty_content_fallback', err, 'low')
            return FallbackResult(True, first_words(input_text, BASIC_WORD_LIMIT) if words else 'Content contains no readable text', 'empty_content_fallback', err, 'low')
        if 'timeout' in lower or 'processing' in lower:
            if not words:
                result = 'Processing timeout - no content available'
            elif len(words) <= 5:
                result = ' '.join(words)
            else:
                result = ' '.join(words[:5]) + ' (processing timeout)'
            return FallbackResult(True, result, 'timeout_fallback', err, 'low')
        sentences = split_sentences(input_text or '')
        if sentences:
            return FallbackResult(True, truncate_text(sentences[0], 100), 'generic_summary_fallback', err, 'low')
        return FallbackResult(True, 'Summary generation failed - content available but not processable', 'generic_summary_fallback', err, 'low')

    def handle_comment_processing_error(self, error: BaseException, comments: List[Comment]) -> FallbackResult:
        err = self.classify('comment_processing_error', error, f"Comment count: {len(comments or [])}")
        if self.strategy == 'strict':
            return FallbackResult(False, None, 'none', err, 'none')
        if not comments:
            return FallbackResult(True, 'No comments to process', 'empty_comments', err, 'low')
        first = (comments[0].body or '').strip()
        if len(comments) == 1:
            result = first_words(first, BASIC_WORD_LIMIT) if first else 'Comment added'
        else:
            result = f"{len(comments)} comments added"
            if len(first.split()) > 5:
                result += ' - ' + first_words(first, 5)
        return FallbackResult(True, result, 'basic_comment_summary', err, 'medium')

    def handle_pattern_matching_error(self, error: BaseException, text: str) -> FallbackResult:
        err = self.classify('pattern_matching_error', error, f"Text length: {len(text or '')}")
        if self.strategy == 'strict':
            return FallbackResult(False, None, 'none', err, 'none')
        lower = (text or '').lower()
        matched = [k for k in FALLBACK_KEYWORDS if k in lower]
        return FallbackResult(True, {'matched_keywords': matched, 'confidence': 0.5 if matched else 0.0}, 'basic_keyword_matching', err, 'low')

    def validate_input(self, input_data: Any) -> Optional[StandupError]:
        """Return a validation error describing the first malformed item, or None."""
        if isinstance(input_data, list):
            for i, item in enumerate(input_data):
                if isinstance(item, Issue) and not item.key:
                    return StandupError('validation_error', f"Issue {i} has empty key", details={'suggestions': ['Ensure all issues have valid keys']})
                if isinstance(item, Comment) and not item.comment_id:
                    return StandupError('validation_error', f"Comment {i} has empty ID", details={'suggestions': ['Filter out comments with missing IDs']})
        elif isinstance(input_data, str) and not input_data.strip():
            return StandupError('validation_error', 'Input text is empty or contains only whitespace', details={'suggestions': ['Provide non-empty text content']})
        return None

    def get_error_statistics(self) -> Dict[str, Any]:
        return {'strategy': self.strategy, 'total_errors': sum(self.handled.values()), 'by_type': dict(self.handled)}
