"""
Debug/quality observer.

Collects processing steps and warnings from the aggregator, the synthesizers
and the fallback supervisor, and turns them into a quality report with a
0-100 score and recommendations. A disabled observer ignores every event.
"""
import json
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

SEVERITY_PENALTY = {'high': 20.0, 'medium': 10.0}

WARNING_SUGGESTIONS = {
    'empty_summary': 'Check if input data contains meaningful content',
    'low_confidence': 'Consider using more specific technical terms or patterns',
    'processing_failure': 'Verify input data format and try fallback processing',
    'validation_error': 'Check data structure and required fields',
    'remote_fallback': 'Check that the generation service is running and reachable',
}

# (warning type, recommendation), in report order
RECOMMENDATIONS = (
    ('empty_summary', 'Improve input data quality or use fallback summarization'),
    ('low_confidence', 'Add more specific technical patterns to improve recognition'),
    ('no_patterns', 'Ensure input text contains technical terminology'),
    ('validation_error', 'Check data structure validation and error handling'),
    ('remote_fallback', 'Start the generation service or switch to embedded mode'),
)

GENERIC_PHRASES = ('no recent activity', 'multiple development activities', 'technical work', 'general progress')

SHORT_SUMMARY_LENGTH = 10
SLOW_STEP_SECONDS = 1.0


class ProcessingStep:
    def __init__(self, name: str, input_data: Any = None):
        self.name = name
        self.input_data = input_data
        self.output_data: Any = None
        self.error: Optional[str] = None
        self.started = time.monotonic()
        self.duration = 0.0
        self.success = False
        self.completed = False

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'success': self.success, 'duration': round(self.duration, 4), 'error': self.error}


class DebugWarning:
    def __init__(self, type: str, message: str, context: str = '', severity: str = 'low'):
        self.type = type
        self.message = message
        self.context = context
        self.severity = severity
        self.suggestion = WARNING_SUGGESTIONS.get(type, '')
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type, 'message': self.message, 'context': self.context, 'severity': self.severity, 'suggestion': self.suggestion}


class DebugReport:
    """Snapshot of what the observer saw."""
    def __init__(self, steps: List[ProcessingStep], warnings: List[DebugWarning], quality_score: float, recommendations: List[str], total_duration: float):
        self.steps = steps
        self.warnings = warnings
        self.quality_score = quality_score
        self.recommendations = recommendations
        self.total_duration = total_duration

    @property
    def successful_steps(self) -> int:
        return sum(1 for s in self.steps if s.success)

    @property
    def failed_steps(self) -> int:
        return sum(1 for s in self.steps if s.completed and not s.success)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_duration': round(self.total_duration, 4),
            'summary': {
                'total_steps': len(self.steps),
                'successful_steps': self.successful_steps,
                'failed_steps': self.failed_steps,
                'total_warnings': len(self.warnings),
                'quality_score': self.quality_score,
                'recommendations': self.recommendations,
            },
            'steps': [s.to_dict() for s in self.steps],
            'warnings': [w.to_dict() for w in self.warnings],
        }


class DebugObserver:
    def __init__(self, enabled: bool = False, verbose: bool = False):
        self.enabled = enabled
        self.verbose = verbose
        self.steps: List[ProcessingStep] = []
        self.warnings: List[DebugWarning] = []
        self._started = time.monotonic()
        self._lock = threading.Lock()

    def _log(self, level: str, message: str):
        if self.verbose:
            logger.info("[%s] %s", level, message)

    def log_step(self, step: str, data: Any = None):
        if not self.enabled:
            return
        with self._lock:
            self.steps.append(ProcessingStep(step, data))
        self._log('STEP', f"Starting step: {step}")

    def complete_step(self, step: str, output: Any = None, error: Optional[BaseException] = None):
        """Close the most recent open step with this name."""
        if not self.enabled:
            return
        with self._lock:
            for s in reversed(self.steps):
                if s.name == step and not s.completed:
                    s.completed = True
                    s.duration = time.monotonic() - s.started
                    s.output_data = output
                    s.success = error is None
                    s.error = str(error) if error is not None else None
                    break
        if error is not None:
            self._log('ERROR', f"Step {step} failed: {error}")
        else:
            self._log('SUCCESS', f"Step {step} completed")

    def add_warning(self, type: str, message: str, context: str = '', severity: str = 'low'):
        if not self.enabled:
            return
        warning = DebugWarning(type, message, context, severity)
        with self._lock:
            self.warnings.append(warning)
        self._log('WARNING', f"[{severity}] {type}: {message}")
        if warning.suggestion:
            self._log('SUGGESTION', warning.suggestion)

    def log_summary_generation(self, input_text: str, output: str):
        """Record a synthesis step and check the output for quality problems."""
        if not self.enabled:
            return
        self._log('SUMMARY', f"Input {len(input_text or '')} chars, output {len(output or '')} chars")
        self.validate_summary_quality(input_text or '', output or '')

    def validate_summary_quality(self, input_text: str, output: str):
        if not output.strip():
            self.add_warning('empty_summary', 'Generated summary is empty', f"Input length: {len(input_text)}", 'high')
            return
        if len(output) < SHORT_SUMMARY_LENGTH:
            self.add_warning('short_summary', 'Generated summary is very short', f"Summary: {output}", 'medium')
        if input_text and len(output) > len(input_text):
            self.add_warning('summary_too_long', 'Summary is longer than input text', f"Input: {len(input_text)} chars, Output: {len(output)} chars", 'medium')
        lower = output.lower()
        for phrase in GENERIC_PHRASES:
            if phrase in lower:
                self.add_warning('generic_summary', 'Summary appears to be generic', f"Contains phrase: {phrase}", 'low')
                break

    def log_processed_data(self, step: str, data: Any):
        if not self.enabled:
            return
        self._log('PROCESSING', f"Processing step: {step}")
        self.validate_processed_data(data)

    def validate_processed_data(self, data: Any):
        if data is None:
            self.add_warning('validation_error', 'ProcessedData is missing', '', 'high')
            return
        if not data.issues:
            self.add_warning('no_issues', 'No issues found in processed data', '', 'medium')
        for ei in data.issues:
            if not ei.work_summary:
                self.add_warning('validation_error', f"Issue {ei.key} has no work summary", '', 'medium')
            if not ei.key_activities:
                self.add_warning('no_activities', f"Issue {ei.key} has no key activities", '', 'low')
        if data.issues and not data.technical_context.technologies:
            self.add_warning('no_technologies', 'No technologies detected', '', 'low')

    def _quality_score(self) -> float:
        if not self.steps:
            return 100.0
        success_rate = sum(1 for s in self.steps if s.success) / len(self.steps)
        score = success_rate * 100.0
        for w in self.warnings:
            score -= SEVERITY_PENALTY.get(w.severity, 0.0)
        return max(score, 0.0)

    def _recommendations(self) -> List[str]:
        seen_types = {w.type for w in self.warnings}
        recs = [text for wtype, text in RECOMMENDATIONS if wtype in seen_types]
        if self.steps:
            avg = sum(s.duration for s in self.steps) / len(self.steps)
            if avg > SLOW_STEP_SECONDS:
                recs.append('Consider optimizing processing performance')
        if not recs:
            recs.append('Processing completed successfully with good quality')
        return recs

    def get_report(self) -> DebugReport:
        with self._lock:
            steps = list(self.steps)
            warnings = list(self.warnings)
        report = DebugReport(steps, warnings, 0.0, [], time.monotonic() - self._started)
        report.quality_score = self._quality_score()
        report.recommendations = self._recommendations()
        return report

    def print_summary(self):
        if not self.enabled:
            print('Debug logging is not enabled')
            return
        report = self.get_report()
        print(f"Session Duration: {report.total_duration:.2f}s")
        print(f"Total Steps: {len(report.steps)}")
        print(f"Successful Steps: {report.successful_steps}")
        print(f"Failed Steps: {report.failed_steps}")
        print(f"Warnings: {len(report.warnings)}")
        print(f"Quality Score: {report.quality_score:.2f}/100")
        if report.recommendations:
            print('\nRecommendations:')
            for rec in report.recommendations:
                print(f"  - {rec}")

    def save_report(self, path: str):
        with open(path, 'w', encoding='utf-8') as fh:
            json.dump(self.get_report().to_dict(), fh, indent=2, default=str)
