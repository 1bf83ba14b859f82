"""
Report renderer: turn a standup narrative plus the processed data behind it into
text, Markdown, CSV, JSON or HTML.
Markdown and HTML are rendered with Jinja2 templates from report/templates.
"""

from typing import Optional, List, Dict, Any
import os
import json
import io
import csv

from jinja2 import Environment, FileSystemLoader, select_autoescape

from aggregate.models import EnhancedIssue, ProcessedData
from synthesis.observer import DebugReport

TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), 'templates')
MAX_TIMELINE_EVENTS = 10

CSV_HEADER = ['key', 'summary', 'status', 'completion_status', 'work_type', 'priority', 'work_summary']


def _environment() -> Environment:
    return Environment(loader=FileSystemLoader(TEMPLATE_DIR), autoescape=select_autoescape(['html', 'xml']))


def _issue_row(ei: EnhancedIssue) -> Dict[str, Any]:
    """Flat view of an EnhancedIssue used by every tabular format."""
    return {
        'key': ei.key,
        'summary': ei.issue.summary,
        'status': ei.issue.status,
        'completion_status': ei.completion_status,
        'work_type': ei.work_type,
        'priority': ei.priority,
        'work_summary': ei.work_summary,
        'key_activities': list(ei.key_activities),
    }


def _quality(debug_report: Optional[DebugReport]) -> Optional[Dict[str, Any]]:
    if debug_report is None:
        return None
    return {
        'score': debug_report.quality_score,
        'warnings': [w.to_dict() for w in debug_report.warnings],
        'recommendations': list(debug_report.recommendations),
    }


def build_context(
    narrative: str,
    processed: Optional[ProcessedData] = None,
    debug_report: Optional[DebugReport] = None,
    generated_at: Optional[str] = None,
    scope: Optional[str] = None,
) -> Dict[str, Any]:
    """Template context shared by the Markdown and HTML renderers."""
    issues = [_issue_row(ei) for ei in processed.issues] if processed else []
    timeline = [e.to_dict() for e in processed.sorted_timeline()[-MAX_TIMELINE_EVENTS:]] if processed else []
    return {
        'narrative': narrative or '',
        'issues': issues,
        'technologies': list(processed.technical_context.technologies) if processed else [],
        'environments': list(processed.technical_context.environments) if processed else [],
        'timeline': timeline,
        'warnings': list(processed.warnings) if processed else [],
        'quality': _quality(debug_report),
        'generated_at': generated_at,
        'scope': scope,
    }


def render_text(narrative: str, processed: Optional[ProcessedData] = None) -> str:
    """Narrative followed by one line per issue."""
    lines = [narrative or '']
    if processed and processed.issues:
        lines.append('')
        for ei in processed.issues:
            line = f"- {ei.key} [{ei.issue.status or ei.completion_status}] {ei.issue.summary}"
            if ei.work_summary:
                line += f" - {ei.work_summary}"
            lines.append(line)
    return "\n".join(lines)


def render_markdown(context: Dict[str, Any]) -> str:
    return _environment().get_template('report.md').render(**context)


def render_html(context: Dict[str, Any]) -> str:
    return _environment().get_template('report.html').render(**context)


def render_csv(narrative: str, processed: Optional[ProcessedData] = None) -> str:
    """One row per issue; a single summary row when there is no processed data."""
    output = io.StringIO()
    writer = csv.writer(output)
    if not processed or not processed.issues:
        writer.writerow(['summary'])
        writer.writerow([narrative or ''])
        return output.getvalue()
    writer.writerow(CSV_HEADER)
    for ei in processed.issues:
        row = _issue_row(ei)
        writer.writerow([row[col] for col in CSV_HEADER])
    return output.getvalue()


def render_json(
    narrative: str,
    processed: Optional[ProcessedData] = None,
    debug_report: Optional[DebugReport] = None,
    generated_at: Optional[str] = None,
    scope: Optional[str] = None,
) -> str:
    """Export the narrative, the processed data and the quality report as JSON."""
    payload: Dict[str, Any] = {
        'summary': narrative or '',
        'generated_at': generated_at,
        'scope': scope,
        'processed': processed.to_dict() if processed else None,
    }
    if debug_report is not None:
        payload['debug'] = debug_report.to_dict()
    return json.dumps(payload, indent=2, default=str)


def render(
    narrative: str,
    processed: Optional[ProcessedData] = None,
    fmt: str = 'text',
    debug_report: Optional[DebugReport] = None,
    generated_at: Optional[str] = None,
    scope: Optional[str] = None,
) -> str:
    """Main render function. Unknown formats render as text."""
    fmt_l = (fmt or 'text').lower()
    if fmt_l in ('md', 'markdown'):
        return render_markdown(build_context(narrative, processed, debug_report, generated_at, scope))
    if fmt_l == 'csv':
        return render_csv(narrative, processed)
    if fmt_l in ('html', 'htm'):
        return render_html(build_context(narrative, processed, debug_report, generated_at, scope))
    if fmt_l in ('json', 'js'):
        return render_json(narrative, processed, debug_report, generated_at, scope)
    return render_text(narrative, processed)


FORMATS: List[str] = ['text', 'md', 'csv', 'json', 'html']
