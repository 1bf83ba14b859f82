"""
CLI entry point for standup-digest. Wires the pipeline: load -> aggregate -> synthesize -> report
"""

import argparse
import json
import logging
import os
import sys
import webbrowser
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from aggregate.processor import DataAggregator
from errors import StandupError, ValidationError
from generation.retry import configure_retry
from report.renderer import render, FORMATS
from synthesis import new_synthesizer, test_connection
from synthesis.config import SynthesisConfig, load_config
from synthesis.fallback import FallbackSupervisor
from synthesis.observer import DebugObserver
from tracker.models import Comment, Issue, WorklogEntry
from tracker.util import normalize_comment, normalize_issue, normalize_worklog

logger = logging.getLogger("standup")

FILE_FORMATS = ("html", "md", "csv")


def _load_json_file(path: str, description: str):
    """Load a JSON file and return the parsed object, or None on failure (the error is printed)."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        print(f"Failed to read {description} {path}: {e}")
        return None


def _normalize_entries(raws: List[Any], normalize) -> List[Any]:
    """Normalize each raw entry; invalid entries are skipped with a printed warning."""
    entries = []
    for raw in raws:
        try:
            entries.append(normalize(raw))
        except ValidationError as exc:
            print(f"Skipping invalid input entry: {exc}")
    return entries


def load_inputs(data: Dict[str, Any]) -> Tuple[List[Issue], Any, List[WorklogEntry]]:
    """Normalize {issues, comments, worklogs} from an input document.

    comments may be a {issue_key: [comment, ...]} mapping or a flat list.
    """
    issues = _normalize_entries(data.get('issues') or [], normalize_issue)
    raw_comments = data.get('comments') or {}
    if isinstance(raw_comments, dict):
        comments: Any = {key: _normalize_entries(items or [], lambda raw, key=key: normalize_comment(raw, issue_key=key))
                         for key, items in raw_comments.items()}
    else:
        comments = _normalize_entries(raw_comments, normalize_comment)
    worklogs = _normalize_entries(data.get('worklogs') or [], normalize_worklog)
    return issues, comments, worklogs


def _flatten_comments(comments: Any) -> List[Comment]:
    if isinstance(comments, dict):
        return [c for items in comments.values() for c in items]
    return list(comments)


def build_config(args) -> SynthesisConfig:
    """Config file and environment first, then CLI flags."""
    config = load_config(args.config or None)
    overrides = {
        'mode': args.mode,
        'summary_style': args.style,
        'max_summary_length': args.max_length,
        'fallback_strategy': args.fallback_strategy,
        'max_workers': args.max_workers,
        'max_retries': args.max_retries,
        'backoff_base': args.backoff_base,
    }
    if args.debug:
        overrides['debug'] = True
    return config.replace(**{k: v for k, v in overrides.items() if v is not None})


def run_pipeline(args, config: SynthesisConfig, observer: DebugObserver) -> Optional[Tuple[str, str]]:
    """Execute load -> aggregate -> synthesize -> render and return (fmt, rendered), or None on bad input."""
    data = _load_json_file(args.input, 'input file')
    if data is None:
        return None
    if not isinstance(data, dict):
        print(f"Invalid input file {args.input}; expected an object with issues, comments and worklogs.")
        return None
    issues, comments, worklogs = load_inputs(data)

    supervisor = FallbackSupervisor(config.fallback_strategy, observer)
    aggregator = DataAggregator(supervisor=supervisor, observer=observer, max_workers=config.max_workers)
    processed = aggregator.process_issues_with_comments(issues, comments)

    synthesizer = new_synthesizer(config, observer=observer)
    if processed.issues:
        narrative = synthesizer.summarize_processed_data(processed)
    else:
        narrative = synthesizer.generate_standup_summary_with_comments(issues, _flatten_comments(comments), worklogs)

    fmt = (args.output or "text").lower()
    debug_report = observer.get_report() if config.debug else None
    rendered = render(
        narrative,
        processed,
        fmt=fmt,
        debug_report=debug_report,
        generated_at=datetime.now(timezone.utc).isoformat(),
        scope=args.scope or os.path.basename(args.input),
    )
    return fmt, rendered


def _open_file_in_browser(path: str):
    """Open a file URL in the system default web browser."""
    webbrowser.open("file://" + os.path.abspath(path))


def _write_report_file(out_path: str, content: str, open_html: bool = False):
    out_dir = os.path.dirname(out_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    # newline='' is safe for CSV on Windows and harmless for other formats
    with open(out_path, 'w', encoding='utf-8', newline='') as fh:
        fh.write(content)
    print(f"Wrote report to {out_path}")
    if open_html:
        try:
            _open_file_in_browser(out_path)
        except webbrowser.Error:
            print('Failed to open browser automatically; file saved at', out_path)


def write_output(fmt: str, rendered: str, args):
    """Write file formats to disk (default name when --out-file is empty); print text to stdout."""
    if fmt in FILE_FORMATS or args.out_file.strip():
        ext = fmt if fmt in FORMATS and fmt != "text" else "txt"
        out_path = args.out_file.strip() or f"standup_report_{datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%SZ')}.{ext}"
        _write_report_file(out_path, rendered, open_html=(args.open and fmt == "html"))
    else:
        print(rendered)


def _check_connection(config: SynthesisConfig) -> int:
    try:
        models = test_connection(config)
    except StandupError as exc:
        print(f"Connection check failed: {exc}")
        return 1
    if config.mode != 'remote':
        print(f"Mode '{config.mode}' does not use a generation service")
    else:
        print(f"Generation service at {config.base_url} is reachable")
        if models:
            print("Available models: " + ", ".join(models))
    return 0


def _configure_logging(verbose: bool, debug: bool):
    level = logging.DEBUG if verbose else (logging.INFO if debug else logging.WARNING)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Standup summary CLI")
    parser.add_argument("--input", type=str, default="", help="JSON file with issues, comments and worklogs")
    parser.add_argument("--config", type=str, default="", help="YAML config file (default: config/standup.yaml)")
    parser.add_argument("--mode", type=str, default=None, help="Synthesis mode (embedded, remote, disabled)")
    parser.add_argument("--style", type=str, default=None, help="Summary style (technical, business, brief)")
    parser.add_argument("--max-length", type=int, default=None, help="Maximum summary length in characters")
    parser.add_argument("--fallback-strategy", type=str, default=None, help="Fallback strategy (strict, minimal, graceful)")
    parser.add_argument("--max-workers", type=int, default=None, help="Worker threads for issue aggregation")
    parser.add_argument("--output", type=str, help="Output format (" + ", ".join(FORMATS) + ")", default="text")
    parser.add_argument("--out-file", type=str, default="", help="Output file path. If omitted, file formats use a default name and text goes to stdout")
    parser.add_argument("--open", action="store_true", help="Open the generated HTML report in the default browser")
    parser.add_argument("--scope", type=str, default="", help="Label shown in the report header")
    parser.add_argument("--debug", action="store_true", help="Collect processing steps and a quality report")
    parser.add_argument("--debug-report", type=str, default="", help="Write the quality report as JSON to this path (implies --debug)")
    parser.add_argument("--verbose", action="store_true", help="Verbose logging")
    # retry/backoff knobs: optional CLI overrides. Environment variables STANDUP_MAX_RETRIES, STANDUP_BACKOFF_BASE
    # and STANDUP_MAX_BACKOFF may also be used to set defaults.
    parser.add_argument("--max-retries", type=int, default=None, help="Maximum retries for generation requests (overrides STANDUP_MAX_RETRIES env)")
    parser.add_argument("--backoff-base", type=float, default=None, help="Base backoff seconds (overrides STANDUP_BACKOFF_BASE env)")
    parser.add_argument("--max-backoff", type=float, default=None, help="Maximum backoff cap in seconds (overrides STANDUP_MAX_BACKOFF env)")
    parser.add_argument("--check-connection", action="store_true", help="Check that the generation service is reachable and exit")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.debug_report:
        args.debug = True
    _configure_logging(args.verbose, args.debug)

    # Apply runtime retry/backoff configuration (CLI flags take precedence over environment variables)
    configure_retry(max_retries=args.max_retries, backoff_base=args.backoff_base, max_backoff=args.max_backoff)

    config = build_config(args)
    if args.check_connection:
        return _check_connection(config)
    if not args.input:
        parser.error("--input is required unless --check-connection is given")

    observer = DebugObserver(enabled=config.debug, verbose=args.verbose)
    try:
        result = run_pipeline(args, config, observer)
    except StandupError as exc:
        logger.error("standup generation failed: %s", exc)
        print(f"Error: {exc}")
        return 1
    if result is None:
        return 1

    fmt, rendered = result
    write_output(fmt, rendered, args)
    if args.debug_report:
        observer.save_report(args.debug_report)
        print(f"Wrote debug report to {args.debug_report}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
