import csv
import io
import json
import unittest
from datetime import datetime, timezone
from pathlib import Path

import pytest

from aggregate.processor import DataAggregator
from report.renderer import FORMATS, CSV_HEADER, build_context, render, render_csv, render_html, render_markdown, render_text
from synthesis.observer import DebugObserver
from tracker.models import Comment, Issue

NARRATIVE = 'Completed: Merged PR for auth service. In progress: Database permission changes'


def _processed():
    issues = [
        Issue('DEV-1', summary='Deploy AWS Lambda using Terraform', status='Done', priority='Critical', created=datetime(2025, 1, 10, 8, tzinfo=timezone.utc)),
        Issue('DEV-2', summary='Database <migration> for auth service', status='In Progress', priority='Medium', created=datetime(2025, 1, 10, 7, tzinfo=timezone.utc)),
    ]
    comments = {'DEV-2': [Comment('c3', 'Merged PR for auth service', created=datetime(2025, 1, 10, 11, tzinfo=timezone.utc))]}
    return DataAggregator().process_issues_with_comments(issues, comments)


class TestRenderer(unittest.TestCase):
    def setUp(self):
        self.processed = _processed()

    def test_text(self):
        text = render_text(NARRATIVE, self.processed)
        lines = text.splitlines()
        self.assertEqual(lines[0], NARRATIVE)
        self.assertTrue(lines[2].startswith('- DEV-1 [Done] Deploy AWS Lambda using Terraform'))
        self.assertEqual(render_text(NARRATIVE), NARRATIVE)

    def test_markdown(self):
        md = render_markdown(build_context(NARRATIVE, self.processed, scope='team-a'))
        self.assertIn('# Standup Report', md)
        self.assertIn('_Scope: team-a_', md)
        self.assertIn(NARRATIVE, md)
        self.assertIn('| DEV-1 | Deploy AWS Lambda using Terraform | Done | deployment | 110 |', md)
        self.assertIn('**Technologies:** terraform', md)

    def test_html_escapes_and_lists_issues(self):
        html = render_html(build_context(NARRATIVE, self.processed, generated_at='2025-01-10T12:00:00Z'))
        self.assertIn('<h1>Standup Report</h1>', html)
        self.assertIn('DEV-2', html)
        self.assertIn('Database &lt;migration&gt; for auth service', html)
        self.assertIn('Generated: 2025-01-10T12:00:00Z', html)
        self.assertIn('<h2>Timeline</h2>', html)

    def test_html_quality_section(self):
        observer = DebugObserver(enabled=True)
        observer.log_step('s')
        observer.complete_step('s')
        html = render(NARRATIVE, self.processed, fmt='html', debug_report=observer.get_report())
        self.assertIn('100.0', html)

    def test_csv(self):
        rows = list(csv.reader(io.StringIO(render_csv(NARRATIVE, self.processed))))
        self.assertEqual(rows[0], CSV_HEADER)
        self.assertEqual(rows[1][:3], ['DEV-1', 'Deploy AWS Lambda using Terraform', 'Done'])
        self.assertEqual(len(rows), 3)

    def test_csv_without_issues(self):
        rows = list(csv.reader(io.StringIO(render_csv('No recent activity to report'))))
        self.assertEqual(rows, [['summary'], ['No recent activity to report']])

    def test_json(self):
        payload = json.loads(render(NARRATIVE, self.processed, fmt='json', scope='team-a'))
        self.assertEqual(payload['summary'], NARRATIVE)
        self.assertEqual(payload['scope'], 'team-a')
        self.assertEqual([i['key'] for i in payload['processed']['issues']], ['DEV-1', 'DEV-2'])
        self.assertNotIn('debug', payload)

    def test_every_format_renders(self):
        for fmt in FORMATS + ['markdown', 'unknown']:
            out = render(NARRATIVE, self.processed, fmt=fmt)
            self.assertIsInstance(out, str)
            self.assertTrue(out)
        self.assertEqual(render(NARRATIVE, None, fmt='unknown'), NARRATIVE)

    def test_context_timeline_is_sorted(self):
        ctx = build_context(NARRATIVE, self.processed)
        self.assertEqual([e['issue_key'] for e in ctx['timeline']], ['DEV-2', 'DEV-1', 'DEV-2'])
        self.assertIsNone(ctx['quality'])


class TestRendererComplexity(unittest.TestCase):
    MAX_COMPLEXITY = 12

    def test_render_functions_stay_small(self):
        cc_visit = pytest.importorskip('radon.complexity').cc_visit
        source = (Path(__file__).resolve().parents[1] / 'report' / 'renderer.py').read_text(encoding='utf-8')
        too_complex = {block.name: block.complexity for block in cc_visit(source) if block.complexity > self.MAX_COMPLEXITY}
        self.assertEqual(too_complex, {})


if __name__ == '__main__':
    unittest.main()
