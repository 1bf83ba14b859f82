import unittest
from datetime import timezone

from errors import ValidationError
from tracker.grouping import find_issue_keys_in_text, group_comments_by_issue
from tracker.models import Comment, Issue
from tracker.util import adf_to_text, normalize_comment, normalize_issue, normalize_worklog, parse_timestamp


class TestNormalize(unittest.TestCase):
    def test_normalize_issue_jira(self):
        raw = {
            'id': '100',
            'key': 'DEV-100',
            'fields': {
                'summary': 'Deploy AWS Lambda using Terraform',
                'description': 'Roll out to production',
                'status': {'name': 'In Progress'},
                'priority': {'name': 'High'},
                'issuetype': {'name': 'Task'},
                'project': {'key': 'DEV'},
                'created': '2025-01-10T12:00:00.000+0000',
            },
        }
        issue = normalize_issue(raw)
        self.assertEqual(issue.key, 'DEV-100')
        self.assertEqual(issue.issue_id, '100')
        self.assertEqual(issue.status, 'In Progress')
        self.assertEqual(issue.priority, 'High')
        self.assertEqual(issue.issue_type, 'Task')
        self.assertEqual(issue.project_key, 'DEV')
        self.assertEqual(issue.created.tzinfo, timezone.utc)
        self.assertIn('production', issue.text())

    def test_normalize_issue_missing_fields(self):
        issue = normalize_issue({'key': 'DEV-1'})
        self.assertEqual(issue.summary, '')
        self.assertEqual(issue.status, '')
        self.assertIsNone(issue.created)

    def test_adf_body_is_flattened(self):
        body = {
            'type': 'doc',
            'content': [
                {'type': 'paragraph', 'content': [{'type': 'text', 'text': 'Completed Terraform apply'}]},
                {'type': 'paragraph', 'content': [{'type': 'text', 'text': 'for production'}]},
            ],
        }
        self.assertEqual(adf_to_text(body), 'Completed Terraform apply for production')
        comment = normalize_comment({'id': '7', 'body': body, 'author': {'displayName': 'Sam'}}, issue_key='DEV-1')
        self.assertEqual(comment.comment_id, '7')
        self.assertEqual(comment.author, 'Sam')
        self.assertEqual(comment.issue_key, 'DEV-1')

    def test_normalize_worklog(self):
        entry = normalize_worklog({'issueId': '100', 'timeSpentSeconds': 3600, 'started': '2025-01-10T09:00:00Z'})
        self.assertEqual(entry.issue_id, '100')
        self.assertEqual(entry.time_spent_seconds, 3600)
        self.assertIsNotNone(entry.started)

    def test_parse_timestamp_variants(self):
        self.assertIsNotNone(parse_timestamp('2025-01-10'))
        self.assertIsNotNone(parse_timestamp('2025-01-10T09:00:00Z'))
        self.assertIsNone(parse_timestamp('not a date'))
        self.assertIsNone(parse_timestamp(''))

    def test_non_mapping_entries_rejected(self):
        for normalize in (normalize_issue, normalize_comment, normalize_worklog):
            with self.assertRaises(ValidationError) as ctx:
                normalize('DEV-1')
            self.assertIn('must be an object, got str', str(ctx.exception))


class TestGrouping(unittest.TestCase):
    def test_find_keys_in_order(self):
        text = "Fixed DEV-123 and addressed OPS-4, see DEV-123 again"
        self.assertEqual(find_issue_keys_in_text(text), ['DEV-123', 'OPS-4'])

    def test_group_comments_by_issue(self):
        issues = [Issue('DEV-1'), Issue('DEV-2')]
        comments = [
            Comment('1', 'explicit', issue_key='DEV-2'),
            Comment('2', 'mentions DEV-1 in the body'),
            Comment('3', 'mentions OTHER-9 only'),
            Comment('4', 'second for DEV-1'),
        ]
        grouped = group_comments_by_issue(comments, issues)
        self.assertEqual([c.comment_id for c in grouped['DEV-1']], ['2', '4'])
        self.assertEqual([c.comment_id for c in grouped['DEV-2']], ['1'])
        self.assertNotIn('OTHER-9', grouped)


if __name__ == '__main__':
    unittest.main()
