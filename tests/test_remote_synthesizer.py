import unittest
from unittest.mock import MagicMock, patch

import requests

from errors import GenerationError
from generation.client import GenerationClient
from generation.retry import reset_retry_overrides
from synthesis import new_synthesizer, test_connection
from synthesis.config import SynthesisConfig
from synthesis.observer import DebugObserver
from synthesis.remote import RemoteSynthesizer
from synthesis.rule_based import DisabledSynthesizer, RuleBasedSynthesizer
from tracker.models import Comment, Issue

ISSUE = Issue('DEV-9', summary='Fix login timeout', status='In Progress', priority='High', issue_type='Bug')
RULE_BASED_SUMMARY = '🔥 Working on bug fix: Bug fix for login timeout'


class TestRemoteSynthesizer(unittest.TestCase):
    def setUp(self):
        reset_retry_overrides()
        self.client = MagicMock(spec=GenerationClient)
        self.observer = DebugObserver(enabled=True)

    def _synth(self, **config):
        return RemoteSynthesizer(SynthesisConfig(mode='remote', **config), client=self.client, observer=self.observer)

    def test_uses_remote_output(self):
        self.client.generate.return_value = 'Fixing the login timeout bug.'
        self.assertEqual(self._synth().summarize_issue(ISSUE), 'Fixing the login timeout bug.')
        prompt = self.client.generate.call_args[0][0]
        self.assertIn('Ticket: DEV-9', prompt)
        self.assertIn('Keep the summary under 200 characters.', prompt)

    def test_retry_settings_are_passed(self):
        self.client.generate.return_value = 'ok output here'
        self._synth(max_retries=5, backoff_base=0.25).summarize_issue(ISSUE)
        kwargs = self.client.generate.call_args[1]
        self.assertEqual(kwargs['max_retries'], 5)
        self.assertEqual(kwargs['backoff_base'], 0.25)

    def test_remote_output_truncated(self):
        self.client.generate.return_value = 'word ' * 100
        self.assertLessEqual(len(self._synth(max_summary_length=50).summarize_issue(ISSUE)), 50)

    def test_connection_error_falls_back(self):
        self.client.generate.side_effect = GenerationError('connection_error', 'down')
        self.assertEqual(self._synth().summarize_issue(ISSUE), RULE_BASED_SUMMARY)
        self.assertIn('remote_fallback', [w.type for w in self.observer.warnings])

    def test_strict_does_not_fall_back(self):
        self.client.generate.side_effect = GenerationError('connection_error', 'down')
        with self.assertRaises(GenerationError):
            self._synth(fallback_strategy='strict').summarize_issue(ISSUE)

    def test_not_found_propagates(self):
        self.client.generate.side_effect = GenerationError('api_error', "model 'x' not found", details={'status_code': 404})
        synth = self._synth()
        with self.assertRaises(GenerationError):
            synth.summarize_issue(ISSUE)
        self.assertEqual(synth.summarize_issues([ISSUE]), {'DEV-9': 'Status: In Progress - Fix login timeout'})

    def test_cancelled_propagates_from_batch(self):
        self.client.generate.side_effect = GenerationError('cancelled', 'generation cancelled')
        with self.assertRaises(GenerationError):
            self._synth().summarize_issues([ISSUE])

    def test_empty_output_uses_rule_based(self):
        self.client.generate.return_value = '   '
        self.assertEqual(self._synth().summarize_issue(ISSUE), RULE_BASED_SUMMARY)
        self.assertIn('empty_summary', [w.type for w in self.observer.warnings])

    def test_empty_inputs_skip_the_service(self):
        synth = self._synth()
        self.assertEqual(synth.summarize_comments([]), '')
        self.assertEqual(synth.generate_standup_summary([], []), 'No recent activity to report')
        self.assertEqual(synth.summarize_worklog([]), 'No work logged')
        self.client.generate.assert_not_called()

    def test_placeholders_respect_small_limit(self):
        synth = self._synth(max_summary_length=10)
        self.assertEqual(synth.generate_standup_summary([], []), 'No rece...')
        self.assertEqual(synth.generate_standup_summary_with_comments([], [], []), 'No rece...')
        self.assertEqual(synth.summarize_processed_data(None), 'No rece...')
        self.assertEqual(synth.summarize_worklog([]), 'No work...')
        self.client.generate.side_effect = GenerationError('api_error', "model 'x' not found", details={'status_code': 404})
        self.assertLessEqual(len(synth.summarize_issues([ISSUE])['DEV-9']), 10)
        self.client.generate.assert_called_once()

    def test_standup_with_comments_prompt(self):
        self.client.generate.return_value = 'Merged the auth PR and applied Terraform.'
        comments = [Comment('c1', 'Merged PR for auth service')]
        self.assertEqual(self._synth().generate_standup_summary_with_comments([ISSUE], comments, []), 'Merged the auth PR and applied Terraform.')
        prompt = self.client.generate.call_args[0][0]
        self.assertIn("Today's Comments", prompt)
        self.assertIn('Recent Issues:', prompt)

    @patch('generation.retry.time.sleep')
    @patch('generation.client.requests.post')
    def test_http_failure_end_to_end(self, mock_post, mock_sleep):
        mock_post.side_effect = requests.exceptions.ConnectionError('refused')
        synth = RemoteSynthesizer(SynthesisConfig(mode='remote', max_retries=2, backoff_base=0.1))
        self.assertEqual(synth.summarize_issue(ISSUE), RULE_BASED_SUMMARY)
        self.assertEqual(mock_post.call_count, 3)
        self.assertEqual(mock_sleep.call_count, 2)


class TestFactory(unittest.TestCase):
    def test_new_synthesizer_modes(self):
        self.assertIsInstance(new_synthesizer(SynthesisConfig()), RuleBasedSynthesizer)
        self.assertIsInstance(new_synthesizer(SynthesisConfig(mode='remote')), RemoteSynthesizer)
        self.assertIsInstance(new_synthesizer(SynthesisConfig(mode='disabled')), DisabledSynthesizer)
        self.assertIsInstance(new_synthesizer(SynthesisConfig(enabled=False)), DisabledSynthesizer)

    def test_connection_check_only_for_remote(self):
        self.assertEqual(test_connection(SynthesisConfig()), [])

    @patch('generation.client.requests.get')
    def test_connection_check_remote(self, mock_get):
        resp = MagicMock(status_code=200)
        resp.json.return_value = {'models': [{'name': 'llama3.1'}]}
        mock_get.return_value = resp
        self.assertEqual(test_connection(SynthesisConfig(mode='remote')), ['llama3.1'])


if __name__ == '__main__':
    unittest.main()
