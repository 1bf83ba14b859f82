import json
import threading
import time
import unittest
from unittest.mock import MagicMock, call, patch

import requests

from errors import GenerationError
from generation.client import GenerationClient, is_retryable_error, should_fallback_to_rule_based
from generation.retry import backoff_delay, call_with_retries, configure_retry, reset_retry_overrides


def _response(status_code=200, payload=None, text=''):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    resp.json.return_value = payload if payload is not None else {'response': 'ok', 'done': True}
    return resp


class TestBackoff(unittest.TestCase):
    def test_backoff_delay(self):
        self.assertEqual(backoff_delay(0, 1.0, 60.0), 0.0)
        self.assertEqual(backoff_delay(1, 1.0, 60.0), 1.0)
        self.assertEqual(backoff_delay(3, 1.0, 60.0), 4.0)
        self.assertEqual(backoff_delay(10, 1.0, 60.0), 60.0)

    def test_retryable_kinds(self):
        self.assertTrue(is_retryable_error(GenerationError('timeout_error', 'x')))
        self.assertTrue(is_retryable_error(GenerationError('connection_error', 'x')))
        self.assertTrue(is_retryable_error(GenerationError('api_error', 'x', details={'status_code': 503})))
        self.assertFalse(is_retryable_error(GenerationError('api_error', 'x', details={'status_code': 404})))
        self.assertFalse(is_retryable_error(GenerationError('decode_error', 'x')))
        self.assertFalse(is_retryable_error(GenerationError('cancelled', 'x')))

    def test_should_fallback(self):
        self.assertTrue(should_fallback_to_rule_based(GenerationError('connection_error', 'x')))
        self.assertTrue(should_fallback_to_rule_based(GenerationError('api_error', 'x', details={'status_code': 500})))
        self.assertFalse(should_fallback_to_rule_based(GenerationError('api_error', 'x', details={'status_code': 404})))
        self.assertFalse(should_fallback_to_rule_based(GenerationError('cancelled', 'x')))
        self.assertFalse(should_fallback_to_rule_based(ValueError('x')))


class TestGenerationClient(unittest.TestCase):
    def setUp(self):
        reset_retry_overrides()
        self.client = GenerationClient('http://localhost:11434/', 'llama3.1', timeout=5.0)

    def tearDown(self):
        reset_retry_overrides()

    @patch('generation.client.requests.post')
    def test_generate_posts_payload(self, mock_post):
        mock_post.return_value = _response(payload={'response': '  Merged PR for auth service  ', 'done': True})
        self.assertEqual(self.client.generate('prompt text', max_retries=0), 'Merged PR for auth service')
        url = mock_post.call_args[0][0]
        self.assertEqual(url, 'http://localhost:11434/api/generate')
        body = json.loads(mock_post.call_args[1]['data'])
        self.assertEqual(body, {'model': 'llama3.1', 'prompt': 'prompt text', 'stream': False})
        self.assertEqual(mock_post.call_args[1]['timeout'], 5.0)

    @patch('generation.retry.time.sleep')
    @patch('generation.client.requests.post')
    def test_connection_error_retries_then_enhances(self, mock_post, mock_sleep):
        mock_post.side_effect = requests.exceptions.ConnectionError('refused')
        with self.assertRaises(GenerationError) as ctx:
            self.client.generate('p', max_retries=3, backoff_base=1.0)
        self.assertEqual(mock_post.call_count, 4)
        self.assertEqual(mock_sleep.call_args_list, [call(1.0), call(2.0), call(4.0)])
        err = ctx.exception
        self.assertEqual(err.kind, 'connection_error')
        self.assertEqual(err.details['attempts'], 4)
        self.assertIn('http://localhost:11434', err.message)
        self.assertIn('after 4 attempts', err.message)

    @patch('generation.retry.time.sleep')
    @patch('generation.client.requests.post')
    def test_not_found_is_not_retried(self, mock_post, mock_sleep):
        mock_post.return_value = _response(404, text='model not found')
        with self.assertRaises(GenerationError) as ctx:
            self.client.generate('p', max_retries=3)
        self.assertEqual(mock_post.call_count, 1)
        mock_sleep.assert_not_called()
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertIn("ollama pull llama3.1", ctx.exception.message)

    @patch('generation.retry.time.sleep')
    @patch('generation.client.requests.post')
    def test_server_error_then_success(self, mock_post, mock_sleep):
        mock_post.side_effect = [_response(503, text='busy'), _response(payload={'response': 'done', 'done': True})]
        self.assertEqual(self.client.generate('p', max_retries=3, backoff_base=0.5), 'done')
        self.assertEqual(mock_post.call_count, 2)
        mock_sleep.assert_called_once_with(0.5)

    @patch('generation.retry.time.sleep')
    @patch('generation.client.requests.post')
    def test_timeout_message(self, mock_post, mock_sleep):
        mock_post.side_effect = requests.exceptions.Timeout('slow')
        with self.assertRaises(GenerationError) as ctx:
            self.client.generate('p', max_retries=1)
        self.assertEqual(ctx.exception.kind, 'timeout_error')
        self.assertIn("model 'llama3.1' timed out after 2 attempts", ctx.exception.message)

    @patch('generation.client.requests.post')
    def test_decode_error(self, mock_post):
        resp = _response()
        resp.json.side_effect = ValueError('not json')
        mock_post.return_value = resp
        with self.assertRaises(GenerationError) as ctx:
            self.client.generate('p', max_retries=3)
        self.assertEqual(ctx.exception.kind, 'decode_error')
        self.assertEqual(mock_post.call_count, 1)

    @patch('generation.client.requests.post')
    def test_invalid_url_is_request_creation_error(self, mock_post):
        mock_post.side_effect = requests.exceptions.MissingSchema('no scheme')
        with self.assertRaises(GenerationError) as ctx:
            self.client.generate_once('p')
        self.assertEqual(ctx.exception.kind, 'request_creation_error')

    @patch('generation.client.requests.post')
    def test_preset_cancel_event(self, mock_post):
        event = threading.Event()
        event.set()
        with self.assertRaises(GenerationError) as ctx:
            self.client.generate('p', cancel_event=event)
        self.assertEqual(ctx.exception.kind, 'cancelled')
        mock_post.assert_not_called()

    @patch('generation.client.requests.post')
    def test_cancel_during_retries(self, mock_post):
        event = threading.Event()

        def fail_and_cancel(*args, **kwargs):
            event.set()
            raise requests.exceptions.ConnectionError('refused')

        mock_post.side_effect = fail_and_cancel
        with self.assertRaises(GenerationError) as ctx:
            self.client.generate('p', max_retries=3, backoff_base=30.0, cancel_event=event)
        self.assertEqual(ctx.exception.kind, 'cancelled')
        self.assertEqual(mock_post.call_count, 1)

    @patch('generation.client.requests.post')
    def test_cancel_aborts_in_flight_request(self, mock_post):
        event = threading.Event()
        release = threading.Event()

        def hang(*args, **kwargs):
            release.wait(5)
            raise requests.exceptions.ConnectionError('released')

        mock_post.side_effect = hang
        timer = threading.Timer(0.1, event.set)
        timer.start()
        started = time.monotonic()
        try:
            with self.assertRaises(GenerationError) as ctx:
                self.client.generate('p', max_retries=3, cancel_event=event)
        finally:
            release.set()
            timer.cancel()
        self.assertLess(time.monotonic() - started, 2.0)
        self.assertEqual(ctx.exception.kind, 'cancelled')
        self.assertEqual(ctx.exception.details['attempts'], 1)
        self.assertEqual(mock_post.call_count, 1)

    @patch('generation.client.requests.post')
    def test_expired_deadline(self, mock_post):
        with self.assertRaises(GenerationError) as ctx:
            self.client.generate('p', deadline=time.monotonic() - 1)
        self.assertEqual(ctx.exception.kind, 'cancelled')
        mock_post.assert_not_called()

    @patch('generation.retry.time.sleep')
    @patch('generation.client.requests.post')
    def test_runtime_override_wins(self, mock_post, mock_sleep):
        configure_retry(max_retries=0)
        mock_post.side_effect = requests.exceptions.ConnectionError('refused')
        with self.assertRaises(GenerationError):
            self.client.generate('p', max_retries=5)
        self.assertEqual(mock_post.call_count, 1)

    @patch('generation.client.requests.get')
    def test_test_connection(self, mock_get):
        mock_get.return_value = _response(payload={'models': [{'name': 'llama3.1'}, {'name': 'tinyllama'}]})
        self.assertEqual(self.client.test_connection(), ['llama3.1', 'tinyllama'])
        self.assertEqual(mock_get.call_args[0][0], 'http://localhost:11434/api/tags')


def test_call_with_retries_uses_injected_sleep():
    delays = []
    attempts = []

    def flaky(timeout):
        attempts.append(timeout)
        if len(attempts) < 3:
            raise GenerationError('connection_error', 'down')
        return 'ok'

    reset_retry_overrides()
    result = call_with_retries(flaky, is_retryable_error, max_retries=3, backoff_base=2.0, default_timeout=7.0, sleep=delays.append)
    assert result == 'ok'
    assert delays == [2.0, 4.0]
    assert attempts == [7.0, 7.0, 7.0]
