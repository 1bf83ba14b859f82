"""
HTTP client for the text generation service (Ollama-compatible API).

generate_once() performs a single POST to /api/generate and maps every failure
to a GenerationError kind; generate() adds the retry loop and turns the final
failure into an actionable message.
"""
import json
import logging
import threading
from typing import List, Optional

import requests

from errors import GenerationError
from generation.retry import call_with_retries

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = 'http://localhost:11434'
DEFAULT_MODEL = 'llama3.1'
DEFAULT_TIMEOUT = 30.0
CONNECTION_CHECK_TIMEOUT = 5.0

RETRYABLE_KINDS = ('timeout_error', 'connection_error')


def _is_server_error(err: GenerationError) -> bool:
    code = err.status_code
    return err.kind == 'api_error' and code is not None and 500 <= int(code) < 600


def is_retryable_error(err: GenerationError) -> bool:
    """Timeouts, connection failures and 5xx responses are worth another attempt."""
    if err.kind == 'cancelled':
        return False
    return err.kind in RETRYABLE_KINDS or _is_server_error(err)


def should_fallback_to_rule_based(err: BaseException) -> bool:
    if not isinstance(err, GenerationError) or err.kind == 'cancelled':
        return False
    return err.kind in RETRYABLE_KINDS or _is_server_error(err)


def enhance_error_message(err: GenerationError, base_url: str, model: str, attempts: int) -> GenerationError:
    """Rewrite a final failure into a message telling the user what to do."""
    details = dict(err.details)
    details['attempts'] = attempts
    code = err.status_code
    if err.kind == 'connection_error':
        message = (f"unable to connect to generation service at {base_url} after {attempts} attempts; "
                   f"make sure the service is running (e.g. 'ollama serve')")
    elif err.kind == 'timeout_error':
        message = (f"request to model '{model}' timed out after {attempts} attempts; "
                   f"try a smaller model or increase the timeout")
    elif err.kind == 'api_error' and code == 404:
        message = f"model '{model}' not found on {base_url}; download it with 'ollama pull {model}'"
    elif _is_server_error(err):
        message = (f"server error after {attempts} attempts (status {code}); "
                   f"the generation service may be overloaded, try again later")
    else:
        return err
    return GenerationError(err.kind, message, cause=err, details=details)


class GenerationClient:
    """
    Thin wrapper around the generation endpoint. Uses module-level requests
    calls so tests can patch generation.client.requests.
    """
    def __init__(self, base_url: str = DEFAULT_BASE_URL, model: str = DEFAULT_MODEL, timeout: float = DEFAULT_TIMEOUT):
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip('/')
        self.model = model or DEFAULT_MODEL
        self.timeout = timeout

    def _send(self, method: str, path: str, timeout: Optional[float], data: Optional[str] = None) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            if method == 'POST':
                return requests.post(url, data=data, headers={'Content-Type': 'application/json'}, timeout=timeout)
            return requests.get(url, timeout=timeout)
        except requests.exceptions.Timeout as exc:
            raise GenerationError('timeout_error', f"request to {url} timed out", cause=exc) from exc
        except (requests.exceptions.MissingSchema, requests.exceptions.InvalidSchema, requests.exceptions.InvalidURL) as exc:
            raise GenerationError('request_creation_error', f"failed to create request for {url}", cause=exc) from exc
        except requests.exceptions.RequestException as exc:
            raise GenerationError('connection_error', f"failed to send request to {url}", cause=exc) from exc

    @staticmethod
    def _check_status(resp: requests.Response):
        if resp.status_code != 200:
            raise GenerationError(
                'api_error',
                f"generation service returned status {resp.status_code}",
                details={'status_code': resp.status_code, 'body': (resp.text or '')[:200]},
            )

    @staticmethod
    def _decode(resp: requests.Response) -> dict:
        try:
            payload = resp.json()
        except ValueError as exc:
            raise GenerationError('decode_error', 'failed to decode response', cause=exc) from exc
        if not isinstance(payload, dict):
            raise GenerationError('decode_error', f"unexpected response payload: {type(payload).__name__}")
        return payload

    def generate_once(self, prompt: str, timeout: Optional[float] = None) -> str:
        try:
            body = json.dumps({'model': self.model, 'prompt': prompt, 'stream': False})
        except (TypeError, ValueError) as exc:
            raise GenerationError('marshal_error', 'failed to marshal request', cause=exc) from exc
        resp = self._send('POST', '/api/generate', timeout or self.timeout, body)
        self._check_status(resp)
        payload = self._decode(resp)
        return str(payload.get('response') or '').strip()

    def generate(self, prompt: str, max_retries: Optional[int] = None, backoff_base: Optional[float] = None,
                 cancel_event: Optional[threading.Event] = None, deadline: Optional[float] = None) -> str:
        try:
            return call_with_retries(
                lambda timeout: self.generate_once(prompt, timeout),
                is_retryable_error,
                max_retries=max_retries,
                backoff_base=backoff_base,
                default_timeout=self.timeout,
                cancel_event=cancel_event,
                deadline=deadline,
            )
        except GenerationError as err:
            if err.kind == 'cancelled':
                raise
            attempts = err.details.get('attempts', 1)
            logger.warning("generation failed after %d attempts: %s", attempts, err)
            raise enhance_error_message(err, self.base_url, self.model, attempts) from err

    def test_connection(self) -> List[str]:
        """GET /api/tags; returns the model names the service reports."""
        resp = self._send('GET', '/api/tags', CONNECTION_CHECK_TIMEOUT)
        self._check_status(resp)
        payload = self._decode(resp)
        return [m.get('name', '') for m in payload.get('models') or [] if isinstance(m, dict)]


__all__ = ["GenerationClient", "is_retryable_error", "should_fallback_to_rule_based", "enhance_error_message"]
