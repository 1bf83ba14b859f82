"""
Retry/backoff loop for calls to the generation service.
Attempts run 0..max_retries; before attempt i > 0 the loop waits
backoff_base * 2**(i-1) seconds (capped by max_backoff). A threading.Event or a
monotonic deadline cancels the loop, including a pending wait. A set Event
also abandons an in-flight request: the call runs on a daemon thread and the
caller returns as soon as the Event is set. A deadline bounds the request
timeout instead.
"""

import os
import threading
import time
from typing import Any, Callable, Optional, Tuple

from errors import GenerationError

# retry/backoff defaults from environment
DEFAULT_MAX_RETRIES = int(os.getenv("STANDUP_MAX_RETRIES", "3"))
DEFAULT_BACKOFF_BASE = float(os.getenv("STANDUP_BACKOFF_BASE", "1.0"))
DEFAULT_MAX_BACKOFF = float(os.getenv("STANDUP_MAX_BACKOFF", "60.0"))
CANCEL_POLL_INTERVAL = 0.05

# runtime-overrides
_runtime_max_retries: Optional[int] = None
_runtime_backoff_base: Optional[float] = None
_runtime_max_backoff: Optional[float] = None


def configure_retry(max_retries: Optional[int] = None, backoff_base: Optional[float] = None, max_backoff: Optional[float] = None):
    """Configure retry/backoff defaults at runtime (e.g. from CLI). Overrides win over per-call values."""
    global _runtime_max_retries, _runtime_backoff_base, _runtime_max_backoff
    if max_retries is not None:
        _runtime_max_retries = int(max_retries)
    if backoff_base is not None:
        _runtime_backoff_base = float(backoff_base)
    if max_backoff is not None:
        _runtime_max_backoff = float(max_backoff)


def reset_retry_overrides():
    global _runtime_max_retries, _runtime_backoff_base, _runtime_max_backoff
    _runtime_max_retries = None
    _runtime_backoff_base = None
    _runtime_max_backoff = None


def _resolve_retry_params(max_retries: Optional[int], backoff_base: Optional[float], max_backoff: Optional[float]) -> Tuple[int, float, float]:
    if _runtime_max_retries is not None:
        retries = _runtime_max_retries
    elif max_retries is not None:
        retries = int(max_retries)
    else:
        retries = DEFAULT_MAX_RETRIES

    if _runtime_backoff_base is not None:
        base = _runtime_backoff_base
    elif backoff_base is not None:
        base = float(backoff_base)
    else:
        base = DEFAULT_BACKOFF_BASE

    if _runtime_max_backoff is not None:
        cap = _runtime_max_backoff
    elif max_backoff is not None:
        cap = float(max_backoff)
    else:
        cap = DEFAULT_MAX_BACKOFF

    return max(0, retries), max(0.0, base), max(0.0, cap)


def backoff_delay(attempt: int, backoff_base: float, max_backoff: float) -> float:
    """Wait before attempt number `attempt` (0-based); 0 for the first attempt."""
    if attempt <= 0:
        return 0.0
    return min(backoff_base * (2 ** (attempt - 1)), max_backoff)


def _cancelled(reason: str, attempts: int) -> GenerationError:
    return GenerationError('cancelled', reason, details={'attempts': attempts})


def _remaining(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    return deadline - time.monotonic()


def _check_cancelled(cancel_event: Optional[threading.Event], deadline: Optional[float], attempts: int):
    if cancel_event is not None and cancel_event.is_set():
        raise _cancelled('generation cancelled', attempts)
    remaining = _remaining(deadline)
    if remaining is not None and remaining <= 0:
        raise _cancelled('generation deadline exceeded', attempts)


def _wait(delay: float, cancel_event: Optional[threading.Event], deadline: Optional[float], sleep: Callable[[float], Any], attempts: int):
    remaining = _remaining(deadline)
    if remaining is not None and remaining <= delay:
        raise _cancelled('generation deadline exceeded during backoff', attempts)
    if delay <= 0:
        return
    if cancel_event is not None:
        if cancel_event.wait(delay):
            raise _cancelled('generation cancelled during backoff', attempts)
        return
    sleep(delay)


def _request_timeout(default_timeout: Optional[float], deadline: Optional[float]) -> Optional[float]:
    remaining = _remaining(deadline)
    if remaining is None:
        return default_timeout
    if default_timeout is None:
        return remaining
    return min(default_timeout, remaining)


def _run_cancellable(fn: Callable[[Optional[float]], Any], timeout: Optional[float], cancel_event: threading.Event, attempts: int) -> Any:
    """Run fn(timeout) on a daemon thread; a set cancel_event abandons the in-flight call."""
    done = threading.Event()
    outcome = {}

    def target():
        try:
            outcome['value'] = fn(timeout)
        except Exception as exc:
            outcome['error'] = exc
        finally:
            done.set()

    threading.Thread(target=target, name='generation-request', daemon=True).start()
    while not done.wait(CANCEL_POLL_INTERVAL):
        if cancel_event.is_set():
            raise _cancelled('generation cancelled during request', attempts)
    if 'error' in outcome:
        raise outcome['error']
    return outcome['value']


def _attempt_once(fn: Callable[[Optional[float]], Any], timeout: Optional[float], is_retryable: Callable[[GenerationError], bool],
                  cancel_event: Optional[threading.Event] = None, attempts: int = 0):
    try:
        if cancel_event is not None:
            return 'success', _run_cancellable(fn, timeout, cancel_event, attempts)
        return 'success', fn(timeout)
    except GenerationError as err:
        if err.kind != 'cancelled' and is_retryable(err):
            return 'retry', err
        return 'fail', err


def _handle_attempt_outcome(outcome: str, payload: Any, attempt: int, max_retries: int) -> str:
    if outcome == 'success':
        return 'return'
    payload.details['attempts'] = attempt + 1
    if outcome == 'retry' and attempt < max_retries:
        return 'continue'
    return 'raise'


def _call_with_retries_core(
    fn: Callable[[Optional[float]], Any],
    is_retryable: Callable[[GenerationError], bool],
    max_retries: int,
    backoff_base: float,
    max_backoff: float,
    default_timeout: Optional[float],
    cancel_event: Optional[threading.Event],
    deadline: Optional[float],
    sleep: Callable[[float], Any],
) -> Any:
    attempt = 0
    while True:
        _check_cancelled(cancel_event, deadline, attempt)
        if attempt > 0:
            _wait(backoff_delay(attempt, backoff_base, max_backoff), cancel_event, deadline, sleep, attempt)

        outcome, payload = _attempt_once(fn, _request_timeout(default_timeout, deadline), is_retryable, cancel_event, attempt)

        action = _handle_attempt_outcome(outcome, payload, attempt, max_retries)
        if action == 'return':
            return payload
        if action == 'raise':
            raise payload
        attempt += 1


def call_with_retries(
    fn: Callable[[Optional[float]], Any],
    is_retryable: Callable[[GenerationError], bool],
    max_retries: Optional[int] = None,
    backoff_base: Optional[float] = None,
    max_backoff: Optional[float] = None,
    default_timeout: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
    deadline: Optional[float] = None,
    sleep: Optional[Callable[[float], Any]] = None,
) -> Any:
    """
    Call fn(timeout) until it succeeds, fails with a non-retryable
    GenerationError or the retries run out. The raised error carries
    details['attempts']. deadline is a time.monotonic() value.
    """
    retries, base, cap = _resolve_retry_params(max_retries, backoff_base, max_backoff)
    return _call_with_retries_core(fn, is_retryable, retries, base, cap, default_timeout, cancel_event, deadline, sleep or time.sleep)


__all__ = ["configure_retry", "reset_retry_overrides", "call_with_retries", "backoff_delay"]
