"""
Client for the remote text generation service plus its retry loop.
"""

from .client import GenerationClient, enhance_error_message, is_retryable_error, should_fallback_to_rule_based
from .retry import call_with_retries, configure_retry

__all__ = [
    "GenerationClient",
    "enhance_error_message",
    "is_retryable_error",
    "should_fallback_to_rule_based",
    "call_with_retries",
    "configure_retry",
]
