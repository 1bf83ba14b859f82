"""
Error types shared across the standup pipeline.
Every error carries a machine-readable kind, a human message, an optional
underlying cause and a details mapping.
"""
from typing import Any, Dict, Optional


class StandupError(Exception):
    """Base error with a kind tag, message, cause and details."""

    def __init__(self, kind: str, message: str, cause: Optional[BaseException] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.cause = cause
        self.details = details or {}

    def __str__(self):
        if self.cause is not None:
            return f"{self.kind}: {self.message} (caused by: {self.cause})"
        return f"{self.kind}: {self.message}"


class ValidationError(StandupError):
    def __init__(self, message: str, cause: Optional[BaseException] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__('validation_error', message, cause, details)


class ProcessingError(StandupError):
    def __init__(self, message: str, cause: Optional[BaseException] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__('processing_error', message, cause, details)


class ConfigError(StandupError):
    def __init__(self, message: str, cause: Optional[BaseException] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__('configuration_error', message, cause, details)


class GenerationError(StandupError):
    """Failure talking to the text generation endpoint.

    kind is one of: marshal_error, request_creation_error, timeout_error,
    connection_error, api_error, decode_error, cancelled.
    """

    @property
    def status_code(self) -> Optional[int]:
        return self.details.get('status_code')


__all__ = ["StandupError", "ValidationError", "ProcessingError", "ConfigError", "GenerationError"]
