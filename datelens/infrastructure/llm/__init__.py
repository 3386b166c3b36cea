"""LLM client, error taxonomy and resilience primitives."""

from .client import OpenAIRestClient, parse_chat_completion
from .errors import (
    ErrorKind, AnalysisAPIError, NetworkError, RequestTimeoutError,
    RateLimitError, AuthError, QuotaError, ResponseParseError,
    AnalysisCancelledError, UnknownAPIError, ServiceUnavailableError,
    classify_exception, error_from_response,
)
from .resilience import (
    CancellationToken, Clock, SystemClock, ExponentialBackoff,
    CircuitBreaker, CircuitState, retry_call,
)

__all__ = [
    "OpenAIRestClient", "parse_chat_completion",
    "ErrorKind", "AnalysisAPIError", "NetworkError", "RequestTimeoutError",
    "RateLimitError", "AuthError", "QuotaError", "ResponseParseError",
    "AnalysisCancelledError", "UnknownAPIError", "ServiceUnavailableError",
    "classify_exception", "error_from_response",
    "CancellationToken", "Clock", "SystemClock", "ExponentialBackoff",
    "CircuitBreaker", "CircuitState", "retry_call",
]
