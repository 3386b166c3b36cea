"""
Error taxonomy for provider calls.

Every failure is classified into one of these before retry or circuit-breaker
logic looks at it.
"""
from enum import Enum
from typing import Any, Dict, Optional

import requests


class ErrorKind(str, Enum):
    """Normalized categories of provider failures."""
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    QUOTA_ERROR = "QUOTA_ERROR"
    PARSE_ERROR = "PARSE_ERROR"
    CANCELLED = "CANCELLED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class AnalysisAPIError(RuntimeError):
    """Base class for classified provider errors."""
    kind = ErrorKind.UNKNOWN_ERROR
    retryable = False

    def __init__(self, message: str, status_code: Optional[int] = None,
                 retry_after: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.retry_after = retry_after

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.status_code is not None:
            data["statusCode"] = self.status_code
        if self.retry_after is not None:
            data["retryAfterSeconds"] = self.retry_after
        return data

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value}, message={self.message!r}, status_code={self.status_code})"


class NetworkError(AnalysisAPIError):
    kind = ErrorKind.NETWORK_ERROR
    retryable = True


class RequestTimeoutError(AnalysisAPIError):
    kind = ErrorKind.TIMEOUT_ERROR
    retryable = True


class RateLimitError(AnalysisAPIError):
    kind = ErrorKind.RATE_LIMIT_ERROR
    retryable = True


class AuthError(AnalysisAPIError):
    kind = ErrorKind.AUTH_ERROR


class QuotaError(AnalysisAPIError):
    kind = ErrorKind.QUOTA_ERROR


class ResponseParseError(AnalysisAPIError):
    kind = ErrorKind.PARSE_ERROR


class AnalysisCancelledError(AnalysisAPIError):
    """Raised when the caller cancels; never triggers a fallback."""
    kind = ErrorKind.CANCELLED


class UnknownAPIError(AnalysisAPIError):
    kind = ErrorKind.UNKNOWN_ERROR


class ServiceUnavailableError(UnknownAPIError):
    """Raised without a network call while the circuit breaker is open."""


SERVER_ERROR_CODES = (500, 502, 503, 504)


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """Parse a Retry-After header given in seconds. HTTP-date values are ignored."""
    if value is None:
        return None
    value = value.strip()
    if not value.isdigit():
        return None
    return int(value)


def error_from_response(response: requests.Response) -> AnalysisAPIError:
    """Map a non-2xx HTTP response to a classified error."""
    status = response.status_code

    if status == 401:
        return AuthError("API key is invalid or missing", status)
    if status == 429:
        retry_after = parse_retry_after(response.headers.get("Retry-After"))
        return RateLimitError("Provider rate limit exceeded", status, retry_after)
    if status == 402:
        return QuotaError("Provider usage quota exceeded", status)
    if status in SERVER_ERROR_CODES:
        return NetworkError(f"Provider server error ({status})", status)

    reason = getattr(response, "reason", "") or ""
    return UnknownAPIError(f"HTTP {status}: {reason}".strip(), status)


def classify_exception(exc: BaseException) -> AnalysisAPIError:
    """Map any exception raised while calling the provider to a classified error."""
    if isinstance(exc, AnalysisAPIError):
        return exc
    # Timeout must be checked first: ConnectTimeout is also a ConnectionError
    if isinstance(exc, requests.Timeout):
        return RequestTimeoutError(f"Request timed out: {exc}")
    if isinstance(exc, requests.ConnectionError):
        return NetworkError(f"Network connection failed: {exc}")
    return UnknownAPIError(str(exc) or type(exc).__name__)
