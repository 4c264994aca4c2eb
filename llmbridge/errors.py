"""
llmbridge Errors - Error taxonomy shared by every provider

This module defines:
- LLMError: Base class carrying provider id and raw payload
- MalformedFrameError: A single SSE/JSONL frame could not be parsed
- TransportError and its HTTP flavours (auth, rate limit, timeout, ...)
- CancelledError: Caller-initiated abort
- UnsupportedCapabilityError: Provider does not implement an operation
- ResponseFormatError: Structured output did not match the requested shape

Helpers map httpx failures and HTTP status codes onto the taxonomy so that
every client reports errors the same way.
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Base class for all llmbridge errors"""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        raw: Optional[Any] = None,
    ):
        self.message = message
        self.provider = provider
        self.raw = raw
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": type(self).__name__,
            "message": self.message,
            "provider": self.provider,
        }


class MalformedFrameError(LLMError):
    """A single stream frame is not valid JSON (only raised by strict parsers)"""

    def __init__(self, message: str, line: str = "", provider: Optional[str] = None):
        super().__init__(message, provider=provider, raw=line)
        self.line = line


# =============================================================================
# Transport errors
# =============================================================================

class TransportError(LLMError):
    """Underlying connection or HTTP failure"""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        raw: Optional[Any] = None,
    ):
        super().__init__(message, provider=provider, raw=raw)
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["status_code"] = self.status_code
        return data


class AuthenticationError(TransportError):
    """API key missing, invalid or not allowed to use the resource"""
    pass


class InvalidRequestError(TransportError):
    """Request rejected by the provider (bad parameters, validation error)"""
    pass


class QuotaExceededError(TransportError):
    """Account quota or billing limit reached"""
    pass


class ModelNotAvailableError(TransportError):
    """Requested model or endpoint does not exist"""
    pass


class RateLimitError(TransportError):
    """Too many requests"""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = 429,
        retry_after: Optional[float] = None,
        raw: Optional[Any] = None,
    ):
        super().__init__(message, provider=provider, status_code=status_code, raw=raw)
        self.retry_after = retry_after


class RequestTimeoutError(TransportError):
    """Connect, read or write timeout"""
    pass


class ProviderError(TransportError):
    """Provider-side failure (5xx, overloaded, or an error frame inside a stream)"""
    pass


# =============================================================================
# Non-transport errors
# =============================================================================

class CancelledError(LLMError):
    """Request or stream aborted through a CancellationToken"""

    def __init__(self, reason: Optional[str] = None, provider: Optional[str] = None):
        self.reason = reason
        super().__init__(reason or "Request cancelled", provider=provider)

    def __str__(self) -> str:
        if self.reason:
            return f"Request cancelled: {self.reason}"
        return "Request cancelled"


class UnsupportedCapabilityError(LLMError):
    """The selected provider does not implement the requested operation"""

    def __init__(self, capability: str, provider: Optional[str] = None):
        self.capability = capability
        super().__init__(
            f"Provider '{provider}' does not support {capability}",
            provider=provider,
        )


class ResponseFormatError(LLMError):
    """Structured output was not valid JSON or did not satisfy the requested shape"""

    def __init__(self, message: str, raw_text: Optional[str] = None, provider: Optional[str] = None):
        super().__init__(message, provider=provider, raw=raw_text)
        self.raw_text = raw_text


# =============================================================================
# Mapping helpers
# =============================================================================

def extract_error_message(body: Any, default: str) -> str:
    """
    Pull a human readable message out of a provider error body.

    Handles {"error": {"message": ...}}, {"error": "..."} and {"message": ...}.
    """
    if isinstance(body, (bytes, str)):
        try:
            body = json.loads(body)
        except (ValueError, TypeError):
            text = body.decode("utf-8", "replace") if isinstance(body, bytes) else body
            return text.strip() or default

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if body.get("message"):
            return str(body["message"])
    return default


def _parse_retry_after(headers: Optional[httpx.Headers]) -> Optional[float]:
    if not headers:
        return None
    value = headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def map_status_error(
    status_code: int,
    body: Any = None,
    provider: Optional[str] = None,
    headers: Optional[httpx.Headers] = None,
) -> TransportError:
    """
    Map an HTTP error status onto the error taxonomy.

    Args:
        status_code: HTTP status code (>= 400)
        body: Response body (bytes, str or decoded JSON)
        provider: Provider id for error context
        headers: Response headers (used for Retry-After)

    Returns:
        TransportError subclass instance (not raised)
    """
    message = extract_error_message(body, f"HTTP {status_code}")

    if status_code == 400:
        return InvalidRequestError(message, provider, status_code, raw=body)
    if status_code == 401:
        return AuthenticationError(message, provider, status_code, raw=body)
    if status_code == 402:
        return QuotaExceededError(message, provider, status_code, raw=body)
    if status_code == 403:
        return AuthenticationError(f"Forbidden: {message}", provider, status_code, raw=body)
    if status_code == 404:
        return ModelNotAvailableError(message, provider, status_code, raw=body)
    if status_code == 422:
        return InvalidRequestError(f"Validation error: {message}", provider, status_code, raw=body)
    if status_code == 429:
        return RateLimitError(
            message,
            provider,
            status_code,
            retry_after=_parse_retry_after(headers),
            raw=body,
        )
    if status_code >= 500:
        return ProviderError(message, provider, status_code, raw=body)
    return TransportError(message, provider, status_code, raw=body)


# Error "type" values sent inside stream frames (Anthropic style, also used
# by several OpenAI-compatible gateways)
_STREAM_ERROR_TYPES = {
    "authentication_error": AuthenticationError,
    "permission_error": AuthenticationError,
    "invalid_request_error": InvalidRequestError,
    "not_found_error": InvalidRequestError,
    "rate_limit_error": RateLimitError,
    "insufficient_quota": QuotaExceededError,
    # Google RPC status names
    "UNAUTHENTICATED": AuthenticationError,
    "PERMISSION_DENIED": AuthenticationError,
    "INVALID_ARGUMENT": InvalidRequestError,
    "NOT_FOUND": InvalidRequestError,
    "RESOURCE_EXHAUSTED": RateLimitError,
}


def map_stream_error(error: Any, provider: Optional[str] = None) -> LLMError:
    """
    Map an error object received inside a stream frame.

    Args:
        error: The frame's error payload (dict or string)
        provider: Provider id for error context
    """
    if isinstance(error, dict):
        error_type = error.get("type") or error.get("status") or error.get("code") or ""
        message = str(error.get("message") or error_type or "Unknown stream error")
    else:
        error_type = ""
        message = str(error) if error else "Unknown stream error"

    error_class = _STREAM_ERROR_TYPES.get(str(error_type), ProviderError)
    if error_class is RateLimitError:
        return RateLimitError(message, provider, raw=error)
    return error_class(message, provider, raw=error)


def map_transport_exception(exc: BaseException, provider: Optional[str] = None) -> LLMError:
    """
    Map an exception raised while talking to a provider onto the taxonomy.

    LLMError instances pass through unchanged.
    """
    if isinstance(exc, LLMError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return RequestTimeoutError(f"Request timed out: {exc}", provider)
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        return map_status_error(response.status_code, None, provider, response.headers)
    if isinstance(exc, httpx.HTTPError):
        return TransportError(f"Connection error: {exc}", provider)
    return TransportError(f"Unexpected error: {exc}", provider)


def is_cancellation_error(error: Optional[BaseException]) -> bool:
    """Check if an error represents a caller-initiated cancellation"""
    return isinstance(error, CancelledError)
