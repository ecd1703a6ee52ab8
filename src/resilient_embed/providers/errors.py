"""
Provider error taxonomy and classification.

Every exception raised while talking to an embedding provider is mapped
exactly once, at the provider boundary, into one of three classes:

- ``PayloadTooLargeError``: the request body exceeded the provider's limit.
  Recovered by splitting the batch, not by waiting.
- ``TransientProviderError``: rate limits, timeouts, connection failures and
  5xx responses. Recovered by exponential backoff.
- ``PermanentProviderError``: authentication, permission and malformed
  request errors. Retrying cannot help.

Callers above the provider layer only ever see these types.
"""

import re
from typing import Optional, Pattern

from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AuthenticationError,
    BadRequestError,
    InternalServerError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    UnprocessableEntityError,
)


def _compile(*patterns: str) -> Pattern:
    return re.compile("|".join(patterns), re.IGNORECASE)


# HTTP status codes only count as whole numbers, never as digits inside
# token counts or request ids
RATE_LIMIT_PATTERN = _compile(r"rate.?limit", r"\b429\b", r"too many requests")

PAYLOAD_TOO_LARGE_PATTERN = _compile(
    r"request payload size exceeds the limit",
    r"payload size exceeds",
    r"payload too large",
    r"request entity too large",
    r"request too large",
    r"\b413\b",
    r"maximum context length",
    r"too many inputs",
    r"input is too long",
)

PERMANENT_PATTERN = _compile(
    r"\b401\b",
    r"\b403\b",
    r"unauthorized",
    r"forbidden",
    r"invalid api key",
    r"incorrect api key",
    r"authentication",
    r"permission denied",
    r"deployment not found",
    r"model not found",
    r"does not exist",
)


class ProviderError(Exception):
    """Base class for classified provider failures."""

    error_code = "provider_error"

    def __init__(self, message: str, original: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.original = original


class PayloadTooLargeError(ProviderError):
    """The request payload exceeded the provider's size limit."""

    error_code = "payload_size_exceeded"


class TransientProviderError(ProviderError):
    """A failure that may succeed if the same request is retried later."""

    error_code = "api_rate_limit"


class PermanentProviderError(ProviderError):
    """A failure that will not go away by retrying the same request."""

    error_code = "authentication_error"


class EmbeddingFailedError(Exception):
    """Raised by single-text helpers when no vector could be produced."""

    error_code = "batch_processing_error"


def classify_provider_error(exc: BaseException) -> ProviderError:
    """
    Map an arbitrary provider exception into the typed taxonomy.

    OpenAI SDK exception types are checked first, so a rate-limit response
    is never mistaken for a size problem because of its wording. Anything
    else is classified from its message. Unrecognized errors are treated as
    transient so that they get the benefit of the retry schedule.

    Args:
        exc: The exception raised by a provider SDK or transport.

    Returns:
        A ``ProviderError`` subclass instance wrapping *exc*. If *exc* is
        already a ``ProviderError`` it is returned unchanged.
    """
    if isinstance(exc, ProviderError):
        return exc

    message = str(exc) or type(exc).__name__

    if isinstance(exc, APIStatusError) and exc.status_code == 413:
        return PayloadTooLargeError(message, original=exc)

    if isinstance(
        exc, (RateLimitError, APIConnectionError, APITimeoutError, InternalServerError)
    ):
        return TransientProviderError(message, original=exc)

    if isinstance(
        exc, (AuthenticationError, PermissionDeniedError, NotFoundError)
    ):
        return PermanentProviderError(message, original=exc)

    # Size problems often come back as 400/422 responses
    if isinstance(exc, (BadRequestError, UnprocessableEntityError)):
        if PAYLOAD_TOO_LARGE_PATTERN.search(message):
            return PayloadTooLargeError(message, original=exc)
        return PermanentProviderError(message, original=exc)

    if isinstance(exc, (TimeoutError, ConnectionError)):
        return TransientProviderError(message, original=exc)

    if RATE_LIMIT_PATTERN.search(message):
        return TransientProviderError(message, original=exc)

    if PAYLOAD_TOO_LARGE_PATTERN.search(message):
        return PayloadTooLargeError(message, original=exc)

    if PERMANENT_PATTERN.search(message):
        return PermanentProviderError(message, original=exc)

    return TransientProviderError(message, original=exc)
