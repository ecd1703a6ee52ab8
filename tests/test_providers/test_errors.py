"""Tests for provider error classification."""

import httpx
import openai
import pytest

from resilient_embed.providers.errors import (
    PayloadTooLargeError,
    PermanentProviderError,
    ProviderError,
    TransientProviderError,
    classify_provider_error,
)

_REQUEST = httpx.Request("POST", "https://api.example.com/v1/embeddings")


def _status_error(cls, status, message="error"):
    return cls(message, response=httpx.Response(status, request=_REQUEST), body=None)


@pytest.mark.parametrize(
    "exc, expected",
    [
        (_status_error(openai.APIStatusError, 413, "too big"), PayloadTooLargeError),
        (_status_error(openai.RateLimitError, 429, "slow down"), TransientProviderError),
        (_status_error(openai.InternalServerError, 500, "boom"), TransientProviderError),
        (openai.APIConnectionError(request=_REQUEST), TransientProviderError),
        (openai.APITimeoutError(request=_REQUEST), TransientProviderError),
        (_status_error(openai.AuthenticationError, 401, "Incorrect API key"), PermanentProviderError),
        (_status_error(openai.PermissionDeniedError, 403, "nope"), PermanentProviderError),
        (_status_error(openai.NotFoundError, 404, "no deployment"), PermanentProviderError),
        (_status_error(openai.BadRequestError, 400, "invalid input type"), PermanentProviderError),
    ],
)
def test_classifies_openai_sdk_exceptions(exc, expected):
    """OpenAI SDK exception types map onto the taxonomy."""
    classified = classify_provider_error(exc)

    assert isinstance(classified, expected)
    assert classified.original is exc


def test_payload_message_wins_over_bad_request_type():
    """A 400 whose message mentions the payload limit is a size problem, not permanent."""
    exc = _status_error(
        openai.BadRequestError, 400, "Request payload size exceeds the limit: 30000 bytes"
    )

    assert isinstance(classify_provider_error(exc), PayloadTooLargeError)


@pytest.mark.parametrize(
    "message, expected",
    [
        ("Request payload size exceeds the limit", PayloadTooLargeError),
        ("HTTP 413 Request Entity Too Large", PayloadTooLargeError),
        ("This model's maximum context length is 8192 tokens", PayloadTooLargeError),
        ("rate limited", TransientProviderError),
        ("Error 429: Too Many Requests", TransientProviderError),
        ("503 Service Unavailable", TransientProviderError),
        ("Request timed out", TransientProviderError),
        ("401 Unauthorized", PermanentProviderError),
        ("Invalid API key provided", PermanentProviderError),
        ("The API deployment for this resource does not exist", PermanentProviderError),
    ],
)
def test_classifies_by_message(message, expected):
    """Plain exceptions are classified from their message text."""
    assert isinstance(classify_provider_error(Exception(message)), expected)


@pytest.mark.parametrize("exc", [TimeoutError("slow"), ConnectionResetError("reset")])
def test_builtin_network_errors_are_transient(exc):
    """Built-in timeout and connection errors are transient."""
    assert isinstance(classify_provider_error(exc), TransientProviderError)


def test_unknown_errors_default_to_transient():
    """Anything unrecognized gets the benefit of the retry schedule."""
    classified = classify_provider_error(ValueError("weird"))

    assert isinstance(classified, TransientProviderError)
    assert classified.message == "weird"


def test_empty_message_uses_exception_type_name():
    """An exception without a message is described by its type."""
    assert classify_provider_error(KeyError()).message == "KeyError"


def test_already_classified_error_is_returned_unchanged():
    """Classification is applied exactly once."""
    error = PermanentProviderError("bad key")

    assert classify_provider_error(error) is error


def test_error_codes():
    """Each class carries the code reported on degrade."""
    assert PayloadTooLargeError.error_code == "payload_size_exceeded"
    assert TransientProviderError.error_code == "api_rate_limit"
    assert PermanentProviderError.error_code == "authentication_error"
    assert issubclass(PayloadTooLargeError, ProviderError)


@pytest.mark.parametrize(
    "message",
    [
        "Rate limit reached for requests. Used 1004130 tokens, please retry",
        "Rate limit exceeded for request id req_4130500",
        "Too many requests: 2401 in the last minute",
    ],
)
def test_status_digits_inside_numbers_do_not_change_class(message):
    """Token counts and ids that contain 413/401/500 are not status codes."""
    assert isinstance(classify_provider_error(Exception(message)), TransientProviderError)


def test_rate_limit_type_wins_over_size_wording():
    """A 429 that mentions request size is still a rate limit."""
    exc = _status_error(
        openai.RateLimitError,
        429,
        "Request too large for text-embedding-3-small on tokens per min. Used 1004130 tokens",
    )

    assert isinstance(classify_provider_error(exc), TransientProviderError)


def test_authentication_type_wins_over_message():
    exc = _status_error(openai.AuthenticationError, 401, "Input is too long to authenticate")

    assert isinstance(classify_provider_error(exc), PermanentProviderError)


@pytest.mark.parametrize(
    "message, expected",
    [
        ("Error code: 413", PayloadTooLargeError),
        ("status 401", PermanentProviderError),
        ("upstream returned 500", TransientProviderError),
    ],
)
def test_whole_status_codes_still_match(message, expected):
    assert isinstance(classify_provider_error(Exception(message)), expected)
