"""Failure taxonomy for calls to the generative API."""

from __future__ import annotations


class UpstreamError(Exception):
    """Base class for every failure talking to Gemini."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class RateLimitedError(UpstreamError):
    """Quota or rate limit hit (HTTP 429, or 403 used as a quota signal)."""


class BadRequestError(UpstreamError):
    """The request itself was rejected (HTTP 400). Other keys won't help."""


class TransientError(UpstreamError):
    """Timeout, 5xx, network failure or an empty candidate list."""


class ExhaustedError(UpstreamError):
    """No key produced a reply within the retry budget."""

    def __init__(self, message: str, last_error: UpstreamError | None = None) -> None:
        super().__init__(message, status=last_error.status if last_error else None)
        self.last_error = last_error
