"""API error types.

Every error a handler raises on purpose is an ``ApiError``; the app-level
exception handler renders it as ``{"error": message}`` (plus ``details`` when
present) with the status code carried by the class.
"""

from __future__ import annotations

from typing import Any, Optional


class ApiError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, *, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_body(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class AuthenticationError(ApiError):
    """Missing, invalid or expired credentials. Message stays generic."""

    status_code = 401
    default_message = "Authentication required"


class AuthorizationError(ApiError):
    status_code = 403
    default_message = "Insufficient permissions"


class ValidationFailure(ApiError):
    status_code = 400
    default_message = "Invalid input data"


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Not found"


class RateLimitExceeded(ApiError):
    status_code = 429
    default_message = "Rate limit exceeded"


class UpstreamError(ApiError):
    """An external AI / payment API answered with a non-2xx or was unreachable."""

    status_code = 500
    default_message = "Upstream service failed"


class NotImplementedFeature(ApiError):
    status_code = 501
    default_message = "Not implemented"


class StorageError(Exception):
    """Object storage read/write failure (missing key, unreadable file)."""


class TranscriptionError(Exception):
    """Both the primary and the fallback transcription paths failed."""
