"""Exception hierarchy for Castor."""

from __future__ import annotations

from typing import Any


class CastorError(Exception):
    """Base exception for all Castor errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(CastorError):
    """Client or session configuration is invalid."""


class ValidationError(ConfigurationError):
    """A caller-supplied value was rejected before any network call."""


class InvalidStateError(CastorError):
    """An agent loop operation was called in the wrong state."""


class TurnTimeoutError(CastorError):
    """A single agent turn exceeded its deadline."""


class ToolExecutionError(CastorError):
    """A tool failed. Always captured into a tool result, never fatal."""

    def __init__(self, message: str, *, tool_name: str, hint: str | None = None) -> None:
        super().__init__(message, hint=hint)
        self.tool_name = tool_name


class APIError(CastorError):
    """Gateway call failed.

    ``details`` carries the server-provided error payload (when one could be
    decoded) so callers can branch on the cause.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        status_code: int | None = None,
        details: Any = None,
        retryable: bool | None = None,
        phase: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.status_code = status_code
        self.details = details
        self.retryable = retryable
        self.phase = phase


class APIStatusError(APIError):
    """The gateway answered with a non-success status."""


class AuthenticationError(APIStatusError):
    """Credentials were rejected (HTTP 401/403), even after a refresh."""


class RateLimitError(APIStatusError):
    """Rate limit exceeded (HTTP 429)."""


class StreamProtocolError(APIError):
    """A record in the wire stream could not be decoded."""

    def __init__(self, message: str, *, line: str | None = None) -> None:
        super().__init__(message, phase="stream")
        self.line = line
