"""Configuration: Frozen Config with environment-resolved credentials."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Literal

from dotenv import load_dotenv

from castor._http import API_VERSION
from castor.errors import ConfigurationError

load_dotenv()

AuthType = Literal["user", "service", "application"]

DEFAULT_ENDPOINT = "https://api.jetbrains.ai"

# Checked in order when no token is passed explicitly.
_TOKEN_ENV_VARS: tuple[str, ...] = ("GRAZIE_JWT_TOKEN", "GRAZIE_USER_JWT_TOKEN")
_AUTH_TYPES: tuple[str, ...] = ("user", "service", "application")


@dataclass(frozen=True)
class Config:
    """Immutable configuration for a Castor client.

    The token is auto-resolved from ``GRAZIE_JWT_TOKEN`` (then
    ``GRAZIE_USER_JWT_TOKEN``) when not given.

    Example:
        config = Config(timeout_s=30)
        # token is read from GRAZIE_JWT_TOKEN
    """

    token: str | None = None
    auth_type: AuthType = "user"
    endpoint: str = DEFAULT_ENDPOINT
    timeout_s: float = 60.0
    #: Default turn budget for ``ChatSession.run``.
    max_iterations: int = 5
    #: Deadline for one request/parse cycle. *None* disables it.
    turn_timeout_s: float | None = None
    #: Deadline for one batch of concurrently executed tool calls.
    tool_timeout_s: float | None = None
    #: Raise on malformed stream records instead of skipping them.
    strict_stream: bool = True

    def __post_init__(self) -> None:
        """Auto-resolve the token and validate configuration."""
        if self.auth_type not in _AUTH_TYPES:
            raise ConfigurationError(
                f"Unknown auth_type: {self.auth_type!r}",
                hint="Supported auth types: 'user', 'service', 'application'",
            )

        if not isinstance(self.endpoint, str) or not self.endpoint.startswith(
            ("http://", "https://")
        ):
            raise ConfigurationError(
                f"endpoint must be an http(s) URL, got {self.endpoint!r}",
                hint=f"The production gateway is {DEFAULT_ENDPOINT}.",
            )
        object.__setattr__(self, "endpoint", self.endpoint.rstrip("/"))

        if self.timeout_s <= 0:
            raise ConfigurationError(
                f"timeout_s must be > 0, got {self.timeout_s}",
                hint="This bounds each HTTP operation, in seconds.",
            )
        if self.max_iterations < 1:
            raise ConfigurationError(
                f"max_iterations must be ≥ 1, got {self.max_iterations}",
                hint="This is the number of model turns run() may take.",
            )
        for name in ("turn_timeout_s", "tool_timeout_s"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ConfigurationError(
                    f"{name} must be > 0 or None, got {value}",
                    hint="Pass None to disable the deadline.",
                )

        if self.token is None:
            for env_var in _TOKEN_ENV_VARS:
                resolved = os.environ.get(env_var)
                if resolved:
                    object.__setattr__(self, "token", resolved)
                    break

        if not self.token:
            raise ConfigurationError(
                "An authentication token is required",
                hint="Set GRAZIE_JWT_TOKEN or pass Config(token=...).",
            )

    @property
    def api_base_url(self) -> str:
        """Base URL every request path is appended to."""
        return f"{self.endpoint}/{self.auth_type}/{API_VERSION}"

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"Config(auth_type={self.auth_type!r}, endpoint={self.endpoint!r}, "
            f"token={'[REDACTED]' if self.token else None}, "
            f"timeout_s={self.timeout_s}, max_iterations={self.max_iterations})"
        )

    __repr__ = __str__
