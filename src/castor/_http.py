"""Small HTTP-related constants shared across Castor.

This module is intentionally tiny to avoid circular imports and drift.
"""

from __future__ import annotations

API_VERSION = "v5"
CHAT_STREAM_PATH = "/llm/chat/stream/v8"
TOKEN_REFRESH_PATH = "/auth/jwt/refresh/v3"
TASK_ROSTER_PATH = "/task/roster"
TASK_STREAM_PATH = "/task/stream/v4"

AUTH_HEADER = "Grazie-Authenticate-JWT"
AGENT_HEADER = "Grazie-Agent"
TASK_TAG_HEADER = "Grazie-Task-Tag"

# A 401 triggers exactly one credential refresh before the request is retried.
REFRESH_STATUS_CODE = 401
AUTH_STATUS_CODES: frozenset[int] = frozenset({401, 403})
RATE_LIMIT_STATUS_CODE = 429

# Reported on errors so callers can decide for themselves; Castor never retries these.
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 409, 429, 500, 502, 503, 504})

try:
    from importlib.metadata import PackageNotFoundError, version

    AGENT_VERSION = version("castor-ai")
except PackageNotFoundError:
    AGENT_VERSION = "0.0.0+unknown"

AGENT_NAME = "castor"
