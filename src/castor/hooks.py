"""Notification hooks for client lifecycle events.

Handlers are plain callables taking the event payload dict. A failing handler
is logged and skipped: notifications never interrupt the operation that
emitted them.

Example:
    client.hooks.on(PARAMETER_WARNING, lambda p: print(p["message"]))
"""

from __future__ import annotations

from collections import defaultdict
import logging
from typing import TYPE_CHECKING, Any, Final

from castor.errors import ValidationError

if TYPE_CHECKING:
    from collections.abc import Callable

log = logging.getLogger(__name__)

API_REQUEST: Final[str] = "api_request"
API_RESPONSE: Final[str] = "api_response"
TOKEN_REFRESH_START: Final[str] = "token_refresh_start"
TOKEN_REFRESH_SUCCESS: Final[str] = "token_refresh_success"
ERROR: Final[str] = "error"
PARAMETER_WARNING: Final[str] = "parameter_warning"
TOOL_START: Final[str] = "tool_start"
TOOL_FINISH: Final[str] = "tool_finish"
TOOL_WARNING: Final[str] = "tool_warning"

EVENTS: Final[frozenset[str]] = frozenset(
    {
        API_REQUEST,
        API_RESPONSE,
        TOKEN_REFRESH_START,
        TOKEN_REFRESH_SUCCESS,
        ERROR,
        PARAMETER_WARNING,
        TOOL_START,
        TOOL_FINISH,
        TOOL_WARNING,
    }
)


class Hooks:
    """Registry of event handlers keyed by event name."""

    def __init__(self) -> None:
        self._handlers: defaultdict[str, list[Callable[[dict[str, Any]], None]]] = (
            defaultdict(list)
        )

    def on(self, event: str, handler: Callable[[dict[str, Any]], None]) -> Hooks:
        """Register *handler* for *event*. Returns self for chaining."""
        if event not in EVENTS:
            raise ValidationError(
                f"Unknown event {event!r}",
                hint=f"Use one of {sorted(EVENTS)}.",
            )
        self._handlers[event].append(handler)
        return self

    def off(self, event: str, handler: Callable[[dict[str, Any]], None]) -> None:
        """Remove a previously registered handler (no-op if absent)."""
        handlers = self._handlers.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, payload: dict[str, Any] | None = None) -> None:
        """Deliver *payload* to every handler registered for *event*."""
        data = payload if payload is not None else {}
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(data)
            except Exception:
                log.exception("Hook handler failed for event %s", event)
