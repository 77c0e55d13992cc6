"""Client facade: configuration, transport, hooks, chat and task entry points."""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Any

from castor.chat import ChatSession
from castor.config import Config
from castor.hooks import Hooks
from castor.tasks import TaskAPI
from castor.transport import HttpTransport

if TYPE_CHECKING:
    from types import TracebackType

    import httpx

log = logging.getLogger(__name__)


class Client:
    """Entry point for the gateway.

    Example:
        async with Client() as client:  # token from GRAZIE_JWT_TOKEN
            answer = await client.chat("openai-gpt-4o").run("What is 2+2?")

    Keyword overrides are applied on top of *config* (or on top of the
    defaults when *config* is omitted).
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        **overrides: Any,
    ) -> None:
        if config is None:
            config = Config(**overrides)
        elif overrides:
            config = dataclasses.replace(config, **overrides)
        self.config = config
        self.hooks = Hooks()
        self._transport = HttpTransport(config, self.hooks, http_client=http_client)
        self.tasks = TaskAPI(self._transport)
        log.debug("Client ready: %s", config)

    @property
    def transport(self) -> HttpTransport:
        return self._transport

    def chat(self, profile: str) -> ChatSession:
        """Start a chat session for *profile*."""
        return ChatSession(self._transport, profile, self.hooks)

    async def aclose(self) -> None:
        await self._transport.aclose()

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
