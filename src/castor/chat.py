"""Chat sessions: one model profile plus tools, system message, and parameters."""

from __future__ import annotations

from collections.abc import Callable, Mapping
import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from castor._http import CHAT_STREAM_PATH
from castor.agent import AgentLoop, run_agent
from castor.errors import ConfigurationError, ValidationError
from castor.messages import normalize_history
from castor.parameters import ParameterBuilder, force_text_parameters
from castor.request import assemble_chat_request
from castor.streaming import parse_chat_stream
from castor.tools import ToolDefinition

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from castor.agent import AgentOutcome
    from castor.hooks import Hooks
    from castor.messages import ChatMessage
    from castor.profiles import ParameterKey
    from castor.streaming import StreamEvent
    from castor.transport import HttpTransport

log = logging.getLogger(__name__)

ParametersInput = (
    ParameterBuilder
    | Mapping[Any, Any]
    | Callable[[ParameterBuilder], ParameterBuilder | None]
)


class ChatSession:
    """A configured conversation surface for one model profile.

    The ``with_*`` methods configure the session in place and return it.

    Example:
        session = client.chat("openai-gpt-4o").with_system_message("Be brief.")
        answer = await session.run("What is 2+2?")
    """

    def __init__(
        self, transport: HttpTransport, profile: str, hooks: Hooks | None = None
    ) -> None:
        if not isinstance(profile, str) or not profile.strip():
            raise ConfigurationError(
                "A model profile is required to start a chat session",
                hint="Pass a profile identifier such as 'openai-gpt-4o'.",
            )
        self._transport = transport
        self.profile = profile
        self.hooks = hooks if hooks is not None else transport.hooks
        self._tools: tuple[ToolDefinition, ...] = ()
        self._system_message: str | None = None
        self._parameters: Mapping[ParameterKey, Any] = MappingProxyType({})

    @property
    def tools(self) -> tuple[ToolDefinition, ...]:
        return self._tools

    @property
    def parameters(self) -> Mapping[ParameterKey, Any]:
        return self._parameters

    def with_tools(self, tools: Sequence[ToolDefinition]) -> ChatSession:
        seen: set[str] = set()
        for t in tools:
            if not isinstance(t, ToolDefinition):
                raise ValidationError(
                    f"Expected ToolDefinition, got {type(t).__name__}",
                    hint="Wrap each tool in castor.ToolDefinition(name=..., description=...).",
                )
            if t.name in seen:
                raise ValidationError(f"Duplicate tool name: {t.name!r}")
            seen.add(t.name)
        self._tools = tuple(tools)
        return self

    def with_system_message(self, message: str | None) -> ChatSession:
        self._system_message = message or None
        return self

    def with_parameters(self, params: ParametersInput) -> ChatSession:
        """Set generation parameters from a builder, a built map, or a callable.

        A callable receives a fresh ``ParameterBuilder`` and may return it or
        configure it in place.
        """
        if isinstance(params, ParameterBuilder):
            builder = params
        elif isinstance(params, Mapping):
            builder = ParameterBuilder.from_mapping(params)
        elif callable(params):
            fresh = ParameterBuilder()
            returned = params(fresh)
            builder = returned if returned is not None else fresh
            if not isinstance(builder, ParameterBuilder):
                raise ValidationError(
                    f"Parameter callable returned {type(builder).__name__}",
                    hint="Return the ParameterBuilder you were given.",
                )
        else:
            raise ValidationError(
                f"Unsupported parameters type: {type(params).__name__}",
                hint="Pass a ParameterBuilder, a built mapping, or a callable.",
            )
        self._parameters = builder.build()
        return self

    def build_request(
        self, messages: Sequence[ChatMessage], *, force_text: bool = False
    ) -> dict[str, Any]:
        """The request payload for *messages*, without sending it."""
        params = force_text_parameters(self._parameters) if force_text else self._parameters
        return assemble_chat_request(
            messages,
            profile=self.profile,
            system_message=self._system_message,
            tools=self._tools,
            parameters=params,
            hooks=self.hooks,
        )

    async def _turn(
        self, messages: Sequence[ChatMessage], force_text: bool = False
    ) -> AsyncIterator[StreamEvent]:
        body = self.build_request(messages, force_text=force_text)
        if force_text:
            log.debug("Sending forced text turn for profile %s", self.profile)
        async with self._transport.stream(CHAT_STREAM_PATH, body) as response:
            async for event in parse_chat_stream(
                response.aiter_lines(), strict=self._transport.config.strict_stream
            ):
                yield event

    def stream(
        self, input: str | list[ChatMessage] | tuple[ChatMessage, ...]
    ) -> AsyncIterator[StreamEvent]:
        """Stream one turn's events. Input is validated before anything is sent."""
        return self._turn(normalize_history(input))

    def agent(self, input: str | list[ChatMessage] | tuple[ChatMessage, ...]) -> AgentLoop:
        """A step-by-step agent loop over *input*."""
        return AgentLoop(
            self._turn,
            normalize_history(input),
            turn_timeout_s=self._transport.config.turn_timeout_s,
        )

    async def step(
        self,
        messages: str | list[ChatMessage] | tuple[ChatMessage, ...],
        *,
        force_text: bool = False,
    ) -> AgentOutcome:
        """Run a single turn; a tool request carries its loop for ``resume``."""
        return await self.agent(messages).advance(force_text=force_text)

    async def run(
        self,
        input: str | list[ChatMessage] | tuple[ChatMessage, ...],
        *,
        max_iterations: int | None = None,
    ) -> str:
        """Run the full tool loop and return the final text."""
        config = self._transport.config
        return await run_agent(
            self.agent(input),
            tools=self._tools,
            max_iterations=max_iterations if max_iterations is not None else config.max_iterations,
            hooks=self.hooks,
            tool_timeout_s=config.tool_timeout_s,
        )
