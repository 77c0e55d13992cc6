"""Agent orchestration: the request → tools → resume loop.

``AgentLoop`` is an explicit state machine over one conversation history:

    AWAITING_MODEL --advance()--> AWAITING_TOOL_RESULTS --resume()--> AWAITING_MODEL
                  \\--advance()--> FINALIZED

Callers drive it step by step (inspect or veto tool calls before running them)
or hand it to ``run_agent`` for the automatic loop.
"""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from dataclasses import dataclass, field
import enum
import json
import logging
from typing import TYPE_CHECKING, Any

from castor.errors import InvalidStateError, TurnTimeoutError, ValidationError
from castor.hooks import TOOL_FINISH, TOOL_START, TOOL_WARNING
from castor.messages import (
    AssistantTextMessage,
    AssistantToolCallMessage,
    ToolResultMessage,
)
from castor.streaming import TextDelta, ToolCallsReady
from castor.tools import ToolExecutionResult, execute_tools

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Sequence

    from castor.hooks import Hooks
    from castor.messages import ChatMessage
    from castor.streaming import StreamEvent
    from castor.tools import ToolCall, ToolDefinition

    Turn = Callable[[Sequence[ChatMessage], bool], AsyncIterator[StreamEvent]]
    Executor = Callable[..., Awaitable[list[ToolExecutionResult]]]

log = logging.getLogger(__name__)

MAX_ITERATIONS_FALLBACK = (
    "The model reached the maximum tool iteration limit and could not provide "
    "a final text response."
)


class AgentState(enum.Enum):
    AWAITING_MODEL = "awaiting_model"
    AWAITING_TOOL_RESULTS = "awaiting_tool_results"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class AgentToolRequest:
    """The model asked for tools; pass their results to ``loop.resume``.

    ``content`` holds any text streamed alongside the calls. It is not added
    to the history.
    """

    calls: tuple[ToolCall, ...]
    content: str
    loop: AgentLoop = field(repr=False, compare=False)


@dataclass(frozen=True)
class AgentTextResponse:
    """The model answered in text; the conversation is complete."""

    content: str
    messages: tuple[ChatMessage, ...]


AgentOutcome = AgentToolRequest | AgentTextResponse


class AgentLoop:
    """One conversation driven turn by turn.

    *turn* runs a single request/parse cycle for the given history and
    returns the stream's events as an async generator.
    """

    def __init__(
        self,
        turn: Turn,
        messages: Sequence[ChatMessage],
        *,
        turn_timeout_s: float | None = None,
    ) -> None:
        self._turn = turn
        self._messages: list[ChatMessage] = list(messages)
        self._state = AgentState.AWAITING_MODEL
        self._pending: tuple[ToolCall, ...] = ()
        self.turn_timeout_s = turn_timeout_s
        self.turns = 0

    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._messages)

    @property
    def pending_calls(self) -> tuple[ToolCall, ...]:
        return self._pending

    def _require(self, expected: AgentState, operation: str) -> None:
        if self._state is not expected:
            raise InvalidStateError(
                f"Cannot {operation} while the agent loop is {self._state.value}",
                hint=f"{operation}() is only valid when the loop is {expected.value}.",
            )

    async def _collect(self, force_text: bool) -> tuple[str, list[ToolCall]]:
        parts: list[str] = []
        calls: list[ToolCall] = []
        async with aclosing(self._turn(tuple(self._messages), force_text)) as events:
            async for event in events:
                if isinstance(event, TextDelta):
                    parts.append(event.content)
                elif isinstance(event, ToolCallsReady):
                    calls.extend(event.calls)
        return "".join(parts), calls

    async def advance(self, *, force_text: bool = False) -> AgentOutcome:
        """Run one model turn.

        Raises:
            InvalidStateError: The loop is not awaiting the model.
            TurnTimeoutError: The turn exceeded ``turn_timeout_s``.
        """
        self._require(AgentState.AWAITING_MODEL, "advance")
        self.turns += 1
        deadline = asyncio.timeout(self.turn_timeout_s)
        try:
            async with deadline:
                content, calls = await self._collect(force_text)
        except TimeoutError as e:
            if not deadline.expired():
                raise
            raise TurnTimeoutError(
                f"Turn {self.turns} exceeded its {self.turn_timeout_s}s deadline",
                hint="Raise Config.turn_timeout_s or pass None to disable it.",
            ) from e

        if calls:
            self._pending = tuple(calls)
            self._state = AgentState.AWAITING_TOOL_RESULTS
            log.debug("Turn %d requested %d tool call(s)", self.turns, len(calls))
            return AgentToolRequest(calls=self._pending, content=content, loop=self)

        self._messages.append(AssistantTextMessage(content))
        self._state = AgentState.FINALIZED
        return AgentTextResponse(content=content, messages=tuple(self._messages))

    def resume(self, results: Sequence[ToolExecutionResult]) -> None:
        """Record one result per pending call, in call order.

        Each call adds an ``assistant_message_tool`` entry followed by its
        ``tool_message`` entry.
        """
        self._require(AgentState.AWAITING_TOOL_RESULTS, "resume")
        if len(results) != len(self._pending):
            raise ValidationError(
                f"Expected {len(self._pending)} tool result(s), got {len(results)}",
                hint="Pass exactly one ToolExecutionResult per requested call, in order.",
            )
        for i, result in enumerate(results):
            if not isinstance(result, ToolExecutionResult):
                raise ValidationError(
                    f"results[{i}] is not a ToolExecutionResult ({type(result).__name__})",
                    hint="Use ToolExecutionResult.ok(...) or ToolExecutionResult.failed(...).",
                )

        for call, result in zip(self._pending, results, strict=True):
            self._messages.append(
                AssistantToolCallMessage(id=call.id, tool_name=call.name, arguments=call.arguments)
            )
            self._messages.append(
                ToolResultMessage(
                    id=call.id,
                    tool_name=call.name,
                    result=json.dumps(result.to_payload(), default=str),
                )
            )
        self._pending = ()
        self._state = AgentState.AWAITING_MODEL


def _call_summary(call: ToolCall) -> dict[str, Any]:
    return {"id": call.id, "name": call.name, "arguments": call.arguments}


async def run_agent(
    loop: AgentLoop,
    *,
    tools: Sequence[ToolDefinition],
    max_iterations: int = 5,
    executor: Executor = execute_tools,
    hooks: Hooks | None = None,
    tool_timeout_s: float | None = None,
) -> str:
    """Drive *loop* until the model answers in text.

    Each turn that requests tools executes the whole batch concurrently and
    resumes. The last allowed turn forces a text response; if the model still
    asks for tools, ``MAX_ITERATIONS_FALLBACK`` is returned.
    """
    if max_iterations < 1:
        raise ValidationError(
            f"max_iterations must be ≥ 1, got {max_iterations}",
            hint="This is the number of model turns the agent may take.",
        )

    for i in range(max_iterations):
        last = i == max_iterations - 1
        if last:
            message = (
                f"Maximum tool iteration limit ({max_iterations}) reached. "
                "Forcing model to generate final text response."
            )
            log.warning("Forcing a text response on turn %d of %d", i + 1, max_iterations)
            if hooks is not None:
                hooks.emit(TOOL_WARNING, {"message": message, "max_iterations": max_iterations})

        outcome = await loop.advance(force_text=last)
        if isinstance(outcome, AgentTextResponse):
            return outcome.content
        if last:
            break

        if hooks is not None:
            hooks.emit(TOOL_START, {"calls": [_call_summary(c) for c in outcome.calls]})
        if tool_timeout_s is None:
            results = await executor(outcome.calls, tools)
        else:
            results = await executor(outcome.calls, tools, timeout_s=tool_timeout_s)
        if hooks is not None:
            hooks.emit(TOOL_FINISH, {"results": list(results)})
        loop.resume(results)

    log.warning("Model still requested tools after %d turn(s)", max_iterations)
    return MAX_ITERATIONS_FALLBACK
