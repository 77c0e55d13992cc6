"""Incremental parsing of the gateway's line-oriented event stream.

Wire grammar: newline-delimited lines; only lines prefixed with ``data:``
carry a payload. The payload ``end`` terminates the stream; any other payload
is a JSON object whose ``type`` field selects the record kind.

Tool calls arrive as fragments tagged with a parallel index. Fragments for
one index are merged (id and name on first arrival, argument text appended)
and a finish record flushes the batch, ordered by index.

Malformed records raise ``StreamProtocolError`` in strict mode (the default,
for both chat and task streams); otherwise they are logged and skipped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from castor.errors import StreamProtocolError
from castor.tools import ToolCall

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator

log = logging.getLogger(__name__)

DATA_PREFIX = "data:"
END_SENTINEL = "end"

CONTENT = "Content"
TOOL_CALL = "ToolCall"
FINISH_METADATA = "FinishMetadata"
QUOTA_METADATA = "QuotaMetadata"
EXECUTION_METADATA = "ExecutionMetadata"
UNKNOWN_METADATA = "UnknownMetadata"
FUNCTION_CALL_METADATA = "FunctionCallMetadata"

# Finish reasons that close a tool-call batch.
TOOL_BATCH_REASONS: frozenset[str] = frozenset({"tool_call", "tool_calls", "stop"})

TASK_METADATA_KINDS: frozenset[str] = frozenset(
    {
        QUOTA_METADATA,
        EXECUTION_METADATA,
        FINISH_METADATA,
        UNKNOWN_METADATA,
        FUNCTION_CALL_METADATA,
    }
)


# =============================================================================
# Wire records
# =============================================================================


class _Record(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    type: str


class ContentRecord(_Record):
    content: str = ""


class ToolCallRecord(_Record):
    index: int | None = Field(default=None, alias="parallelToolIndex")
    id: str | None = None
    name: str | None = None
    content: str | None = None


class FinishRecord(_Record):
    reason: str | None = None


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True, slots=True)
class TextDelta:
    content: str
    type: ClassVar[str] = "text"


@dataclass(frozen=True, slots=True)
class ToolCallsReady:
    calls: tuple[ToolCall, ...]
    type: ClassVar[str] = "tool_calls"


@dataclass(frozen=True, slots=True)
class QuotaInfo:
    data: dict[str, Any]
    type: ClassVar[str] = "quota"


StreamEvent = TextDelta | ToolCallsReady | QuotaInfo


@dataclass(frozen=True, slots=True)
class TaskEvent:
    """One record from the task channel; ``kind`` is the wire ``type``."""

    kind: str
    content: str | None = None
    data: dict[str, Any] | None = None


# =============================================================================
# Parsers
# =============================================================================


def _payload(line: str) -> str | None:
    line = line.rstrip("\r\n")
    if not line.startswith(DATA_PREFIX):
        return None
    payload = line[len(DATA_PREFIX) :]
    return payload[1:] if payload.startswith(" ") else payload


@dataclass
class _PartialCall:
    id: str | None = None
    name: str | None = None
    arguments: list[str] = field(default_factory=list)


class _LineParser:
    """Shared line handling: prefix, sentinel, JSON decoding, error policy."""

    def __init__(self, *, strict: bool = True) -> None:
        self.strict = strict
        self.ended = False

    def _malformed(self, message: str, line: str) -> None:
        if self.strict:
            raise StreamProtocolError(f"Failed to parse stream record: {message}", line=line)
        log.warning("Skipping malformed stream record: %s", message)

    def _decode(self, line: str) -> dict[str, Any] | None:
        """Return the JSON object on a data line, or None when nothing to do."""
        if self.ended:
            return None
        payload = _payload(line)
        if payload is None:
            return None
        if payload.strip() == END_SENTINEL:
            self.ended = True
            return None
        try:
            parsed = json.loads(payload)
        except json.JSONDecodeError as e:
            self._malformed(str(e), line)
            return None
        if not isinstance(parsed, dict):
            self._malformed(f"expected a JSON object, got {type(parsed).__name__}", line)
            return None
        if not isinstance(parsed.get("type"), str):
            return None
        return parsed

    def _validate(self, model: type[_Record], raw: dict[str, Any], line: str) -> Any:
        try:
            return model.model_validate(raw)
        except PydanticValidationError as e:
            self._malformed(f"invalid {raw.get('type')} record: {e}", line)
            return None


class ChatStreamParser(_LineParser):
    """Per-stream state machine turning chat lines into events."""

    def __init__(self, *, strict: bool = True) -> None:
        super().__init__(strict=strict)
        self._finalized: list[ToolCall] = []
        self._in_flight: dict[int, _PartialCall] = {}

    def parse_line(self, line: str) -> StreamEvent | None:
        """Consume one line; return the event it produces, if any."""
        raw = self._decode(line)
        if raw is None:
            return None

        kind = raw["type"]
        if kind == CONTENT:
            record = self._validate(ContentRecord, raw, line)
            return TextDelta(record.content) if record is not None else None
        if kind == TOOL_CALL:
            record = self._validate(ToolCallRecord, raw, line)
            if record is not None:
                self._merge_fragment(record)
            return None
        if kind == FINISH_METADATA:
            record = self._validate(FinishRecord, raw, line)
            if record is not None and record.reason in TOOL_BATCH_REASONS:
                self._flush(line)
            return None
        if kind == QUOTA_METADATA:
            return QuotaInfo(raw)
        return None

    def _merge_fragment(self, record: ToolCallRecord) -> None:
        idx = record.index if record.index is not None else 0
        partial = self._in_flight.setdefault(idx, _PartialCall())
        if record.id and partial.id is None:
            partial.id = record.id
        if record.name and partial.name is None:
            partial.name = record.name
        if record.content:
            partial.arguments.append(record.content)

    def _flush(self, line: str) -> None:
        for idx in sorted(self._in_flight):
            partial = self._in_flight[idx]
            if not partial.id or not partial.name:
                self._malformed(f"tool call at index {idx} is missing its id or name", line)
                continue
            self._finalized.append(
                ToolCall(id=partial.id, name=partial.name, arguments="".join(partial.arguments))
            )
        self._in_flight.clear()

    def finish(self) -> ToolCallsReady | None:
        """Close the stream: one aggregate event when any calls were finalized."""
        if self._in_flight:
            log.warning(
                "Stream ended with %d unterminated tool call(s); discarding",
                len(self._in_flight),
            )
            self._in_flight.clear()
        if not self._finalized:
            return None
        return ToolCallsReady(tuple(self._finalized))


class TaskStreamParser(_LineParser):
    """Line parser for the task-execution channel."""

    def parse_line(self, line: str) -> TaskEvent | None:
        raw = self._decode(line)
        if raw is None:
            return None
        kind = raw["type"]
        if kind == CONTENT:
            record = self._validate(ContentRecord, raw, line)
            return TaskEvent(kind, content=record.content) if record is not None else None
        if kind in TASK_METADATA_KINDS:
            return TaskEvent(kind, data=raw)
        log.debug("Ignoring task stream record of type %s", kind)
        return None


# =============================================================================
# Stream composition
# =============================================================================


async def parse_chat_stream(
    lines: AsyncIterable[str], *, strict: bool = True
) -> AsyncIterator[StreamEvent]:
    """Yield chat events in arrival order, then any finalized tool calls.

    *lines* is a line iterator such as ``httpx.Response.aiter_lines()``.
    """
    parser = ChatStreamParser(strict=strict)
    async for line in lines:
        event = parser.parse_line(line)
        if event is not None:
            yield event
        if parser.ended:
            break
    ready = parser.finish()
    if ready is not None:
        yield ready


async def parse_task_stream(
    lines: AsyncIterable[str], *, strict: bool = True
) -> AsyncIterator[TaskEvent]:
    """Yield task events in arrival order."""
    parser = TaskStreamParser(strict=strict)
    async for line in lines:
        event = parser.parse_line(line)
        if event is not None:
            yield event
        if parser.ended:
            break
