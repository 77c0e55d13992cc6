"""Chat messages: the entries of a conversation history.

Each message serializes to the gateway's wire shape via ``to_wire()``.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
import mimetypes
from pathlib import Path
from typing import Any, ClassVar

from castor.errors import ValidationError


@dataclass(frozen=True, slots=True)
class UserMessage:
    content: str
    wire_type: ClassVar[str] = "user_message"

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.wire_type, "content": self.content}


@dataclass(frozen=True, slots=True)
class SystemMessage:
    content: str
    wire_type: ClassVar[str] = "system_message"

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.wire_type, "content": self.content}


@dataclass(frozen=True, slots=True)
class AssistantTextMessage:
    content: str
    wire_type: ClassVar[str] = "assistant_message_text"

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.wire_type, "content": self.content}


@dataclass(frozen=True, slots=True)
class AssistantToolCallMessage:
    """The model's request to call one tool; *arguments* is JSON text."""

    id: str
    tool_name: str
    arguments: str
    wire_type: ClassVar[str] = "assistant_message_tool"

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": self.wire_type,
            "id": self.id,
            "toolName": self.tool_name,
            "content": self.arguments,
        }


@dataclass(frozen=True, slots=True)
class ToolResultMessage:
    """The outcome of one tool call; *result* is JSON text."""

    id: str
    tool_name: str
    result: str
    wire_type: ClassVar[str] = "tool_message"

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": self.wire_type,
            "id": self.id,
            "toolName": self.tool_name,
            "result": self.result,
        }


@dataclass(frozen=True, slots=True)
class MediaMessage:
    """Inline media; *data* is base64 text."""

    media_type: str
    data: str
    wire_type: ClassVar[str] = "media_message"

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.wire_type, "mediaType": self.media_type, "data": self.data}

    @classmethod
    def from_file(cls, path: str | Path, *, mime_type: str | None = None) -> MediaMessage:
        """Read a local file and encode it.

        Args:
            path: Path to the file. Must exist or ``ValidationError`` is raised.
            mime_type: MIME type override. Auto-detected from extension when *None*.
        """
        p = Path(path)
        if not p.is_file():
            raise ValidationError(f"File not found: {p}")
        mt = mime_type or mimetypes.guess_type(str(p))[0] or "application/octet-stream"
        return cls(media_type=mt, data=base64.b64encode(p.read_bytes()).decode("ascii"))

    @classmethod
    def from_bytes(cls, content: bytes, *, mime_type: str) -> MediaMessage:
        """Encode raw bytes; the MIME type cannot be guessed and is required."""
        if not mime_type:
            raise ValidationError(
                "mime_type is required when creating a media message from bytes",
                hint="Pass mime_type='image/png' (or the matching type).",
            )
        return cls(media_type=mime_type, data=base64.b64encode(content).decode("ascii"))


ChatMessage = (
    UserMessage
    | SystemMessage
    | AssistantTextMessage
    | AssistantToolCallMessage
    | ToolResultMessage
    | MediaMessage
)

_MESSAGE_TYPES: tuple[type, ...] = (
    UserMessage,
    SystemMessage,
    AssistantTextMessage,
    AssistantToolCallMessage,
    ToolResultMessage,
    MediaMessage,
)


def user_message(content: str) -> UserMessage:
    return UserMessage(content)


def system_message(content: str) -> SystemMessage:
    return SystemMessage(content)


def assistant_text_message(content: str) -> AssistantTextMessage:
    return AssistantTextMessage(content)


def assistant_tool_call_message(
    call_id: str, tool_name: str, arguments: str
) -> AssistantToolCallMessage:
    return AssistantToolCallMessage(id=call_id, tool_name=tool_name, arguments=arguments)


def tool_result_message(call_id: str, tool_name: str, result: str) -> ToolResultMessage:
    return ToolResultMessage(id=call_id, tool_name=tool_name, result=result)


def media_message(
    source: str | Path | bytes, *, mime_type: str | None = None
) -> MediaMessage:
    """Create a media message from a file path or raw bytes."""
    if isinstance(source, (bytes, bytearray)):
        return MediaMessage.from_bytes(bytes(source), mime_type=mime_type or "")
    if isinstance(source, (str, Path)):
        return MediaMessage.from_file(source, mime_type=mime_type)
    raise ValidationError(
        f"media source must be a path or bytes, got {type(source).__name__}",
        hint="Pass a file path or the raw bytes plus mime_type.",
    )


def normalize_history(initial: str | list[ChatMessage] | tuple[ChatMessage, ...]) -> list[ChatMessage]:
    """Return a fresh history list from a prompt string or existing messages."""
    if isinstance(initial, str):
        if not initial.strip():
            raise ValidationError(
                "prompt is empty or whitespace-only",
                hint="Pass a non-empty prompt or a list of messages.",
            )
        return [UserMessage(initial)]
    if not isinstance(initial, (list, tuple)):
        raise ValidationError(
            f"Expected a prompt string or a list of messages, got {type(initial).__name__}",
            hint="Use castor.user_message(...) and friends to build a history.",
        )
    for i, m in enumerate(initial):
        if not isinstance(m, _MESSAGE_TYPES):
            raise ValidationError(
                f"history[{i}] is not a chat message ({type(m).__name__})",
                hint="Use castor.user_message(...) and friends to build a history.",
            )
    return list(initial)
