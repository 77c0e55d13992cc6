"""Request assembly: history, tools, and capability-filtered parameters."""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

from castor.hooks import PARAMETER_WARNING
from castor.messages import SystemMessage
from castor.profiles import (
    PARAMETER_DEFINITIONS,
    ParameterDefinition,
    ParameterKey,
    ParameterKind,
    supported_parameters,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from castor.hooks import Hooks
    from castor.messages import ChatMessage
    from castor.tools import ToolDefinition

log = logging.getLogger(__name__)


def with_system_message(
    messages: Sequence[ChatMessage], system_message: str | None
) -> list[ChatMessage]:
    """Return a copy of *messages*, led by *system_message* when configured.

    A history that already starts with a system message is kept as is.
    """
    out = list(messages)
    if system_message and not (out and isinstance(out[0], SystemMessage)):
        out.insert(0, SystemMessage(system_message))
    return out


def encode_value(definition: ParameterDefinition, value: Any) -> Any:
    """Encode *value* according to the parameter's kind."""
    kind = definition.kind
    if kind is ParameterKind.NUMBER:
        return float(value)
    if kind is ParameterKind.INTEGER:
        return int(value)
    if kind is ParameterKind.BOOLEAN:
        return bool(value)
    if kind is ParameterKind.JSON:
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _entries(definition: ParameterDefinition, encoded: Any) -> list[dict[str, Any]]:
    tag = definition.kind.value
    return [
        {"type": tag, "fqdn": definition.wire_name},
        {"type": tag, "value": encoded},
    ]


def _warn_dropped(hooks: Hooks | None, key: ParameterKey, profile: str) -> None:
    message = (
        f"Parameter '{key.name}' is not supported by model profile "
        f"'{profile}' and will be ignored."
    )
    log.warning("Dropping parameter %s: unsupported by profile %s", key.name, profile)
    if hooks is not None:
        hooks.emit(
            PARAMETER_WARNING,
            {"parameter": key.name, "profile": profile, "message": message},
        )


def build_parameter_data(
    parameters: Mapping[ParameterKey, Any],
    *,
    profile: str,
    tools: Sequence[ToolDefinition] = (),
    hooks: Hooks | None = None,
) -> list[dict[str, Any]]:
    """Return the wire entries for tools and parameters the profile accepts.

    Unsupported parameters are dropped with a ``parameter_warning``; they
    never fail the request.
    """
    supported = supported_parameters(profile)
    data: list[dict[str, Any]] = []

    if tools:
        tools_def = PARAMETER_DEFINITIONS[ParameterKey.TOOLS]
        if ParameterKey.TOOLS in supported:
            data.extend(_entries(tools_def, encode_value(tools_def, [t.to_wire() for t in tools])))
        else:
            _warn_dropped(hooks, ParameterKey.TOOLS, profile)

    for key, value in parameters.items():
        definition = PARAMETER_DEFINITIONS.get(key)
        if definition is None:
            continue
        if key not in supported:
            _warn_dropped(hooks, key, profile)
            continue
        data.extend(_entries(definition, encode_value(definition, value)))
    return data


def assemble_chat_request(
    messages: Sequence[ChatMessage],
    *,
    profile: str,
    system_message: str | None = None,
    tools: Sequence[ToolDefinition] = (),
    parameters: Mapping[ParameterKey, Any] | None = None,
    hooks: Hooks | None = None,
    prompt_id: str | None = None,
) -> dict[str, Any]:
    """Merge history, system message, tools, and parameters into one payload.

    The caller's *messages* are never modified.
    """
    history = with_system_message(messages, system_message)
    body: dict[str, Any] = {
        "profile": profile,
        "prompt": prompt_id or f"castor-prompt-{time.time_ns() // 1_000_000}",
        "chat": {"messages": [m.to_wire() for m in history]},
    }
    data = build_parameter_data(
        parameters or {}, profile=profile, tools=tools, hooks=hooks
    )
    if data:
        body["parameters"] = {"data": data}
    log.debug(
        "Assembled chat request profile=%s messages=%d parameters=%d",
        profile,
        len(history),
        len(data) // 2,
    )
    return body
