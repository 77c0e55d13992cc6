"""Tool definitions, tool calls, and concurrent tool execution."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import inspect
import json
import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from castor.errors import ToolExecutionError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolCall:
    """A tool call requested by the model; *arguments* is JSON text."""

    id: str
    name: str
    arguments: str

    def parsed_arguments(self) -> dict[str, Any]:
        """Decode *arguments*; an empty string means no arguments."""
        try:
            args = json.loads(self.arguments or "{}")
        except json.JSONDecodeError as e:
            raise ToolExecutionError(
                f"Arguments for {self.name!r} are not valid JSON: {e}",
                tool_name=self.name,
            ) from e
        if not isinstance(args, dict):
            raise ToolExecutionError(
                f"Arguments for {self.name!r} must be a JSON object",
                tool_name=self.name,
            )
        return args


@dataclass(frozen=True)
class ToolDefinition:
    """A tool the model may call.

    ``parameters`` is a JSON Schema dict or a Pydantic ``BaseModel`` subclass.
    ``execute`` receives the decoded arguments dict and may be sync or async;
    it is never sent to the gateway.
    """

    name: str
    description: str
    parameters: dict[str, Any] | type[BaseModel] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    execute: Callable[[dict[str, Any]], Any] | None = None

    def __post_init__(self) -> None:
        """Validate shapes early for clear errors."""
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValidationError(
                "Tool name must be a non-empty string",
                hint="Pass ToolDefinition(name='get_weather', ...).",
            )
        if not (
            isinstance(self.parameters, dict)
            or (
                isinstance(self.parameters, type)
                and issubclass(self.parameters, BaseModel)
            )
        ):
            raise ValidationError(
                f"Tool {self.name!r} parameters must be a JSON schema dict or Pydantic model class",
                hint="Pass a dict following JSON Schema or a BaseModel subclass.",
            )
        if self.execute is not None and not callable(self.execute):
            raise ValidationError(f"Tool {self.name!r} execute must be callable")

    def parameters_schema(self) -> dict[str, Any]:
        schema = self.parameters
        if isinstance(schema, dict):
            return schema
        return schema.model_json_schema()

    def to_wire(self) -> dict[str, Any]:
        """Serializable schema only; the executable stays local."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters_schema(),
        }


@dataclass(frozen=True)
class ToolExecutionResult:
    """Outcome of executing one tool call."""

    name: str
    success: bool
    value: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, name: str, value: Any) -> ToolExecutionResult:
        return cls(name=name, success=True, value=value)

    @classmethod
    def failed(cls, name: str, error: str) -> ToolExecutionResult:
        return cls(name=name, success=False, error=error)

    def to_payload(self) -> Any:
        """The value sent back to the model for this call."""
        if self.success:
            return self.value
        return {"error": self.error or "Unknown execution error"}


async def _execute_one(call: ToolCall, tool: ToolDefinition | None) -> ToolExecutionResult:
    if tool is None or tool.execute is None:
        return ToolExecutionResult.failed(call.name, f"Tool '{call.name}' not found.")
    try:
        args = call.parsed_arguments()
        if inspect.iscoroutinefunction(tool.execute):
            result = await tool.execute(args)
        else:
            # Sync tools run in a worker thread so the batch stays concurrent.
            result = await asyncio.to_thread(tool.execute, args)
        if inspect.isawaitable(result):
            result = await result
    except asyncio.CancelledError:
        raise
    except Exception as e:
        log.debug("Tool %s failed: %s", call.name, e)
        return ToolExecutionResult.failed(call.name, str(e) or type(e).__name__)
    return ToolExecutionResult.ok(call.name, result)


async def execute_tools(
    calls: Sequence[ToolCall],
    tools: Sequence[ToolDefinition],
    *,
    timeout_s: float | None = None,
) -> list[ToolExecutionResult]:
    """Execute every call in the batch concurrently.

    Returns one result per call, in call order. Failures (unknown tool, bad
    arguments, exceptions, deadline) become failed results; nothing raises
    except cancellation.
    """
    if not calls:
        return []
    by_name = {t.name: t for t in tools}
    tasks = [asyncio.create_task(_execute_one(c, by_name.get(c.name))) for c in calls]

    try:
        _, pending = await asyncio.wait(tasks, timeout=timeout_s)
    except asyncio.CancelledError:
        for t in tasks:
            t.cancel()
        raise

    for t in pending:
        t.cancel()
    if pending:
        # Let cancelled tools unwind before reporting.
        await asyncio.gather(*pending, return_exceptions=True)
        log.warning(
            "%d tool call(s) exceeded the %.3gs batch deadline", len(pending), timeout_s
        )

    results: list[ToolExecutionResult] = []
    for call, task in zip(calls, tasks, strict=True):
        if task in pending:
            results.append(
                ToolExecutionResult.failed(
                    call.name, f"Tool '{call.name}' timed out after {timeout_s}s."
                )
            )
        else:
            results.append(task.result())
    return results
