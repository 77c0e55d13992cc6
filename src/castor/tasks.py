"""Task API: server-side tasks addressed by id, streamed like chat."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING, Any

from castor._http import TASK_ROSTER_PATH, TASK_STREAM_PATH, TASK_TAG_HEADER
from castor.errors import APIError, ValidationError
from castor.streaming import (
    CONTENT,
    EXECUTION_METADATA,
    FINISH_METADATA,
    FUNCTION_CALL_METADATA,
    QUOTA_METADATA,
    UNKNOWN_METADATA,
    parse_task_stream,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping

    from castor.streaming import TaskEvent
    from castor.transport import HttpTransport

log = logging.getLogger(__name__)


@dataclass
class TaskResult:
    """Aggregated outcome of a task run.

    Content is concatenated; execution metadata accumulates in arrival order;
    every other metadata kind keeps its last record.
    """

    content: str = ""
    quota_metadata: dict[str, Any] | None = None
    execution_metadata: list[dict[str, Any]] = field(default_factory=list)
    finish_metadata: dict[str, Any] | None = None
    unknown_metadata: dict[str, Any] | None = None
    function_call_metadata: dict[str, Any] | None = None

    def add(self, event: TaskEvent) -> None:
        if event.kind == CONTENT:
            self.content += event.content or ""
        elif event.kind == EXECUTION_METADATA:
            self.execution_metadata.append(event.data or {})
        elif event.kind == QUOTA_METADATA:
            self.quota_metadata = event.data
        elif event.kind == FINISH_METADATA:
            self.finish_metadata = event.data
        elif event.kind == UNKNOWN_METADATA:
            self.unknown_metadata = event.data
        elif event.kind == FUNCTION_CALL_METADATA:
            self.function_call_metadata = event.data


def split_task_id(task_id: str) -> tuple[str, str | None]:
    """Split ``"name:tag"`` into its name and optional tag."""
    if not isinstance(task_id, str) or not task_id.strip():
        raise ValidationError(
            "task_id must be a non-empty string",
            hint="Pick an id from await client.tasks.roster().",
        )
    name, _, tag = task_id.partition(":")
    return name, tag or None


class TaskAPI:
    def __init__(self, transport: HttpTransport) -> None:
        self._transport = transport

    async def roster(self) -> list[str]:
        """Ids of the tasks available to this account."""
        data = await self._transport.request_json("GET", TASK_ROSTER_PATH)
        ids = data.get("ids") if isinstance(data, dict) else None
        if not isinstance(ids, list):
            raise APIError(
                "Task roster response did not include an 'ids' list",
                details=data,
                phase="request",
            )
        return [str(i) for i in ids]

    async def stream(
        self, task_id: str, parameters: Mapping[str, Any] | None = None
    ) -> AsyncIterator[TaskEvent]:
        """Run a task and yield its events in arrival order."""
        name, tag = split_task_id(task_id)
        headers = {TASK_TAG_HEADER: tag} if tag else None
        body = {"parameters": dict(parameters or {})}
        log.debug("Streaming task %s (tag=%s)", name, tag)
        async with self._transport.stream(
            f"{TASK_STREAM_PATH}/{name}", body, headers
        ) as response:
            async for event in parse_task_stream(
                response.aiter_lines(), strict=self._transport.config.strict_stream
            ):
                yield event

    async def execute(
        self, task_id: str, parameters: Mapping[str, Any] | None = None
    ) -> TaskResult:
        """Run a task to completion and aggregate its events."""
        result = TaskResult()
        async for event in self.stream(task_id, parameters):
            result.add(event)
        return result
