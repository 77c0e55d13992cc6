"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: wire-record builders plus one scripted
gateway that stands behind ``httpx.MockTransport``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from typing import Any

import httpx

from castor import Client
from castor._http import CHAT_STREAM_PATH
from castor.config import Config
from castor.hooks import EVENTS, Hooks
from castor.transport import HttpTransport

TEST_TOKEN = "test-token"

# =============================================================================
# Wire records
# =============================================================================


def content(text: str) -> dict[str, Any]:
    return {"type": "Content", "content": text}


def tool_call(
    arguments: str | None = None,
    *,
    index: int | None = 0,
    id: str | None = None,
    name: str | None = None,
) -> dict[str, Any]:
    record: dict[str, Any] = {"type": "ToolCall"}
    if index is not None:
        record["parallelToolIndex"] = index
    if id is not None:
        record["id"] = id
    if name is not None:
        record["name"] = name
    if arguments is not None:
        record["content"] = arguments
    return record


def finish(reason: str = "stop") -> dict[str, Any]:
    return {"type": "FinishMetadata", "reason": reason}


def sse(*records: dict[str, Any] | str, end: bool = True) -> str:
    """Render records as a gateway stream body; strings are sent verbatim."""
    lines = [
        f"data: {r if isinstance(r, str) else json.dumps(r)}" for r in records
    ]
    if end:
        lines.append("data: end")
    return "\n".join(lines) + "\n"


def tool_turn(*calls: tuple[str, str, str]) -> str:
    """A stream requesting each ``(id, name, arguments)`` call in order."""
    records: list[dict[str, Any]] = []
    for idx, (call_id, name, arguments) in enumerate(calls):
        records.append(tool_call(arguments, index=idx, id=call_id, name=name))
    records.append(finish("tool_calls"))
    return sse(*records)


# =============================================================================
# Gateway double
# =============================================================================


@dataclass
class ScriptedGateway:
    """Mock gateway: each request pops the next response scripted for its path.

    A scripted ``str`` is served as a 200 body; an ``httpx.Response`` is
    served as is. Unscripted paths answer 404.
    """

    script: dict[str, list[httpx.Response | str]] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)

    def add(self, path: str, *responses: httpx.Response | str) -> ScriptedGateway:
        self.script.setdefault(path, []).extend(responses)
        return self

    def chat(self, *bodies: httpx.Response | str) -> ScriptedGateway:
        return self.add(CHAT_STREAM_PATH, *bodies)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for path, queue in self.script.items():
            if path in request.url.path:
                if not queue:
                    return httpx.Response(500, json={"error": f"nothing left for {path}"})
                item = queue.pop(0)
                return httpx.Response(200, text=item) if isinstance(item, str) else item
        return httpx.Response(404, json={"error": "not scripted"})

    def requests_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if path in r.url.path]

    def chat_payloads(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests_to(CHAT_STREAM_PATH)]

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def client(self, **overrides: Any) -> Client:
        overrides.setdefault("token", TEST_TOKEN)
        return Client(http_client=self.http_client(), **overrides)

    def transport(self, hooks: Hooks | None = None, **overrides: Any) -> HttpTransport:
        overrides.setdefault("token", TEST_TOKEN)
        return HttpTransport(Config(**overrides), hooks, http_client=self.http_client())


def record_events(hooks: Hooks) -> list[tuple[str, dict[str, Any]]]:
    """Subscribe to every hook event; returns the live list of (event, payload)."""
    seen: list[tuple[str, dict[str, Any]]] = []
    for event in EVENTS:
        hooks.on(event, lambda payload, _e=event: seen.append((_e, payload)))
    return seen


def payload_parameters(body: dict[str, Any]) -> dict[str, Any]:
    """Decode a chat payload's parameter entries into ``{fqdn: value}``."""
    data = body.get("parameters", {}).get("data", [])
    return {data[i]["fqdn"]: data[i + 1]["value"] for i in range(0, len(data), 2)}
