"""Chat sessions end to end against the scripted gateway."""

from __future__ import annotations

import json
from typing import Any

import pytest

from castor.agent import MAX_ITERATIONS_FALLBACK, AgentTextResponse, AgentToolRequest
from castor.errors import ConfigurationError, StreamProtocolError, ValidationError
from castor.hooks import PARAMETER_WARNING, TOOL_WARNING
from castor.messages import user_message
from castor.parameters import ParameterBuilder
from castor.profiles import ParameterKey
from castor.streaming import TextDelta, ToolCallsReady
from castor.tools import ToolCall, ToolDefinition, ToolExecutionResult
from tests.helpers import (
    ScriptedGateway,
    content,
    finish,
    payload_parameters,
    record_events,
    sse,
    tool_call,
    tool_turn,
)

pytestmark = pytest.mark.integration

PROFILE = "openai-gpt-4o"


def weather_tool(seen: list[dict[str, Any]] | None = None) -> ToolDefinition:
    def execute(args: dict[str, Any]) -> dict[str, Any]:
        if seen is not None:
            seen.append(args)
        return {"city": args["city"], "forecast": "sunny"}

    return ToolDefinition(
        name="get_weather",
        description="Weather for a city",
        parameters={"type": "object", "properties": {"city": {"type": "string"}}},
        execute=execute,
    )


@pytest.mark.asyncio
async def test_simple_question(gateway: ScriptedGateway) -> None:
    gateway.chat(sse(content("4"), finish("stop")))
    session = gateway.client().chat(PROFILE)

    events = [e async for e in session.stream("What is 2+2?")]

    assert events == [TextDelta("4")]


@pytest.mark.asyncio
async def test_run_returns_text(gateway: ScriptedGateway) -> None:
    gateway.chat(sse(content("4"), finish("stop")))

    answer = await gateway.client().chat(PROFILE).run("What is 2+2?")

    assert answer == "4"
    (body,) = gateway.chat_payloads()
    assert body["profile"] == PROFILE
    assert body["chat"]["messages"] == [{"type": "user_message", "content": "What is 2+2?"}]


@pytest.mark.asyncio
async def test_weather_tool_request(gateway: ScriptedGateway) -> None:
    gateway.chat(
        sse(
            tool_call('{"city":', id="call_1", name="get_weather"),
            tool_call('"Paris"}'),
            finish("tool_calls"),
        )
    )
    session = gateway.client().chat(PROFILE).with_tools([weather_tool()])

    events = [e async for e in session.stream("Weather in Paris?")]

    assert events == [
        ToolCallsReady((ToolCall("call_1", "get_weather", '{"city":"Paris"}'),))
    ]


@pytest.mark.asyncio
async def test_run_completes_a_tool_round_trip(gateway: ScriptedGateway) -> None:
    executed: list[dict[str, Any]] = []
    gateway.chat(
        tool_turn(("call_1", "get_weather", '{"city":"Paris"}')),
        sse(content("Sunny in Paris."), finish("stop")),
    )
    session = (
        gateway.client()
        .chat(PROFILE)
        .with_system_message("Be brief.")
        .with_tools([weather_tool(executed)])
    )

    answer = await session.run("Weather in Paris?")

    assert answer == "Sunny in Paris."
    assert executed == [{"city": "Paris"}]
    first, second = gateway.chat_payloads()
    assert [m["type"] for m in second["chat"]["messages"]] == [
        "system_message",
        "user_message",
        "assistant_message_tool",
        "tool_message",
    ]
    tool_message = second["chat"]["messages"][3]
    assert tool_message["id"] == "call_1"
    assert json.loads(tool_message["result"]) == {"city": "Paris", "forecast": "sunny"}
    assert "llm.parameters.tools" in payload_parameters(first)


@pytest.mark.asyncio
async def test_budget_exhaustion_sends_forced_text_turn(gateway: ScriptedGateway) -> None:
    gateway.chat(tool_turn(("call_1", "get_weather", '{"city":"Paris"}')))
    client = gateway.client()
    seen = record_events(client.hooks)
    session = (
        client.chat(PROFILE)
        .with_tools([weather_tool()])
        .with_parameters(ParameterBuilder().tool_choice_required())
    )

    answer = await session.run("Weather?", max_iterations=1)

    assert answer == MAX_ITERATIONS_FALLBACK
    (body,) = gateway.chat_payloads()
    params = payload_parameters(body)
    assert params["llm.parameters.tool-choice-none"] is True
    assert "llm.parameters.tool-choice-required" not in params
    assert any(e == TOOL_WARNING for e, _ in seen)
    # The session's configured parameters are unchanged.
    assert ParameterKey.TOOL_CHOICE_REQUIRED in session.parameters


@pytest.mark.asyncio
async def test_manual_step_and_resume(gateway: ScriptedGateway) -> None:
    gateway.chat(
        tool_turn(("call_1", "get_weather", '{"city":"Oslo"}')),
        sse(content("Cold."), finish("stop")),
    )
    session = gateway.client().chat(PROFILE).with_tools([weather_tool()])

    outcome = await session.step([user_message("Weather in Oslo?")])
    assert isinstance(outcome, AgentToolRequest)
    outcome.loop.resume([ToolExecutionResult.failed("get_weather", "vetoed")])
    final = await outcome.loop.advance()

    assert isinstance(final, AgentTextResponse)
    assert final.content == "Cold."
    second = gateway.chat_payloads()[1]
    assert json.loads(second["chat"]["messages"][-1]["result"]) == {"error": "vetoed"}


@pytest.mark.asyncio
async def test_step_can_force_text(gateway: ScriptedGateway) -> None:
    gateway.chat(sse(content("Just text.")))
    session = gateway.client().chat(PROFILE)

    outcome = await session.step("hi", force_text=True)

    assert isinstance(outcome, AgentTextResponse)
    assert payload_parameters(gateway.chat_payloads()[0]) == {
        "llm.parameters.tool-choice-none": True
    }


@pytest.mark.asyncio
async def test_with_parameters_forms(gateway: ScriptedGateway) -> None:
    session = gateway.client().chat(PROFILE)

    session.with_parameters(ParameterBuilder().temperature(0.1))
    assert session.parameters == {ParameterKey.TEMPERATURE: 0.1}

    session.with_parameters({ParameterKey.SEED: 3})
    assert session.parameters == {ParameterKey.SEED: 3}

    session.with_parameters(lambda b: b.length(64))
    assert session.parameters == {ParameterKey.LENGTH: 64}

    def configure(b: ParameterBuilder) -> None:
        b.top_p(0.9)

    session.with_parameters(configure)
    assert session.parameters == {ParameterKey.TOP_P: 0.9}

    with pytest.raises(ValidationError):
        session.with_parameters(42)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "params",
    [{ParameterKey.TEMPERATURE: 9.5}, {ParameterKey.TEMPERATURE: "hot"}],
)
def test_with_parameters_mapping_is_validated_up_front(
    gateway: ScriptedGateway, params: dict[ParameterKey, object]
) -> None:
    session = gateway.client().chat(PROFILE)

    with pytest.raises(ValidationError, match="temperature"):
        session.with_parameters(params)

    assert session.parameters == {}
    assert gateway.requests == []


@pytest.mark.asyncio
async def test_unsupported_parameter_warning_reaches_client_hooks(
    gateway: ScriptedGateway,
) -> None:
    gateway.chat(sse(content("ok")))
    client = gateway.client()
    seen = record_events(client.hooks)

    await client.chat("openai-o3").with_parameters(lambda b: b.temperature(0.5)).run("hi")

    warnings = [p for e, p in seen if e == PARAMETER_WARNING]
    assert [w["parameter"] for w in warnings] == ["TEMPERATURE"]


@pytest.mark.asyncio
async def test_protocol_errors_surface_from_run(gateway: ScriptedGateway) -> None:
    gateway.chat("data: {broken\n")

    with pytest.raises(StreamProtocolError):
        await gateway.client().chat(PROFILE).run("hi")


@pytest.mark.asyncio
async def test_lenient_stream_mode_skips_bad_records(gateway: ScriptedGateway) -> None:
    gateway.chat("data: {broken\n" + sse(content("fine")))

    answer = await gateway.client(strict_stream=False).chat(PROFILE).run("hi")

    assert answer == "fine"


def test_invalid_session_input_fails_before_sending(gateway: ScriptedGateway) -> None:
    session = gateway.client().chat(PROFILE)

    with pytest.raises(ValidationError):
        session.stream("   ")
    with pytest.raises(ValidationError):
        session.with_tools([{"name": "not a tool"}])  # type: ignore[list-item]
    with pytest.raises(ValidationError, match="Duplicate"):
        session.with_tools([weather_tool(), weather_tool()])
    assert gateway.requests == []


def test_empty_profile_is_rejected(gateway: ScriptedGateway) -> None:
    with pytest.raises(ConfigurationError):
        gateway.client().chat("")
