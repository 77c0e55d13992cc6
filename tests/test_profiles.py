from __future__ import annotations

import pytest

from castor.profiles import (
    ALL_PARAMETERS,
    COMMON_TOOLS,
    OPENAI_GPT3_4,
    OPENAI_GPT4_1,
    PARAMETER_DEFINITIONS,
    ParameterKey,
    ParameterKind,
    ParamSet,
    get_profile,
    is_supported,
    known_profiles,
    supported_parameters,
)

pytestmark = pytest.mark.unit


def test_every_key_has_a_definition() -> None:
    assert set(PARAMETER_DEFINITIONS) == set(ParameterKey)
    for key, definition in PARAMETER_DEFINITIONS.items():
        assert definition.key is key
        assert definition.wire_name.startswith("llm.parameters.")


def test_kind_values_are_wire_tags() -> None:
    assert PARAMETER_DEFINITIONS[ParameterKey.TEMPERATURE].kind is ParameterKind.NUMBER
    assert ParameterKind.NUMBER.value == "double"
    assert PARAMETER_DEFINITIONS[ParameterKey.TOOLS].kind.value == "json"
    assert PARAMETER_DEFINITIONS[ParameterKey.TOOL_CHOICE_NONE].kind.value == "bool"


def test_param_set_algebra() -> None:
    base = ParamSet.of(ParameterKey.TEMPERATURE, ParameterKey.SEED)

    assert ParameterKey.SEED in base
    assert ParameterKey.SEED not in base.minus(ParameterKey.SEED)
    assert ParameterKey.TOP_K in base.plus(ParameterKey.TOP_K)
    assert (base | COMMON_TOOLS).keys == base.keys | COMMON_TOOLS.keys
    # Derivation never mutates the source group.
    assert ParameterKey.TOP_K not in base


def test_gpt4_1_extends_gpt3_4() -> None:
    assert OPENAI_GPT3_4.keys < OPENAI_GPT4_1.keys
    assert OPENAI_GPT4_1.keys - OPENAI_GPT3_4.keys == {
        ParameterKey.RESPONSE_FORMAT,
        ParameterKey.PREDICTED_OUTPUT,
    }


@pytest.mark.parametrize(
    ("profile", "key", "expected"),
    [
        ("openai-gpt-4o", ParameterKey.TEMPERATURE, True),
        ("openai-gpt-4o", ParameterKey.TOOLS, True),
        ("openai-o3", ParameterKey.TEMPERATURE, False),
        ("openai-o3", ParameterKey.REASONING_EFFORT, True),
        ("openai-o1-mini", ParameterKey.REASONING_EFFORT, False),
        ("anthropic-claude-3-haiku", ParameterKey.TOOLS, True),
        ("anthropic-claude-3-haiku", ParameterKey.TOOL_CHOICE_NONE, False),
        ("anthropic-claude-3.5-sonnet", ParameterKey.CACHE_POINTS, False),
        ("anthropic-claude-4-sonnet", ParameterKey.CACHE_POINTS, True),
        ("google-chat-gemini-pro-2.5", ParameterKey.TOOLS, True),
        ("google-chat-gemini-pro-2.5", ParameterKey.TOOL_CHOICE_AUTO, False),
        ("openai-instruct-gpt", ParameterKey.TOOLS, False),
    ],
)
def test_registry_capabilities(profile: str, key: ParameterKey, expected: bool) -> None:
    assert is_supported(profile, key) is expected


def test_embedding_profiles_accept_nothing() -> None:
    assert supported_parameters("openai-embedding-small") == frozenset()


def test_unknown_profile_permits_everything() -> None:
    assert get_profile("some-future-model") is None
    assert supported_parameters("some-future-model") == ALL_PARAMETERS


def test_profile_entries_are_consistent() -> None:
    names = known_profiles()
    assert list(names) == sorted(names)
    assert "openai-gpt-4o" in names
    entry = get_profile("anthropic-claude-4-opus")
    assert entry is not None
    assert entry.provider == "Anthropic"
    assert entry.identifier == "anthropic-claude-4-opus"
