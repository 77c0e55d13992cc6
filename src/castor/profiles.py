"""Capability registry: which generation parameters each model profile accepts.

The registry is a best-effort filter, not a validator of profile existence:
an unknown profile supports every parameter.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping


class ParameterKind(Enum):
    """Value kind of a parameter; the value is its wire type tag."""

    NUMBER = "double"
    INTEGER = "int"
    BOOLEAN = "bool"
    TEXT = "text"
    JSON = "json"


class ParameterKey(Enum):
    """Identity of a generation parameter."""

    TEMPERATURE = "temperature"
    TOP_P = "top_p"
    TOP_K = "top_k"
    LENGTH = "length"
    STOP_TOKEN = "stop_token"
    SEED = "seed"
    RESPONSE_FORMAT = "response_format"
    TOOLS = "tools"
    TOOL_CHOICE_AUTO = "tool_choice_auto"
    TOOL_CHOICE_REQUIRED = "tool_choice_required"
    TOOL_CHOICE_NONE = "tool_choice_none"
    TOOL_CHOICE_NAMED = "tool_choice_named"
    PARALLEL_TOOL_CALLS = "parallel_tool_calls"
    REASONING_EFFORT = "reasoning_effort"
    PREDICTED_OUTPUT = "predicted_output"
    CACHE_POINTS = "cache_points"
    THINKING_BUDGET = "thinking_budget"
    NUMBER_OF_CHOICES = "number_of_choices"
    VERBOSITY = "verbosity"


@dataclass(frozen=True, slots=True)
class ParameterDefinition:
    """Wire identity of one parameter."""

    key: ParameterKey
    wire_name: str
    kind: ParameterKind


def _define(key: ParameterKey, suffix: str, kind: ParameterKind) -> ParameterDefinition:
    return ParameterDefinition(key=key, wire_name=f"llm.parameters.{suffix}", kind=kind)


_K = ParameterKey
_T = ParameterKind

PARAMETER_DEFINITIONS: Mapping[ParameterKey, ParameterDefinition] = MappingProxyType(
    {
        d.key: d
        for d in (
            _define(_K.TEMPERATURE, "temperature", _T.NUMBER),
            _define(_K.TOP_P, "top-p", _T.NUMBER),
            _define(_K.TOP_K, "top-k", _T.INTEGER),
            _define(_K.LENGTH, "length", _T.INTEGER),
            _define(_K.STOP_TOKEN, "stop-token", _T.TEXT),
            _define(_K.SEED, "seed", _T.INTEGER),
            _define(_K.RESPONSE_FORMAT, "response-format", _T.JSON),
            _define(_K.TOOLS, "tools", _T.JSON),
            _define(_K.TOOL_CHOICE_AUTO, "tool-choice-auto", _T.BOOLEAN),
            _define(_K.TOOL_CHOICE_REQUIRED, "tool-choice-required", _T.BOOLEAN),
            _define(_K.TOOL_CHOICE_NONE, "tool-choice-none", _T.BOOLEAN),
            _define(_K.TOOL_CHOICE_NAMED, "tool-choice-named", _T.JSON),
            _define(_K.PARALLEL_TOOL_CALLS, "parallel-tool-calls", _T.BOOLEAN),
            _define(_K.REASONING_EFFORT, "reasoning-effort", _T.TEXT),
            _define(_K.PREDICTED_OUTPUT, "predicted-output", _T.JSON),
            _define(_K.CACHE_POINTS, "cache-points", _T.JSON),
            _define(_K.THINKING_BUDGET, "thinking-budget", _T.INTEGER),
            _define(_K.NUMBER_OF_CHOICES, "number-of-choices", _T.INTEGER),
            _define(_K.VERBOSITY, "verbosity", _T.TEXT),
        )
    }
)


@dataclass(frozen=True, slots=True)
class ParamSet:
    """Immutable set of parameter keys with small set-algebra helpers."""

    keys: frozenset[ParameterKey] = frozenset()

    @classmethod
    def of(cls, *keys: ParameterKey) -> ParamSet:
        return cls(frozenset(keys))

    def __or__(self, other: ParamSet) -> ParamSet:
        return ParamSet(self.keys | other.keys)

    def plus(self, *keys: ParameterKey) -> ParamSet:
        return ParamSet(self.keys | frozenset(keys))

    def minus(self, *keys: ParameterKey) -> ParamSet:
        return ParamSet(self.keys - frozenset(keys))

    def __contains__(self, key: object) -> bool:
        return key in self.keys


# Reusable groups; profiles are composed from these.
COMMON_TOOLS = ParamSet.of(
    _K.TOOLS,
    _K.TOOL_CHOICE_NAMED,
    _K.TOOL_CHOICE_AUTO,
    _K.TOOL_CHOICE_REQUIRED,
    _K.TOOL_CHOICE_NONE,
)
OPENAI_GPT3_4 = ParamSet.of(
    _K.TEMPERATURE,
    _K.TOP_P,
    _K.SEED,
    _K.LENGTH,
    _K.NUMBER_OF_CHOICES,
    _K.PARALLEL_TOOL_CALLS,
)
OPENAI_O_SERIES = ParamSet.of(
    _K.LENGTH,
    _K.SEED,
    _K.RESPONSE_FORMAT,
    _K.REASONING_EFFORT,
    _K.NUMBER_OF_CHOICES,
)
OPENAI_GPT4_1 = OPENAI_GPT3_4.plus(_K.RESPONSE_FORMAT, _K.PREDICTED_OUTPUT)
OPENAI_GPT5 = ParamSet.of(
    _K.LENGTH,
    _K.RESPONSE_FORMAT,
    _K.PARALLEL_TOOL_CALLS,
    _K.REASONING_EFFORT,
    _K.VERBOSITY,
)
ANTHROPIC_CLAUDE3 = ParamSet.of(
    _K.TEMPERATURE, _K.TOP_K, _K.TOP_P, _K.STOP_TOKEN, _K.LENGTH, _K.TOOLS
)
ANTHROPIC_CLAUDE_PLUS = ParamSet.of(
    _K.TEMPERATURE,
    _K.TOP_P,
    _K.STOP_TOKEN,
    _K.LENGTH,
    _K.CACHE_POINTS,
    _K.PARALLEL_TOOL_CALLS,
)
GOOGLE_GEMINI_1_5_FLASH = ParamSet.of(_K.TEMPERATURE, _K.TOP_P, _K.TOP_K, _K.LENGTH)
GOOGLE_GEMINI_1_5_PRO = GOOGLE_GEMINI_1_5_FLASH.plus(_K.RESPONSE_FORMAT)
GOOGLE_GEMINI_2_5_PRO = GOOGLE_GEMINI_1_5_PRO.plus(_K.THINKING_BUDGET, _K.TOOLS)
GOOGLE_GEMINI_2_5_FLASH = ParamSet.of(
    _K.RESPONSE_FORMAT, _K.TEMPERATURE, _K.LENGTH, _K.TOP_P, _K.THINKING_BUDGET
)
NO_PARAMETERS = ParamSet()


@dataclass(frozen=True, slots=True)
class ModelProfile:
    """A model identifier and the parameters it accepts."""

    identifier: str
    provider: str
    parameters: frozenset[ParameterKey]


def _profiles(provider: str, params: ParamSet, *ids: str) -> list[ModelProfile]:
    return [ModelProfile(i, provider, params.keys) for i in ids]


_REGISTRY: Mapping[str, ModelProfile] = MappingProxyType(
    {
        p.identifier: p
        for p in (
            *_profiles("OpenAI", OPENAI_GPT3_4 | COMMON_TOOLS, "openai-chat-gpt", "openai-gpt-4"),
            *_profiles(
                "OpenAI",
                (OPENAI_GPT3_4 | COMMON_TOOLS).plus(_K.RESPONSE_FORMAT),
                "openai-gpt-4-turbo",
            ),
            *_profiles(
                "OpenAI",
                (OPENAI_GPT3_4 | COMMON_TOOLS).plus(_K.RESPONSE_FORMAT, _K.PREDICTED_OUTPUT),
                "openai-gpt-4o",
                "openai-gpt-4o-mini",
            ),
            *_profiles(
                "OpenAI",
                OPENAI_O_SERIES | COMMON_TOOLS,
                "openai-o1",
                "openai-o3",
                "openai-o3-mini",
                "openai-o4-mini",
            ),
            *_profiles(
                "OpenAI",
                OPENAI_O_SERIES.minus(_K.RESPONSE_FORMAT, _K.REASONING_EFFORT),
                "openai-o1-mini",
            ),
            *_profiles(
                "OpenAI",
                OPENAI_GPT4_1 | COMMON_TOOLS,
                "openai-gpt4.1",
                "openai-gpt4.1-mini",
                "openai-gpt4.1-nano",
            ),
            *_profiles(
                "OpenAI",
                OPENAI_GPT5 | COMMON_TOOLS,
                "openai-gpt-5",
                "openai-gpt-5-mini",
                "openai-gpt-5-nano",
                "Grazie_model_1",
                "Grazie_model_2",
            ),
            *_profiles("OpenAI", ParamSet.of(_K.TEMPERATURE), "openai-instruct-gpt"),
            *_profiles(
                "OpenAI",
                NO_PARAMETERS,
                "openai-embedding-ada",
                "openai-embedding-small",
                "openai-embedding-large",
            ),
            *_profiles(
                "Anthropic",
                ANTHROPIC_CLAUDE3,
                "anthropic-claude-3-haiku",
                "anthropic-claude-3-opus",
            ),
            *_profiles(
                "Anthropic",
                ANTHROPIC_CLAUDE_PLUS | COMMON_TOOLS,
                "anthropic-claude-3.5-haiku",
                "anthropic-claude-3.7-sonnet",
                "anthropic-claude-4-sonnet",
                "anthropic-claude-4-opus",
                "anthropic-claude-4.1-opus",
            ),
            *_profiles(
                "Anthropic",
                (ANTHROPIC_CLAUDE_PLUS | COMMON_TOOLS).minus(_K.CACHE_POINTS),
                "anthropic-claude-3.5-sonnet",
            ),
            *_profiles(
                "Google",
                GOOGLE_GEMINI_1_5_PRO | COMMON_TOOLS,
                "google-chat-gemini-pro-1.5",
                "google-chat-gemini-flash-2.0",
                "google-chat-gemini-flash-lite-2.0",
            ),
            *_profiles(
                "Google",
                GOOGLE_GEMINI_1_5_FLASH | COMMON_TOOLS,
                "google-chat-gemini-flash-1.5",
            ),
            *_profiles("Google", GOOGLE_GEMINI_2_5_PRO, "google-chat-gemini-pro-2.5"),
            *_profiles(
                "Google",
                GOOGLE_GEMINI_2_5_FLASH | COMMON_TOOLS,
                "google-chat-gemini-flash-2.5",
                "google-chat-gemini-flash-lite-2.5",
            ),
        )
    }
)

ALL_PARAMETERS: frozenset[ParameterKey] = frozenset(ParameterKey)


def get_profile(profile: str) -> ModelProfile | None:
    """Return the registered profile, or *None* when unknown."""
    return _REGISTRY.get(profile)


def supported_parameters(profile: str) -> frozenset[ParameterKey]:
    """Return the parameter keys *profile* accepts.

    Unknown profiles permit everything.
    """
    entry = _REGISTRY.get(profile)
    if entry is None:
        return ALL_PARAMETERS
    return entry.parameters


def is_supported(profile: str, key: ParameterKey) -> bool:
    """Return True when *profile* accepts parameter *key*."""
    return key in supported_parameters(profile)


def known_profiles() -> tuple[str, ...]:
    """Return every registered profile identifier, sorted."""
    return tuple(sorted(_REGISTRY))
