"""Fluent builder for generation parameters.

Setters validate their own input and raise ``ValidationError`` immediately.
Capability filtering happens later, when a request is assembled.
"""

from __future__ import annotations

from numbers import Real
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Literal

from castor.errors import ValidationError
from castor.profiles import ParameterKey

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

Level = Literal["low", "medium", "high"]
_LEVELS: tuple[str, ...] = ("low", "medium", "high")

TOOL_CHOICE_KEYS: frozenset[ParameterKey] = frozenset(
    {
        ParameterKey.TOOL_CHOICE_AUTO,
        ParameterKey.TOOL_CHOICE_REQUIRED,
        ParameterKey.TOOL_CHOICE_NONE,
        ParameterKey.TOOL_CHOICE_NAMED,
    }
)


def _number(name: str, value: Any, *, lo: float, hi: float) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValidationError(
            f"{name} must be a number, got {type(value).__name__}",
            hint=f"Pass a value between {lo} and {hi}.",
        )
    if not lo <= float(value) <= hi:
        raise ValidationError(
            f"{name} must be between {lo} and {hi}, got {value}",
            hint=f"Pass a value between {lo} and {hi}.",
        )
    return float(value)


def _integer(name: str, value: Any, *, minimum: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(
            f"{name} must be an integer, got {type(value).__name__}",
            hint=f"Pass {name}={minimum if minimum is not None else 0}.",
        )
    if minimum is not None and value < minimum:
        raise ValidationError(
            f"{name} must be ≥ {minimum}, got {value}",
            hint=f"Pass an integer of at least {minimum}.",
        )
    return value


def _flag(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(
            f"{name} must be a bool, got {type(value).__name__}",
            hint=f"Pass {name}(True) or {name}(False).",
        )
    return value


def _level(name: str, value: Any) -> str:
    if value not in _LEVELS:
        raise ValidationError(
            f"{name} must be one of {_LEVELS}, got {value!r}",
            hint=f"Pass {name}('medium').",
        )
    return str(value)


def _text(name: str, value: Any, *, allow_empty: bool = False) -> str:
    if not isinstance(value, str) or (not allow_empty and not value.strip()):
        raise ValidationError(
            f"{name} must be a non-empty string",
            hint=f"Pass {name}('...').",
        )
    return value


class ParameterBuilder:
    """Accumulates requested generation parameters.

    Example:
        params = ParameterBuilder().temperature(0.2).length(512).build()
    """

    def __init__(self) -> None:
        self._params: dict[ParameterKey, Any] = {}

    @classmethod
    def from_mapping(cls, params: Mapping[ParameterKey, Any]) -> ParameterBuilder:
        """Seed a builder from an already built parameter map.

        Each value goes through its key's setter, so a hand-written map is
        held to the same rules as the fluent API.
        """
        builder = cls()
        for key, value in params.items():
            if not isinstance(key, ParameterKey):
                raise ValidationError(
                    f"Unknown parameter key: {key!r}",
                    hint="Keys must be castor.ParameterKey members.",
                )
            _MAPPING_SETTERS[key](builder, value)
        return builder

    def _set(self, key: ParameterKey, value: Any) -> ParameterBuilder:
        self._params[key] = value
        return self

    def temperature(self, value: float) -> ParameterBuilder:
        return self._set(ParameterKey.TEMPERATURE, _number("temperature", value, lo=0.0, hi=2.0))

    def top_p(self, value: float) -> ParameterBuilder:
        return self._set(ParameterKey.TOP_P, _number("top_p", value, lo=0.0, hi=1.0))

    def top_k(self, value: int) -> ParameterBuilder:
        return self._set(ParameterKey.TOP_K, _integer("top_k", value, minimum=1))

    def length(self, value: int) -> ParameterBuilder:
        """Maximum number of tokens to generate."""
        return self._set(ParameterKey.LENGTH, _integer("length", value, minimum=1))

    def stop_token(self, value: str) -> ParameterBuilder:
        return self._set(ParameterKey.STOP_TOKEN, _text("stop_token", value))

    def seed(self, value: int) -> ParameterBuilder:
        return self._set(ParameterKey.SEED, _integer("seed", value))

    def as_json(self) -> ParameterBuilder:
        """Ask the model for a JSON response."""
        return self._set(ParameterKey.RESPONSE_FORMAT, {"type": "json"})

    def tool_choice_auto(self, enabled: bool = True) -> ParameterBuilder:
        return self._set(ParameterKey.TOOL_CHOICE_AUTO, _flag("tool_choice_auto", enabled))

    def tool_choice_required(self, enabled: bool = True) -> ParameterBuilder:
        return self._set(
            ParameterKey.TOOL_CHOICE_REQUIRED, _flag("tool_choice_required", enabled)
        )

    def tool_choice_none(self, enabled: bool = True) -> ParameterBuilder:
        return self._set(ParameterKey.TOOL_CHOICE_NONE, _flag("tool_choice_none", enabled))

    def tool_choice_named(self, tool_name: str) -> ParameterBuilder:
        """Force the model to call the tool named *tool_name*."""
        name = _text("tool_choice_named", tool_name)
        return self._set(
            ParameterKey.TOOL_CHOICE_NAMED,
            {"type": "function", "function": {"name": name}},
        )

    def parallel_tool_calls(self, enabled: bool = True) -> ParameterBuilder:
        return self._set(
            ParameterKey.PARALLEL_TOOL_CALLS, _flag("parallel_tool_calls", enabled)
        )

    def reasoning_effort(self, level: Level) -> ParameterBuilder:
        return self._set(ParameterKey.REASONING_EFFORT, _level("reasoning_effort", level))

    def predicted_output(self, text: str) -> ParameterBuilder:
        return self._set(
            ParameterKey.PREDICTED_OUTPUT, _text("predicted_output", text, allow_empty=True)
        )

    def cache_points(self, points: dict[str, Any] | list[Any]) -> ParameterBuilder:
        if not isinstance(points, (dict, list)):
            raise ValidationError(
                "cache_points must be a dict or list",
                hint="Pass the cache point structure the model provider expects.",
            )
        return self._set(ParameterKey.CACHE_POINTS, points)

    def thinking_budget(self, value: int) -> ParameterBuilder:
        return self._set(
            ParameterKey.THINKING_BUDGET, _integer("thinking_budget", value, minimum=0)
        )

    def number_of_choices(self, value: int) -> ParameterBuilder:
        return self._set(
            ParameterKey.NUMBER_OF_CHOICES, _integer("number_of_choices", value, minimum=1)
        )

    def verbosity(self, level: Level) -> ParameterBuilder:
        return self._set(ParameterKey.VERBOSITY, _level("verbosity", level))

    def build(self) -> Mapping[ParameterKey, Any]:
        """Return an immutable snapshot of the recorded parameters."""
        return MappingProxyType(dict(self._params))


def _response_format(builder: ParameterBuilder, value: Any) -> ParameterBuilder:
    if not isinstance(value, dict):
        raise ValidationError(
            "RESPONSE_FORMAT must be a dict",
            hint="Use ParameterBuilder().as_json() for JSON output.",
        )
    return builder._set(ParameterKey.RESPONSE_FORMAT, value)


def _named_tool_choice(builder: ParameterBuilder, value: Any) -> ParameterBuilder:
    if isinstance(value, dict):
        function = value.get("function")
        value = function.get("name") if isinstance(function, dict) else None
    return builder.tool_choice_named(value)


def _tools_key(_builder: ParameterBuilder, _value: Any) -> ParameterBuilder:
    raise ValidationError(
        "TOOLS cannot be set as a parameter",
        hint="Register tools with ChatSession.with_tools(...).",
    )


_MAPPING_SETTERS: dict[ParameterKey, Callable[[ParameterBuilder, Any], ParameterBuilder]] = {
    ParameterKey.TEMPERATURE: ParameterBuilder.temperature,
    ParameterKey.TOP_P: ParameterBuilder.top_p,
    ParameterKey.TOP_K: ParameterBuilder.top_k,
    ParameterKey.LENGTH: ParameterBuilder.length,
    ParameterKey.STOP_TOKEN: ParameterBuilder.stop_token,
    ParameterKey.SEED: ParameterBuilder.seed,
    ParameterKey.RESPONSE_FORMAT: _response_format,
    ParameterKey.TOOLS: _tools_key,
    ParameterKey.TOOL_CHOICE_AUTO: ParameterBuilder.tool_choice_auto,
    ParameterKey.TOOL_CHOICE_REQUIRED: ParameterBuilder.tool_choice_required,
    ParameterKey.TOOL_CHOICE_NONE: ParameterBuilder.tool_choice_none,
    ParameterKey.TOOL_CHOICE_NAMED: _named_tool_choice,
    ParameterKey.PARALLEL_TOOL_CALLS: ParameterBuilder.parallel_tool_calls,
    ParameterKey.REASONING_EFFORT: ParameterBuilder.reasoning_effort,
    ParameterKey.PREDICTED_OUTPUT: ParameterBuilder.predicted_output,
    ParameterKey.CACHE_POINTS: ParameterBuilder.cache_points,
    ParameterKey.THINKING_BUDGET: ParameterBuilder.thinking_budget,
    ParameterKey.NUMBER_OF_CHOICES: ParameterBuilder.number_of_choices,
    ParameterKey.VERBOSITY: ParameterBuilder.verbosity,
}


def force_text_parameters(params: Mapping[ParameterKey, Any]) -> Mapping[ParameterKey, Any]:
    """Return *params* with every tool choice replaced by "none".

    Used for a single turn that must end in text.
    """
    forced = {k: v for k, v in params.items() if k not in TOOL_CHOICE_KEYS}
    forced[ParameterKey.TOOL_CHOICE_NONE] = True
    return MappingProxyType(forced)
