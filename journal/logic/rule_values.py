"""
============================================================================
Trade Journal Compliance v1.0.0
Rule Values - Typed Expected Values for Strategy Rules
============================================================================

Reliability Level: L6 Critical
Input Constraints: Any stored options container (JSON-like)
Side Effects: None (pure decoding)

Strategy rules persist their configured threshold in a loosely typed
options container. Legacy rows hold the raw value; current rows wrap it as
{"value": ...}. This module turns that container into one variant per
input type so the comparators never inspect raw shapes.

Decoding never raises. Values that cannot be interpreted decode to an
"unset" variant and the engine decides what an unset expectation means.

============================================================================
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from journal.logic.rule_catalog import InputType, RuleTypeDefinition
from journal.logic.sessions import parse_time_to_minutes

TRUE_STRINGS = frozenset(["true", "yes", "1"])
FALSE_STRINGS = frozenset(["false", "no", "0"])


# =============================================================================
# Variants
# =============================================================================

@dataclass(frozen=True)
class BooleanRuleValue:
    expected: Optional[bool]


@dataclass(frozen=True)
class NumberRuleValue:
    threshold: Optional[Decimal]


@dataclass(frozen=True)
class SelectRuleValue:
    choice: Optional[str]


@dataclass(frozen=True)
class MultiSelectRuleValue:
    allowed: Tuple[str, ...]


@dataclass(frozen=True)
class TimeRangeRuleValue:
    start: Optional[str]
    end: Optional[str]

    @property
    def is_configured(self) -> bool:
        return bool(self.start) or bool(self.end)

    def describe(self) -> str:
        return f"{self.start or '?'}-{self.end or '?'}"


RuleValue = Union[
    BooleanRuleValue,
    NumberRuleValue,
    SelectRuleValue,
    MultiSelectRuleValue,
    TimeRangeRuleValue,
]


# =============================================================================
# Primitive Parsers
# =============================================================================

def unwrap_rule_options(options: Any) -> Any:
    """Return options["value"] when present, otherwise the container itself."""
    if options is None:
        return None
    if isinstance(options, Mapping) and "value" in options:
        return options["value"]
    return options


def parse_decimal(value: Any) -> Optional[Decimal]:
    """
    Parse a finite Decimal from int, str, Decimal or float.

    Floats go through str() to avoid binary expansion. Booleans, blanks,
    NaN and infinities yield None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None
    if not parsed.is_finite():
        return None
    return parsed


def parse_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
    return None


# =============================================================================
# Decoders
# =============================================================================

def _decode_boolean(raw: Any) -> BooleanRuleValue:
    return BooleanRuleValue(expected=parse_bool(raw))


def _decode_number(raw: Any) -> NumberRuleValue:
    return NumberRuleValue(threshold=parse_decimal(raw))


def _decode_select(raw: Any) -> SelectRuleValue:
    if isinstance(raw, str) and raw.strip():
        return SelectRuleValue(choice=raw.strip())
    return SelectRuleValue(choice=None)


def _decode_multiselect(raw: Any) -> MultiSelectRuleValue:
    if isinstance(raw, (list, tuple)):
        return MultiSelectRuleValue(
            allowed=tuple(str(item) for item in raw if item is not None)
        )
    return MultiSelectRuleValue(allowed=())


def _decode_time_range(raw: Any) -> TimeRangeRuleValue:
    # Parts are kept verbatim; " 12:00" fails the time pattern downstream.
    if isinstance(raw, Mapping):
        start = raw.get("start")
        end = raw.get("end")
        return TimeRangeRuleValue(
            start=start if isinstance(start, str) else None,
            end=end if isinstance(end, str) else None,
        )
    if isinstance(raw, str) and "-" in raw:
        parts = raw.split("-")
        return TimeRangeRuleValue(start=parts[0], end=parts[1])
    return TimeRangeRuleValue(start=None, end=None)


_DECODERS: Dict[InputType, Callable[[Any], RuleValue]] = {
    InputType.BOOLEAN: _decode_boolean,
    InputType.NUMBER: _decode_number,
    InputType.SELECT: _decode_select,
    InputType.MULTISELECT: _decode_multiselect,
    InputType.TIME_RANGE: _decode_time_range,
}


def decode_rule_value(input_type: InputType, raw: Any) -> RuleValue:
    """
    Decode an unwrapped expected value into the variant for input_type.

    Reliability Level: L6 Critical
    Input Constraints: raw is already unwrapped (see unwrap_rule_options)
    Side Effects: None
    """
    return _DECODERS[input_type](raw)


_VARIANT_TYPES: Dict[InputType, type] = {
    InputType.BOOLEAN: BooleanRuleValue,
    InputType.NUMBER: NumberRuleValue,
    InputType.SELECT: SelectRuleValue,
    InputType.MULTISELECT: MultiSelectRuleValue,
    InputType.TIME_RANGE: TimeRangeRuleValue,
}


def decode_rule_options(input_type: InputType, options: Any) -> RuleValue:
    """Unwrap a stored options container and decode it for input_type."""
    return decode_rule_value(input_type, unwrap_rule_options(options))


def ensure_rule_value(
    input_type: InputType,
    decoded: Optional[RuleValue],
    options: Any,
) -> RuleValue:
    """
    Return decoded when it is already the variant for input_type.

    Rules built without a catalog definition (or decoded for another input
    type) are decoded from their stored options instead.
    """
    if isinstance(decoded, _VARIANT_TYPES[input_type]):
        return decoded
    return decode_rule_options(input_type, options)


# =============================================================================
# Configuration-Time Validation
# =============================================================================

def validate_rule_value(definition: RuleTypeDefinition, options: Any) -> List[str]:
    """
    Report configuration problems with a rule's stored expected value.

    Used when rules are created or loaded. The engine never calls this and
    never rejects a trade because of it.

    Returns:
        List of human-readable problems (empty when the value is valid)
    """
    raw = unwrap_rule_options(options)
    value = decode_rule_value(definition.input_type, raw)
    problems: List[str] = []

    if isinstance(value, BooleanRuleValue):
        if value.expected is None:
            problems.append(f"{definition.label}: expected a boolean, got {raw!r}")

    elif isinstance(value, NumberRuleValue):
        if value.threshold is None:
            problems.append(f"{definition.label}: expected a number, got {raw!r}")
        elif definition.validation and not definition.validation.contains(value.threshold):
            bounds = definition.validation
            problems.append(
                f"{definition.label}: {value.threshold} outside allowed range "
                f"{bounds.min}-{bounds.max}"
            )

    elif isinstance(value, SelectRuleValue):
        if value.choice is not None and definition.options and (
            value.choice not in definition.option_values
        ):
            problems.append(f"{definition.label}: unknown option {value.choice!r}")

    elif isinstance(value, MultiSelectRuleValue):
        if raw is not None and not isinstance(raw, (list, tuple)):
            problems.append(f"{definition.label}: expected a list of options, got {raw!r}")
        if definition.options:
            unknown = [v for v in value.allowed if v not in definition.option_values]
            if unknown:
                problems.append(
                    f"{definition.label}: unknown options {', '.join(unknown)}"
                )

    elif isinstance(value, TimeRangeRuleValue):
        if value.is_configured and (
            parse_time_to_minutes(value.start) is None
            or parse_time_to_minutes(value.end) is None
        ):
            problems.append(
                f"{definition.label}: time window {value.describe()} is not HH:MM-HH:MM"
            )

    return problems
