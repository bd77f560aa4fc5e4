"""
============================================================================
Trade Journal Compliance v1.0.0
Rule Type Catalog - Declarative Rule Metadata
============================================================================

Reliability Level: L6 Critical
Input Constraints: None (static declarative data)
Side Effects: None

The catalog declares, for every supported rule key, its value domain and
display hints. It carries no evaluation behavior: a rule type only becomes
functional once the compliance engine registers a handler for it.

The catalog is built once by build_default_catalog() and handed to the
evaluator by reference. Reduced catalogs for isolated tests come from
RuleTypeCatalog.subset().

============================================================================
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union


# =============================================================================
# Enums
# =============================================================================

class RuleType(str, Enum):
    """Closed set of rule-type keys a strategy rule may reference."""
    ENTRY_CONFIRMATION_REQUIRED = "ENTRY_CONFIRMATION_REQUIRED"
    SETUP_PRESENT = "SETUP_PRESENT"
    PERSONAL_MODEL_CONFIRMED = "PERSONAL_MODEL_CONFIRMED"
    SL_REQUIRED = "SL_REQUIRED"
    TP_REQUIRED = "TP_REQUIRED"
    MAX_RISK_PERCENT = "MAX_RISK_PERCENT"
    MIN_RISK_REWARD = "MIN_RISK_REWARD"
    MAX_TRADES_PER_DAY = "MAX_TRADES_PER_DAY"
    SESSION_ALLOWED = "SESSION_ALLOWED"
    TIME_WINDOW_ALLOWED = "TIME_WINDOW_ALLOWED"
    DIRECTIONAL_BIAS_REQUIRED = "DIRECTIONAL_BIAS_REQUIRED"


class RuleCategory(str, Enum):
    """Classification only. Not used by evaluation logic."""
    SUBJECTIVE = "subjective"
    RISK_EXECUTION = "risk_execution"
    CONTEXT = "context"


class InputType(str, Enum):
    """Value domain of a rule's expected value."""
    BOOLEAN = "boolean"
    NUMBER = "number"
    SELECT = "select"
    MULTISELECT = "multiselect"
    TIME_RANGE = "time_range"


class NumberComparator(str, Enum):
    """Comparison applied as: actual <op> expected."""
    GTE = "gte"
    LTE = "lte"
    EQ = "eq"


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class RuleOption:
    """One allowed value of a select/multiselect rule."""
    value: str
    label: str


@dataclass(frozen=True)
class ValidationBounds:
    """
    Numeric bounds for configuring a number rule.

    Reliability Level: L6 Critical
    Input Constraints: Decimal values only
    Side Effects: None
    """
    min: Optional[Decimal] = None
    max: Optional[Decimal] = None
    step: Optional[Decimal] = None

    def contains(self, value: Decimal) -> bool:
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "min": str(self.min) if self.min is not None else None,
            "max": str(self.max) if self.max is not None else None,
            "step": str(self.step) if self.step is not None else None,
        }


@dataclass(frozen=True)
class RuleTypeDefinition:
    """
    Immutable metadata for one rule type.

    Reliability Level: L6 Critical
    Input Constraints: key must be unique within a catalog
    Side Effects: None (immutable)
    """
    key: RuleType
    label: str
    description: str
    category: RuleCategory
    input_type: InputType
    default_value: Optional[Union[bool, Decimal, str]] = None
    options: Tuple[RuleOption, ...] = field(default_factory=tuple)
    validation: Optional[ValidationBounds] = None
    number_comparator: Optional[NumberComparator] = None
    display_prefix: Optional[str] = None
    display_suffix: Optional[str] = None
    input_placeholder: Optional[str] = None

    @property
    def option_values(self) -> Tuple[str, ...]:
        return tuple(option.value for option in self.options)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API listing. Decimals serialize as strings."""
        default_value = self.default_value
        if isinstance(default_value, Decimal):
            default_value = str(default_value)
        return {
            "key": self.key.value,
            "label": self.label,
            "description": self.description,
            "category": self.category.value,
            "inputType": self.input_type.value,
            "defaultValue": default_value,
            "options": [{"value": o.value, "label": o.label} for o in self.options],
            "validation": self.validation.to_dict() if self.validation else None,
            "numberComparator": (
                self.number_comparator.value if self.number_comparator else None
            ),
            "displayPrefix": self.display_prefix,
            "displaySuffix": self.display_suffix,
            "inputPlaceholder": self.input_placeholder,
        }


# =============================================================================
# Registry
# =============================================================================

class RuleTypeCatalog:
    """
    Immutable registry of rule type definitions.

    Reliability Level: L6 Critical
    Input Constraints: Definitions with unique keys
    Side Effects: None (read-only after construction)

    Safe to share between concurrent evaluations; nothing mutates it after
    __init__ returns.
    """

    def __init__(self, definitions: Iterable[RuleTypeDefinition]) -> None:
        entries: Dict[str, RuleTypeDefinition] = {}
        for definition in definitions:
            key = definition.key.value
            if key in entries:
                raise ValueError(f"Duplicate rule type key in catalog: {key}")
            entries[key] = definition
        self._entries: Mapping[str, RuleTypeDefinition] = MappingProxyType(entries)

    def lookup(self, key: Any) -> Optional[RuleTypeDefinition]:
        """Return the definition for a key, or None when the key is unknown."""
        if isinstance(key, RuleType):
            key = key.value
        if not isinstance(key, str):
            return None
        return self._entries.get(key)

    def __contains__(self, key: Any) -> bool:
        return self.lookup(key) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[RuleTypeDefinition]:
        return iter(self._entries.values())

    def keys(self) -> List[str]:
        return list(self._entries.keys())

    def all(self) -> List[RuleTypeDefinition]:
        return list(self._entries.values())

    def by_category(self, category: Union[RuleCategory, str]) -> List[RuleTypeDefinition]:
        category_value = category.value if isinstance(category, RuleCategory) else category
        return [d for d in self._entries.values() if d.category.value == category_value]

    def subset(self, keys: Iterable[Union[RuleType, str]]) -> "RuleTypeCatalog":
        """Build a reduced catalog. Unknown keys are ignored."""
        wanted = {k.value if isinstance(k, RuleType) else k for k in keys}
        return RuleTypeCatalog(d for d in self._entries.values() if d.key.value in wanted)


# =============================================================================
# Default Catalog
# =============================================================================

SESSION_OPTIONS: Tuple[RuleOption, ...] = (
    RuleOption(value="asian", label="Asian Session"),
    RuleOption(value="london", label="London Session"),
    RuleOption(value="new_york", label="New York Session"),
    RuleOption(value="overlap", label="London/NY Overlap"),
)

DEFAULT_RULE_TYPE_DEFINITIONS: Tuple[RuleTypeDefinition, ...] = (
    RuleTypeDefinition(
        key=RuleType.ENTRY_CONFIRMATION_REQUIRED,
        label="Entry Confirmation Required",
        description="Require specific entry confirmation before taking a trade",
        category=RuleCategory.SUBJECTIVE,
        input_type=InputType.BOOLEAN,
        default_value=True,
    ),
    RuleTypeDefinition(
        key=RuleType.SETUP_PRESENT,
        label="Setup Present",
        description="A valid setup must be identified before entry",
        category=RuleCategory.SUBJECTIVE,
        input_type=InputType.BOOLEAN,
        default_value=True,
    ),
    RuleTypeDefinition(
        key=RuleType.PERSONAL_MODEL_CONFIRMED,
        label="Personal Model Confirmed",
        description="Your personal trading model criteria must be met",
        category=RuleCategory.SUBJECTIVE,
        input_type=InputType.BOOLEAN,
        default_value=True,
    ),
    RuleTypeDefinition(
        key=RuleType.SL_REQUIRED,
        label="Stop Loss Required",
        description="Every trade must have a stop loss defined",
        category=RuleCategory.RISK_EXECUTION,
        input_type=InputType.BOOLEAN,
        default_value=True,
    ),
    RuleTypeDefinition(
        key=RuleType.TP_REQUIRED,
        label="Take Profit Required",
        description="Every trade must have a take profit defined",
        category=RuleCategory.RISK_EXECUTION,
        input_type=InputType.BOOLEAN,
        default_value=True,
    ),
    RuleTypeDefinition(
        key=RuleType.MAX_RISK_PERCENT,
        label="Maximum Risk Per Trade",
        description="Maximum percentage of account to risk per trade",
        category=RuleCategory.RISK_EXECUTION,
        input_type=InputType.NUMBER,
        default_value=Decimal("1"),
        validation=ValidationBounds(
            min=Decimal("0.1"), max=Decimal("10"), step=Decimal("0.1")
        ),
        number_comparator=NumberComparator.LTE,
        display_prefix="Max:",
        display_suffix="%",
        input_placeholder="Risk %",
    ),
    RuleTypeDefinition(
        key=RuleType.MIN_RISK_REWARD,
        label="Minimum Risk/Reward Ratio",
        description="Minimum risk-to-reward ratio required for trade entry",
        category=RuleCategory.RISK_EXECUTION,
        input_type=InputType.NUMBER,
        default_value=Decimal("2"),
        validation=ValidationBounds(
            min=Decimal("0.5"), max=Decimal("10"), step=Decimal("0.5")
        ),
        number_comparator=NumberComparator.GTE,
        display_prefix="Min:",
        display_suffix=":1",
        input_placeholder="R:R ratio",
    ),
    RuleTypeDefinition(
        key=RuleType.MAX_TRADES_PER_DAY,
        label="Maximum Trades Per Day",
        description="Limit the number of trades you can take in a single day",
        category=RuleCategory.RISK_EXECUTION,
        input_type=InputType.NUMBER,
        default_value=Decimal("3"),
        validation=ValidationBounds(
            min=Decimal("1"), max=Decimal("20"), step=Decimal("1")
        ),
        number_comparator=NumberComparator.LTE,
        display_prefix="Max:",
        input_placeholder="Trades",
    ),
    RuleTypeDefinition(
        key=RuleType.SESSION_ALLOWED,
        label="Trading Sessions Allowed",
        description="Restrict trading to specific market sessions",
        category=RuleCategory.CONTEXT,
        input_type=InputType.MULTISELECT,
        options=SESSION_OPTIONS,
        input_placeholder="Select option...",
    ),
    RuleTypeDefinition(
        key=RuleType.TIME_WINDOW_ALLOWED,
        label="Trading Time Window",
        description="Only trade during specific hours of the day",
        category=RuleCategory.CONTEXT,
        input_type=InputType.TIME_RANGE,
    ),
    RuleTypeDefinition(
        key=RuleType.DIRECTIONAL_BIAS_REQUIRED,
        label="Directional Bias Required",
        description="Require a clear directional bias before trading",
        category=RuleCategory.CONTEXT,
        input_type=InputType.BOOLEAN,
        default_value=True,
    ),
)


def build_default_catalog() -> RuleTypeCatalog:
    """
    Build the production rule type catalog.

    Called once at service startup; the result is passed by reference to
    every evaluator.
    """
    return RuleTypeCatalog(DEFAULT_RULE_TYPE_DEFINITIONS)
