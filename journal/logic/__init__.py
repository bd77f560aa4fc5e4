"""
============================================================================
Trade Journal Compliance v1.0.0
Logic Layer - Rule Catalog, Rule Values and Session Helpers
============================================================================

The compliance engine itself lives in journal.logic.compliance_engine and
is imported from there directly; it depends on journal.schemas, which in
turn depends on the modules re-exported here.

============================================================================
"""

from journal.logic.rule_catalog import (
    RuleType,
    RuleCategory,
    InputType,
    NumberComparator,
    RuleOption,
    ValidationBounds,
    RuleTypeDefinition,
    RuleTypeCatalog,
    build_default_catalog,
)

from journal.logic.rule_values import (
    BooleanRuleValue,
    NumberRuleValue,
    SelectRuleValue,
    MultiSelectRuleValue,
    TimeRangeRuleValue,
    RuleValue,
    unwrap_rule_options,
    decode_rule_value,
    decode_rule_options,
    ensure_rule_value,
    validate_rule_value,
)

from journal.logic.sessions import (
    MarketSession,
    classify_session,
    format_trade_time,
    normalize_session,
    parse_time_to_minutes,
    is_within_window,
)

__all__ = [
    # Catalog
    "RuleType",
    "RuleCategory",
    "InputType",
    "NumberComparator",
    "RuleOption",
    "ValidationBounds",
    "RuleTypeDefinition",
    "RuleTypeCatalog",
    "build_default_catalog",
    # Rule values
    "BooleanRuleValue",
    "NumberRuleValue",
    "SelectRuleValue",
    "MultiSelectRuleValue",
    "TimeRangeRuleValue",
    "RuleValue",
    "unwrap_rule_options",
    "decode_rule_value",
    "decode_rule_options",
    "ensure_rule_value",
    "validate_rule_value",
    # Sessions
    "MarketSession",
    "classify_session",
    "format_trade_time",
    "normalize_session",
    "parse_time_to_minutes",
    "is_within_window",
]
