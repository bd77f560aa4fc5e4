"""
Strategy Rule Schema

Reliability Level: L6 Critical
Input Constraints: rule_type is a catalog key (unknown keys are tolerated)
Side Effects: None
"""

from copy import deepcopy
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional

from journal.logic.rule_catalog import RuleTypeDefinition
from journal.logic.rule_values import RuleValue, decode_rule_options


@dataclass(frozen=True)
class StrategyRule:
    """
    One configured rule of a strategy.

    options holds the stored expected value, either raw (legacy rows) or
    wrapped as {"value": ...}. expected is the typed variant decoded from
    options when the rule was loaded against its catalog definition.
    """
    id: int
    rule_type: str
    label: str
    options: Any = None
    strategy_id: Optional[int] = None
    expected: Optional[RuleValue] = None

    def with_definition(self, definition: RuleTypeDefinition) -> "StrategyRule":
        """Copy with expected decoded for the definition's input type."""
        return replace(
            self, expected=decode_rule_options(definition.input_type, self.options)
        )

    @classmethod
    def from_record(
        cls,
        record: Mapping[str, Any],
        definition: Optional[RuleTypeDefinition] = None,
    ) -> "StrategyRule":
        """
        Build from a storage row keyed in snake_case or camelCase.

        When the rule type's definition is passed, the expected value is
        decoded here so evaluation never inspects the raw container.
        """
        rule_type = record.get("rule_type", record.get("ruleType"))
        rule = cls(
            id=record["id"],
            rule_type=str(rule_type) if rule_type is not None else "",
            label=record.get("label") or "",
            options=deepcopy(record.get("options")),
            strategy_id=record.get("strategy_id", record.get("strategyId")),
        )
        if definition is not None:
            return rule.with_definition(definition)
        return rule
