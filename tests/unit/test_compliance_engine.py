"""
Unit Tests - Compliance Engine

Reliability Level: L6 Critical

Covers per-rule comparators, fallback from TradeInputs to the stored trade,
skipping of unknown rule types and the overall verdict.
"""

import logging
import os
import sys
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from journal.logic.compliance_engine import (
    RULE_HANDLERS,
    ComplianceEvaluator,
    EvaluationPolicy,
    compare_number,
    evaluate_trade_compliance,
    format_number,
)
from journal.logic.rule_catalog import NumberComparator, RuleType, build_default_catalog
from journal.logic.rule_values import NumberRuleValue
from journal.schemas.strategy_rule import StrategyRule
from journal.schemas.trade import Trade, TradeInputs


def make_rule(rule_type: str, value, rule_id: int = 1, label: str = "") -> StrategyRule:
    return StrategyRule(id=rule_id, rule_type=rule_type, label=label or rule_type,
                        options={"value": value})


def evaluate_one(rule: StrategyRule, trade: Trade = None, **inputs):
    result = evaluate_trade_compliance(trade or Trade(), [rule], TradeInputs(**inputs))
    assert len(result.rule_evaluations) == 1
    return result.rule_evaluations[0]


class TestNumberHelpers:

    @pytest.mark.parametrize("value,expected", [
        (Decimal("2"), "2"),
        (Decimal("2.0"), "2"),
        (Decimal("1.50"), "1.5"),
        (Decimal("1E+1"), "10"),
        (Decimal("0.25"), "0.25"),
        (None, "unknown"),
    ])
    def test_format_number(self, value, expected: str) -> None:
        assert format_number(value) == expected

    def test_compare_number_directions(self) -> None:
        assert compare_number(Decimal("2"), Decimal("2"), NumberComparator.GTE)
        assert not compare_number(Decimal("1.9"), Decimal("2"), NumberComparator.GTE)
        assert compare_number(Decimal("1"), Decimal("1"), NumberComparator.LTE)
        assert not compare_number(Decimal("1.5"), Decimal("1"), NumberComparator.LTE)
        assert compare_number(Decimal("3"), Decimal("3.0"), NumberComparator.EQ)

    def test_compare_number_unknown_never_passes(self) -> None:
        assert not compare_number(None, Decimal("1"), NumberComparator.LTE)
        assert not compare_number(Decimal("1"), None, NumberComparator.GTE)


class TestBooleanRules:

    def test_stop_loss_from_trade(self) -> None:
        rule = make_rule("SL_REQUIRED", True)
        assert evaluate_one(rule, Trade(stop_loss="1.2050")).passed
        failed = evaluate_one(rule, Trade(stop_loss=None))
        assert not failed.passed
        assert failed.actual_value is False
        assert "stop loss" in failed.violation_reason.lower()

    def test_blank_stop_loss_counts_as_missing(self) -> None:
        assert not evaluate_one(make_rule("SL_REQUIRED", True), Trade(stop_loss="  ")).passed

    def test_input_overrides_trade(self) -> None:
        rule = make_rule("TP_REQUIRED", True)
        result = evaluate_one(rule, Trade(take_profit="1.30"), take_profit_set=False)
        assert not result.passed
        assert result.violation_reason == "Take profit not set"

    def test_entry_confirmation_falls_back_to_trade(self) -> None:
        rule = make_rule("ENTRY_CONFIRMATION_REQUIRED", True)
        assert evaluate_one(rule, Trade(entry_confirmed=True)).passed
        assert evaluate_one(rule, Trade(entry_confirmed=True),
                            entry_confirmation_present=False).violation_reason == (
            "Entry confirmation not present"
        )

    def test_directional_bias_falls_back_to_trade(self) -> None:
        rule = make_rule("DIRECTIONAL_BIAS_REQUIRED", True)
        assert evaluate_one(rule, Trade(htf_bias_clear=True)).passed
        result = evaluate_one(rule, Trade())
        assert not result.passed
        assert result.actual_value is None

    @pytest.mark.parametrize("rule_type,field,reason", [
        ("SETUP_PRESENT", "setup_present", "Setup not identified"),
        ("PERSONAL_MODEL_CONFIRMED", "personal_model_confirmed", "Personal model criteria not met"),
    ])
    def test_input_only_rules_fail_when_absent(self, rule_type: str, field: str, reason: str) -> None:
        rule = make_rule(rule_type, True)
        assert evaluate_one(rule, **{field: True}).passed
        missing = evaluate_one(rule)
        assert not missing.passed
        assert missing.violation_reason == reason

    def test_expected_false_requires_false(self) -> None:
        rule = make_rule("SETUP_PRESENT", False)
        assert evaluate_one(rule, setup_present=False).passed
        unexpected = evaluate_one(rule, setup_present=True)
        assert not unexpected.passed
        assert unexpected.violation_reason == "Setup identified but strategy expects none"
        assert not evaluate_one(rule).passed

    def test_legacy_raw_options(self) -> None:
        rule = StrategyRule(id=1, rule_type="SL_REQUIRED", label="SL", options=True)
        assert evaluate_one(rule, Trade(stop_loss="1.1")).passed

    def test_unset_expected_value_fails(self) -> None:
        result = evaluate_one(make_rule("SL_REQUIRED", None, label="Stops"), Trade(stop_loss="1.1"))
        assert not result.passed
        assert result.violation_reason == "Stop Loss Required: no expected value configured"


class TestNumericRules:

    def test_max_risk_percent(self) -> None:
        rule = make_rule("MAX_RISK_PERCENT", 1)
        assert evaluate_one(rule, risk_percent="1.0").passed
        assert evaluate_one(rule, risk_percent="0.5").passed
        failed = evaluate_one(rule, risk_percent="1.5")
        assert not failed.passed
        assert failed.actual_value == Decimal("1.5")
        assert failed.violation_reason == "Risk 1.5% exceeds maximum 1%"

    def test_max_risk_percent_missing_input_fails(self) -> None:
        result = evaluate_one(make_rule("MAX_RISK_PERCENT", "1"))
        assert not result.passed
        assert result.actual_value is None
        assert result.violation_reason == "Risk percent not provided (maximum 1%)"

    def test_min_risk_reward(self) -> None:
        rule = make_rule("MIN_RISK_REWARD", 2)
        assert evaluate_one(rule, risk_reward="2.0").passed
        assert evaluate_one(rule, risk_reward="3").passed
        failed = evaluate_one(rule, risk_reward="1.9")
        assert not failed.passed
        assert failed.violation_reason == "R:R 1.9 below minimum 2"

    def test_min_risk_reward_falls_back_to_trade(self) -> None:
        rule = make_rule("MIN_RISK_REWARD", 2)
        assert evaluate_one(rule, Trade(risk_reward="2.5")).passed
        assert not evaluate_one(rule, Trade(risk_reward="1.5")).passed
        assert evaluate_one(rule, Trade(risk_reward="1.5"), risk_reward="2").passed

    @pytest.mark.parametrize("stored", [None, "", "n/a"])
    def test_min_risk_reward_missing_fails(self, stored) -> None:
        result = evaluate_one(make_rule("MIN_RISK_REWARD", 2), Trade(risk_reward=stored))
        assert not result.passed
        assert result.violation_reason == "R:R not recorded (minimum 2)"

    def test_max_trades_per_day(self) -> None:
        rule = make_rule("MAX_TRADES_PER_DAY", 3)
        assert evaluate_one(rule, trades_today=0).passed
        assert evaluate_one(rule, trades_today=3).passed
        failed = evaluate_one(rule, trades_today=4)
        assert not failed.passed
        assert failed.actual_value == 4
        assert failed.violation_reason == "4 trades today exceeds limit of 3"

    def test_max_trades_per_day_missing_fails(self) -> None:
        result = evaluate_one(make_rule("MAX_TRADES_PER_DAY", 3))
        assert not result.passed
        assert result.violation_reason == "Trades taken today not provided (limit 3)"

    @pytest.mark.parametrize("threshold", [None, "abc", True])
    def test_unparseable_threshold_fails(self, threshold) -> None:
        result = evaluate_one(make_rule("MAX_RISK_PERCENT", threshold), risk_percent="0.5")
        assert not result.passed
        assert "no valid threshold configured" in result.violation_reason


class TestSessionRule:

    def test_empty_allowed_set_passes(self) -> None:
        assert evaluate_one(make_rule("SESSION_ALLOWED", [])).passed
        assert evaluate_one(make_rule("SESSION_ALLOWED", []), current_session="asian").passed

    def test_allowed_session(self) -> None:
        rule = make_rule("SESSION_ALLOWED", ["london", "overlap"])
        assert evaluate_one(rule, current_session="london").passed
        assert evaluate_one(rule, current_session="London").passed
        assert evaluate_one(rule, current_session="london/ny_overlap").passed

    def test_disallowed_session(self) -> None:
        result = evaluate_one(make_rule("SESSION_ALLOWED", ["london"]), current_session="asian")
        assert not result.passed
        assert result.violation_reason == 'Session "asian" not in allowed sessions (london)'

    def test_missing_session_fails(self) -> None:
        result = evaluate_one(make_rule("SESSION_ALLOWED", ["london", "new_york"]))
        assert not result.passed
        assert result.violation_reason == (
            "Current session not provided (allowed: london, new_york)"
        )


class TestTimeWindowRule:

    WINDOW = {"start": "09:00", "end": "12:00"}

    @pytest.mark.parametrize("trade_time,passed", [
        ("09:00", True),
        ("10:30", True),
        ("12:00", True),
        ("08:59", False),
        ("12:01", False),
    ])
    def test_inclusive_bounds(self, trade_time: str, passed: bool) -> None:
        result = evaluate_one(make_rule("TIME_WINDOW_ALLOWED", self.WINDOW), trade_time=trade_time)
        assert result.passed is passed

    def test_violation_reason(self) -> None:
        result = evaluate_one(make_rule("TIME_WINDOW_ALLOWED", self.WINDOW), trade_time="08:59")
        assert result.violation_reason == "Trade time 08:59 outside allowed window 09:00-12:00"

    def test_string_window(self) -> None:
        rule = make_rule("TIME_WINDOW_ALLOWED", "09:00-12:00")
        assert evaluate_one(rule, trade_time="11:00").passed
        assert not evaluate_one(rule, trade_time="13:00").passed

    def test_missing_trade_time_passes_by_default(self) -> None:
        assert evaluate_one(make_rule("TIME_WINDOW_ALLOWED", self.WINDOW)).passed

    def test_missing_trade_time_fails_under_strict_policy(self) -> None:
        evaluator = ComplianceEvaluator(
            build_default_catalog(), EvaluationPolicy(missing_trade_time_passes=False)
        )
        result = evaluator.evaluate(Trade(), [make_rule("TIME_WINDOW_ALLOWED", self.WINDOW)])
        assert not result.overall_compliant
        assert result.violations[0].violation_reason == (
            "Trade time not provided (allowed window 09:00-12:00)"
        )

    def test_unconfigured_window_passes(self) -> None:
        assert evaluate_one(make_rule("TIME_WINDOW_ALLOWED", ""), trade_time="03:00").passed
        assert evaluate_one(make_rule("TIME_WINDOW_ALLOWED", None), trade_time="03:00").passed

    def test_malformed_values_never_block(self, caplog) -> None:
        with caplog.at_level(logging.DEBUG, logger="journal.logic.compliance_engine"):
            assert evaluate_one(make_rule("TIME_WINDOW_ALLOWED", self.WINDOW), trade_time="9am").passed
            assert evaluate_one(
                make_rule("TIME_WINDOW_ALLOWED", {"start": "nine", "end": "12:00"}),
                trade_time="08:00",
            ).passed
        assert "CMP-003" in caplog.text

    def test_reversed_window_fails_by_default(self) -> None:
        rule = make_rule("TIME_WINDOW_ALLOWED", {"start": "22:00", "end": "02:00"})
        result = evaluate_one(rule, trade_time="23:00")
        assert not result.passed
        assert result.violation_reason == "Trade time 23:00 outside allowed window 22:00-02:00"
        assert not evaluate_one(rule, trade_time="01:15").passed

    def test_reversed_window_wraps_under_policy(self) -> None:
        evaluator = ComplianceEvaluator(
            build_default_catalog(), EvaluationPolicy(wrap_overnight_windows=True)
        )
        rule = make_rule("TIME_WINDOW_ALLOWED", {"start": "22:00", "end": "02:00"})

        def passed(trade_time: str) -> bool:
            return evaluator.evaluate(Trade(), [rule], TradeInputs(trade_time=trade_time)).overall_compliant

        assert passed("23:30")
        assert passed("01:15")
        assert not passed("12:00")

    @pytest.mark.parametrize("trade_time", ["08:00\n", "٠٨:٠٠"])
    def test_non_strict_trade_time_passes_through(self, trade_time: str) -> None:
        result = evaluate_one(make_rule("TIME_WINDOW_ALLOWED", self.WINDOW), trade_time=trade_time)
        assert result.passed
        assert result.violation_reason is None

    def test_spaced_string_window_passes_through(self) -> None:
        rule = make_rule("TIME_WINDOW_ALLOWED", "09:00 - 12:00")
        assert evaluate_one(rule, trade_time="08:00").passed
        assert evaluate_one(rule, trade_time="13:00").passed


class TestEvaluator:

    def test_unknown_rule_type_is_skipped(self, caplog) -> None:
        rules = [
            make_rule("NOT_A_REAL_KEY", True, rule_id=1),
            make_rule("SL_REQUIRED", True, rule_id=2),
        ]
        with caplog.at_level(logging.WARNING):
            result = evaluate_trade_compliance(Trade(stop_loss="1.1"), rules)
        assert [r.rule_id for r in result.rule_evaluations] == [2]
        assert result.overall_compliant
        assert "CMP-001" in caplog.text

    def test_empty_rules_are_compliant(self) -> None:
        result = evaluate_trade_compliance(Trade(), [])
        assert result.overall_compliant
        assert result.rule_evaluations == ()
        assert result.compliance_score == Decimal("100.00")

    def test_no_short_circuit_and_order_preserved(self) -> None:
        rules = [
            make_rule("SL_REQUIRED", True, rule_id=10),
            make_rule("TP_REQUIRED", True, rule_id=11),
            make_rule("MAX_RISK_PERCENT", 1, rule_id=12),
            make_rule("SETUP_PRESENT", True, rule_id=13),
        ]
        result = evaluate_trade_compliance(
            Trade(stop_loss="1.1"), rules, TradeInputs(risk_percent="2", setup_present=True)
        )
        assert [r.rule_id for r in result.rule_evaluations] == [10, 11, 12, 13]
        assert [r.rule_id for r in result.violations] == [11, 12]
        assert not result.overall_compliant
        assert result.passed_count == 2
        assert result.violation_count == 2
        assert result.compliance_score == Decimal("50.00")

    def test_journal_scenario(self) -> None:
        trade = Trade(id=42, stop_loss="1.2050", risk_reward="1.5")
        rules = [
            make_rule("MIN_RISK_REWARD", 2, rule_id=1, label="Minimum 2R"),
            make_rule("SL_REQUIRED", True, rule_id=2, label="Use a stop"),
        ]
        result = evaluate_trade_compliance(trade, rules)
        assert not result.overall_compliant
        assert len(result.violations) == 1
        violation = result.violations[0]
        assert violation.rule_type == "MIN_RISK_REWARD"
        assert violation.rule_label == "Minimum 2R"
        assert violation.expected_value == 2
        assert violation.actual_value == Decimal("1.5")
        assert result.rule_evaluations[1].passed

    def test_passed_rules_have_no_reason(self) -> None:
        result = evaluate_trade_compliance(Trade(stop_loss="1.1"), [make_rule("SL_REQUIRED", True)])
        assert result.rule_evaluations[0].violation_reason is None

    def test_missing_handler_passes(self, caplog) -> None:
        rule = make_rule("SETUP_PRESENT", True)
        with patch.dict(RULE_HANDLERS):
            del RULE_HANDLERS[RuleType.SETUP_PRESENT]
            with caplog.at_level(logging.WARNING):
                result = evaluate_trade_compliance(Trade(), [rule])
        assert result.overall_compliant
        assert result.rule_evaluations[0].actual_value is None
        assert "CMP-002" in caplog.text
        assert RuleType.SETUP_PRESENT in RULE_HANDLERS

    def test_uses_expected_value_decoded_at_load(self) -> None:
        definition = build_default_catalog().lookup("MAX_RISK_PERCENT")
        rule = StrategyRule(
            id=1, rule_type="MAX_RISK_PERCENT", label="Risk", options={"value": "5"},
        ).with_definition(definition)
        stale = StrategyRule(
            id=1, rule_type="MAX_RISK_PERCENT", label="Risk", options={"value": "5"},
            expected=NumberRuleValue(Decimal("1")),
        )
        inputs = TradeInputs(risk_percent="2")
        assert evaluate_trade_compliance(Trade(), [rule], inputs).overall_compliant
        assert not evaluate_trade_compliance(Trade(), [stale], inputs).overall_compliant
        assert evaluate_trade_compliance(Trade(), [stale], inputs).rule_evaluations[0].expected_value == "5"

    def test_mismatched_decoded_value_is_redecoded(self) -> None:
        rule = StrategyRule(
            id=1, rule_type="SL_REQUIRED", label="SL", options={"value": True},
            expected=NumberRuleValue(Decimal("1")),
        )
        assert evaluate_trade_compliance(Trade(stop_loss="1.1"), [rule]).overall_compliant

    def test_reduced_catalog_skips_excluded_types(self) -> None:
        catalog = build_default_catalog().subset(["SL_REQUIRED"])
        rules = [make_rule("SL_REQUIRED", True, rule_id=1), make_rule("TP_REQUIRED", True, rule_id=2)]
        result = ComplianceEvaluator(catalog).evaluate(Trade(), rules)
        assert [r.rule_id for r in result.rule_evaluations] == [1]

    def test_expected_value_is_detached_from_rule(self) -> None:
        options = {"value": ["london"]}
        rule = StrategyRule(id=1, rule_type="SESSION_ALLOWED", label="S", options=options)
        result = evaluate_trade_compliance(Trade(), [rule], TradeInputs(current_session="london"))
        result.rule_evaluations[0].expected_value.append("asian")
        assert options == {"value": ["london"]}

    def test_deterministic(self) -> None:
        trade = Trade(stop_loss="1.1", risk_reward="2", created_at=datetime(2024, 1, 2, tzinfo=timezone.utc))
        rules = [make_rule("SL_REQUIRED", True), make_rule("MIN_RISK_REWARD", 3, rule_id=2)]
        inputs = TradeInputs(trades_today=1)
        assert evaluate_trade_compliance(trade, rules, inputs) == (
            evaluate_trade_compliance(trade, rules, inputs)
        )

    def test_to_dict(self) -> None:
        rules = [
            make_rule("MAX_RISK_PERCENT", "1", rule_id=5, label="Risk cap"),
            make_rule("SESSION_ALLOWED", ("london",), rule_id=6, label="Sessions"),
        ]
        result = evaluate_trade_compliance(
            Trade(), rules, TradeInputs(risk_percent="1.5", current_session="london")
        )
        payload = result.to_dict()
        assert payload["overallCompliant"] is False
        assert payload["complianceScore"] == "50.00"
        first = payload["ruleEvaluations"][0]
        assert first == {
            "ruleId": 5,
            "ruleType": "MAX_RISK_PERCENT",
            "ruleLabel": "Risk cap",
            "expectedValue": "1",
            "actualValue": "1.5",
            "passed": False,
            "violationReason": "Risk 1.5% exceeds maximum 1%",
        }
        assert payload["ruleEvaluations"][1]["expectedValue"] == ["london"]
        assert payload["violations"] == [first]
