"""
============================================================================
Trade Journal Compliance v1.0.0
Compliance Engine - Strategy Rule Evaluation
============================================================================

Reliability Level: L6 Critical
Input Constraints: Well-typed Trade, StrategyRule list and TradeInputs
Side Effects: Logging only (pure evaluation)

PURPOSE
-------
Checks one trade against the ordered rules of its strategy and returns a
per-rule verdict plus the overall compliant/non-compliant outcome. The
engine never decides whether to trade; it only compares recorded or
caller-supplied facts with configured thresholds.

EVALUATION CONTRACT
-------------------
1. Every rule is evaluated, in order. No short-circuit on violation.
2. Rules whose type is missing from the catalog are skipped silently.
3. Missing evidence fails the rule (fail-closed), except the time-window
   rule, whose missing-trade-time behavior is set by EvaluationPolicy.
4. Malformed time windows or trade times never block a trade. Windows are
   closed intervals; start > end matches nothing unless the policy wraps it.
5. The function never raises for incomplete input.

No I/O and no shared mutable state: concurrent calls need no locking.

============================================================================
"""

import logging
from copy import deepcopy
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from journal.logic.rule_catalog import (
    InputType,
    NumberComparator,
    RuleType,
    RuleTypeCatalog,
    RuleTypeDefinition,
    build_default_catalog,
)
from journal.logic.rule_values import (
    RuleValue,
    ensure_rule_value,
    unwrap_rule_options,
)
from journal.logic.sessions import (
    is_within_window,
    normalize_session,
    parse_time_to_minutes,
)
from journal.schemas.strategy_rule import StrategyRule
from journal.schemas.trade import Trade, TradeInputs

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

PRECISION_SCORE = Decimal("0.01")
FULL_SCORE = Decimal("100.00")

# Error codes
ERROR_UNKNOWN_RULE_TYPE = "CMP-001"
ERROR_NO_RULE_HANDLER = "CMP-002"
ERROR_MALFORMED_TIME_WINDOW = "CMP-003"


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class EvaluationPolicy:
    """
    Policy knobs for cases where product behavior is still undecided.

    missing_trade_time_passes: a time-window rule passes when no trade time
    is known. True keeps stored evaluations comparable with earlier ones.

    wrap_overnight_windows: a window whose start is after its end runs past
    midnight. False keeps the plain closed interval, which such a window
    never satisfies.
    """
    missing_trade_time_passes: bool = True
    wrap_overnight_windows: bool = False


@dataclass(frozen=True)
class RuleCheck:
    """Outcome of one rule handler."""
    actual_value: Any
    passed: bool
    violation_reason: Optional[str] = None


@dataclass(frozen=True)
class RuleEvaluationResult:
    """
    Verdict for one strategy rule.

    Reliability Level: L6 Critical
    Side Effects: None (immutable)
    """
    rule_id: int
    rule_type: str
    rule_label: str
    expected_value: Any
    actual_value: Any
    passed: bool
    violation_reason: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ruleId": self.rule_id,
            "ruleType": self.rule_type,
            "ruleLabel": self.rule_label,
            "expectedValue": to_jsonable(self.expected_value),
            "actualValue": to_jsonable(self.actual_value),
            "passed": self.passed,
            "violationReason": self.violation_reason,
        }


@dataclass(frozen=True)
class ComplianceEvaluationResult:
    """
    Verdict for one trade against its strategy.

    overall_compliant is True iff violations is empty. rule_evaluations
    keeps the input rule order minus skipped rules.
    """
    overall_compliant: bool
    rule_evaluations: Tuple[RuleEvaluationResult, ...]
    violations: Tuple[RuleEvaluationResult, ...]

    @property
    def passed_count(self) -> int:
        return len(self.rule_evaluations) - len(self.violations)

    @property
    def violation_count(self) -> int:
        return len(self.violations)

    @property
    def compliance_score(self) -> Decimal:
        """Percentage of evaluated rules that passed (100.00 when none ran)."""
        if not self.rule_evaluations:
            return FULL_SCORE
        ratio = Decimal(self.passed_count) * Decimal("100") / Decimal(len(self.rule_evaluations))
        return ratio.quantize(PRECISION_SCORE, rounding=ROUND_HALF_EVEN)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overallCompliant": self.overall_compliant,
            "complianceScore": str(self.compliance_score),
            "ruleEvaluations": [r.to_dict() for r in self.rule_evaluations],
            "violations": [r.to_dict() for r in self.violations],
        }


@dataclass(frozen=True)
class _RuleContext:
    definition: RuleTypeDefinition
    trade: Trade
    inputs: TradeInputs
    expected: RuleValue
    policy: EvaluationPolicy


RuleCheckFn = Callable[[_RuleContext], RuleCheck]


@dataclass(frozen=True)
class RuleHandler:
    """Check function plus the expected-value variant it reads."""
    input_type: InputType
    check: RuleCheckFn


# =============================================================================
# Helpers
# =============================================================================

def to_jsonable(value: Any) -> Any:
    """Decimals as strings, tuples as lists, recursively."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    return value


def format_number(value: Optional[Decimal]) -> str:
    """Render a Decimal without exponent or trailing zeros."""
    if value is None:
        return "unknown"
    normalized = value.normalize()
    if normalized == normalized.to_integral_value():
        return format(normalized.quantize(Decimal("1")), "f")
    return format(normalized, "f")


def compare_number(
    actual: Optional[Decimal],
    expected: Optional[Decimal],
    comparator: NumberComparator,
) -> bool:
    """actual <comparator> expected. Unknown values never satisfy a comparison."""
    if actual is None or expected is None:
        return False
    if comparator is NumberComparator.GTE:
        return actual >= expected
    if comparator is NumberComparator.LTE:
        return actual <= expected
    return actual == expected


def _prefer(override: Any, fallback: Any) -> Any:
    return override if override is not None else fallback


# =============================================================================
# Boolean Rules
# =============================================================================

def _boolean_rule(
    resolve_actual: Callable[[Trade, TradeInputs], Optional[bool]],
    missing_reason: str,
    unexpected_reason: str,
) -> RuleCheckFn:
    """
    Build a check for a strict-equality boolean rule.

    missing_reason is used when the fact is absent or False but required;
    unexpected_reason when it is True but the rule expects False.
    """
    def handler(ctx: _RuleContext) -> RuleCheck:
        actual = resolve_actual(ctx.trade, ctx.inputs)
        expected = ctx.expected.expected
        if expected is None:
            return RuleCheck(
                actual, False, f"{ctx.definition.label}: no expected value configured"
            )
        if actual is not None and actual == expected:
            return RuleCheck(actual, True)
        if actual is True and expected is False:
            return RuleCheck(actual, False, unexpected_reason)
        return RuleCheck(actual, False, missing_reason)

    return handler


_check_entry_confirmation = _boolean_rule(
    lambda trade, inputs: _prefer(inputs.entry_confirmation_present, trade.entry_confirmed),
    "Entry confirmation not present",
    "Entry confirmation present but strategy expects none",
)

_check_setup_present = _boolean_rule(
    lambda trade, inputs: inputs.setup_present,
    "Setup not identified",
    "Setup identified but strategy expects none",
)

_check_personal_model = _boolean_rule(
    lambda trade, inputs: inputs.personal_model_confirmed,
    "Personal model criteria not met",
    "Personal model confirmed but strategy expects it unconfirmed",
)

_check_stop_loss = _boolean_rule(
    lambda trade, inputs: _prefer(inputs.stop_loss_set, trade.has_stop_loss),
    "Stop loss not set",
    "Stop loss set but strategy expects none",
)

_check_take_profit = _boolean_rule(
    lambda trade, inputs: _prefer(inputs.take_profit_set, trade.has_take_profit),
    "Take profit not set",
    "Take profit set but strategy expects none",
)

_check_directional_bias = _boolean_rule(
    lambda trade, inputs: _prefer(inputs.directional_bias_present, trade.htf_bias_clear),
    "Directional bias not established",
    "Directional bias present but strategy expects none",
)


# =============================================================================
# Numeric Rules
# =============================================================================

def _numeric_precheck(
    ctx: _RuleContext,
    actual: Optional[Decimal],
    missing_reason: str,
) -> Optional[RuleCheck]:
    """Failure for an unset threshold or unknown actual, else None."""
    if ctx.expected.threshold is None:
        return RuleCheck(
            actual, False, f"{ctx.definition.label}: no valid threshold configured"
        )
    if actual is None:
        return RuleCheck(None, False, missing_reason)
    return None


def _check_max_risk_percent(ctx: _RuleContext) -> RuleCheck:
    actual = ctx.inputs.risk_percent
    limit = ctx.expected.threshold
    early = _numeric_precheck(
        ctx, actual, f"Risk percent not provided (maximum {format_number(limit)}%)"
    )
    if early is not None:
        return early
    if compare_number(actual, limit, NumberComparator.LTE):
        return RuleCheck(actual, True)
    return RuleCheck(
        actual, False,
        f"Risk {format_number(actual)}% exceeds maximum {format_number(limit)}%",
    )


def _check_min_risk_reward(ctx: _RuleContext) -> RuleCheck:
    actual = _prefer(ctx.inputs.risk_reward, ctx.trade.risk_reward_value)
    minimum = ctx.expected.threshold
    early = _numeric_precheck(
        ctx, actual, f"R:R not recorded (minimum {format_number(minimum)})"
    )
    if early is not None:
        return early
    if compare_number(actual, minimum, NumberComparator.GTE):
        return RuleCheck(actual, True)
    return RuleCheck(
        actual, False,
        f"R:R {format_number(actual)} below minimum {format_number(minimum)}",
    )


def _check_max_trades_per_day(ctx: _RuleContext) -> RuleCheck:
    trades_today = ctx.inputs.trades_today
    actual = Decimal(trades_today) if trades_today is not None else None
    limit = ctx.expected.threshold
    early = _numeric_precheck(
        ctx, actual, f"Trades taken today not provided (limit {format_number(limit)})"
    )
    if early is not None:
        return early
    if compare_number(actual, limit, NumberComparator.LTE):
        return RuleCheck(trades_today, True)
    return RuleCheck(
        trades_today, False,
        f"{trades_today} trades today exceeds limit of {format_number(limit)}",
    )


# =============================================================================
# Context Rules
# =============================================================================

def _check_session_allowed(ctx: _RuleContext) -> RuleCheck:
    actual = ctx.inputs.current_session
    allowed = ctx.expected.allowed
    if not allowed:
        return RuleCheck(actual, True)
    allowed_text = ", ".join(allowed)
    session_key = normalize_session(actual)
    if session_key is None:
        return RuleCheck(
            actual, False, f"Current session not provided (allowed: {allowed_text})"
        )
    if session_key in {normalize_session(s) for s in allowed}:
        return RuleCheck(actual, True)
    return RuleCheck(
        actual, False,
        f'Session "{actual}" not in allowed sessions ({allowed_text})',
    )


def _check_time_window(ctx: _RuleContext) -> RuleCheck:
    trade_time = ctx.inputs.trade_time
    window = ctx.expected

    if not window.is_configured:
        return RuleCheck(trade_time, True)
    if not trade_time:
        if ctx.policy.missing_trade_time_passes:
            return RuleCheck(trade_time, True)
        return RuleCheck(
            trade_time, False,
            f"Trade time not provided (allowed window {window.describe()})",
        )

    trade_minute = parse_time_to_minutes(trade_time)
    start = parse_time_to_minutes(window.start)
    end = parse_time_to_minutes(window.end)
    if trade_minute is None or start is None or end is None:
        logger.debug(
            f"[{ERROR_MALFORMED_TIME_WINDOW}] Unparseable time window passed through | "
            f"trade_time={trade_time!r} | window={window.describe()}"
        )
        return RuleCheck(trade_time, True)

    if is_within_window(trade_minute, start, end, ctx.policy.wrap_overnight_windows):
        return RuleCheck(trade_time, True)
    return RuleCheck(
        trade_time, False,
        f"Trade time {trade_time} outside allowed window {window.describe()}",
    )


# =============================================================================
# Dispatch
# =============================================================================

RULE_HANDLERS: Dict[RuleType, RuleHandler] = {
    RuleType.ENTRY_CONFIRMATION_REQUIRED: RuleHandler(InputType.BOOLEAN, _check_entry_confirmation),
    RuleType.SETUP_PRESENT: RuleHandler(InputType.BOOLEAN, _check_setup_present),
    RuleType.PERSONAL_MODEL_CONFIRMED: RuleHandler(InputType.BOOLEAN, _check_personal_model),
    RuleType.SL_REQUIRED: RuleHandler(InputType.BOOLEAN, _check_stop_loss),
    RuleType.TP_REQUIRED: RuleHandler(InputType.BOOLEAN, _check_take_profit),
    RuleType.MAX_RISK_PERCENT: RuleHandler(InputType.NUMBER, _check_max_risk_percent),
    RuleType.MIN_RISK_REWARD: RuleHandler(InputType.NUMBER, _check_min_risk_reward),
    RuleType.MAX_TRADES_PER_DAY: RuleHandler(InputType.NUMBER, _check_max_trades_per_day),
    RuleType.SESSION_ALLOWED: RuleHandler(InputType.MULTISELECT, _check_session_allowed),
    RuleType.TIME_WINDOW_ALLOWED: RuleHandler(InputType.TIME_RANGE, _check_time_window),
    RuleType.DIRECTIONAL_BIAS_REQUIRED: RuleHandler(InputType.BOOLEAN, _check_directional_bias),
}


# =============================================================================
# Evaluator
# =============================================================================

class ComplianceEvaluator:
    """
    Evaluates trades against strategy rules using an injected catalog.

    Reliability Level: L6 Critical
    Input Constraints: catalog is immutable; inputs are validated upstream
    Side Effects: Logging only

    Usage:
        evaluator = ComplianceEvaluator(build_default_catalog())
        result = evaluator.evaluate(trade, rules, TradeInputs(risk_percent="0.5"))
    """

    def __init__(
        self,
        catalog: RuleTypeCatalog,
        policy: Optional[EvaluationPolicy] = None,
    ) -> None:
        self._catalog = catalog
        self._policy = policy or EvaluationPolicy()

    @property
    def catalog(self) -> RuleTypeCatalog:
        return self._catalog

    @property
    def policy(self) -> EvaluationPolicy:
        return self._policy

    def evaluate(
        self,
        trade: Trade,
        rules: Sequence[StrategyRule],
        trade_inputs: Optional[TradeInputs] = None,
    ) -> ComplianceEvaluationResult:
        """
        Evaluate every rule against the trade.

        Args:
            trade: Stored trade record (read-only)
            rules: Strategy rules in display order
            trade_inputs: Situational overrides; None means none supplied

        Returns:
            ComplianceEvaluationResult with all verdicts in rule order
        """
        inputs = trade_inputs if trade_inputs is not None else TradeInputs()
        evaluations: List[RuleEvaluationResult] = []

        for rule in rules:
            definition = self._catalog.lookup(rule.rule_type)
            if definition is None:
                logger.warning(
                    f"[{ERROR_UNKNOWN_RULE_TYPE}] Unknown rule type skipped | "
                    f"rule_id={rule.id} | rule_type={rule.rule_type!r}"
                )
                continue
            evaluations.append(self._evaluate_rule(definition, rule, trade, inputs))

        violations = tuple(r for r in evaluations if not r.passed)
        return ComplianceEvaluationResult(
            overall_compliant=not violations,
            rule_evaluations=tuple(evaluations),
            violations=violations,
        )

    def _evaluate_rule(
        self,
        definition: RuleTypeDefinition,
        rule: StrategyRule,
        trade: Trade,
        inputs: TradeInputs,
    ) -> RuleEvaluationResult:
        raw_expected = unwrap_rule_options(rule.options)
        handler = RULE_HANDLERS.get(definition.key)

        if handler is None:
            logger.warning(
                f"[{ERROR_NO_RULE_HANDLER}] No handler registered, rule passes | "
                f"rule_id={rule.id} | rule_type={definition.key.value}"
            )
            check = RuleCheck(actual_value=None, passed=True)
        else:
            ctx = _RuleContext(
                definition=definition,
                trade=trade,
                inputs=inputs,
                expected=ensure_rule_value(handler.input_type, rule.expected, rule.options),
                policy=self._policy,
            )
            check = handler.check(ctx)

        return RuleEvaluationResult(
            rule_id=rule.id,
            rule_type=definition.key.value,
            rule_label=rule.label,
            expected_value=deepcopy(raw_expected),
            actual_value=check.actual_value,
            passed=check.passed,
            violation_reason=None if check.passed else check.violation_reason,
        )


def evaluate_trade_compliance(
    trade: Trade,
    rules: Sequence[StrategyRule],
    trade_inputs: Optional[TradeInputs] = None,
    catalog: Optional[RuleTypeCatalog] = None,
    policy: Optional[EvaluationPolicy] = None,
) -> ComplianceEvaluationResult:
    """
    One-shot evaluation. Builds the default catalog when none is passed;
    long-lived callers should hold a ComplianceEvaluator instead.
    """
    if catalog is None:
        catalog = build_default_catalog()
    evaluator = ComplianceEvaluator(catalog, policy)
    return evaluator.evaluate(trade, rules, trade_inputs)
