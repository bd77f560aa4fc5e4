"""
============================================================================
Trade Journal Compliance v1.0.0
Compliance Service - Caller-Side Orchestration
============================================================================

Reliability Level: L6 Critical
Input Constraints: Trade records and strategy rule rows from the journal store
Side Effects: Logging, Prometheus metrics

The service sits between request handlers and the pure engine:
- decodes stored rule rows into StrategyRule records with typed expected
  values (boundary decoding)
- reports misconfigured rule values without blocking evaluation
- optionally derives session/time inputs from the trade timestamp
- logs one summary line per evaluation and records metrics

Persistence is an external collaborator reached through the
TradeRepository and StrategyRuleRepository protocols.

ERROR CODES:
    - CMP-010: Trade not found
    - CMP-011: Repository unavailable or failed
    - CMP-012: Stored rule value fails configuration validation

============================================================================
"""

import logging
import time
import uuid
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Sequence, Union, runtime_checkable

from journal.config import ComplianceConfig
from journal.logic.compliance_engine import (
    ComplianceEvaluationResult,
    ComplianceEvaluator,
)
from journal.logic.rule_catalog import RuleTypeCatalog, build_default_catalog
from journal.logic.rule_values import validate_rule_value
from journal.observability.metrics import record_evaluation
from journal.schemas.strategy_rule import StrategyRule
from journal.schemas.trade import Trade, TradeInputs

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Error Codes
# =============================================================================

class ComplianceServiceErrorCode:
    """Compliance service error codes for audit logging."""
    TRADE_NOT_FOUND = "CMP-010"
    REPOSITORY_FAILURE = "CMP-011"
    RULE_MISCONFIGURED = "CMP-012"


class ComplianceServiceError(Exception):
    """Caller-level failure around an evaluation (never raised by the engine)."""

    def __init__(self, message: str, error_code: str):
        self.error_code = error_code
        self.message = message
        super().__init__(f"[{error_code}] {message}")


# =============================================================================
# Repository Interfaces
# =============================================================================

@runtime_checkable
class TradeRepository(Protocol):
    """Read access to stored trades."""

    def get_trade(self, trade_id: int) -> Optional[Trade]:
        ...


@runtime_checkable
class StrategyRuleRepository(Protocol):
    """Read access to a strategy's rules, as StrategyRule or raw rows."""

    def get_rules(self, strategy_id: int) -> Sequence[Union[StrategyRule, Mapping[str, Any]]]:
        ...


# =============================================================================
# Compliance Service
# =============================================================================

class ComplianceService:
    """
    Evaluates trades for request handlers.

    Reliability Level: L6 Critical
    Input Constraints: Repositories are optional; only evaluate_stored_trade needs them
    Side Effects: Logging, metrics

    Usage:
        service = create_compliance_service()
        result = service.evaluate(trade, service.load_rules(rows), inputs)
    """

    def __init__(
        self,
        catalog: Optional[RuleTypeCatalog] = None,
        config: Optional[ComplianceConfig] = None,
        trade_repository: Optional[TradeRepository] = None,
        rule_repository: Optional[StrategyRuleRepository] = None,
    ) -> None:
        self._catalog = catalog if catalog is not None else build_default_catalog()
        self._config = config if config is not None else ComplianceConfig()
        self._evaluator = ComplianceEvaluator(self._catalog, self._config.evaluation_policy)
        self._trade_repository = trade_repository
        self._rule_repository = rule_repository

        logger.info(
            f"[COMPLIANCE-SERVICE] Initialized | "
            f"rule_types={len(self._catalog)} | "
            f"missing_trade_time_passes={self._evaluator.policy.missing_trade_time_passes}"
        )

    @property
    def catalog(self) -> RuleTypeCatalog:
        return self._catalog

    @property
    def evaluator(self) -> ComplianceEvaluator:
        return self._evaluator

    @property
    def config(self) -> ComplianceConfig:
        return self._config

    def load_rules(
        self,
        records: Iterable[Union[StrategyRule, Mapping[str, Any]]],
    ) -> List[StrategyRule]:
        """
        Decode stored rule rows into StrategyRule records.

        Rules of a known type get their expected value decoded here, once,
        against the catalog definition. Misconfigured values are logged
        (CMP-012) and kept: whether a rule with a bad threshold passes is
        the engine's decision, not the loader's.
        """
        rules: List[StrategyRule] = []
        for record in records:
            rule = record if isinstance(record, StrategyRule) else StrategyRule.from_record(record)
            definition = self._catalog.lookup(rule.rule_type)
            if definition is not None:
                rule = rule.with_definition(definition)
                for problem in validate_rule_value(definition, rule.options):
                    logger.warning(
                        f"[{ComplianceServiceErrorCode.RULE_MISCONFIGURED}] "
                        f"Stored rule value failed validation | "
                        f"rule_id={rule.id} | {problem}"
                    )
            rules.append(rule)
        return rules

    def evaluate(
        self,
        trade: Trade,
        rules: Sequence[StrategyRule],
        trade_inputs: Optional[TradeInputs] = None,
        correlation_id: Optional[str] = None,
    ) -> ComplianceEvaluationResult:
        """
        Evaluate one trade and record the outcome.

        Args:
            trade: Stored trade record
            rules: Strategy rules in display order
            trade_inputs: Situational overrides
            correlation_id: Tracking ID (generated when omitted)
        """
        correlation_id = correlation_id or str(uuid.uuid4())
        inputs = trade_inputs if trade_inputs is not None else TradeInputs()
        if self._config.derive_trade_context:
            inputs = inputs.with_trade_context(trade)

        started = time.perf_counter()
        result = self._evaluator.evaluate(trade, rules, inputs)
        duration = time.perf_counter() - started
        skipped = len(rules) - len(result.rule_evaluations)

        logger.info(
            f"[COMPLIANCE-SERVICE] Trade evaluated | "
            f"trade_id={trade.id} | "
            f"compliant={result.overall_compliant} | "
            f"rules={len(result.rule_evaluations)} | "
            f"violations={result.violation_count} | "
            f"skipped={skipped} | "
            f"correlation_id={correlation_id}"
        )

        if self._config.metrics_enabled:
            record_evaluation(result, duration, skipped, correlation_id)

        return result

    def evaluate_stored_trade(
        self,
        trade_id: int,
        strategy_id: int,
        trade_inputs: Optional[TradeInputs] = None,
        correlation_id: Optional[str] = None,
    ) -> ComplianceEvaluationResult:
        """
        Load a trade and its strategy's rules, then evaluate.

        Raises:
            ComplianceServiceError: CMP-010 if the trade does not exist,
                CMP-011 if repositories are missing or fail
        """
        if self._trade_repository is None or self._rule_repository is None:
            raise ComplianceServiceError(
                "Trade and rule repositories are not configured",
                ComplianceServiceErrorCode.REPOSITORY_FAILURE,
            )

        try:
            trade = self._trade_repository.get_trade(trade_id)
            records = self._rule_repository.get_rules(strategy_id)
        except Exception as e:
            logger.error(
                f"[{ComplianceServiceErrorCode.REPOSITORY_FAILURE}] Repository read failed | "
                f"trade_id={trade_id} | strategy_id={strategy_id} | error={str(e)}"
            )
            raise ComplianceServiceError(
                f"Repository read failed: {str(e)}",
                ComplianceServiceErrorCode.REPOSITORY_FAILURE,
            ) from e

        if trade is None:
            raise ComplianceServiceError(
                f"Trade {trade_id} not found",
                ComplianceServiceErrorCode.TRADE_NOT_FOUND,
            )

        return self.evaluate(trade, self.load_rules(records), trade_inputs, correlation_id)


def create_compliance_service(
    config: Optional[ComplianceConfig] = None,
    trade_repository: Optional[TradeRepository] = None,
    rule_repository: Optional[StrategyRuleRepository] = None,
) -> ComplianceService:
    """Factory function to create a ComplianceService with the default catalog."""
    return ComplianceService(
        catalog=build_default_catalog(),
        config=config,
        trade_repository=trade_repository,
        rule_repository=rule_repository,
    )
