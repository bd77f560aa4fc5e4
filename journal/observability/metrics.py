"""
============================================================================
Trade Journal Compliance v1.0.0
Prometheus Metrics - Compliance Evaluations
============================================================================

Reliability Level: L6 Critical
Side Effects: Updates Prometheus metrics registry

METRICS EXPOSED
---------------
- compliance_evaluations_total{outcome}: evaluations by verdict
- compliance_rule_violations_total{rule_type}: failed rules by type
- compliance_rules_skipped_total: rules skipped for unknown type
- compliance_evaluation_seconds: evaluation latency

Recording failures are logged and never raised to the caller.

============================================================================
"""

import logging
from typing import Optional

from prometheus_client import Counter, Histogram

from journal.logic.compliance_engine import ComplianceEvaluationResult

# Configure module logger
logger = logging.getLogger(__name__)

OUTCOME_COMPLIANT = "compliant"
OUTCOME_NON_COMPLIANT = "non_compliant"


# ============================================================================
# PROMETHEUS METRICS DEFINITIONS
# ============================================================================

EVALUATIONS_TOTAL = Counter(
    "compliance_evaluations_total",
    "Total number of trade compliance evaluations",
    ["outcome"]
)

RULE_VIOLATIONS_TOTAL = Counter(
    "compliance_rule_violations_total",
    "Total number of strategy rule violations",
    ["rule_type"]
)

RULES_SKIPPED_TOTAL = Counter(
    "compliance_rules_skipped_total",
    "Total number of strategy rules skipped for an unknown rule type"
)

EVALUATION_SECONDS = Histogram(
    "compliance_evaluation_seconds",
    "Latency of a single trade compliance evaluation",
    buckets=[0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1]
)


# ============================================================================
# METRIC UPDATE FUNCTIONS
# ============================================================================

def record_evaluation(
    result: ComplianceEvaluationResult,
    duration_seconds: float,
    skipped_rules: int = 0,
    correlation_id: Optional[str] = None
) -> None:
    """
    Record one evaluation outcome.

    Args:
        result: Evaluation result
        duration_seconds: Wall-clock evaluation time
        skipped_rules: Rules skipped for unknown type
        correlation_id: Optional tracking ID
    """
    try:
        outcome = OUTCOME_COMPLIANT if result.overall_compliant else OUTCOME_NON_COMPLIANT
        EVALUATIONS_TOTAL.labels(outcome=outcome).inc()
        for violation in result.violations:
            RULE_VIOLATIONS_TOTAL.labels(rule_type=violation.rule_type).inc()
        if skipped_rules > 0:
            RULES_SKIPPED_TOTAL.inc(skipped_rules)
        EVALUATION_SECONDS.observe(duration_seconds)
        logger.debug(
            "Metric: compliance_evaluation | outcome=%s | violations=%s | "
            "skipped=%s | correlation_id=%s",
            outcome, result.violation_count, skipped_rules, correlation_id
        )
    except Exception as e:
        logger.error(
            "[OBS-001] Failed to record compliance_evaluation metric | error=%s",
            str(e)
        )
