"""
Observability - Prometheus metrics for compliance evaluations.
"""

from journal.observability.metrics import (
    EVALUATIONS_TOTAL,
    RULE_VIOLATIONS_TOTAL,
    RULES_SKIPPED_TOTAL,
    EVALUATION_SECONDS,
    record_evaluation,
)

__all__ = [
    "EVALUATIONS_TOTAL",
    "RULE_VIOLATIONS_TOTAL",
    "RULES_SKIPPED_TOTAL",
    "EVALUATION_SECONDS",
    "record_evaluation",
]
