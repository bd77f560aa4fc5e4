"""
============================================================================
Trade Journal Compliance - Services Layer
============================================================================

Caller-side orchestration around the compliance engine.

============================================================================
"""

from journal.services.compliance_service import (
    ComplianceService,
    ComplianceServiceError,
    ComplianceServiceErrorCode,
    TradeRepository,
    StrategyRuleRepository,
    create_compliance_service,
)

__all__ = [
    "ComplianceService",
    "ComplianceServiceError",
    "ComplianceServiceErrorCode",
    "TradeRepository",
    "StrategyRuleRepository",
    "create_compliance_service",
]
