# ============================================================================
# Trade Journal Compliance v1.0.0
# Compliance API Endpoints - Rule Catalog & Trade Evaluation
# ============================================================================
#
# Reliability Level: L6 Critical
# Purpose: Thin HTTP surface over ComplianceService
#
# Endpoints:
#   GET  /rule-types                    - Catalog listing (optional ?category=)
#   GET  /rule-types/{key}              - One rule type definition
#   POST /evaluate                      - Evaluate a trade supplied in the body
#   POST /trades/{trade_id}/evaluate    - Evaluate a stored trade
#
# Error Codes:
#   CMP-010: Trade not found (404)
#   CMP-011: Repository unavailable (503)
#   CMP-020: Unknown rule type key (404)
#
# ============================================================================

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from journal.config import get_compliance_config
from journal.logic.compliance_engine import ComplianceEvaluationResult
from journal.logic.rule_catalog import RuleCategory
from journal.schemas.trade import Trade, TradeInputs
from journal.services.compliance_service import (
    ComplianceService,
    ComplianceServiceError,
    ComplianceServiceErrorCode,
    create_compliance_service,
)

logger = logging.getLogger(__name__)

ERROR_UNKNOWN_RULE_TYPE_KEY = "CMP-020"

# ============================================================================
# Router
# ============================================================================

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================

class CamelModel(BaseModel):
    """Base model accepting camelCase aliases and snake_case names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TradePayload(CamelModel):
    """Trade record as sent by the journal client."""
    id: Optional[int] = None
    pair: Optional[str] = None
    direction: Optional[str] = None
    entry_price: Optional[str] = None
    stop_loss: Optional[str] = None
    take_profit: Optional[str] = None
    risk_reward: Optional[str] = None
    htf_bias_clear: Optional[bool] = None
    entry_confirmed: Optional[bool] = None
    outcome: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("entry_price", "stop_loss", "take_profit", "risk_reward", mode="before")
    @classmethod
    def numeric_as_text(cls, v: Any) -> Optional[str]:
        """Numeric columns are stored as text; accept JSON numbers too."""
        if v is None or isinstance(v, str):
            return v
        return str(v)

    def to_trade(self) -> Trade:
        return Trade(**self.model_dump())


class StrategyRulePayload(CamelModel):
    """Stored strategy rule row."""
    id: int
    rule_type: str
    label: str = ""
    options: Any = None

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "rule_type": self.rule_type,
            "label": self.label,
            "options": self.options,
        }


class EvaluateComplianceRequest(CamelModel):
    """Request model for evaluating a trade against a rule list."""
    trade: TradePayload
    rules: List[StrategyRulePayload] = Field(default_factory=list)
    trade_inputs: TradeInputs = Field(default_factory=TradeInputs)
    correlation_id: Optional[str] = None


class RuleEvaluationResponse(CamelModel):
    rule_id: int
    rule_type: str
    rule_label: str
    expected_value: Any = None
    actual_value: Any = None
    passed: bool
    violation_reason: Optional[str] = None


class ComplianceEvaluationResponse(CamelModel):
    overall_compliant: bool
    compliance_score: str
    rule_evaluations: List[RuleEvaluationResponse]
    violations: List[RuleEvaluationResponse]
    correlation_id: Optional[str] = None


def _to_response(
    result: ComplianceEvaluationResult,
    correlation_id: Optional[str],
) -> ComplianceEvaluationResponse:
    return ComplianceEvaluationResponse.model_validate(
        {**result.to_dict(), "correlationId": correlation_id}
    )


# ============================================================================
# Dependencies
# ============================================================================

_service: Optional[ComplianceService] = None


def get_compliance_service() -> ComplianceService:
    """Process-wide ComplianceService, created on first use."""
    global _service
    if _service is None:
        _service = create_compliance_service(config=get_compliance_config())
    return _service


# ============================================================================
# Endpoints
# ============================================================================

@router.get(
    "/rule-types",
    response_model=List[Dict[str, Any]],
    summary="List Rule Types",
    tags=["Compliance"]
)
async def list_rule_types(
    category: Optional[RuleCategory] = Query(None, description="Filter by category"),
    service: ComplianceService = Depends(get_compliance_service)
) -> List[Dict[str, Any]]:
    """Catalog listing in declaration order."""
    catalog = service.catalog
    definitions = catalog.by_category(category) if category else catalog.all()
    return [d.to_dict() for d in definitions]


@router.get(
    "/rule-types/{key}",
    response_model=Dict[str, Any],
    summary="Get Rule Type",
    tags=["Compliance"]
)
async def get_rule_type(
    key: str,
    service: ComplianceService = Depends(get_compliance_service)
) -> Dict[str, Any]:
    definition = service.catalog.lookup(key)
    if definition is None:
        raise HTTPException(
            status_code=404,
            detail={
                "error_code": ERROR_UNKNOWN_RULE_TYPE_KEY,
                "message": f"Unknown rule type: {key}",
            }
        )
    return definition.to_dict()


@router.post(
    "/evaluate",
    response_model=ComplianceEvaluationResponse,
    summary="Evaluate Trade Compliance",
    description=(
        "Evaluate a trade against an ordered list of strategy rules.\n\n"
        "Rules with unknown types are skipped. The response always contains "
        "every evaluated rule; the caller decides whether to block or warn."
    ),
    tags=["Compliance"]
)
async def evaluate_compliance(
    request: EvaluateComplianceRequest,
    service: ComplianceService = Depends(get_compliance_service)
) -> ComplianceEvaluationResponse:
    correlation_id = request.correlation_id or str(uuid.uuid4())
    rules = service.load_rules(rule.to_record() for rule in request.rules)
    result = service.evaluate(
        request.trade.to_trade(),
        rules,
        request.trade_inputs,
        correlation_id,
    )
    return _to_response(result, correlation_id)


@router.post(
    "/trades/{trade_id}/evaluate",
    response_model=ComplianceEvaluationResponse,
    summary="Evaluate Stored Trade",
    responses={
        404: {"description": "Trade not found (CMP-010)"},
        503: {"description": "Repository unavailable (CMP-011)"},
    },
    tags=["Compliance"]
)
async def evaluate_stored_trade(
    trade_id: int,
    strategy_id: int = Query(..., alias="strategyId"),
    trade_inputs: Optional[TradeInputs] = None,
    service: ComplianceService = Depends(get_compliance_service)
) -> ComplianceEvaluationResponse:
    correlation_id = str(uuid.uuid4())
    try:
        result = service.evaluate_stored_trade(
            trade_id, strategy_id, trade_inputs, correlation_id
        )
    except ComplianceServiceError as e:
        status_code = 404 if e.error_code == ComplianceServiceErrorCode.TRADE_NOT_FOUND else 503
        logger.warning(
            f"[{e.error_code}] Stored trade evaluation failed | "
            f"trade_id={trade_id} | strategy_id={strategy_id} | error={e.message}"
        )
        raise HTTPException(
            status_code=status_code,
            detail={"error_code": e.error_code, "message": e.message}
        )
    return _to_response(result, correlation_id)
