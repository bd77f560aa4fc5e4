"""
============================================================================
Trade Journal Compliance v1.0.0
Trade Schemas - Stored Trade Record & Situational Inputs
============================================================================

Reliability Level: L6 Critical
Input Constraints: Numeric columns arrive as strings or Decimal, never float math
Side Effects: None

Trade is the read-only record returned by the journal store. TradeInputs
holds request-time facts that are not stored on the trade; any field set on
TradeInputs takes precedence over the matching trade field.

============================================================================
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from journal.logic.rule_values import parse_decimal
from journal.logic.sessions import classify_session, format_trade_time


# =============================================================================
# Trade Record
# =============================================================================

@dataclass(frozen=True)
class Trade:
    """
    Journal trade as retrieved from storage.

    Reliability Level: L6 Critical
    Input Constraints: Price-like fields hold numeric strings (or None)
    Side Effects: None (immutable)
    """
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

    @property
    def has_stop_loss(self) -> bool:
        return _is_present(self.stop_loss)

    @property
    def has_take_profit(self) -> bool:
        return _is_present(self.take_profit)

    @property
    def risk_reward_value(self) -> Optional[Decimal]:
        """Stored risk:reward as Decimal, or None when absent or unparseable."""
        return parse_decimal(self.risk_reward)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Trade":
        """Build from a storage row keyed in snake_case or camelCase."""
        created_at = _pick(record, "created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
        return cls(
            id=_pick(record, "id"),
            pair=_pick(record, "pair"),
            direction=_pick(record, "direction"),
            entry_price=_as_text(_pick(record, "entry_price")),
            stop_loss=_as_text(_pick(record, "stop_loss")),
            take_profit=_as_text(_pick(record, "take_profit")),
            risk_reward=_as_text(_pick(record, "risk_reward")),
            htf_bias_clear=_pick(record, "htf_bias_clear"),
            entry_confirmed=_pick(record, "entry_confirmed"),
            outcome=_pick(record, "outcome"),
            created_at=created_at,
        )


def _is_present(value: Optional[str]) -> bool:
    return value is not None and str(value).strip() != ""


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _pick(record: Mapping[str, Any], snake_key: str) -> Any:
    if snake_key in record:
        return record[snake_key]
    return record.get(to_camel(snake_key))


# =============================================================================
# Situational Inputs
# =============================================================================

class TradeInputs(BaseModel):
    """
    Caller-supplied facts about a trade that the stored record lacks.

    Reliability Level: L6 Critical
    Input Constraints: Numbers parse to finite Decimal; trades_today >= 0
    Side Effects: None (immutable)

    Accepts camelCase aliases (riskPercent, tradeTime, ...) as well as the
    snake_case field names. trade_time is deliberately unvalidated: a
    malformed value must reach the engine, which treats it as non-blocking.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    entry_confirmation_present: Optional[bool] = None
    setup_present: Optional[bool] = None
    personal_model_confirmed: Optional[bool] = None
    stop_loss_set: Optional[bool] = None
    take_profit_set: Optional[bool] = None
    risk_percent: Optional[Decimal] = None
    risk_reward: Optional[Decimal] = None
    trades_today: Optional[int] = Field(default=None, ge=0)
    current_session: Optional[str] = None
    trade_time: Optional[str] = None
    directional_bias_present: Optional[bool] = None

    @field_validator("risk_percent", "risk_reward", mode="before")
    @classmethod
    def validate_decimal(cls, v: Any) -> Optional[Decimal]:
        """Coerce to a finite Decimal; floats go through str()."""
        if v is None:
            return None
        parsed = parse_decimal(v)
        if parsed is None:
            raise ValueError(f"must be a finite number, got {v!r}")
        return parsed

    def with_trade_context(self, trade: Trade) -> "TradeInputs":
        """
        Fill current_session and trade_time from trade.created_at.

        Fields the caller already set are left untouched. Returns self when
        the trade carries no timestamp.
        """
        if trade.created_at is None:
            return self
        update: Dict[str, Any] = {}
        if self.current_session is None:
            update["current_session"] = classify_session(trade.created_at).value
        if self.trade_time is None:
            update["trade_time"] = format_trade_time(trade.created_at)
        if not update:
            return self
        return self.model_copy(update=update)
