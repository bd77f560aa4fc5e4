"""
Schemas - Trade, TradeInputs and StrategyRule records.
"""

from journal.schemas.trade import Trade, TradeInputs
from journal.schemas.strategy_rule import StrategyRule

__all__ = ["Trade", "TradeInputs", "StrategyRule"]
