"""
============================================================================
Trade Journal Compliance v1.0.0
============================================================================

Strategy compliance evaluation for a trading journal: checks an executed
trade against the user's configured strategy rules and reports per-rule
verdicts.

============================================================================
"""

__version__ = "1.0.0"
