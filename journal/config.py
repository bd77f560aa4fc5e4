"""
============================================================================
Trade Journal Compliance v1.0.0
Compliance Configuration
============================================================================

Reliability Level: L6 Critical
Side Effects: Reads environment variables, logs configuration on load

ENVIRONMENT VARIABLES:
    - COMPLIANCE_TIME_WINDOW_MISSING_INPUT: "pass" or "fail" (default: pass)
    - COMPLIANCE_TIME_WINDOW_WRAP_OVERNIGHT: treat a window whose start is
      after its end as running past midnight (default: false)
    - COMPLIANCE_DERIVE_TRADE_CONTEXT: derive session/time from the
      trade timestamp when the caller omits them (default: false)
    - COMPLIANCE_METRICS_ENABLED: record Prometheus metrics (default: true)
    - COMPLIANCE_LOG_LEVEL: root log level for the API app (default: INFO)

ERROR CODES:
    - CFG-001: Invalid configuration value

============================================================================
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from journal.logic.compliance_engine import EvaluationPolicy

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Error Codes
# =============================================================================

class ComplianceConfigErrorCode:
    """Configuration error codes for audit logging."""
    CONFIG_INVALID = "CFG-001"


# =============================================================================
# Default Values
# =============================================================================

TIME_WINDOW_PASS = "pass"
TIME_WINDOW_FAIL = "fail"
VALID_TIME_WINDOW_POLICIES = frozenset([TIME_WINDOW_PASS, TIME_WINDOW_FAIL])
VALID_LOG_LEVELS = frozenset(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])

DEFAULT_TIME_WINDOW_MISSING_INPUT = TIME_WINDOW_PASS
DEFAULT_TIME_WINDOW_WRAP_OVERNIGHT = False
DEFAULT_DERIVE_TRADE_CONTEXT = False
DEFAULT_METRICS_ENABLED = True
DEFAULT_LOG_LEVEL = "INFO"

TRUTHY_STRINGS = ("true", "1", "yes", "on")


# =============================================================================
# Configuration Exception
# =============================================================================

class ComplianceConfigurationError(Exception):
    """Raised when compliance configuration is invalid."""

    def __init__(self, message: str, error_code: str = ComplianceConfigErrorCode.CONFIG_INVALID):
        self.error_code = error_code
        self.message = message
        super().__init__(f"[{error_code}] {message}")


# =============================================================================
# ComplianceConfig
# =============================================================================

@dataclass
class ComplianceConfig:
    """
    Compliance engine configuration.

    Reliability Level: L6 Critical
    Input Constraints: time_window_missing_input in {"pass", "fail"}
    Side Effects: Logs configuration on validation
    """

    time_window_missing_input: str = DEFAULT_TIME_WINDOW_MISSING_INPUT
    time_window_wrap_overnight: bool = DEFAULT_TIME_WINDOW_WRAP_OVERNIGHT
    derive_trade_context: bool = DEFAULT_DERIVE_TRADE_CONTEXT
    metrics_enabled: bool = DEFAULT_METRICS_ENABLED
    log_level: str = DEFAULT_LOG_LEVEL

    def __post_init__(self) -> None:
        self.time_window_missing_input = self.time_window_missing_input.strip().lower()
        self.log_level = self.log_level.strip().upper()

    @property
    def evaluation_policy(self) -> EvaluationPolicy:
        return EvaluationPolicy(
            missing_trade_time_passes=self.time_window_missing_input == TIME_WINDOW_PASS,
            wrap_overnight_windows=self.time_window_wrap_overnight,
        )

    def validate(self) -> None:
        """
        Raise ComplianceConfigurationError (CFG-001) on invalid values.
        """
        errors: List[str] = []

        if self.time_window_missing_input not in VALID_TIME_WINDOW_POLICIES:
            errors.append(
                "COMPLIANCE_TIME_WINDOW_MISSING_INPUT must be 'pass' or 'fail', "
                f"got: {self.time_window_missing_input!r}"
            )

        if self.log_level not in VALID_LOG_LEVELS:
            errors.append(
                f"COMPLIANCE_LOG_LEVEL must be one of {sorted(VALID_LOG_LEVELS)}, "
                f"got: {self.log_level!r}"
            )

        if errors:
            error_msg = "Compliance configuration validation failed: " + "; ".join(errors)
            logger.error(f"[{ComplianceConfigErrorCode.CONFIG_INVALID}] {error_msg}")
            raise ComplianceConfigurationError(error_msg)

        logger.info(
            f"[COMPLIANCE-CONFIG] Configuration validated | "
            f"time_window_missing_input={self.time_window_missing_input} | "
            f"time_window_wrap_overnight={self.time_window_wrap_overnight} | "
            f"derive_trade_context={self.derive_trade_context} | "
            f"metrics_enabled={self.metrics_enabled} | "
            f"log_level={self.log_level}"
        )

    @classmethod
    def from_environment(cls, validate: bool = True) -> "ComplianceConfig":
        """
        Load configuration from environment variables.

        Args:
            validate: Whether to validate after loading (default: True)

        Raises:
            ComplianceConfigurationError: If a value is invalid (CFG-001)
        """
        config = cls(
            time_window_missing_input=os.environ.get(
                "COMPLIANCE_TIME_WINDOW_MISSING_INPUT", DEFAULT_TIME_WINDOW_MISSING_INPUT
            ),
            time_window_wrap_overnight=_read_bool(
                "COMPLIANCE_TIME_WINDOW_WRAP_OVERNIGHT", DEFAULT_TIME_WINDOW_WRAP_OVERNIGHT
            ),
            derive_trade_context=_read_bool(
                "COMPLIANCE_DERIVE_TRADE_CONTEXT", DEFAULT_DERIVE_TRADE_CONTEXT
            ),
            metrics_enabled=_read_bool(
                "COMPLIANCE_METRICS_ENABLED", DEFAULT_METRICS_ENABLED
            ),
            log_level=os.environ.get("COMPLIANCE_LOG_LEVEL", DEFAULT_LOG_LEVEL),
        )

        logger.info(
            f"[COMPLIANCE-CONFIG] Loading configuration from environment | "
            f"COMPLIANCE_TIME_WINDOW_MISSING_INPUT={config.time_window_missing_input} | "
            f"COMPLIANCE_TIME_WINDOW_WRAP_OVERNIGHT={config.time_window_wrap_overnight} | "
            f"COMPLIANCE_DERIVE_TRADE_CONTEXT={config.derive_trade_context} | "
            f"COMPLIANCE_METRICS_ENABLED={config.metrics_enabled}"
        )

        if validate:
            config.validate()

        return config

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time_window_missing_input": self.time_window_missing_input,
            "time_window_wrap_overnight": self.time_window_wrap_overnight,
            "derive_trade_context": self.derive_trade_context,
            "metrics_enabled": self.metrics_enabled,
            "log_level": self.log_level,
        }


def _read_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in TRUTHY_STRINGS


# =============================================================================
# Module-Level Configuration Instance
# =============================================================================

_config_instance: Optional[ComplianceConfig] = None


def get_compliance_config(validate: bool = True) -> ComplianceConfig:
    """Get the process configuration, loading it from the environment on first use."""
    global _config_instance

    if _config_instance is None:
        _config_instance = ComplianceConfig.from_environment(validate=validate)

    return _config_instance


def reset_compliance_config() -> None:
    """Drop the cached configuration. Used by tests."""
    global _config_instance
    _config_instance = None
    logger.debug("[COMPLIANCE-CONFIG] Configuration instance reset")
