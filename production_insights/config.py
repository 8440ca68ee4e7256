"""
Analytics Configuration
Description: Thresholds, weights and lookback windows used by the insight analyzers
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields, asdict
from typing import Dict, Optional, Tuple

from production_insights.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PRODUCTION_INSIGHTS_CONFIG"

BOTTLENECK_POLICIES = ("last", "mean")


def _default_production_days() -> Dict[str, int]:
    return {
        "RM 36 LB": 15,
        "RM 36 CB": 18,
        "RM 36 FL": 20,
    }


@dataclass
class AnalyticsConfig:
    """Container for every tunable constant of the analytics pipeline"""

    # Delivery estimation (days)
    supply_time_days: int = 10
    test_time_days: int = 5
    default_production_days: int = 20
    production_days_by_cell_type: Dict[str, int] = field(default_factory=_default_production_days)
    quantity_factor_weight: float = 5.0

    # Delay risk scoring
    missing_material_weight: int = 10
    planning_window_days: int = 20
    planning_penalty: int = 30
    waiting_window_days: int = 15
    waiting_penalty: int = 20
    previous_delay_weight: int = 5
    high_risk_score: int = 50
    medium_risk_score: int = 20

    # Consumption analysis
    consumption_lookback_months: int = 6
    forecast_months: int = 3
    trend_band: float = 0.1

    # Production efficiency
    efficiency_lookback_months: int = 3
    departments: Tuple[str, ...] = ("design", "assembly", "wiring", "testing")
    bottleneck_threshold: float = 1.2
    low_efficiency_threshold: float = 0.85
    bottleneck_delay_policy: str = "last"

    # Production batching
    optimization_window_months: int = 1
    batch_savings_per_order: float = 0.8

    # Service / predictors
    max_concurrency: int = 8
    min_regression_samples: int = 10

    def __post_init__(self):
        self.departments = tuple(self.departments)
        self.validate()

    def validate(self):
        """Raise ConfigError when a value is out of range"""
        if self.bottleneck_delay_policy not in BOTTLENECK_POLICIES:
            raise ConfigError(
                f"bottleneck_delay_policy must be one of {BOTTLENECK_POLICIES}, "
                f"got {self.bottleneck_delay_policy!r}"
            )
        if self.max_concurrency < 1:
            raise ConfigError("max_concurrency must be at least 1")
        if self.medium_risk_score > self.high_risk_score:
            raise ConfigError("medium_risk_score cannot exceed high_risk_score")
        if not self.departments:
            raise ConfigError("at least one department is required")
        for name in ("consumption_lookback_months", "efficiency_lookback_months",
                     "optimization_window_months", "forecast_months"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be at least 1")
        if self.bottleneck_threshold <= 0 or self.low_efficiency_threshold <= 0:
            raise ConfigError("efficiency thresholds must be positive")
        if not 0 <= self.trend_band < 1:
            raise ConfigError("trend_band must be in [0, 1)")

    def production_days_for(self, cell_type: Optional[str]) -> int:
        """Base production time for a cell type, falling back to the default"""
        return self.production_days_by_cell_type.get(cell_type, self.default_production_days)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["departments"] = list(self.departments)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "AnalyticsConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
        try:
            return cls(**data)
        except TypeError as exc:
            raise ConfigError(str(exc)) from exc


def load_config(path: Optional[str] = None) -> AnalyticsConfig:
    """
    Load configuration from a JSON file overlaid on the defaults.

    Args:
        path: JSON file path; falls back to $PRODUCTION_INSIGHTS_CONFIG

    Returns:
        Validated AnalyticsConfig
    """
    path = path or os.environ.get(CONFIG_ENV_VAR)
    if not path:
        return AnalyticsConfig()

    try:
        with open(path) as f:
            overrides = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read configuration file {path}: {exc}") from exc

    if not isinstance(overrides, dict):
        raise ConfigError(f"Configuration file {path} must contain a JSON object")

    logger.info("Loaded analytics configuration from %s", path)
    return AnalyticsConfig.from_dict(overrides)
