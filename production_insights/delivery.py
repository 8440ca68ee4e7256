"""
Delivery Estimator
Description: Lead-time estimation for new orders. A deterministic formula is
always available; optional predictors are tried first, in order.
"""

import logging
import math
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Sequence, Union

import numpy as np
from scipy import stats

from production_insights.config import AnalyticsConfig
from production_insights.errors import PredictorUnavailable
from production_insights.models import DeliveryEstimate, Order, PredictorEstimate, ProductionRun
from production_insights.utils import add_days, ceil_days

logger = logging.getLogger(__name__)

FORMULA_METHOD = "formula"


class LeadTimePredictor(ABC):
    """
    Interface for anything that can estimate total lead time for an order.

    predict() returns a PredictorEstimate or raises PredictorUnavailable.
    """

    name = "predictor"

    @abstractmethod
    def predict(self, order_details: Mapping[str, Any]) -> PredictorEstimate:
        ...


class CallablePredictor(LeadTimePredictor):
    """Adapts a plain function returning a PredictorEstimate or a dict"""

    def __init__(self, func: Callable[[Mapping[str, Any]], Any], name: Optional[str] = None):
        self.func = func
        self.name = name or getattr(func, "__name__", "callable")

    def predict(self, order_details: Mapping[str, Any]) -> PredictorEstimate:
        result = self.func(order_details)
        if result is None:
            raise PredictorUnavailable(f"{self.name} returned no estimate")
        if isinstance(result, PredictorEstimate):
            return result
        if isinstance(result, Mapping):
            days = result.get("estimated_days", result.get("estimatedDays"))
            if days is None:
                raise PredictorUnavailable(f"{self.name} returned no estimated_days")
            return PredictorEstimate(
                estimated_days=days,
                confidence=result.get("confidence"),
                method=result.get("method", self.name),
            )
        raise PredictorUnavailable(f"{self.name} returned unsupported {type(result).__name__}")


class PredictorChain(LeadTimePredictor):
    """Tries predictors in order and returns the first usable estimate"""

    name = "chain"

    def __init__(self, predictors: Iterable[LeadTimePredictor]):
        self.predictors = list(predictors)

    def predict(self, order_details: Mapping[str, Any]) -> PredictorEstimate:
        for predictor in self.predictors:
            try:
                estimate = predictor.predict(order_details)
                _validate_estimate(estimate, predictor.name)
                return estimate
            except PredictorUnavailable as exc:
                logger.info("Predictor %s unavailable: %s", predictor.name, exc)
            except Exception:
                logger.warning("Predictor %s failed", predictor.name, exc_info=True)
        raise PredictorUnavailable("No predictor produced an estimate")


class RegressionLeadTimePredictor(LeadTimePredictor):
    """
    Linear fit of production days against log2(cell_count + 1).

    Trained on completed orders that have a production run. The estimate adds
    the configured supply and test periods around the predicted production days;
    confidence is the r-squared of the fit.
    """

    name = "regression"

    def __init__(self, config: Optional[AnalyticsConfig] = None):
        self.config = config or AnalyticsConfig()
        self.slope: Optional[float] = None
        self.intercept: Optional[float] = None
        self.r_squared: Optional[float] = None
        self.sample_count = 0

    @property
    def is_fitted(self) -> bool:
        return self.slope is not None

    def fit(self, orders: Iterable[Order],
            runs_by_order: Mapping[str, Optional[ProductionRun]]) -> "RegressionLeadTimePredictor":
        features = []
        targets = []
        for order in orders:
            run = runs_by_order.get(order.id)
            if not order.is_completed or run is None:
                continue
            if run.start_date is None or run.end_date is None:
                continue
            features.append(math.log2((order.cell_count or 1) + 1))
            targets.append(ceil_days(run.start_date, run.end_date))

        self.sample_count = len(features)
        if self.sample_count < self.config.min_regression_samples:
            logger.info(
                "Not fitting lead time regression: %d samples, %d required",
                self.sample_count, self.config.min_regression_samples
            )
            return self

        x = np.asarray(features, dtype=float)
        y = np.asarray(targets, dtype=float)
        if np.ptp(x) == 0:
            logger.info("Not fitting lead time regression: all orders have the same cell count")
            return self

        fit = stats.linregress(x, y)
        self.slope = float(fit.slope)
        self.intercept = float(fit.intercept)
        self.r_squared = float(fit.rvalue ** 2) if np.isfinite(fit.rvalue) else 0.0
        logger.info(
            "Fitted lead time regression on %d orders (slope=%.2f, intercept=%.2f, r2=%.3f)",
            self.sample_count, self.slope, self.intercept, self.r_squared
        )
        return self

    def predict(self, order_details: Mapping[str, Any]) -> PredictorEstimate:
        if not self.is_fitted:
            raise PredictorUnavailable("regression model is not fitted")
        quantity = _clean_quantity(order_details.get("cell_count", order_details.get("quantity")))
        production_days = max(0.0, self.intercept + self.slope * math.log2(quantity + 1))
        return PredictorEstimate(
            estimated_days=self.config.supply_time_days + production_days + self.config.test_time_days,
            confidence=round(self.r_squared, 3),
            method=self.name,
        )


def _validate_estimate(estimate: PredictorEstimate, name: str):
    days = estimate.estimated_days if isinstance(estimate, PredictorEstimate) else None
    if days is None or isinstance(days, bool):
        raise PredictorUnavailable(f"{name} returned an invalid estimate")
    try:
        days = float(days)
    except (TypeError, ValueError):
        raise PredictorUnavailable(f"{name} returned a non-numeric estimate")
    if not math.isfinite(days) or days < 0:
        raise PredictorUnavailable(f"{name} returned an out of range estimate: {days}")


def _clean_quantity(quantity: Any) -> float:
    try:
        value = float(quantity)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value) or value < 0:
        return 0.0
    return value


def formula_estimate(cell_type: Optional[str],
                     quantity: Any,
                     now: datetime,
                     config: Optional[AnalyticsConfig] = None) -> DeliveryEstimate:
    """
    Deterministic lead time:

        supply + base production time (by cell type) + log2(quantity + 1) x 5 + test

    Missing or negative quantities count as zero.
    """
    config = config or AnalyticsConfig()
    cleaned = _clean_quantity(quantity)
    if cleaned != quantity:
        logger.debug("Quantity %r treated as %s", quantity, cleaned)

    base_time = config.production_days_for(cell_type)
    quantity_factor = math.log2(cleaned + 1) * config.quantity_factor_weight
    total_days = config.supply_time_days + base_time + quantity_factor + config.test_time_days
    estimated_days = math.ceil(total_days)

    return DeliveryEstimate(
        estimated_days=estimated_days,
        estimated_delivery_date=add_days(now, estimated_days),
        method=FORMULA_METHOD,
        supply_period=config.supply_time_days,
        production_period=base_time + quantity_factor,
        test_period=config.test_time_days,
    )


PredictorLike = Union[LeadTimePredictor, Callable[[Mapping[str, Any]], Any]]


def as_predictor(predictor: Optional[Union[PredictorLike, Sequence[PredictorLike]]]) -> Optional[LeadTimePredictor]:
    """Normalize a predictor, a callable or a list of either into one predictor"""
    if predictor is None:
        return None
    if isinstance(predictor, LeadTimePredictor):
        return predictor
    if isinstance(predictor, (list, tuple)):
        return PredictorChain(as_predictor(p) for p in predictor)
    if callable(predictor):
        return CallablePredictor(predictor)
    raise TypeError(f"Unsupported predictor: {predictor!r}")


def estimate_delivery(cell_type: Optional[str],
                      quantity: Any,
                      now: datetime,
                      ml_predictor: Optional[Union[PredictorLike, Sequence[PredictorLike]]] = None,
                      config: Optional[AnalyticsConfig] = None) -> DeliveryEstimate:
    """
    Estimate lead time and delivery date for an order.

    Args:
        cell_type: Product family, e.g. "RM 36 LB"
        quantity: Number of cells
        now: Reference time
        ml_predictor: Optional predictor, callable, or ordered list of them
        config: Production time table and fixed periods

    Returns:
        DeliveryEstimate from the first working predictor, else from the formula
    """
    config = config or AnalyticsConfig()
    predictor = as_predictor(ml_predictor)

    if predictor is not None:
        order_details: Dict[str, Any] = {
            "cell_type": cell_type,
            "cell_count": quantity,
            "quantity": quantity,
        }
        try:
            estimate = predictor.predict(order_details)
            _validate_estimate(estimate, predictor.name)
        except PredictorUnavailable as exc:
            logger.info("Falling back to lead time formula: %s", exc)
        except Exception:
            logger.warning("Lead time predictor %s failed, using formula", predictor.name, exc_info=True)
        else:
            estimated_days = math.ceil(float(estimate.estimated_days))
            return DeliveryEstimate(
                estimated_days=estimated_days,
                estimated_delivery_date=add_days(now, estimated_days),
                method=estimate.method,
                confidence=estimate.confidence,
            )

    return formula_estimate(cell_type, quantity, now, config)
