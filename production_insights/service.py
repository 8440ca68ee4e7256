"""
Insight Service
Description: Fetches snapshots from a record store and runs the analyzers.
Stateless apart from its injected collaborators; every call is independent.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from production_insights.config import AnalyticsConfig
from production_insights.consumption import analyze_consumption
from production_insights.delivery import PredictorLike, RegressionLeadTimePredictor, as_predictor, estimate_delivery
from production_insights.efficiency import analyze_efficiency
from production_insights.errors import DataUnavailable, StoreUnavailable
from production_insights.models import (
    COMPLETED, CRITICAL, HIGH,
    ConsumptionRecord, DeliveryEstimate, EfficiencyReport, InsightDigest,
    OptimizationSuggestion, Order, ProductionRun, RiskRecord,
)
from production_insights.planning import suggest_production_optimizations
from production_insights.risk import score_delay_risk, score_supply_risk
from production_insights.store import (
    MATERIALS, ORDERS, PRODUCTION,
    Predicate, RecordStore, all_of, field_between, field_equals, status_in, status_not_in,
)
from production_insights.utils import as_naive_utc, months_after, months_before

logger = logging.getLogger(__name__)


class InsightService:
    """
    Runs analyses against a record store.

    Usage:
        service = InsightService(CsvRecordStore("data"))
        risks = await service.delay_risks()
        estimate = service.estimate_delivery("RM 36 LB", 4)
    """

    def __init__(self,
                 store: RecordStore,
                 config: Optional[AnalyticsConfig] = None,
                 predictors: Optional[Sequence[PredictorLike]] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.config = config or AnalyticsConfig()
        self.predictors = list(predictors or [])
        self.clock = clock

    # Store access

    async def _fetch(self, entity: str, predicate: Optional[Predicate] = None) -> List[Any]:
        """Top-level query; any failure means the store is unavailable"""
        try:
            return await self.store.query(entity, predicate)
        except StoreUnavailable:
            raise
        except Exception as exc:
            raise StoreUnavailable(entity, f"Query on '{entity}' failed: {exc}") from exc

    async def _fan_out(self,
                       orders: Sequence[Order],
                       entity: str,
                       predicate_for: Callable[[Order], Predicate]) -> Dict[str, List[Any]]:
        """
        Issue one sub-query per order, at most config.max_concurrency at a time.

        A failed sub-query yields an empty list for that order. Results are keyed
        by order id only after every sub-query has finished.
        """
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def fetch_one(order: Order) -> List[Any]:
            async with semaphore:
                try:
                    return await self.store.query(entity, predicate_for(order))
                except Exception as exc:
                    error = DataUnavailable(entity, order.id, f"Could not fetch {entity} for order {order.id}: {exc}")
                    logger.warning("%s, assuming none", error)
                    return []

        results = await asyncio.gather(*(fetch_one(order) for order in orders))
        return {order.id: result for order, result in zip(orders, results)}

    def _now(self, now: Optional[datetime]) -> datetime:
        """Reference time; timezone-aware values are converted to naive UTC"""
        return as_naive_utc(now if now is not None else self.clock())

    # Analyses

    async def supply_risks(self, now: Optional[datetime] = None) -> List[RiskRecord]:
        now = self._now(now)
        materials = await self._fetch(MATERIALS, field_equals("in_stock", False))
        return score_supply_risk(materials, now)

    async def delay_risks(self, now: Optional[datetime] = None) -> List[RiskRecord]:
        now = self._now(now)
        orders = await self._fetch(ORDERS, status_not_in(COMPLETED))
        missing = await self._fan_out(
            orders, MATERIALS,
            lambda order: all_of(field_equals("order_id", order.id), field_equals("in_stock", False)),
        )
        return score_delay_risk(orders, missing, now, self.config)

    async def _completed_orders_since(self, since: datetime) -> List[Order]:
        return await self._fetch(
            ORDERS,
            all_of(status_in(COMPLETED), field_between("completion_date", lower=since)),
        )

    async def material_consumption(self, now: Optional[datetime] = None) -> List[ConsumptionRecord]:
        now = self._now(now)
        orders = await self._completed_orders_since(months_before(now, self.config.consumption_lookback_months))
        materials = await self._fan_out(orders, MATERIALS, lambda order: field_equals("order_id", order.id))
        return analyze_consumption(orders, materials, now, self.config)

    async def _production_runs(self, orders: Sequence[Order]) -> Dict[str, Optional[ProductionRun]]:
        runs = await self._fan_out(orders, PRODUCTION, lambda order: field_equals("order_id", order.id))
        # at most one run per order is expected; extra runs are ignored
        return {order_id: (found[0] if found else None) for order_id, found in runs.items()}

    async def production_efficiency(self, now: Optional[datetime] = None) -> EfficiencyReport:
        now = self._now(now)
        orders = await self._completed_orders_since(months_before(now, self.config.efficiency_lookback_months))
        runs = await self._production_runs(orders)
        return analyze_efficiency(orders, runs, now, self.config)

    async def production_optimizations(self, now: Optional[datetime] = None) -> List[OptimizationSuggestion]:
        now = self._now(now)
        window_end = months_after(now, self.config.optimization_window_months)
        orders = await self._fetch(
            ORDERS,
            all_of(
                status_not_in(COMPLETED),
                field_between("delivery_date", lower=now, upper=window_end, lower_inclusive=False),
            ),
        )
        return suggest_production_optimizations(orders, now, self.config)

    async def fit_lead_time_predictor(self, now: Optional[datetime] = None) -> RegressionLeadTimePredictor:
        """Fit a regression predictor on completed orders of the consumption window"""
        now = self._now(now)
        orders = await self._completed_orders_since(months_before(now, self.config.consumption_lookback_months))
        runs = await self._production_runs(orders)
        return RegressionLeadTimePredictor(self.config).fit(orders, runs)

    def estimate_delivery(self, cell_type: Optional[str], quantity: Any,
                          now: Optional[datetime] = None,
                          predictors: Optional[Sequence[PredictorLike]] = None) -> DeliveryEstimate:
        predictors = self.predictors if predictors is None else list(predictors)
        return estimate_delivery(
            cell_type, quantity, self._now(now),
            ml_predictor=as_predictor(predictors) if predictors else None,
            config=self.config,
        )

    async def insight_digest(self, now: Optional[datetime] = None) -> InsightDigest:
        """
        Collect the headline item of each analysis.

        Supply, optimization and delay analyses must succeed; a failing
        efficiency analysis only leaves its part of the digest empty.
        """
        now = self._now(now)
        supply, optimizations, delays = await asyncio.gather(
            self.supply_risks(now),
            self.production_optimizations(now),
            self.delay_risks(now),
        )

        digest = InsightDigest(
            generated_at=now,
            critical_supply_risk=next((r for r in supply if r.risk_level == CRITICAL), None),
            high_delay_risk=next((r for r in delays if r.risk_level == HIGH), None),
            top_optimization=optimizations[0] if optimizations else None,
        )

        try:
            efficiency = await self.production_efficiency(now)
        except StoreUnavailable as exc:
            logger.warning("Efficiency analysis unavailable for digest: %s", exc)
        else:
            digest.analyzed_orders = efficiency.total_orders
            digest.avg_production_time = efficiency.avg_production_time
            if efficiency.improvement_suggestions:
                digest.top_improvement = efficiency.improvement_suggestions[0]

        return digest
