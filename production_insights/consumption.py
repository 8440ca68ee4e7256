"""
Material Consumption & Forecast Analyzer
Description: Aggregates material usage of completed orders into monthly and
cell-type buckets, classifies the recent trend and forecasts the next quarter
"""

import logging
import math
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from production_insights.config import AnalyticsConfig
from production_insights.errors import InvalidRecord
from production_insights.models import (
    DECREASING, INCREASING, INSUFFICIENT_DATA, STABLE, UNSPECIFIED_CELL_TYPE,
    ConsumptionRecord, Material, Order, require_field,
)
from production_insights.utils import month_key, months_before

logger = logging.getLogger(__name__)


def forecast_next_three_months(usage_by_month: Mapping[str, float], months: int = 3) -> int:
    """ceil(mean monthly usage x months); only months present in the mapping count"""
    if not usage_by_month:
        return 0
    monthly_usage = list(usage_by_month.values())
    avg_monthly_usage = sum(monthly_usage) / len(monthly_usage)
    return math.ceil(avg_monthly_usage * months)


def classify_trend(usage_by_month: Mapping[str, float], band: float = 0.1) -> str:
    """
    Compare the latest of the last three months against the earliest of them.

    Args:
        usage_by_month: Usage keyed by "YYYY-MM"
        band: Relative change that counts as movement (0.1 = 10%)

    Returns:
        increasing / decreasing / stable, or insufficient_data below three months
    """
    month_keys = sorted(usage_by_month)
    if len(month_keys) < 3:
        return INSUFFICIENT_DATA

    last_three_months = month_keys[-3:]
    first_month_usage = usage_by_month[last_three_months[0]]
    last_month_usage = usage_by_month[last_three_months[2]]

    if last_month_usage > first_month_usage * (1 + band):
        return INCREASING
    elif last_month_usage < first_month_usage * (1 - band):
        return DECREASING
    return STABLE


def _usage_rows(orders: Iterable[Order],
                materials_by_order: Dict[str, Sequence[Material]],
                cutoff: datetime) -> List[dict]:
    """One row per material line of every completed order inside the window"""
    rows = []
    for order in orders:
        if not order.is_completed:
            continue
        try:
            completed_at = require_field(order.completion_date, "Order", order.id, "completion_date")
        except InvalidRecord as exc:
            logger.warning("Skipping order in consumption analysis: %s", exc)
            continue
        if completed_at < cutoff:
            continue

        month = month_key(completed_at)
        for material in materials_by_order.get(order.id, ()):
            rows.append({
                'material_code': material.code,
                'name': material.name,
                'quantity': material.quantity,
                'month': month,
                'cell_type': order.cell_type or UNSPECIFIED_CELL_TYPE,
            })
    return rows


def analyze_consumption(orders: Iterable[Order],
                        materials_by_order: Dict[str, Sequence[Material]],
                        now: datetime,
                        config: Optional[AnalyticsConfig] = None) -> List[ConsumptionRecord]:
    """
    Analyze material consumption over the trailing lookback window.

    Args:
        orders: Order snapshots; only completed orders inside the window count
        materials_by_order: Materials keyed by order id
        now: Reference time
        config: Lookback window, forecast horizon and trend band

    Returns:
        One ConsumptionRecord per material code, in first-seen order
    """
    config = config or AnalyticsConfig()
    cutoff = months_before(now, config.consumption_lookback_months)

    rows = _usage_rows(orders, materials_by_order, cutoff)
    if not rows:
        logger.info("No completed orders with materials since %s", cutoff.date())
        return []

    usage = pd.DataFrame(rows)

    # sort=False keeps material codes (and buckets) in the order they were first seen
    totals = usage.groupby('material_code', sort=False).agg(
        name=('name', 'first'),
        total_quantity=('quantity', 'sum'),
    )
    by_month = usage.groupby(['material_code', 'month'], sort=False)['quantity'].sum()
    by_cell_type = usage.groupby(['material_code', 'cell_type'], sort=False)['quantity'].sum()

    records = []
    for code, summary in totals.iterrows():
        usage_by_month = {month: float(qty) for month, qty in by_month.loc[code].items()}
        usage_by_cell_type = {cell_type: float(qty) for cell_type, qty in by_cell_type.loc[code].items()}

        records.append(ConsumptionRecord(
            material_code=code,
            name=summary['name'],
            total_quantity=float(summary['total_quantity']),
            usage_by_month=usage_by_month,
            usage_by_cell_type=usage_by_cell_type,
            forecast_next_three_months=forecast_next_three_months(usage_by_month, config.forecast_months),
            trend=classify_trend(usage_by_month, config.trend_band),
        ))

    logger.info("Analyzed consumption of %d materials across %d usage lines", len(records), len(usage))
    return records


def consumption_to_frame(records: Sequence[ConsumptionRecord]) -> pd.DataFrame:
    """Summary table: one row per material"""
    columns = ['material_code', 'name', 'total_quantity', 'months_observed',
               'forecast_next_three_months', 'trend']
    return pd.DataFrame([{
        'material_code': r.material_code,
        'name': r.name,
        'total_quantity': r.total_quantity,
        'months_observed': len(r.usage_by_month),
        'forecast_next_three_months': r.forecast_next_three_months,
        'trend': r.trend,
    } for r in records], columns=columns)


def monthly_usage_to_frame(records: Sequence[ConsumptionRecord]) -> pd.DataFrame:
    """Long-format monthly usage, sorted by material and month"""
    rows = [
        {'material_code': r.material_code, 'month': month, 'quantity': qty}
        for r in records
        for month, qty in r.usage_by_month.items()
    ]
    frame = pd.DataFrame(rows, columns=['material_code', 'month', 'quantity'])
    return frame.sort_values(['material_code', 'month']).reset_index(drop=True)
