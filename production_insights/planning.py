"""
Production Planner
Description: Suggests combining production of same-type orders due next month
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import pandas as pd

from production_insights.config import AnalyticsConfig
from production_insights.models import UNSPECIFIED_CELL_TYPE, Order, OptimizationSuggestion
from production_insights.utils import months_after, round_half_up

logger = logging.getLogger(__name__)


def suggest_production_optimizations(orders: Iterable[Order],
                                     now: datetime,
                                     config: Optional[AnalyticsConfig] = None) -> List[OptimizationSuggestion]:
    """
    Group open orders due inside the planning window by cell type.

    Every cell type with more than one order gets a suggestion to run those
    orders together; savings are estimated at 0.8 working days per order.

    Args:
        orders: Order snapshots
        now: Reference time
        config: Planning window and savings factor

    Returns:
        Suggestions in the order their cell type was first seen
    """
    config = config or AnalyticsConfig()
    window_end = months_after(now, config.optimization_window_months)

    orders_by_type: Dict[str, List[Order]] = {}
    for order in orders:
        if order.is_completed or order.delivery_date is None:
            continue
        if not now < order.delivery_date < window_end:
            continue
        orders_by_type.setdefault(order.cell_type or UNSPECIFIED_CELL_TYPE, []).append(order)

    suggestions = []
    for cell_type, grouped in orders_by_type.items():
        if len(grouped) < 2:
            continue
        suggestions.append(OptimizationSuggestion(
            cell_type=cell_type,
            order_ids=[o.id for o in grouped],
            order_count=len(grouped),
            suggestion=f"Combine production of the {len(grouped)} {cell_type} orders",
            potential_savings=round_half_up(len(grouped) * config.batch_savings_per_order),
        ))

    logger.info("Found %d batching opportunities before %s", len(suggestions), window_end.date())
    return suggestions


def optimizations_to_frame(suggestions: List[OptimizationSuggestion]) -> pd.DataFrame:
    return pd.DataFrame([
        {
            'cell_type': s.cell_type,
            'order_count': s.order_count,
            'order_ids': ', '.join(s.order_ids),
            'potential_savings': s.potential_savings,
            'suggestion': s.suggestion,
        }
        for s in suggestions
    ], columns=['cell_type', 'order_count', 'order_ids', 'potential_savings', 'suggestion'])
