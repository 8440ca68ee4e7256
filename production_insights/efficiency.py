"""
Production Efficiency Analyzer
Description: Planned-vs-actual department hours, bottleneck detection and
improvement suggestions over recently completed orders
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional

import pandas as pd

from production_insights.config import AnalyticsConfig
from production_insights.errors import InvalidRecord
from production_insights.models import (
    UNSPECIFIED_CELL_TYPE,
    Bottleneck, CellTypeEfficiency, DepartmentEfficiency, EfficiencyReport,
    ImprovementSuggestion, Order, ProductionRun, require_field,
)
from production_insights.utils import ceil_days, months_before, round_half_up

logger = logging.getLogger(__name__)

HOUR_COLUMNS = ['order_id', 'department', 'planned_hours', 'actual_hours']

def analyze_efficiency(orders: Iterable[Order],
                       runs_by_order: Mapping[str, Optional[ProductionRun]],
                       now: datetime,
                       config: Optional[AnalyticsConfig] = None) -> EfficiencyReport:
    """
    Build an efficiency report over orders completed in the lookback window.

    Args:
        orders: Order snapshots; only completed orders inside the window count
        runs_by_order: Production run (or None) keyed by order id
        now: Reference time
        config: Departments, thresholds and lookback window

    Returns:
        EfficiencyReport with department ratios, bottlenecks and suggestions
    """
    config = config or AnalyticsConfig()
    window_start = months_before(now, config.efficiency_lookback_months)
    report = EfficiencyReport(window_start=window_start, window_end=now)

    total_production_days = 0
    production_days_by_type = defaultdict(int)
    hour_rows = []

    for order in orders:
        if not order.is_completed:
            continue
        try:
            completed_at = require_field(order.completion_date, "Order", order.id, "completion_date")
        except InvalidRecord as exc:
            logger.warning("Skipping order in efficiency analysis: %s", exc)
            continue
        if completed_at < window_start:
            continue

        cells = order.cell_count or 1
        cell_type = order.cell_type or UNSPECIFIED_CELL_TYPE
        report.total_orders += 1
        report.total_cells += cells

        type_stats = report.cell_type_efficiency.setdefault(cell_type, CellTypeEfficiency())
        type_stats.total_orders += 1
        type_stats.total_cells += cells

        run = runs_by_order.get(order.id)
        if run is None:
            continue

        try:
            production_days = ceil_days(
                require_field(run.start_date, "ProductionRun", order.id, "start_date"),
                require_field(run.end_date, "ProductionRun", order.id, "end_date"),
            )
        except InvalidRecord as exc:
            logger.warning("Production run has no duration: %s", exc)
        else:
            total_production_days += production_days
            production_days_by_type[cell_type] += production_days

        for department in config.departments:
            hours = run.departments.get(department)
            if hours is None:
                continue
            hour_rows.append({
                'order_id': order.id,
                'department': department,
                'planned_hours': hours.planned_hours or 0.0,
                'actual_hours': hours.actual_hours or 0.0,
            })

    # Average production time (orders without a run count as zero days)
    if report.total_orders > 0:
        report.avg_production_time = total_production_days / report.total_orders

    for cell_type, type_stats in report.cell_type_efficiency.items():
        type_stats.avg_production_time = production_days_by_type[cell_type] / type_stats.total_orders

    hours = pd.DataFrame(hour_rows, columns=HOUR_COLUMNS)
    report.department_efficiency = _department_efficiency(hours, config)
    report.bottlenecks = _detect_bottlenecks(hours, config)
    report.improvement_suggestions = _suggest_improvements(report, config)

    logger.info(
        "Efficiency analysis: %d orders, %d cells, %d bottleneck departments",
        report.total_orders, report.total_cells, len(report.bottlenecks)
    )
    return report


def _department_efficiency(hours: pd.DataFrame,
                           config: AnalyticsConfig) -> Dict[str, DepartmentEfficiency]:
    totals = hours.groupby('department')[['planned_hours', 'actual_hours']].sum()
    totals = totals.reindex(list(config.departments), fill_value=0.0)

    result = {}
    for department, row in totals.iterrows():
        planned = float(row['planned_hours'])
        actual = float(row['actual_hours'])
        # planned / actual: below 1 means the department ran over plan
        ratio = planned / actual if actual > 0 else 0.0
        result[department] = DepartmentEfficiency(
            planned_hours=planned,
            actual_hours=actual,
            efficiency_ratio=ratio,
        )
    return result


def _detect_bottlenecks(hours: pd.DataFrame, config: AnalyticsConfig) -> List[Bottleneck]:
    """
    Flag department runs whose actual hours exceed planned hours by more than the threshold.

    Occurrences and delay hours accumulate per department. The delay percentage
    is either the last observed overrun or the mean over all occurrences,
    depending on config.bottleneck_delay_policy.
    """
    unplanned = hours[(hours['planned_hours'] <= 0) & (hours['actual_hours'] > 0)]
    if not unplanned.empty:
        logger.warning(
            "Skipping %d department entries without planned hours in bottleneck detection",
            len(unplanned)
        )

    planned = hours[hours['planned_hours'] > 0]
    flagged = planned[
        planned['actual_hours'] > planned['planned_hours'] * config.bottleneck_threshold
    ].copy()
    if flagged.empty:
        return []

    flagged['delay_hours'] = flagged['actual_hours'] - flagged['planned_hours']
    flagged['delay_pct'] = (flagged['actual_hours'] / flagged['planned_hours'] - 1) * 100

    summary = flagged.groupby('department', sort=False).agg(
        occurrence_count=('delay_hours', 'size'),
        total_delay_hours=('delay_hours', 'sum'),
        avg_delay_percentage=('delay_pct', config.bottleneck_delay_policy),
    )
    summary = summary.sort_values('occurrence_count', ascending=False, kind='stable')

    return [
        Bottleneck(
            department=department,
            occurrence_count=int(row['occurrence_count']),
            total_delay_hours=float(row['total_delay_hours']),
            avg_delay_percentage=float(row['avg_delay_percentage']),
        )
        for department, row in summary.iterrows()
    ]


def _suggest_improvements(report: EfficiencyReport,
                          config: AnalyticsConfig) -> List[ImprovementSuggestion]:
    suggestions = []

    if report.bottlenecks:
        worst = report.bottlenecks[0]
        suggestions.append(ImprovementSuggestion(
            area=worst.department,
            suggestion=(
                f"Optimize the {worst.department} process: work runs "
                f"{round_half_up(worst.avg_delay_percentage)}% over plan on average."
            ),
            kind="bottleneck",
            # hours saved per order
            potential_savings=round_half_up(worst.total_delay_hours / report.total_orders),
        ))

    low_efficiency = sorted(
        (
            (department, stats) for department, stats in report.department_efficiency.items()
            if stats.efficiency_ratio < config.low_efficiency_threshold and stats.actual_hours > 0
        ),
        key=lambda item: item[1].efficiency_ratio,
    )
    if low_efficiency:
        department, stats = low_efficiency[0]
        suggestions.append(ImprovementSuggestion(
            area=department,
            suggestion=(
                f"Raise efficiency in {department}: currently at "
                f"{round_half_up(stats.efficiency_ratio * 100)}% of plan."
            ),
            kind="efficiency",
            potential_improvement=round_half_up((1 - stats.efficiency_ratio) * 100),
        ))

    return suggestions


def departments_to_frame(report: EfficiencyReport) -> pd.DataFrame:
    frame = pd.DataFrame([
        {
            'department': department,
            'planned_hours': stats.planned_hours,
            'actual_hours': stats.actual_hours,
            'efficiency_ratio': round(stats.efficiency_ratio, 4),
        }
        for department, stats in report.department_efficiency.items()
    ], columns=['department', 'planned_hours', 'actual_hours', 'efficiency_ratio'])
    return frame


def bottlenecks_to_frame(report: EfficiencyReport) -> pd.DataFrame:
    return pd.DataFrame([
        {
            'department': b.department,
            'occurrence_count': b.occurrence_count,
            'total_delay_hours': b.total_delay_hours,
            'avg_delay_percentage': round(b.avg_delay_percentage, 2),
        }
        for b in report.bottlenecks
    ], columns=['department', 'occurrence_count', 'total_delay_hours', 'avg_delay_percentage'])


def cell_types_to_frame(report: EfficiencyReport) -> pd.DataFrame:
    return pd.DataFrame([
        {
            'cell_type': cell_type,
            'total_orders': stats.total_orders,
            'total_cells': stats.total_cells,
            'avg_production_time': round(stats.avg_production_time, 2),
        }
        for cell_type, stats in report.cell_type_efficiency.items()
    ], columns=['cell_type', 'total_orders', 'total_cells', 'avg_production_time'])
