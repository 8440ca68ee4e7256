"""
Risk Scoring Engine
Description: Supply-chain risk classification for out-of-stock materials and
delay-risk scoring for open orders
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from production_insights.config import AnalyticsConfig
from production_insights.errors import InvalidRecord
from production_insights.models import (
    CRITICAL, HIGH, LOW, MEDIUM, PLANNING, WAITING,
    Material, Order, RiskRecord, require_field,
)
from production_insights.utils import ceil_days

logger = logging.getLogger(__name__)

SUPPLY_AFTER_NEED = "supply date after need date"
SUPPLY_DATE_PASSED = "supply date passed"


def score_supply_risk(materials: Iterable[Material], now: datetime) -> List[RiskRecord]:
    """
    Classify out-of-stock materials by supply risk.

    A material whose expected supply date falls after the date the order needs
    it is critical; one whose expected supply date has already passed is high.
    Materials with neither condition are left out of the result.

    Args:
        materials: Material snapshots; in-stock materials are ignored
        now: Reference time

    Returns:
        Unordered list of RiskRecord, one per risky material
    """
    risks = []

    for material in materials:
        if material.in_stock:
            continue

        supply_date = material.expected_supply_date
        if supply_date is None:
            continue

        need_date = material.order_need_date
        if need_date is not None and supply_date > need_date:
            level, reason = CRITICAL, SUPPLY_AFTER_NEED
            slippage = ceil_days(need_date, supply_date)
        elif supply_date < now:
            level, reason = HIGH, SUPPLY_DATE_PASSED
            slippage = ceil_days(supply_date, now)
        else:
            continue

        risks.append(RiskRecord(
            subject_id=material.subject_id,
            risk_level=level,
            risk_score=slippage,
            risk_factors=[reason],
            details={
                "code": material.code,
                "name": material.name,
                "order_id": material.order_id,
                "supplier_id": material.supplier_id,
                "expected_supply_date": supply_date,
                "order_need_date": need_date,
            },
        ))

    logger.info("Supply risk analysis flagged %d materials", len(risks))
    return risks


def classify_delay_score(score: float, config: Optional[AnalyticsConfig] = None) -> str:
    """Map a delay-risk score onto low / medium / high"""
    config = config or AnalyticsConfig()
    if score >= config.high_risk_score:
        return HIGH
    elif score >= config.medium_risk_score:
        return MEDIUM
    return LOW


def score_delay_risk(orders: Iterable[Order],
                     materials_by_order: Dict[str, Sequence[Material]],
                     now: datetime,
                     config: Optional[AnalyticsConfig] = None) -> List[RiskRecord]:
    """
    Score open orders by the risk of missing their delivery date.

    Score components:
    - 10 per missing (out-of-stock) material
    - 30 when still planning with fewer than 20 days left,
      otherwise 20 when waiting with fewer than 15 days left
    - 5 per previous delay

    Args:
        orders: Order snapshots; completed orders are ignored
        materials_by_order: Materials keyed by order id
        now: Reference time
        config: Weights and thresholds

    Returns:
        RiskRecords for orders with at least one risk factor, highest score first
    """
    config = config or AnalyticsConfig()
    risks = []

    for order in orders:
        if order.is_completed:
            continue
        try:
            risk = _score_order(order, materials_by_order.get(order.id, ()), now, config)
        except InvalidRecord as exc:
            logger.warning("Skipping order in delay risk analysis: %s", exc)
            continue
        if risk is not None:
            risks.append(risk)

    # sorted() is stable, so equal scores keep their encounter order
    risks = sorted(risks, key=lambda r: r.risk_score, reverse=True)

    logger.info("Delay risk analysis flagged %d of the open orders", len(risks))
    return risks


def _score_order(order: Order,
                 materials: Sequence[Material],
                 now: datetime,
                 config: AnalyticsConfig) -> Optional[RiskRecord]:
    delivery_date = require_field(order.delivery_date, "Order", order.id, "delivery_date")
    days_left = ceil_days(now, delivery_date)
    risk_factors = []
    risk_score = 0

    # Missing materials
    missing_count = sum(
        1 for material in materials
        if material.order_id == order.id and not material.in_stock
    )
    if missing_count > 0:
        risk_factors.append(f"{missing_count} missing materials")
        risk_score += missing_count * config.missing_material_weight

    # Production stage
    if order.status == PLANNING and days_left < config.planning_window_days:
        risk_factors.append("still in planning")
        risk_score += config.planning_penalty
    elif order.status == WAITING and days_left < config.waiting_window_days:
        risk_factors.append("waiting for materials")
        risk_score += config.waiting_penalty

    # Order history
    if order.previous_delays > 0:
        risk_factors.append(f"delayed {order.previous_delays} times before")
        risk_score += order.previous_delays * config.previous_delay_weight

    if not risk_factors:
        return None

    return RiskRecord(
        subject_id=order.id,
        risk_level=classify_delay_score(risk_score, config),
        risk_score=risk_score,
        risk_factors=risk_factors,
        details={
            "order_no": order.order_no,
            "customer": order.customer,
            "cell_type": order.cell_type,
            "status": order.status,
            "delivery_date": order.delivery_date,
            "days_left": days_left,
        },
    )


def risk_records_to_frame(records: Sequence[RiskRecord]) -> pd.DataFrame:
    """Flatten risk records into a DataFrame, one row per subject"""
    columns = ['subject_id', 'risk_level', 'risk_score', 'risk_factors']
    if not records:
        return pd.DataFrame(columns=columns)

    rows = []
    for record in records:
        row = {
            'subject_id': record.subject_id,
            'risk_level': record.risk_level,
            'risk_score': record.risk_score,
            'risk_factors': '; '.join(record.risk_factors),
        }
        row.update(record.details)
        rows.append(row)

    return pd.DataFrame(rows)
