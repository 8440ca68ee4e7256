"""
Production Insights Data Model
Description: Read-only input records (orders, materials, production runs) and the
derived results produced by the analyzers
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

import pandas as pd

from production_insights.errors import InvalidRecord
from production_insights.utils import as_naive_utc

# Order status values
PLANNING = "planning"
WAITING = "waiting"
PRODUCTION = "production"
COMPLETED = "completed"

# Risk levels
LOW = "low"
MEDIUM = "medium"
HIGH = "high"
CRITICAL = "critical"

# Consumption trends
INCREASING = "increasing"
DECREASING = "decreasing"
STABLE = "stable"
INSUFFICIENT_DATA = "insufficient_data"

# Grouping key for orders without a cell type
UNSPECIFIED_CELL_TYPE = "unspecified"


def _pick(record: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """First non-missing value among the given keys"""
    for key in keys:
        if key in record:
            value = record[key]
            if value is None:
                continue
            if not isinstance(value, (list, dict, tuple)) and pd.isna(value):
                continue
            return value
    return default


def _to_datetime(value: Any) -> Optional[datetime]:
    if value is None or pd.isna(value):
        return None
    return as_naive_utc(value)


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "y")
    return bool(value)


def _to_id(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _parse(convert: Callable[[Any], Any], value: Any,
           kind: str, record_id: Optional[str], field_name: str) -> Any:
    """Apply a coercion, reporting malformed values as InvalidRecord"""
    try:
        return convert(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise InvalidRecord(kind, record_id, field_name, f"{value!r} ({exc})") from exc


@dataclass(frozen=True)
class Material:
    """A bill-of-materials line attached to an order"""
    code: str
    name: str
    in_stock: bool
    quantity: float
    order_id: Optional[str] = None
    expected_supply_date: Optional[datetime] = None
    order_need_date: Optional[datetime] = None
    id: Optional[str] = None
    supplier_id: Optional[str] = None

    @property
    def subject_id(self) -> str:
        return self.id or self.code

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Material":
        """Build from a Firestore-style document (camelCase) or a CSV row (snake_case)"""
        record_id = _to_id(_pick(record, "id"))
        code = _pick(record, "code")
        if code is None:
            raise InvalidRecord("Material", record_id, "code")
        label = record_id or str(code)
        return cls(
            code=str(code),
            name=str(_pick(record, "name", default=code)),
            in_stock=_to_bool(_pick(record, "inStock", "in_stock", default=False)),
            quantity=_parse(float, _pick(record, "quantity", default=0), "Material", label, "quantity"),
            order_id=_to_id(_pick(record, "orderId", "order_id")),
            expected_supply_date=_parse(
                _to_datetime, _pick(record, "expectedSupplyDate", "expected_supply_date"),
                "Material", label, "expected_supply_date",
            ),
            order_need_date=_parse(
                _to_datetime, _pick(record, "orderNeedDate", "order_need_date"),
                "Material", label, "order_need_date",
            ),
            id=record_id,
            supplier_id=_to_id(_pick(record, "supplierId", "supplier_id")),
        )


@dataclass(frozen=True)
class Order:
    """A customer order for one or more switchgear cells"""
    id: str
    order_no: str
    customer: str
    cell_type: Optional[str]
    status: str
    cell_count: Optional[int] = None
    delivery_date: Optional[datetime] = None
    completion_date: Optional[datetime] = None
    previous_delays: int = 0

    @property
    def is_completed(self) -> bool:
        return self.status == COMPLETED

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Order":
        order_id = _to_id(_pick(record, "id", "orderId", "order_id"))
        if order_id is None:
            raise InvalidRecord("Order", None, "id")
        status = _pick(record, "status")
        if status is None:
            raise InvalidRecord("Order", order_id, "status")
        completion_date = _parse(
            _to_datetime, _pick(record, "completionDate", "completion_date"),
            "Order", order_id, "completion_date",
        )
        if status == COMPLETED and completion_date is None:
            raise InvalidRecord("Order", order_id, "completion_date")
        cell_count = _pick(record, "cellCount", "cell_count")
        if cell_count is not None:
            cell_count = _parse(int, cell_count, "Order", order_id, "cell_count")
        return cls(
            id=order_id,
            order_no=str(_pick(record, "orderNo", "order_no", default=order_id)),
            customer=str(_pick(record, "customer", default="")),
            cell_type=_pick(record, "cellType", "cell_type"),
            status=str(status),
            cell_count=cell_count,
            delivery_date=_parse(
                _to_datetime, _pick(record, "deliveryDate", "delivery_date"),
                "Order", order_id, "delivery_date",
            ),
            completion_date=completion_date,
            previous_delays=_parse(
                int, _pick(record, "previousDelays", "previous_delays", default=0),
                "Order", order_id, "previous_delays",
            ),
        )


@dataclass(frozen=True)
class DepartmentHours:
    planned_hours: float = 0.0
    actual_hours: float = 0.0


@dataclass(frozen=True)
class ProductionRun:
    """Shop-floor record of a completed order"""
    order_id: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    departments: Dict[str, DepartmentHours] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "ProductionRun":
        order_id = _to_id(_pick(record, "orderId", "order_id"))
        if order_id is None:
            raise InvalidRecord("ProductionRun", None, "order_id")
        departments = {}
        for name, hours in (_pick(record, "departments", default={}) or {}).items():
            departments[name] = DepartmentHours(
                planned_hours=_parse(float, _pick(hours, "plannedHours", "planned_hours", default=0),
                                     "ProductionRun", order_id, f"{name}.planned_hours"),
                actual_hours=_parse(float, _pick(hours, "actualHours", "actual_hours", default=0),
                                    "ProductionRun", order_id, f"{name}.actual_hours"),
            )
        return cls(
            order_id=order_id,
            start_date=_parse(_to_datetime, _pick(record, "startDate", "start_date"),
                              "ProductionRun", order_id, "start_date"),
            end_date=_parse(_to_datetime, _pick(record, "endDate", "end_date"),
                            "ProductionRun", order_id, "end_date"),
            departments=departments,
        )


@dataclass
class RiskRecord:
    """Risk classification for a material (supply risk) or an order (delay risk)"""
    subject_id: str
    risk_level: str
    risk_score: float
    risk_factors: List[str]
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ConsumptionRecord:
    """Material usage aggregate with a three month forecast"""
    material_code: str
    name: str
    total_quantity: float
    usage_by_month: Dict[str, float]
    usage_by_cell_type: Dict[str, float]
    forecast_next_three_months: int
    trend: str


@dataclass
class DepartmentEfficiency:
    planned_hours: float = 0.0
    actual_hours: float = 0.0
    efficiency_ratio: float = 0.0


@dataclass
class CellTypeEfficiency:
    total_orders: int = 0
    total_cells: int = 0
    avg_production_time: float = 0.0


@dataclass
class Bottleneck:
    department: str
    occurrence_count: int
    total_delay_hours: float
    avg_delay_percentage: float


@dataclass
class ImprovementSuggestion:
    area: str
    suggestion: str
    kind: str
    potential_savings: Optional[int] = None
    potential_improvement: Optional[int] = None


@dataclass
class EfficiencyReport:
    """Production efficiency over a trailing window of completed orders"""
    window_start: datetime
    window_end: datetime
    total_orders: int = 0
    total_cells: int = 0
    avg_production_time: float = 0.0
    department_efficiency: Dict[str, DepartmentEfficiency] = field(default_factory=dict)
    cell_type_efficiency: Dict[str, CellTypeEfficiency] = field(default_factory=dict)
    bottlenecks: List[Bottleneck] = field(default_factory=list)
    improvement_suggestions: List[ImprovementSuggestion] = field(default_factory=list)


@dataclass
class PredictorEstimate:
    """Point estimate returned by a lead-time predictor"""
    estimated_days: float
    confidence: Optional[float] = None
    method: str = "predictor"


@dataclass
class DeliveryEstimate:
    estimated_days: int
    estimated_delivery_date: datetime
    method: str
    supply_period: Optional[float] = None
    production_period: Optional[float] = None
    test_period: Optional[float] = None
    confidence: Optional[float] = None

    @property
    def breakdown(self) -> Dict[str, Any]:
        return {
            "supply_period": self.supply_period,
            "production_period": self.production_period,
            "test_period": self.test_period,
            "method": self.method,
            "confidence": self.confidence,
        }


@dataclass
class OptimizationSuggestion:
    """Orders of the same cell type that can share production steps"""
    cell_type: str
    order_ids: List[str]
    order_count: int
    suggestion: str
    potential_savings: int


@dataclass
class InsightDigest:
    """Headline item of each analysis, ready for any presenter"""
    generated_at: datetime
    critical_supply_risk: Optional[RiskRecord] = None
    high_delay_risk: Optional[RiskRecord] = None
    top_optimization: Optional[OptimizationSuggestion] = None
    top_improvement: Optional[ImprovementSuggestion] = None
    analyzed_orders: int = 0
    avg_production_time: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return not any((self.critical_supply_risk, self.high_delay_risk,
                        self.top_optimization, self.top_improvement))


def require_field(value: Any, kind: str, record_id: Optional[str], field_name: str) -> Any:
    """Return value, or raise InvalidRecord when it is missing"""
    if value is None:
        raise InvalidRecord(kind, record_id, field_name)
    return value
