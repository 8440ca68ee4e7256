"""
Record Store Adapters
Description: Read-only access to orders, materials and production runs.
The analyzers never talk to a store directly; the InsightService does.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional

import pandas as pd

from production_insights.errors import InvalidRecord, StoreUnavailable
from production_insights.models import Material, Order, ProductionRun

logger = logging.getLogger(__name__)

ORDERS = "orders"
MATERIALS = "materials"
PRODUCTION = "production"
ENTITIES = (ORDERS, MATERIALS, PRODUCTION)

Predicate = Callable[[Any], bool]


# Predicate helpers

def field_equals(name: str, value: Any) -> Predicate:
    return lambda record: getattr(record, name, None) == value


def field_between(name: str, lower: Any = None, upper: Any = None,
                  lower_inclusive: bool = True, upper_inclusive: bool = False) -> Predicate:
    """Range filter; records with a missing value never match"""
    def predicate(record):
        value = getattr(record, name, None)
        if value is None:
            return False
        if lower is not None and (value < lower if lower_inclusive else value <= lower):
            return False
        if upper is not None and (value > upper if upper_inclusive else value >= upper):
            return False
        return True
    return predicate


def status_in(*statuses: str) -> Predicate:
    return lambda record: getattr(record, "status", None) in statuses


def status_not_in(*statuses: str) -> Predicate:
    return lambda record: getattr(record, "status", None) not in statuses


def all_of(*predicates: Optional[Predicate]) -> Predicate:
    active = [p for p in predicates if p is not None]
    return lambda record: all(p(record) for p in active)


class RecordStore(ABC):
    """Asynchronous, read-only snapshot source"""

    @abstractmethod
    async def query(self, entity: str, predicate: Optional[Predicate] = None) -> List[Any]:
        """Return every record of an entity matching the predicate"""


class InMemoryRecordStore(RecordStore):
    """Store backed by lists of model objects"""

    def __init__(self,
                 orders: Iterable[Order] = (),
                 materials: Iterable[Material] = (),
                 production: Iterable[ProductionRun] = ()):
        self._records: Dict[str, List[Any]] = {
            ORDERS: list(orders),
            MATERIALS: list(materials),
            PRODUCTION: list(production),
        }

    def count(self, entity: str) -> int:
        return len(self._records[entity])

    async def query(self, entity: str, predicate: Optional[Predicate] = None) -> List[Any]:
        if entity not in self._records:
            raise ValueError(f"Unknown entity '{entity}', expected one of {ENTITIES}")
        records = self._records[entity]
        if predicate is None:
            return list(records)
        return [record for record in records if predicate(record)]


class CsvRecordStore(InMemoryRecordStore):
    """
    Store loaded from CSV extracts in a data directory.

    Expected files:
        orders.csv, materials.csv, production_runs.csv, production_departments.csv
    """

    def __init__(self, data_dir: str = "data"):
        self.data_dir = data_dir
        orders, materials, production = self._load_data()
        super().__init__(orders=orders, materials=materials, production=production)

    def _read_csv(self, name: str, parse_dates: Optional[List[str]] = None,
                  dtype: Optional[Dict[str, Any]] = None) -> pd.DataFrame:
        path = os.path.join(self.data_dir, f"{name}.csv")
        try:
            return pd.read_csv(path, parse_dates=parse_dates, dtype=dtype)
        except (OSError, ValueError, pd.errors.ParserError) as exc:
            raise StoreUnavailable(name, f"Cannot load {path}: {exc}") from exc

    def _load_data(self):
        """Load all required datasets"""
        orders_df = self._read_csv("orders", parse_dates=['delivery_date', 'completion_date'],
                                   dtype={'id': str})
        materials_df = self._read_csv("materials", parse_dates=['expected_supply_date', 'order_need_date'],
                                      dtype={'id': str, 'code': str, 'order_id': str, 'supplier_id': str})
        runs_df = self._read_csv("production_runs", parse_dates=['start_date', 'end_date'],
                                 dtype={'order_id': str})
        departments_df = self._read_csv("production_departments", dtype={'order_id': str})

        orders = _build_records(Order, orders_df.to_dict('records'))
        materials = _build_records(Material, materials_df.to_dict('records'))

        departments_by_order: Dict[str, Dict[str, dict]] = {}
        for row in departments_df.to_dict('records'):
            departments_by_order.setdefault(row['order_id'], {})[row['department']] = {
                'planned_hours': row.get('planned_hours'),
                'actual_hours': row.get('actual_hours'),
            }

        run_rows = []
        for row in runs_df.to_dict('records'):
            row['departments'] = departments_by_order.get(row.get('order_id'), {})
            run_rows.append(row)
        production = _build_records(ProductionRun, run_rows)

        logger.info(
            "Loaded %d orders, %d materials, %d production runs from %s",
            len(orders), len(materials), len(production), self.data_dir
        )
        return orders, materials, production


def _build_records(model, rows: Iterable[dict]) -> list:
    records = []
    for row in rows:
        try:
            records.append(model.from_record(row))
        except InvalidRecord as exc:
            logger.warning("Skipping invalid row: %s", exc)
    return records
