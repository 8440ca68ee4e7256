"""
Record builders shared by the test modules
"""

from datetime import datetime, timedelta

from production_insights.models import DepartmentHours, Material, Order, ProductionRun

NOW = datetime(2024, 6, 15, 12, 0, 0)


def days_from_now(days: float) -> datetime:
    return NOW + timedelta(days=days)


def make_order(order_id="ORD-1", status="planning", delivery_in_days=30, **kwargs):
    defaults = dict(
        id=order_id,
        order_no=f"SO-{order_id}",
        customer="Northgrid Utilities",
        cell_type="RM 36 LB",
        status=status,
        cell_count=1,
        delivery_date=days_from_now(delivery_in_days) if delivery_in_days is not None else None,
        completion_date=None,
        previous_delays=0,
    )
    defaults.update(kwargs)
    return Order(**defaults)


def make_completed(order_id, completion_date, cell_type="RM 36 LB", cell_count=1):
    return Order(
        id=order_id,
        order_no=f"SO-{order_id}",
        customer="Delta Energy",
        cell_type=cell_type,
        status="completed",
        cell_count=cell_count,
        delivery_date=completion_date,
        completion_date=completion_date,
    )


def make_material(code="MAT-1", order_id="ORD-1", in_stock=False, quantity=1, **kwargs):
    return Material(code=code, name=f"Material {code}", in_stock=in_stock,
                    quantity=quantity, order_id=order_id, **kwargs)


def make_run(order_id, start, end, **departments):
    return ProductionRun(
        order_id=order_id,
        start_date=start,
        end_date=end,
        departments={name: DepartmentHours(*hours) for name, hours in departments.items()},
    )
