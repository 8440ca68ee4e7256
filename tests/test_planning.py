"""
Tests for production batching suggestions
"""

from factories import days_from_now, make_order
from production_insights.config import AnalyticsConfig
from production_insights.planning import optimizations_to_frame, suggest_production_optimizations


class TestProductionOptimizations:

    def test_same_type_orders_due_next_month_are_grouped(self, now):
        orders = [
            make_order("ORD-1", status="planning", delivery_in_days=10, cell_type="RM 36 LB"),
            make_order("ORD-2", status="production", delivery_in_days=25, cell_type="RM 36 LB"),
            make_order("ORD-3", status="waiting", delivery_in_days=12, cell_type="RM 36 CB"),
        ]

        suggestions = suggest_production_optimizations(orders, now)

        assert len(suggestions) == 1
        suggestion = suggestions[0]
        assert suggestion.cell_type == "RM 36 LB"
        assert suggestion.order_ids == ["ORD-1", "ORD-2"]
        assert suggestion.order_count == 2
        # round(2 * 0.8)
        assert suggestion.potential_savings == 2
        assert suggestion.suggestion == "Combine production of the 2 RM 36 LB orders"

    def test_savings_round_half_up(self, now):
        orders = [
            make_order(f"ORD-{i}", delivery_in_days=5 + i, cell_type="RM 36 FL") for i in range(5)
        ]
        # 5 x 0.8 = 4.0, 4 x 0.8 = 3.2
        assert suggest_production_optimizations(orders, now)[0].potential_savings == 4
        assert suggest_production_optimizations(orders[:4], now)[0].potential_savings == 3

    def test_excluded_orders(self, now):
        orders = [
            make_order("ORD-1", delivery_in_days=10),
            # already completed
            make_order("ORD-2", status="completed", delivery_in_days=11, completion_date=days_from_now(-1)),
            # due after the one month window
            make_order("ORD-3", delivery_in_days=45),
            # already overdue
            make_order("ORD-4", delivery_in_days=-2),
            # no delivery date
            make_order("ORD-5", delivery_in_days=None),
        ]
        assert suggest_production_optimizations(orders, now) == []

    def test_single_order_yields_no_suggestion(self, now):
        orders = [
            make_order("ORD-1", delivery_in_days=3, cell_type="RM 36 LB"),
            make_order("ORD-2", delivery_in_days=4, cell_type="RM 36 CB"),
        ]
        assert suggest_production_optimizations(orders, now) == []

    def test_groups_keep_first_seen_order(self, now):
        orders = [
            make_order("ORD-1", delivery_in_days=3, cell_type="RM 36 CB"),
            make_order("ORD-2", delivery_in_days=4, cell_type="RM 36 LB"),
            make_order("ORD-3", delivery_in_days=5, cell_type="RM 36 LB"),
            make_order("ORD-4", delivery_in_days=6, cell_type="RM 36 CB"),
        ]
        suggestions = suggest_production_optimizations(orders, now)
        assert [s.cell_type for s in suggestions] == ["RM 36 CB", "RM 36 LB"]

    def test_wider_window(self, now):
        orders = [
            make_order("ORD-1", delivery_in_days=10),
            make_order("ORD-2", delivery_in_days=45),
        ]
        config = AnalyticsConfig(optimization_window_months=2)
        assert len(suggest_production_optimizations(orders, now, config)) == 1

    def test_frame(self, now):
        orders = [make_order("ORD-1", delivery_in_days=3), make_order("ORD-2", delivery_in_days=4)]
        frame = optimizations_to_frame(suggest_production_optimizations(orders, now))

        assert frame.loc[0, 'order_ids'] == "ORD-1, ORD-2"
        assert frame.loc[0, 'potential_savings'] == 2

    def test_orders_without_cell_type_group_as_unspecified(self, now):
        orders = [
            make_order("ORD-1", delivery_in_days=3, cell_type=None),
            make_order("ORD-2", delivery_in_days=4, cell_type=None),
        ]

        suggestion = suggest_production_optimizations(orders, now)[0]

        assert suggestion.cell_type == "unspecified"
        assert suggestion.suggestion == "Combine production of the 2 unspecified orders"
