"""
Tests for supply-chain and delay risk scoring
"""

import pytest

from factories import days_from_now, make_material, make_order
from production_insights.config import AnalyticsConfig
from production_insights.risk import (
    SUPPLY_AFTER_NEED, SUPPLY_DATE_PASSED,
    classify_delay_score, risk_records_to_frame, score_delay_risk, score_supply_risk,
)


class TestSupplyRisk:
    """Supply risk classification of out-of-stock materials"""

    def test_supply_after_need_is_critical(self, now):
        material = make_material(
            "MAT-1",
            expected_supply_date=days_from_now(10),
            order_need_date=days_from_now(5),
        )
        risks = score_supply_risk([material], now)

        assert len(risks) == 1
        assert risks[0].risk_level == "critical"
        assert risks[0].risk_factors == [SUPPLY_AFTER_NEED]
        assert risks[0].risk_score == 5

    def test_critical_takes_precedence_over_passed_supply_date(self, now):
        material = make_material(
            "MAT-1",
            expected_supply_date=days_from_now(-2),
            order_need_date=days_from_now(-6),
        )
        assert score_supply_risk([material], now)[0].risk_level == "critical"

    def test_passed_supply_date_is_high(self, now):
        material = make_material(
            "MAT-2",
            expected_supply_date=days_from_now(-3),
            order_need_date=days_from_now(4),
        )
        risks = score_supply_risk([material], now)

        assert [r.risk_level for r in risks] == ["high"]
        assert risks[0].risk_factors == [SUPPLY_DATE_PASSED]
        assert risks[0].risk_score == 3

    def test_passed_supply_date_without_need_date_is_high(self, now):
        material = make_material("MAT-2", expected_supply_date=days_from_now(-1))
        assert score_supply_risk([material], now)[0].risk_level == "high"

    def test_materials_without_risk_condition_are_excluded(self, now):
        materials = [
            # arrives in time
            make_material("MAT-3", expected_supply_date=days_from_now(3), order_need_date=days_from_now(7)),
            # no need date, still in the future
            make_material("MAT-4", expected_supply_date=days_from_now(1)),
            # no expected supply date at all
            make_material("MAT-5"),
            # in stock materials are never at risk
            make_material("MAT-6", in_stock=True, expected_supply_date=days_from_now(-30)),
        ]
        assert score_supply_risk(materials, now) == []

    def test_subject_id_prefers_record_id(self, now):
        material = make_material("MAT-7", id="MLN-000007", expected_supply_date=days_from_now(-1))
        assert score_supply_risk([material], now)[0].subject_id == "MLN-000007"


class TestDelayRiskClassification:

    @pytest.mark.parametrize("score,level", [
        (0, "low"), (19, "low"), (20, "medium"), (49, "medium"), (50, "high"), (120, "high"),
    ])
    def test_score_bands(self, score, level):
        assert classify_delay_score(score) == level

    def test_custom_thresholds(self):
        config = AnalyticsConfig(high_risk_score=40, medium_risk_score=10)
        assert classify_delay_score(40, config) == "high"
        assert classify_delay_score(10, config) == "medium"


class TestDelayRisk:
    """Delay risk scoring of open orders"""

    def test_end_to_end_planning_order(self, now):
        order = make_order("ORD-1", status="planning", delivery_in_days=10, previous_delays=1)
        materials = {"ORD-1": [make_material("MAT-1"), make_material("MAT-2")]}

        risks = score_delay_risk([order], materials, now)

        assert len(risks) == 1
        risk = risks[0]
        assert risk.risk_score == 55
        assert risk.risk_level == "high"
        assert risk.details["days_left"] == 10
        assert risk.risk_factors == ["2 missing materials", "still in planning", "delayed 1 times before"]

    def test_days_left_rounds_up(self, now):
        order = make_order("ORD-1", status="planning", delivery_in_days=19.2, previous_delays=1)
        risk = score_delay_risk([order], {}, now)[0]
        assert risk.details["days_left"] == 20
        # 20 days left is outside the planning window
        assert risk.risk_factors == ["delayed 1 times before"]

    def test_planning_penalty_requires_fewer_than_twenty_days(self, now):
        order = make_order("ORD-1", status="planning", delivery_in_days=20)
        assert score_delay_risk([order], {}, now) == []

    def test_waiting_penalty(self, now):
        order = make_order("ORD-1", status="waiting", delivery_in_days=14)
        risks = score_delay_risk([order], {}, now)
        assert risks[0].risk_score == 20
        assert risks[0].risk_level == "medium"
        assert risks[0].risk_factors == ["waiting for materials"]

    def test_waiting_penalty_outside_window(self, now):
        order = make_order("ORD-1", status="waiting", delivery_in_days=15)
        assert score_delay_risk([order], {}, now) == []

    def test_only_matching_out_of_stock_materials_count(self, now):
        order = make_order("ORD-1", status="production", delivery_in_days=40)
        materials = {"ORD-1": [
            make_material("MAT-1"),
            make_material("MAT-2", in_stock=True),
            make_material("MAT-3", order_id="ORD-2"),
        ]}
        risk = score_delay_risk([order], materials, now)[0]
        assert risk.risk_score == 10
        assert risk.risk_level == "low"

    def test_orders_without_factors_are_excluded(self, now):
        orders = [
            make_order("ORD-1", status="production", delivery_in_days=5),
            make_order("ORD-2", status="planning", delivery_in_days=45),
        ]
        assert score_delay_risk(orders, {}, now) == []

    def test_completed_orders_are_ignored(self, now):
        order = make_order("ORD-1", status="completed", delivery_in_days=2,
                           completion_date=days_from_now(-1), previous_delays=5)
        assert score_delay_risk([order], {}, now) == []

    def test_order_without_delivery_date_is_skipped(self, now):
        orders = [
            make_order("ORD-1", status="planning", delivery_in_days=None),
            make_order("ORD-2", status="planning", delivery_in_days=3),
        ]
        risks = score_delay_risk(orders, {}, now)
        assert [r.subject_id for r in risks] == ["ORD-2"]

    def test_sorted_by_score_with_stable_ties(self, now):
        orders = [
            make_order("ORD-A", status="production", delivery_in_days=40),
            make_order("ORD-B", status="planning", delivery_in_days=5),
            make_order("ORD-C", status="production", delivery_in_days=40, previous_delays=2),
            make_order("ORD-D", status="waiting", delivery_in_days=10),
        ]
        materials = {"ORD-A": [make_material("MAT-1", order_id="ORD-A")]}

        risks = score_delay_risk(orders, materials, now)

        assert [r.subject_id for r in risks] == ["ORD-B", "ORD-D", "ORD-A", "ORD-C"]
        assert [r.risk_score for r in risks] == [30, 20, 10, 10]

    def test_score_level_equivalence(self, now):
        orders = [
            make_order(f"ORD-{n}", status="production", delivery_in_days=40, previous_delays=n)
            for n in range(1, 15)
        ]
        for risk in score_delay_risk(orders, {}, now):
            if risk.risk_score >= 50:
                assert risk.risk_level == "high"
            elif risk.risk_score >= 20:
                assert risk.risk_level == "medium"
            else:
                assert risk.risk_level == "low"


class TestRiskFrame:

    def test_frame_flattens_details(self, now):
        order = make_order("ORD-1", status="planning", delivery_in_days=10)
        frame = risk_records_to_frame(score_delay_risk([order], {}, now))

        assert list(frame['subject_id']) == ["ORD-1"]
        assert frame.loc[0, 'risk_factors'] == "still in planning"
        assert frame.loc[0, 'days_left'] == 10

    def test_empty_frame_has_columns(self):
        frame = risk_records_to_frame([])
        assert frame.empty
        assert 'risk_level' in frame.columns
