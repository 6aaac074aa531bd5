"""Tests for the recommendation engine."""
import pytest

from cashplan.services.diagnosis import diagnose
from cashplan.services.forecast import generate_forecast
from cashplan.services.recommendations import (
    alert_response_plans,
    calculate_priority_score,
    calculate_urgency,
    recommend,
    runway_days,
    select_bucket,
)


def _forecast(probability):
    return {"break_risk": {"probability": probability}}


class TestRunwayReconciliation:

    def test_months_to_days(self):
        assert runway_days({"runway": 2.5, "cashBalance": 1000}) == 75

    def test_cash_positive_has_no_runway(self):
        assert runway_days({"runway": 0, "cashBalance": 1000}) is None

    def test_no_cash_is_zero_days(self):
        assert runway_days({"runway": 0, "cashBalance": 0}) == 0

    def test_missing_metrics(self):
        assert runway_days({}) == 0


class TestUrgency:

    @pytest.mark.parametrize("runway,expected", [
        (0.9, "critical"),   # < 30 days
        (1.5, "high"),       # < 60 days
        (2.5, "high"),       # < 90 days
        (5, "medium"),       # < 180 days
        (7, "low"),
    ])
    def test_runway_buckets(self, runway, expected):
        metrics = {"runway": runway, "cashBalance": 100000, "monthlyBurn": 1000}
        assert calculate_urgency(metrics, _forecast(0.1)) == expected

    def test_burn_ratio_and_break_risk(self):
        metrics = {"runway": 0, "cashBalance": 100000, "monthlyBurn": 25000}
        assert calculate_urgency(metrics, _forecast(0.1)) == "medium"
        assert calculate_urgency(metrics, _forecast(0.8)) == "high"

    def test_negative_burn_is_not_urgent(self):
        metrics = {"runway": 0, "cashBalance": 100000, "monthlyBurn": -50000}
        assert calculate_urgency(metrics, _forecast(0.1)) == "low"

    def test_missing_inputs(self):
        assert calculate_urgency({}, {}) == "critical"
        assert calculate_urgency({"cashBalance": 5}, {}) == "low"


class TestPriorityScore:

    def test_low_effort_low_risk_critical(self):
        plan = {"effort": "low", "impactEstimate": {"cashIncreasePct": 0.15, "riskLevel": "low"}}
        assert calculate_priority_score(plan, "critical") == 45

    def test_penalties(self):
        plan = {"effort": "high", "impactEstimate": {"cashIncreasePct": 0.25, "riskLevel": "medium"}}
        assert calculate_priority_score(plan, "critical") == pytest.approx(40.5)
        assert calculate_priority_score(plan, "low") == pytest.approx(13.5)

    def test_unknown_values_use_defaults(self):
        plan = {"effort": "??", "impactEstimate": {"cashIncreasePct": 0.1, "riskLevel": "??"}}
        assert calculate_priority_score(plan, "??") == pytest.approx(7.2)

    def test_missing_impact(self):
        assert calculate_priority_score({}, "high") == 0


class TestBuckets:

    def test_bucket_by_runway(self):
        assert select_bucket({"runway": 2, "cashBalance": 1}) == "crisis"
        assert select_bucket({"runway": 4, "cashBalance": 1}) == "cautious"
        assert select_bucket({"runway": 8, "cashBalance": 1}) == "growth"
        assert select_bucket({"runway": 0, "cashBalance": 1}) == "growth"
        assert select_bucket({"runway": 0, "cashBalance": 0}) == "crisis"

    def test_alert_response_plans_only_for_red(self):
        alerts = [
            {"id": "low_runway", "severity": "red", "title": "Critical runway",
             "description": "Only 1.0 months left.", "recommendation": "Cut costs."},
            {"id": "high_burn", "severity": "yellow", "title": "High burn rate"},
        ]
        plans = alert_response_plans(alerts)

        assert len(plans) == 1
        assert plans[0]["category"] == "alert_response"
        assert plans[0]["title"] == "Immediate action: Critical runway"
        assert plans[0]["actions"] == ["Cut costs."]


class TestRecommend:

    def test_crisis_ranking(self, burning_records, today):
        diagnosis = diagnose(burning_records)
        forecast = generate_forecast(burning_records, horizon=90, today=today)

        result = recommend(diagnosis, forecast)

        assert result["urgency"] == "critical"
        assert [p["category"] for p in result["plans"]] == [
            "cost_optimization", "revenue_emergency", "liquidity_crisis",
        ]
        assert [p["priorityScore"] for p in result["plans"]] == pytest.approx([45, 43.2, 40.5])
        assert result["recommended"]["category"] == "cost_optimization"
        assert any("90 days" in c for c in result["context"])

    def test_growth_bucket_for_cash_positive(self, weekly_records, today):
        result = recommend(diagnose(weekly_records), generate_forecast(weekly_records, 90, today))

        assert result["urgency"] == "low"
        assert {p["category"] for p in result["plans"]} == {
            "growth_investment", "market_expansion", "operational_excellence",
        }
        assert any("Positive cash flow" in c for c in result["context"])

    def test_always_three_sorted_plans(self, weekly_records, burning_records, today):
        for records in (weekly_records, burning_records, [{"x": 1}]):
            result = recommend(diagnose(records), generate_forecast(records, 90, today))
            scores = [p["priorityScore"] for p in result["plans"]]

            assert len(result["plans"]) == 3
            assert all(isinstance(s, (int, float)) for s in scores)
            assert scores == sorted(scores, reverse=True)
            assert result["recommended"] == result["plans"][0]

    def test_plan_ids_unique(self, burning_records, today):
        result = recommend(diagnose(burning_records), generate_forecast(burning_records, 90, today))
        ids = [p["id"] for p in result["plans"]]
        assert len(set(ids)) == len(ids)

    def test_templates_not_mutated(self, burning_records, today):
        diagnosis = diagnose(burning_records)
        forecast = generate_forecast(burning_records, 90, today)
        first = recommend(diagnosis, forecast)
        first["plans"][0]["actions"].append("extra")

        second = recommend(diagnosis, forecast)
        assert "extra" not in second["plans"][0]["actions"]

    def test_missing_inputs_degrade(self):
        result = recommend(None, None)
        assert len(result["plans"]) == 3
