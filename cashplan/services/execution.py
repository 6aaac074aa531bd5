# cashplan/services/execution.py

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional
import logging
import math

from cashplan.services.errors import PlanNotFound
from cashplan.services.forecast import SCENARIOS
from cashplan.services.recommendations import runway_days
from cashplan.utils.parsing import round_half_up

logger = logging.getLogger("cashplan.execution")

SCENARIO_IMPACT_MULTIPLIER = {"base": 1.0, "optimistic": 1.3, "pessimistic": 0.7}
RAMP_PERIODS = 4

CATEGORY_RISKS = {
    "liquidity_crisis": [
        "Supplier pushback on new payment terms",
        "Damage to long-term commercial relationships",
        "Possible credit rating deterioration",
    ],
    "revenue_emergency": [
        "Margin erosion from heavy discounting",
        "Cannibalization of future sales",
        "Unsustainable customer expectations",
    ],
    "cost_optimization": [
        "Reduced operating capacity",
        "Loss of key talent",
        "Lower service quality",
    ],
    "growth_investment": [
        "Lower than expected return on investment",
        "Depletion of available liquidity",
        "More aggressive competition",
    ],
}
DEFAULT_RISKS = ["Standard implementation risks"]

RISK_BASE_PROBABILITY = {"low": 0.1, "medium": 0.3, "high": 0.6}
RISK_EFFORT_MULTIPLIER = {"low": 0.8, "medium": 1.0, "high": 1.3}

EFFORT_RESOURCES = {
    "low": {"hours": 10, "people": 1},
    "medium": {"hours": 25, "people": 2},
    "high": {"hours": 40, "people": 3},
}
EFFORT_BASE_COST = {"low": 5000, "medium": 15000, "high": 40000}

SUCCESS_EFFORT_ADJ = {"low": 0.2, "medium": 0.0, "high": -0.2}
SUCCESS_RISK_ADJ = {"low": 0.2, "medium": 0.0, "high": -0.3}
SUCCESS_CATEGORY_ADJ = {"cost_optimization": 0.15, "liquidity_crisis": -0.1, "growth_investment": -0.2}


def _impact(plan: Mapping[str, Any], key: str = "cashIncreasePct") -> float:
    v = (plan.get("impactEstimate") or {}).get(key)
    return float(v) if v else 0.0


def _current_cash(metrics: Mapping[str, Any]) -> float:
    return float(metrics.get("cashBalance") or 100000)


def _runway_days(metrics: Mapping[str, Any]) -> float:
    return runway_days(metrics) or 0.0


def find_plan(job: Mapping[str, Any], plan_id: str) -> Dict[str, Any]:
    """Plan with `plan_id` from the job's stored recommendations."""
    recs = job.get("recommendations") or {}
    plans = recs.get("plans", []) if isinstance(recs, Mapping) else list(recs)
    for plan in plans:
        if plan.get("id") == plan_id:
            return plan
    raise PlanNotFound(plan_id)


# -------------------------
# Impact summary
# -------------------------

def calculate_runway_extension(plan: Mapping[str, Any], metrics: Mapping[str, Any]) -> int:
    current = _runway_days(metrics)
    if current == 0:
        return 0
    extended = current * (1 + _impact(plan))
    return round_half_up(extended - current)


def calculate_impact_summary(plan: Mapping[str, Any], metrics: Mapping[str, Any]) -> Dict[str, Any]:
    cash = _current_cash(metrics)
    burn = abs(float(metrics.get("monthlyBurn") or -10000))

    burn_pct = _impact(plan, "burnRateReductionPct")
    revenue_pct = _impact(plan, "revenueIncreasePct")
    cost_pct = _impact(plan, "costReductionPct")

    return {
        "cashImpact": round_half_up(cash * _impact(plan)),
        "burnRateReduction": round_half_up(burn * burn_pct) if burn_pct else 0,
        "runwayExtension": calculate_runway_extension(plan, metrics),
        "revenueBoost": round_half_up(float(metrics.get("monthlyRevenue") or 0) * revenue_pct) if revenue_pct else 0,
        "costSavings": round_half_up(abs(float(metrics.get("monthlyExpenses") or 0)) * cost_pct) if cost_pct else 0,
    }


# -------------------------
# Scenario simulation
# -------------------------

def _first_break_index(values: List[float]) -> Optional[int]:
    for i, v in enumerate(values):
        if v <= 0:
            return i
    return None


def simulate_scenario(plan: Mapping[str, Any], original: List[Mapping[str, Any]], scenario: str) -> Dict[str, Any]:
    """
    Re-shape one forecast scenario with the plan's cash impact.

    Nothing changes before the implementation delay (timeToImplement in weeks);
    after it the impact ramps in linearly over RAMP_PERIODS points.
    """
    if not original:
        return {"adjusted": [], "breakDay": None, "originalBreakDay": None, "improvement": 0, "totalImpact": 0}

    pct = _impact(plan)
    delay = math.floor(_impact(plan, "timeToImplement") / 7)
    multiplier = SCENARIO_IMPACT_MULTIPLIER.get(scenario, 1.0)

    adjusted = []
    for index, point in enumerate(original):
        value = point["value"]
        adjusted_value = value
        if index >= delay:
            ramp = min(1, (index - delay) / RAMP_PERIODS)
            adjusted_value = value * (1 + pct * multiplier * ramp)

        adjusted.append({
            "day": point["day"],
            "week": index + 1,
            "value": round_half_up(adjusted_value),
            "originalValue": value,
            "impactApplied": adjusted_value - value,
        })

    original_break = _first_break_index([p["value"] for p in original])
    adjusted_break = _first_break_index([p["value"] for p in adjusted])

    if original_break is not None and adjusted_break is not None:
        improvement = adjusted_break - original_break
    elif original_break is not None:
        improvement = math.inf
    else:
        improvement = 0

    return {
        "adjusted": adjusted,
        "breakDay": adjusted[adjusted_break]["day"] if adjusted_break is not None else None,
        "originalBreakDay": original[original_break]["day"] if original_break is not None else None,
        "improvement": improvement,
        "totalImpact": sum(p["impactApplied"] for p in adjusted),
    }


def simulate_all_scenarios(plan: Mapping[str, Any], forecasts: Mapping[str, Any]) -> Dict[str, Any]:
    return {s: simulate_scenario(plan, forecasts.get(s) or [], s) for s in SCENARIOS}


# -------------------------
# KPIs
# -------------------------

def project_kpi(kpi: str, plan: Mapping[str, Any], metrics: Mapping[str, Any]) -> Dict[str, Any]:
    projection = {
        "current": 0,
        "projected": 0,
        "unit": "number",
        "timeframe": plan.get("timeframe"),
        "confidence": "medium",
    }
    k = kpi.lower()
    pct = _impact(plan)

    if "cash" in k or "flow" in k:
        cash = float(metrics.get("cashBalance") or 0)
        projection.update(current=cash, projected=cash * (1 + pct), unit="currency")
    elif "days" in k or "runway" in k:
        days = _runway_days(metrics)
        projection.update(current=days, projected=days * 1.2, unit="days")
    elif "%" in k or "reduc" in k:
        projection.update(projected=pct * 100 or 10, unit="percentage")

    return projection


def project_kpis(plan: Mapping[str, Any], metrics: Mapping[str, Any]) -> Dict[str, Any]:
    projections = {kpi: project_kpi(kpi, plan, metrics) for kpi in plan.get("kpis") or []}

    burn = float(metrics.get("monthlyBurn") or 0)
    projections["Cash Flow Improvement"] = {
        "current": burn,
        "projected": burn * (1 + _impact(plan)),
        "unit": "currency",
        "timeframe": plan.get("timeframe"),
    }
    projections["Implementation Progress"] = {
        "current": 0,
        "projected": 100,
        "unit": "percentage",
        "timeframe": plan.get("timeframe"),
        "milestones": list(plan.get("actions") or []),
    }
    return projections


# -------------------------
# Risk
# -------------------------

def calculate_risk_probability(risk_level: str, effort: str) -> float:
    base = RISK_BASE_PROBABILITY.get(risk_level, 0.3)
    return min(0.9, base * RISK_EFFORT_MULTIPLIER.get(effort, 1.0))


def risk_mitigations(plan: Mapping[str, Any]) -> List[str]:
    out = []
    if plan.get("category") == "liquidity_crisis":
        out += ["Transparent communication with stakeholders", "Contingency plans for multiple scenarios"]
    if plan.get("effort") == "high":
        out += ["Phased implementation", "Continuous progress monitoring"]
    if plan.get("priority") == "critical":
        out += ["Dedicated project team", "Daily progress reviews"]
    return out


def assess_risk(plan: Mapping[str, Any]) -> Dict[str, Any]:
    level = (plan.get("impactEstimate") or {}).get("riskLevel") or "medium"

    factors = list(CATEGORY_RISKS.get(plan.get("category"), DEFAULT_RISKS))
    if plan.get("effort") == "high":
        factors += ["High implementation complexity", "Requires significant resources"]
    if plan.get("priority") == "critical":
        factors += ["Time pressure may lead to mistakes", "Rushed decisions"]

    return {
        "level": level,
        "factors": factors,
        "mitigation": risk_mitigations(plan),
        "probability": calculate_risk_probability(level, plan.get("effort")),
    }


# -------------------------
# Timeline
# -------------------------

def weekly_resources(week: int, total_weeks: int, effort: str) -> Dict[str, Any]:
    base = EFFORT_RESOURCES.get(effort, EFFORT_RESOURCES["medium"])

    # setup and wrap-up weeks need more hands
    if week <= 2:
        multiplier = 1.3
    elif week > total_weeks - 2:
        multiplier = 1.2
    else:
        multiplier = 1.0

    if week <= total_weeks / 3:
        phase = "preparation"
    elif week <= total_weeks * 2 / 3:
        phase = "execution"
    else:
        phase = "completion"

    return {
        "hoursPerWeek": round_half_up(base["hours"] * multiplier),
        "peopleRequired": base["people"],
        "phase": phase,
    }


def implementation_timeline(plan: Mapping[str, Any]) -> List[Dict[str, Any]]:
    actions = list(plan.get("actions") or [])
    total_weeks = math.ceil((_impact(plan, "timeToImplement") or 30) / 7)
    per_week = max(1, math.ceil(len(actions) / total_weeks))
    midpoint = math.ceil(total_weeks / 2)

    timeline = []
    for week in range(1, total_weeks + 1):
        if week == total_weeks:
            milestone = "Implementation complete"
        elif week == midpoint:
            milestone = "Mid-term review"
        elif week == 1:
            milestone = "Implementation kickoff"
        else:
            milestone = None

        timeline.append({
            "week": week,
            "actions": actions[(week - 1) * per_week: week * per_week],
            "milestone": milestone,
            "expectedProgress": round_half_up(week / total_weeks * 100),
            "resources": weekly_resources(week, total_weeks, plan.get("effort")),
        })
    return timeline


# -------------------------
# Cost / benefit
# -------------------------

def estimate_implementation_cost(plan: Mapping[str, Any]) -> int:
    base = EFFORT_BASE_COST.get(plan.get("effort"), 15000)
    n_actions = len(plan.get("actions") or []) or 3
    return round_half_up(base * n_actions / 3)


def payback_period(cost: float, benefit: float):
    if benefit <= 0:
        return math.inf

    weeks = cost / (benefit / 52)
    if weeks < 13:
        description = "fast"
    elif weeks < 26:
        description = "moderate"
    else:
        description = "slow"

    return {
        "weeks": round_half_up(weeks),
        "months": round_half_up(weeks / 4.33),
        "description": description,
    }


def cost_benefit(plan: Mapping[str, Any], metrics: Mapping[str, Any]) -> Dict[str, Any]:
    cost = estimate_implementation_cost(plan)
    benefit = _current_cash(metrics) * _impact(plan)

    return {
        "implementationCost": cost,
        "projectedBenefit": benefit,
        "netBenefit": benefit - cost,
        "roi": (benefit - cost) / cost * 100 if cost > 0 else 0,
        "paybackPeriod": payback_period(cost, benefit),
        "breakEvenPoint": cost / (benefit / 52) if benefit > 0 else math.inf,
    }


def success_probability(plan: Mapping[str, Any], metrics: Mapping[str, Any]) -> float:
    p = 0.5
    p += SUCCESS_EFFORT_ADJ.get(plan.get("effort"), 0)
    p += SUCCESS_RISK_ADJ.get((plan.get("impactEstimate") or {}).get("riskLevel"), 0)
    p += SUCCESS_CATEGORY_ADJ.get(plan.get("category"), 0)

    # None: cash positive and not burning, so no runway constraint
    days = runway_days(metrics)
    if days is None or days > 180:
        p += 0.15
    elif days < 30:
        p -= 0.2

    return max(0.1, min(0.95, p))


def simulate(plan: Mapping[str, Any], job: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Project how executing `plan` would reshape the job's stored forecast, with
    KPI, risk, timeline, cost/benefit and success estimates.

    The caller looks the plan up with find_plan first.
    """
    logger.info("Simulating execution of plan: %s", plan.get("title"))

    forecast = job.get("forecast") or {}
    forecasts = forecast.get("forecasts") or {}
    metrics = (job.get("diagnosis") or {}).get("metrics") or {}

    return {
        "planId": plan.get("id"),
        "planTitle": plan.get("title"),
        "category": plan.get("category"),
        "impactSummary": calculate_impact_summary(plan, metrics),
        "scenarios": simulate_all_scenarios(plan, forecasts),
        "kpiProjections": project_kpis(plan, metrics),
        "riskAssessment": assess_risk(plan),
        "implementationTimeline": implementation_timeline(plan),
        "costBenefitAnalysis": cost_benefit(plan, metrics),
        "successProbability": success_probability(plan, metrics),
    }
