# cashplan/services/recommendations.py

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional
import copy
import logging
import math

import shortuuid

from cashplan.services.plan_catalog import BUCKETS
from cashplan.utils.parsing import round_half_up

logger = logging.getLogger("cashplan.recommendations")

URGENCY_MULTIPLIER = {"critical": 3, "high": 2, "medium": 1.5, "low": 1}
EFFORT_PENALTY = {"low": 1, "medium": 0.8, "high": 0.6}
RISK_PENALTY = {"low": 1, "medium": 0.9, "high": 0.7}

TOP_N = 3


def _num(x: Any, default: float = 0.0) -> float:
    try:
        v = float(x)
    except (TypeError, ValueError):
        return default
    return v if math.isfinite(v) else default


# -------------------------
# Metric reconciliation
# -------------------------

def runway_days(metrics: Mapping[str, Any]) -> Optional[float]:
    """
    Diagnosis runway (months) as days.

    Diagnosis reports 0 both for "not burning" and "no cash". Only the second is a
    constraint: it maps to 0 days, the first to None.
    """
    runway = _num(metrics.get("runway"))
    if runway > 0:
        return runway * 30
    if _num(metrics.get("cashBalance")) <= 0:
        return 0.0
    return None


def break_risk_probability(forecast: Mapping[str, Any]) -> float:
    br = forecast.get("break_risk") or {}
    return _num(br.get("probability")) if isinstance(br, Mapping) else 0.0


# -------------------------
# Scoring
# -------------------------

def calculate_urgency(metrics: Mapping[str, Any], forecast: Mapping[str, Any]) -> str:
    score = 0

    days = runway_days(metrics)
    if days is not None:
        if days < 30:
            score += 10
        elif days < 60:
            score += 8
        elif days < 90:
            score += 6
        elif days < 180:
            score += 4

    burn = _num(metrics.get("monthlyBurn"))
    cash = _num(metrics.get("cashBalance"))
    if burn > 0 and cash > 0:
        ratio = burn / cash
        if ratio > 0.2:
            score += 5
        elif ratio > 0.1:
            score += 3

    risk = break_risk_probability(forecast)
    if risk > 0.7:
        score += 4
    elif risk > 0.5:
        score += 2

    if score >= 10:
        return "critical"
    if score >= 6:
        return "high"
    if score >= 3:
        return "medium"
    return "low"


def calculate_priority_score(plan: Mapping[str, Any], urgency: str) -> float:
    impact = plan.get("impactEstimate") or {}
    score = _num(impact.get("cashIncreasePct")) * 100
    score *= URGENCY_MULTIPLIER.get(urgency, 1)
    score *= EFFORT_PENALTY.get(plan.get("effort"), 0.8)
    score *= RISK_PENALTY.get(impact.get("riskLevel"), 0.9)
    return round_half_up(score, 1)


# -------------------------
# Plan generation
# -------------------------

def select_bucket(metrics: Mapping[str, Any]) -> str:
    days = runway_days(metrics)
    if days is not None and days < 90:
        return "crisis"
    if days is not None and days < 180:
        return "cautious"
    return "growth"


def _instantiate(template: Mapping[str, Any]) -> Dict[str, Any]:
    plan = copy.deepcopy(dict(template))
    plan["id"] = shortuuid.uuid()
    return plan


def alert_response_plans(alerts: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    plans = []
    for alert in alerts or []:
        if alert.get("severity") not in ("red", "high"):
            continue
        plans.append({
            "id": shortuuid.uuid(),
            "title": f"Immediate action: {alert.get('title', 'alert')}",
            "description": f"{alert.get('description', '')} Requires urgent attention.".strip(),
            "category": "alert_response",
            "priority": "high",
            "effort": "medium",
            "timeframe": "1-2 weeks",
            "impactEstimate": {
                "cashIncreasePct": 0.12,
                "timeToImplement": 7,
                "riskLevel": "medium",
            },
            "actions": [alert.get("recommendation") or "Review and fix this issue immediately"],
            "kpis": ["Resolution of the identified issue"],
        })
    return plans


def contextual_insights(metrics: Mapping[str, Any], forecast: Mapping[str, Any]) -> List[str]:
    insights = []

    days = runway_days(metrics)
    if days is not None and days < 90:
        insights.append("Critical situation: less than 90 days of liquidity available")

    if break_risk_probability(forecast) > 0.6:
        insights.append("High risk of running out of cash within the forecast horizon")

    if _num(metrics.get("monthlyBurn")) < 0:
        insights.append("Positive cash flow: opportunity for strategic reinvestment")

    return insights


def recommend(diagnosis: Optional[Mapping[str, Any]], forecast: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Pick a plan bucket from the runway, add alert-driven plans, score and rank.

    Returns the top 3 plans, the top-scoring one as `recommended`, the urgency
    level and a few context insight strings.
    """
    diagnosis = diagnosis or {}
    forecast = forecast or {}
    metrics = diagnosis.get("metrics") or {}
    alerts = diagnosis.get("alerts") or []

    urgency = calculate_urgency(metrics, forecast)
    bucket = select_bucket(metrics)

    plans = [_instantiate(t) for t in BUCKETS[bucket]]
    plans.extend(alert_response_plans(alerts))

    for plan in plans:
        plan["priorityScore"] = calculate_priority_score(plan, urgency)

    ranked = sorted(plans, key=lambda p: p["priorityScore"], reverse=True)

    logger.info(
        "Recommendations: bucket=%s urgency=%s candidates=%s top=%s",
        bucket, urgency, len(ranked), ranked[0]["title"],
    )

    return {
        "plans": ranked[:TOP_N],
        "recommended": ranked[0],
        "urgency": urgency,
        "context": contextual_insights(metrics, forecast),
    }
