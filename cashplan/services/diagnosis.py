# cashplan/services/diagnosis.py

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence
import logging

import numpy as np

from cashplan.services.columns import SchemaMapping, detect_schema, numeric_series
from cashplan.services.errors import InvalidInput
from cashplan.utils.parsing import round_half_up

logger = logging.getLogger("cashplan.diagnosis")


def _mean(xs: List[float]) -> float:
    return float(np.mean(xs)) if xs else 0.0


def _validate_records(records: Any) -> None:
    if not isinstance(records, (list, tuple)) or len(records) == 0:
        raise InvalidInput("Data must be a non-empty list of records")
    if not all(isinstance(r, Mapping) for r in records):
        raise InvalidInput("Every record must be a mapping of column -> value")


def cash_trend_pct(cash: List[float]) -> float:
    """% change of the last 3 cash points vs the 3 before them (0 with < 6 points)."""
    if len(cash) < 6:
        return 0.0
    recent = _mean(cash[-3:])
    older = _mean(cash[-6:-3])
    if older == 0:
        return 0.0
    return (recent - older) / older * 100


def diagnose(records: Sequence[Mapping[str, Any]], schema: Optional[SchemaMapping] = None) -> Dict[str, Any]:
    """
    Point-in-time and trend metrics for a record list, plus severity-tagged alerts.

    Raises InvalidInput for an empty or non-list input. Missing/unparseable columns
    degrade to zero-valued metrics.
    """
    _validate_records(records)
    schema = schema or detect_schema(records)

    logger.info(
        "Analyzing %s records. Detected columns cash=%s income=%s expenses=%s",
        len(records), schema.cash, schema.income, schema.expenses,
    )

    cash = numeric_series(records, schema.cash)
    income = numeric_series(records, schema.income)
    expenses = numeric_series(records, schema.expenses)

    latest_cash = cash[-1] if cash else 0.0
    avg_income = _mean(income)
    avg_expense = _mean(expenses)
    monthly_burn = avg_expense - avg_income

    # runway stays 0 when the business is not burning cash
    runway = 0.0
    if latest_cash > 0 and monthly_burn > 0:
        runway = latest_cash / monthly_burn

    gross_margin = (avg_income - avg_expense) / avg_income * 100 if avg_income > 0 else 0.0

    detected = schema.as_detected_columns()
    detected["dateKey"] = schema.date or "date"

    metrics = {
        "cashBalance": round_half_up(latest_cash),
        "monthlyRevenue": round_half_up(avg_income),
        "monthlyExpenses": round_half_up(avg_expense),
        "monthlyBurn": round_half_up(monthly_burn),
        "runway": round_half_up(runway, 1),
        "cashTrend": round_half_up(cash_trend_pct(cash), 1),
        "grossMargin": round_half_up(gross_margin, 1),
        "dataPoints": len(records),
        "detectedColumns": detected,
    }

    alerts = generate_alerts(metrics)
    logger.info("Analysis complete: %s alerts generated", len(alerts))
    return {"metrics": metrics, "alerts": alerts}


def _alert(alert_id: str, severity: str, title: str, description: str, impact: str, recommendation: str) -> Dict[str, str]:
    return {
        "id": alert_id,
        "severity": severity,
        "title": title,
        "description": description,
        "impact": impact,
        "recommendation": recommendation,
    }


def generate_alerts(metrics: Mapping[str, Any]) -> List[Dict[str, str]]:
    alerts: List[Dict[str, str]] = []

    cash = metrics["cashBalance"]
    runway = metrics["runway"]
    margin = metrics["grossMargin"]
    trend = metrics["cashTrend"]

    if cash <= 0:
        alerts.append(_alert(
            "critical_cash", "red", "Critical liquidity",
            "Cash balance is zero or negative. Immediate attention required.",
            "High",
            "Review receivables and look for emergency financing.",
        ))

    if 0 < runway < 3:
        alerts.append(_alert(
            "low_runway", "red", "Critical runway",
            f"Only {runway} months of cash left at the current burn rate.",
            "High",
            "Cut expenses or increase revenue immediately.",
        ))

    if metrics["monthlyBurn"] > metrics["monthlyRevenue"] * 0.8:
        alerts.append(_alert(
            "high_burn", "yellow", "High burn rate",
            "Net burn exceeds 80% of monthly revenue.",
            "Medium",
            "Review operating expenses and look for efficiencies.",
        ))

    if trend < -15:
        alerts.append(_alert(
            "negative_trend", "yellow", "Negative cash trend",
            f"Cash has dropped {abs(trend):.1f}% recently.",
            "Medium",
            "Analyze the causes of the decline and take corrective action.",
        ))

    if 0 < margin < 20:
        alerts.append(_alert(
            "low_margin", "yellow", "Low gross margin",
            f"Gross margin is only {margin}%.",
            "Medium",
            "Review pricing or reduce direct costs.",
        ))

    if runway >= 6:
        alerts.append(_alert(
            "healthy_runway", "green", "Healthy runway",
            f"You have {runway} months of cash available.",
            "Positive",
            "Keep spending under control and consider growth opportunities.",
        ))

    if margin >= 40:
        alerts.append(_alert(
            "good_margin", "green", "Healthy margin",
            f"Gross margin of {margin}% is above average.",
            "Positive",
            "Strong cost control. Consider reinvesting in growth.",
        ))

    if not any(a["severity"] == "red" for a in alerts):
        alerts.append(_alert(
            "general_health", "green", "Stable financial position",
            "No immediate financial risks detected.",
            "Positive",
            "Keep monitoring key metrics monthly.",
        ))

    return alerts
