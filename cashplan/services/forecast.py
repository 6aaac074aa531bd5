# cashplan/services/forecast.py

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence
import logging

import numpy as np
import pandas as pd

from cashplan.services.columns import SchemaMapping, detect_schema, numeric_series
from cashplan.services.errors import InvalidInput
from cashplan.utils.parsing import round_half_up

logger = logging.getLogger("cashplan.forecast")

ALLOWED_HORIZONS = (30, 60, 90)
SCENARIOS = ("base", "optimistic", "pessimistic")

DEFAULT_STARTING_CASH = 100000.0
DEFAULT_MONTHLY_INCOME = 50000.0
DEFAULT_MONTHLY_EXPENSE = 45000.0
DEFAULT_VOLATILITY = 0.15
MIN_VOLATILITY = 0.05
MAX_VOLATILITY = 0.30

DEMO_STARTING_CASH = 150000
DEMO_DAILY_NET_FLOW = -500


def validate_horizon(horizon: Any) -> int:
    if isinstance(horizon, bool) or (isinstance(horizon, float) and not horizon.is_integer()):
        raise InvalidInput(f"horizon must be one of {ALLOWED_HORIZONS}")
    try:
        h = int(horizon)
    except (TypeError, ValueError):
        raise InvalidInput(f"horizon must be one of {ALLOWED_HORIZONS}")
    if h not in ALLOWED_HORIZONS:
        raise InvalidInput(f"horizon must be one of {ALLOWED_HORIZONS}")
    return h


def estimate_volatility(cash: List[float]) -> float:
    """Mean absolute relative change between consecutive cash points, clamped.

    Changes against a zero balance are not finite and are skipped.
    """
    if len(cash) < 3:
        return DEFAULT_VOLATILITY

    s = pd.Series(cash, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        changes = (s.diff() / s.shift()).iloc[1:].abs()
    changes = changes[np.isfinite(changes)]
    if changes.empty:
        return DEFAULT_VOLATILITY

    return min(MAX_VOLATILITY, max(MIN_VOLATILITY, float(changes.mean())))


def _date_for(today: date, day: int) -> str:
    return (today + timedelta(days=day)).isoformat()


def first_break_day(series: List[Dict[str, Any]]) -> Optional[int]:
    for point in series:
        if point["value"] <= 0:
            return point["day"]
    return None


def calculate_break_risk(forecasts: Dict[str, List[Dict[str, Any]]], starting_cash: float, daily_net_flow: float) -> Dict[str, Any]:
    base_break = first_break_day(forecasts["base"])
    optimistic_break = first_break_day(forecasts["optimistic"])
    pessimistic_break = first_break_day(forecasts["pessimistic"])

    if pessimistic_break is not None and base_break is not None:
        probability = 0.7
    elif pessimistic_break is not None:
        probability = 0.3
    else:
        probability = 0.1

    break_days = [d for d in (base_break, pessimistic_break) if d is not None]
    days_to_break = round_half_up(sum(break_days) / len(break_days)) if break_days else None

    runway_months = None
    if daily_net_flow < 0:
        months = abs(starting_cash / (daily_net_flow * 30))
        runway_months = round_half_up(months, 1) or None

    return {
        "probability": probability,
        "days_to_break": days_to_break,
        "runway_months": runway_months,
        "scenario_breaks": {
            "base": base_break,
            "optimistic": optimistic_break,
            "pessimistic": pessimistic_break,
        },
    }


def generate_forecast(
    records: Optional[Sequence[Mapping[str, Any]]],
    horizon: int = 90,
    today: Optional[date] = None,
    schema: Optional[SchemaMapping] = None,
) -> Dict[str, Any]:
    """
    Project base/optimistic/pessimistic cash trajectories for `horizon` days.

    An empty record list produces the demo trajectory instead of failing. `today`
    anchors the date stamps and defaults to the current day.
    """
    horizon = validate_horizon(horizon)
    today = today or date.today()
    sample = list(records) if isinstance(records, (list, tuple)) else []

    logger.info("Generating %s-day forecast from %s data points", horizon, len(sample))

    if not sample:
        return generate_demo_forecast(horizon, today)

    schema = schema or detect_schema(sample)
    cash = numeric_series(sample, schema.cash)
    income = numeric_series(sample, schema.income)
    expenses = numeric_series(sample, schema.expenses)

    if not cash:
        logger.warning("No cash column values found; using default starting cash %s", DEFAULT_STARTING_CASH)

    latest_cash = cash[-1] if cash else DEFAULT_STARTING_CASH
    avg_income = float(np.mean(income)) if income else DEFAULT_MONTHLY_INCOME
    avg_expense = float(np.mean(expenses)) if expenses else DEFAULT_MONTHLY_EXPENSE
    monthly_net_flow = avg_income - avg_expense
    daily_net_flow = monthly_net_flow / 30

    volatility = estimate_volatility(cash)

    forecasts: Dict[str, List[Dict[str, Any]]] = {k: [] for k in SCENARIOS}
    current_cash = latest_cash

    for day in range(1, horizon + 1):
        current_cash += daily_net_flow
        base_value = max(0.0, current_cash)
        swing = base_value * volatility * 0.1
        optimistic_value = max(0.0, current_cash + daily_net_flow * 0.2 + swing)
        pessimistic_value = max(0.0, current_cash - daily_net_flow * 0.2 - swing)

        d = _date_for(today, day)
        forecasts["base"].append({"date": d, "day": day, "value": round_half_up(base_value)})
        forecasts["optimistic"].append({"date": d, "day": day, "value": round_half_up(optimistic_value)})
        forecasts["pessimistic"].append({"date": d, "day": day, "value": round_half_up(pessimistic_value)})

    break_risk = calculate_break_risk(forecasts, latest_cash, daily_net_flow)
    logger.info("Forecast generated. Break risk: %.1f%%", break_risk["probability"] * 100)

    return {
        "horizon": horizon,
        "starting_cash": round_half_up(latest_cash),
        "daily_net_flow": round_half_up(daily_net_flow),
        "monthly_net_flow": round_half_up(monthly_net_flow),
        "volatility": round_half_up(volatility, 2),
        "forecasts": forecasts,
        "break_risk": break_risk,
        "metadata": {
            "data_points": len(sample),
            "detected_columns": schema.as_detected_columns(),
        },
    }


def generate_demo_forecast(horizon: int, today: date) -> Dict[str, Any]:
    """Fixed burn trajectory shown when no data was uploaded."""
    logger.info("No data provided; generating demo forecast")

    forecasts: Dict[str, List[Dict[str, Any]]] = {k: [] for k in SCENARIOS}
    current_cash = DEMO_STARTING_CASH

    for day in range(1, horizon + 1):
        current_cash += DEMO_DAILY_NET_FLOW
        d = _date_for(today, day)
        # optimistic burns 30% less, pessimistic 50% more
        forecasts["base"].append({"date": d, "day": day, "value": max(0, current_cash)})
        forecasts["optimistic"].append({
            "date": d, "day": day,
            "value": max(0, round_half_up(current_cash + DEMO_DAILY_NET_FLOW * -0.3)),
        })
        forecasts["pessimistic"].append({
            "date": d, "day": day,
            "value": max(0, round_half_up(current_cash + DEMO_DAILY_NET_FLOW * 0.5)),
        })

    return {
        "horizon": horizon,
        "starting_cash": DEMO_STARTING_CASH,
        "daily_net_flow": DEMO_DAILY_NET_FLOW,
        "monthly_net_flow": DEMO_DAILY_NET_FLOW * 30,
        "volatility": DEFAULT_VOLATILITY,
        "forecasts": forecasts,
        "break_risk": {
            "probability": 0.23,
            "days_to_break": round_half_up(DEMO_STARTING_CASH / abs(DEMO_DAILY_NET_FLOW * 1.5)),
            "runway_months": round_half_up(DEMO_STARTING_CASH / abs(DEMO_DAILY_NET_FLOW * 30), 1),
            "scenario_breaks": {k: first_break_day(v) for k, v in forecasts.items()},
        },
        "metadata": {
            "data_points": 0,
            "demo_mode": True,
        },
    }
