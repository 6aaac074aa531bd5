# cashplan/services/errors.py

from __future__ import annotations


class CashplanError(Exception):
    """Base class for errors raised by the analysis pipeline."""


class InvalidInput(CashplanError, ValueError):
    """Record sequence is empty, not a sequence, or otherwise unusable."""


class NotFound(CashplanError, LookupError):
    """Unknown job id or plan id."""


class PlanNotFound(NotFound):
    def __init__(self, plan_id: str):
        super().__init__(f"plan not found: {plan_id}")
        self.plan_id = plan_id
