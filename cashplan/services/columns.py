# cashplan/services/columns.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import re

from cashplan.utils.parsing import parse_financial_number


# Header variants seen in English and Spanish exports.
CASH_PATTERNS = ["cash", "balance", "closing", "efectivo", "saldo"]
INCOME_PATTERNS = ["income", "revenue", "ingreso", "venta", "facturaci[oó]n"]
EXPENSE_PATTERNS = ["expense", "cost", "gasto", "costo", "egreso"]
DATE_PATTERNS = ["date", "fecha", "period", "periodo"]

FIELD_PATTERNS: List[Tuple[str, List[str]]] = [
    ("cash", CASH_PATTERNS),
    ("income", INCOME_PATTERNS),
    ("expenses", EXPENSE_PATTERNS),
    ("date", DATE_PATTERNS),
]


def detect_column(records: Sequence[Mapping[str, Any]], patterns: Iterable[str]) -> Optional[str]:
    """First key of the first record matching any pattern (case-insensitive), or None."""
    if not records:
        return None
    compiled = [re.compile(p, re.IGNORECASE) for p in patterns]
    for key in records[0].keys():
        if any(rx.search(str(key)) for rx in compiled):
            return key
    return None


@dataclass(frozen=True)
class SchemaMapping:
    """Which column holds each logical field; None when nothing matched."""

    fields: Tuple[Tuple[str, Optional[str]], ...]

    def column(self, field: str) -> Optional[str]:
        for name, col in self.fields:
            if name == field:
                return col
        return None

    @property
    def cash(self) -> Optional[str]:
        return self.column("cash")

    @property
    def income(self) -> Optional[str]:
        return self.column("income")

    @property
    def expenses(self) -> Optional[str]:
        return self.column("expenses")

    @property
    def date(self) -> Optional[str]:
        return self.column("date")

    def financial_columns(self) -> List[str]:
        out: List[str] = []
        for col in (self.cash, self.income, self.expenses):
            if col is not None and col not in out:
                out.append(col)
        return out

    def as_detected_columns(self) -> Dict[str, Optional[str]]:
        return {"cashKey": self.cash, "incomeKey": self.income, "expenseKey": self.expenses}


def detect_schema(records: Sequence[Mapping[str, Any]]) -> SchemaMapping:
    return SchemaMapping(tuple((field, detect_column(records, pats)) for field, pats in FIELD_PATTERNS))


def numeric_series(records: Sequence[Mapping[str, Any]], column: Optional[str]) -> List[float]:
    """Parsed values of one column, unparseable cells dropped."""
    if column is None:
        return []
    out: List[float] = []
    for r in records:
        v = parse_financial_number(r.get(column))
        if v is not None:
            out.append(v)
    return out
