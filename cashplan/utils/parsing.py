from __future__ import annotations

from io import BytesIO
from typing import Any, Dict, List, Optional
import math
import re
from decimal import Decimal, InvalidOperation, ROUND_FLOOR

import pandas as pd

from cashplan.services.errors import InvalidInput


_NON_NUMERIC_RE = re.compile(r"[^0-9.\-]")


def parse_financial_number(x: Any) -> Optional[float]:
    """Parse a money/amount cell into a float.

    Everything that is not a digit, a sign or a decimal point is stripped first, so
    the common export formats all parse:
      - $5,209.32   -> 5209.32
      - -5,903.09   -> -5903.09
      - 5 903.09    -> 5903.09
      - 12000 MXN   -> 12000.0

    Returns None for blanks/NaN/unparseable values; callers decide whether to drop
    the cell or fail.
    """
    if x is None or isinstance(x, bool):
        return None

    if isinstance(x, (int, float)):
        out = float(x)
        return out if math.isfinite(out) else None

    s = _NON_NUMERIC_RE.sub("", str(x).strip())
    if s == "":
        return None

    try:
        val = Decimal(s)
    except (InvalidOperation, ValueError):
        return None

    if not val.is_finite():
        return None
    return float(val)


def round_half_up(x: float, ndigits: int = 0):
    """Round halves toward positive infinity (2.5 -> 3, -2.5 -> -2), not banker's rounding.

    ndigits=0 returns an int.
    """
    q = Decimal(1).scaleb(-ndigits)
    val = (Decimal(str(x)) + q / 2).quantize(q, rounding=ROUND_FLOOR)
    return int(val) if ndigits == 0 else float(val)


def normalize_header(name: Any) -> str:
    return str(name).strip().lower()


def load_records_from_csv(file_bytes: bytes) -> List[Dict[str, Any]]:
    """Turn an uploaded CSV into the record list the engines consume.

    Headers are stripped and lower-cased. Cells are read as strings (blanks stay
    ""), then the columns detected as cash/income/expenses are converted to floats
    where they parse. Unparseable financial cells keep their raw text; the engines
    drop them when they build numeric series.
    """
    # local import: columns.py imports parse_financial_number from here
    from cashplan.services.columns import detect_schema

    if not file_bytes or not file_bytes.strip():
        raise InvalidInput("CSV file is empty")

    try:
        df = pd.read_csv(BytesIO(file_bytes), dtype=str, keep_default_na=False, skipinitialspace=True)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise InvalidInput(f"CSV could not be parsed: {e}")

    if len(df.columns) == 0:
        raise InvalidInput("CSV has no header row")

    df.columns = [normalize_header(c) for c in df.columns]
    df = df.loc[:, ~df.columns.duplicated()]
    for c in df.columns:
        df[c] = df[c].astype(str).str.strip()

    records = df.to_dict(orient="records")
    if not records:
        return []

    schema = detect_schema(records)
    for col in schema.financial_columns():
        for r in records:
            parsed = parse_financial_number(r[col])
            if parsed is not None:
                r[col] = parsed

    return records
