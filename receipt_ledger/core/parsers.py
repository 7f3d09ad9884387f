"""
Parsers for normalizing values returned by the structuring service.
"""

import re
import datetime as dt
from typing import Any, Optional

DATE_PATTERNS = [
    r"\b(\d{4})[-/.](\d{1,2})[-/.](\d{1,2})\b",          # YYYY-MM-DD, YYYY/MM/DD, YYYY.MM.DD
    r"\b(\d{1,2})[-/.](\d{1,2})[-/.](\d{2,4})\b",        # MM/DD/YYYY or DD/MM/YYYY (heuristic later)
    r"\b([A-Za-z]{3,9})\.?\s+(\d{1,2}),?\s*(\d{4})\b",   # Month DD, YYYY
    r"\b(\d{1,2})\s+([A-Za-z]{3,9})\.?,?\s+(\d{4})\b",   # DD Month YYYY
]


def parse_date(text: str) -> Optional[str]:
    """Extract the first recognizable date from text as YYYY-MM-DD."""
    for pat in DATE_PATTERNS:
        for m in re.finditer(pat, text, flags=re.IGNORECASE):
            g = m.groups()
            try:
                if pat.startswith(r"\b(\d{4})"):
                    y, mo, d = int(g[0]), int(g[1]), int(g[2])
                elif pat.startswith(r"\b(\d{1,2})[-/.]"):
                    mo, d, y = int(g[0]), int(g[1]), int(g[2])
                    if y < 100:  # YY -> 20YY
                        y += 2000
                    # If looks like DD/MM, swap if mo > 12
                    if mo > 12 and d <= 12:
                        mo, d = d, mo
                elif pat.startswith(r"\b([A-Za-z]"):
                    mo = dt.datetime.strptime(g[0][:3], "%b").month
                    d, y = int(g[1]), int(g[2])
                else:
                    d = int(g[0])
                    mo = dt.datetime.strptime(g[1][:3], "%b").month
                    y = int(g[2])
                return dt.date(y, mo, d).isoformat()
            except ValueError:
                continue
    return None


def normalize_transaction_date(value: Any) -> str:
    """
    Normalize a date returned by the structuring service to YYYY-MM-DD.

    ISO values keep their date part; other formats go through
    :func:`parse_date`. Unrecognizable values are returned stripped so the
    record still carries what the service said.
    """
    if value is None:
        return ""
    s = str(value).strip()
    if not s:
        return ""
    try:
        return dt.date.fromisoformat(s[:10]).isoformat()
    except ValueError:
        pass
    return parse_date(s) or s


def parse_number(value: Any) -> Optional[float]:
    """Parse a number that may arrive as a string with currency symbols."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    s = re.sub(r"[^0-9.\-]", "", str(value).replace(",", ""))
    if not s:
        return None
    try:
        return float(s)
    except ValueError:
        return None
