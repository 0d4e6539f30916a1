# casamatch/domain/parsing.py
from __future__ import annotations

import re
from typing import Any

_DIGITS = re.compile(r"\d+(?:[.,]\d+)*")


def to_int(x: Any) -> int | None:
    if x is None or x == "" or isinstance(x, bool):
        return None
    if isinstance(x, (int, float)):
        return int(x)
    try:
        return int(float(x))
    except (TypeError, ValueError):
        return None


def to_float(x: Any) -> float | None:
    if x is None or x == "" or isinstance(x, bool):
        return None
    try:
        return float(x)
    except (TypeError, ValueError):
        return None


def to_str(x: Any) -> str | None:
    if x is None:
        return None
    s = str(x).strip()
    return s or None


def _number_token(token: str) -> float | None:
    """
    Italian formatting: '.' groups thousands, ',' is the decimal separator.
    A single '.' followed by anything but three digits is a plain decimal point ("300000.0").
    """
    if "," not in token and token.count(".") == 1 and len(token.split(".")[1]) != 3:
        return to_float(token)
    return to_float(token.replace(".", "").replace(",", "."))


def _first_number(x: Any) -> float | None:
    if isinstance(x, (int, float)) and not isinstance(x, bool):
        return float(x)
    s = to_str(x)
    if not s:
        return None
    m = _DIGITS.search(s)
    if not m:
        return None
    return _number_token(m.group(0))


def parse_euro_amount(x: Any) -> int | None:
    """Portal prices show up as 300000, "300000", "€ 300.000", "300.000 €" or {"value": 300000}."""
    if isinstance(x, dict):
        return parse_euro_amount(x.get("value") or x.get("amount") or x.get("raw"))
    n = _first_number(x)
    return int(n) if n is not None else None


def parse_surface(x: Any) -> float | None:
    """'80 m²', '80 mq' -> 80.0; '67,5' -> 67.5"""
    if isinstance(x, dict):
        return parse_surface(x.get("value"))
    return _first_number(x)


def get_first(payload: dict[str, Any], *keys: str) -> Any:
    """Return first non-empty value; keys may be dot-paths."""
    for k in keys:
        v = get_nested(payload, k) if "." in k else payload.get(k)
        if v is None:
            continue
        if isinstance(v, str) and not v.strip():
            continue
        return v
    return None


def get_nested(payload: dict[str, Any], path: str) -> Any:
    """Tiny dot-path getter: 'analytics.advertiser' or 'contacts.agencyName'."""
    cur: Any = payload
    for part in path.split("."):
        if not isinstance(cur, dict):
            return None
        cur = cur.get(part)
        if cur is None:
            return None
    return cur
