"""Locale-tolerant coercion of OCR values into numbers and strings.

Vision-model output mixes native JSON numbers with Brazilian-formatted
strings ("1.234,56"), international strings ("1234.56") and decorated
values ("R$ 45,20", "350 kWh"). Every field read from the model passes
through one of these helpers; anything that cannot be read cleanly becomes
``None`` rather than ``0`` or ``nan``.
"""
from __future__ import annotations

import math
import re

_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_LEADING_FLOAT = re.compile(r"^-?(?:\d+(?:\.\d*)?|\.\d+)")


def normalize_separators(raw: str) -> str:
    """Rewrite decimal/thousands separators to a plain decimal point.

    - both ``.`` and ``,`` present: ``.`` groups thousands, ``,`` is decimal
    - only ``,`` present: ``,`` is decimal
    - only ``.`` present: left untouched
    """
    has_dot = "." in raw
    has_comma = "," in raw
    if has_dot and has_comma:
        return raw.replace(".", "").replace(",", ".")
    if has_comma:
        return raw.replace(",", ".")
    return raw


def to_number(value: object) -> float | None:
    """Coerce *value* to a finite float, or ``None`` when it is not one."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    if not isinstance(value, str):
        return None

    raw = value.strip()
    if not raw:
        return None

    cleaned = _NON_NUMERIC.sub("", normalize_separators(raw))
    if cleaned in ("", "-", "."):
        return None

    # Longest numeric prefix wins: "1.2.3" reads as 1.2, "12-3" as 12.
    match = _LEADING_FLOAT.match(cleaned)
    if match is None:
        return None
    number = float(match.group(0))
    return number if math.isfinite(number) else None


def to_int(value: object) -> int | None:
    """Coerce *value* to an int, truncating toward zero."""
    number = to_number(value)
    if number is None:
        return None
    return math.trunc(number)


def to_non_empty_string(value: object) -> str | None:
    """Return the trimmed string, or ``None`` for blanks and non-strings."""
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def to_string_list(value: object) -> list[str]:
    """Keep the non-blank string entries of a list; anything else is empty."""
    if not isinstance(value, list):
        return []
    items: list[str] = []
    for entry in value:
        text = to_non_empty_string(entry)
        if text is not None:
            items.append(text)
    return items
