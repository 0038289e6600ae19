from __future__ import annotations


def parse_int(text: str | None, *, default: int = 0) -> int:
    """Parse a whole-number string as found in upstream feeds.

    Heuristics:
    - None/"" -> default
    - surrounding whitespace is ignored
    - optional leading sign
    - anything else (decimals, thousands separators, words) -> default
    """

    if text is None:
        return default
    s = str(text).strip()
    if not s:
        return default
    digits = s[1:] if s[0] in "+-" else s
    if not digits.isascii() or not digits.isdigit():
        return default
    return int(s)


def parse_float(text: str | None) -> float | None:
    """Parse a float; None for missing or non-numeric input."""

    if text is None:
        return None
    s = str(text).strip()
    if not s:
        return None
    try:
        return float(s)
    except ValueError:
        return None


def non_negative(value: int) -> int:
    return value if value > 0 else 0


def blank_to_none(text: str | None) -> str | None:
    """Trim; empty strings become None."""

    if text is None:
        return None
    s = str(text).strip()
    return s or None
