"""Convert raw CSV strings into typed values per column spec."""

from __future__ import annotations

import math
import re
import warnings
from collections.abc import Callable
from datetime import date
from typing import Any

import pandas as pd

from permitdex.importing.arabic import contains_arabic
from permitdex.importing.schemas import ColumnSpec, ColumnType

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
# Day-first: 15-06-2021, 5/6/2021, 05.06.2021. Ambiguous values (both parts <= 12) are read day-first.
_DAY_FIRST = re.compile(r"^(\d{1,2})[-/.](\d{1,2})[-/.](\d{4})$")
_YEAR_FIRST_SLASH = re.compile(r"^(\d{4})/(\d{1,2})/(\d{1,2})$")

_TRUE_VALUES = frozenset({"true", "1"})


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value == ""


def _iso(year: str, month: str, day: str) -> str | None:
    try:
        return date(int(year), int(month), int(day)).isoformat()
    except ValueError:
        return None


def parse_date(value: Any) -> str | None:
    """Normalize a date string to ``YYYY-MM-DD``.

    Accepts ISO dates, day-first ``D-M-YYYY`` / ``D/M/YYYY`` / ``D.M.YYYY``, ``YYYY/M/D``,
    and anything else pandas can parse unambiguously. Returns ``None`` for
    blank, unparseable or impossible calendar dates.
    """
    if _is_blank(value):
        return None

    text = str(value).strip()
    if not text:
        return None

    match = _ISO_DATE.match(text)
    if match:
        return _iso(*match.groups())

    match = _DAY_FIRST.match(text)
    if match:
        day, month, year = match.groups()
        return _iso(year, month, day)

    match = _YEAR_FIRST_SLASH.match(text)
    if match:
        return _iso(*match.groups())

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        try:
            parsed = pd.to_datetime(text, errors="coerce")
        except (ValueError, TypeError, OverflowError):
            return None
    if parsed is None or pd.isna(parsed):
        return None
    return parsed.date().isoformat()


def parse_number(value: Any) -> int | float | None:
    """Parse a numeric string; integral values come back as ``int``."""
    if _is_blank(value):
        return None
    if isinstance(value, bool):
        return int(value)
    text = str(value).strip()
    # float() accepts "1_000"; digit separators are not valid CSV numbers
    if "_" in text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    if number.is_integer():
        return int(number)
    return number


def parse_boolean(value: Any) -> bool:
    """``true``/``1`` (any case) are True; everything else, blanks included, is False."""
    if _is_blank(value):
        return False
    return str(value).strip().lower() in _TRUE_VALUES


def coerce_value(
    value: Any,
    column: ColumnSpec,
    translate: Callable[[str], str] | None = None,
) -> Any:
    """Coerce one raw value for ``column``.

    ``translate`` is applied to Arabic text in translatable text columns; the
    caller passes it only for columns the operator enabled translation on.
    """
    if column.type is ColumnType.NUMBER:
        return parse_number(value)
    if column.type is ColumnType.BOOLEAN:
        return parse_boolean(value)
    if column.type is ColumnType.DATE:
        return parse_date(value)

    if _is_blank(value):
        return None
    text = str(value)
    if translate is not None and column.translatable and contains_arabic(text):
        return translate(text)
    return text
