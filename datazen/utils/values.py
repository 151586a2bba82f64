# datazen/utils/values.py
"""
Cell-level helpers shared by every stage of the data-quality pipeline.

A cell is whatever scalar the ingestion step handed over: None, bool, int,
float, str, or a date/datetime. Every heuristic below is an explicit parse
that returns None when it does not apply.
"""
import math
import re
from datetime import date, datetime
from typing import Any, Optional

import pandas as pd
from dateutil import parser as date_parser

_DECIMAL_LITERAL = r'[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?'
_FULL_NUMBER_RE = re.compile(rf'^{_DECIMAL_LITERAL}$')
_LEADING_NUMBER_RE = re.compile(rf'^{_DECIMAL_LITERAL}')
_LEADING_INT_RE = re.compile(r'^[+-]?\d+')
_CURRENCY_CHARS_RE = re.compile(r'[,$€£¥]')
_HAS_DIGIT_RE = re.compile(r'\d')
_BARE_INTEGER_RE = re.compile(r'^[+-]?\d+(?:st|nd|rd|th)?$', re.IGNORECASE)

# Partial dates ("March 2021") are completed from a fixed anchor, never from today
_DATE_DEFAULT = datetime(1970, 1, 1)


def is_missing(value: Any) -> bool:
    """True for None, NaN/NaT and empty or whitespace-only strings"""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ''
    if isinstance(value, (list, tuple, dict, set)):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _is_plain_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _finite(number: float) -> Optional[float]:
    """None for inf and NaN; overflowing literals such as '1e999' parse to inf"""
    return number if math.isfinite(number) else None


def parse_number(value: Any) -> Optional[float]:
    """Strict numeric coercion: the whole trimmed text must be a finite decimal literal"""
    if is_missing(value) or isinstance(value, bool):
        return None
    if _is_plain_number(value):
        return _finite(float(value))
    if isinstance(value, str):
        text = value.strip()
        if _FULL_NUMBER_RE.match(text):
            return _finite(float(text))
        return None
    # numpy scalars and Decimal
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return _finite(number)


def parse_leading_float(value: Any) -> Optional[float]:
    """Parse the leading decimal number once currency symbols and commas are removed"""
    if is_missing(value) or isinstance(value, bool):
        return None
    if _is_plain_number(value):
        return parse_number(value)
    text = _CURRENCY_CHARS_RE.sub('', str(value)).strip()
    match = _LEADING_NUMBER_RE.match(text)
    return _finite(float(match.group(0))) if match else None


def parse_leading_int(value: Any) -> Optional[int]:
    """Parse the leading integer once thousands separators are removed"""
    if is_missing(value) or isinstance(value, bool):
        return None
    if _is_plain_number(value):
        number = float(value)
        if math.isnan(number) or math.isinf(number):
            return None
        return int(number)
    text = str(value).replace(',', '').strip()
    match = _LEADING_INT_RE.match(text)
    return int(match.group(0)) if match else None


def parse_date(value: Any) -> Optional[date]:
    """Parse a calendar date, returning a datetime.date or None"""
    if is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = cell_to_text(value).strip()
    # Bare weekday/month names, plain integers and ordinals are not calendar dates
    if not _HAS_DIGIT_RE.search(text) or _BARE_INTEGER_RE.match(text):
        return None
    try:
        return date_parser.parse(text, default=_DATE_DEFAULT).date()
    except (ValueError, OverflowError, TypeError):
        return None


def cell_to_text(value: Any) -> str:
    """Render a cell the way it is displayed and counted"""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)
