"""
Date parsing for imported cell values.

Source files arrive from payroll and training systems that disagree on
DD/MM vs MM/DD; ambiguous values follow ``settings.date_default_dayfirst``.
"""
import logging
import re
from datetime import date, datetime
from typing import Any, Optional

import pandas as pd

from app.core.config import settings

logger = logging.getLogger(__name__)

FAILED_SAMPLE_LIMIT = 5

_failure_count = 0
_NUMERIC_DATE = re.compile(r"^(\d{1,2})[/.-](\d{1,2})[/.-](\d{2,4})$")


def _record_parse_failure(value: Any, error: Exception) -> None:
    """Log the first few failures, then stay quiet."""
    global _failure_count
    _failure_count += 1
    if _failure_count <= FAILED_SAMPLE_LIMIT:
        logger.warning("Failed to parse date value '%s': %s", value, error)
    elif _failure_count == FAILED_SAMPLE_LIMIT + 1:
        logger.info("Suppressing further date parse warnings after %d failures", FAILED_SAMPLE_LIMIT)


def _prefer_dayfirst(first: int, second: int) -> bool:
    if first > 12 and second <= 31:
        return True
    if second > 12 and first <= 12:
        return False
    return settings.date_default_dayfirst


def parse_flexible_date(value: Any) -> Optional[date]:
    """
    Parse a date from the usual spreadsheet representations.

    Supports ISO dates and timestamps, DD/MM/YYYY and MM/DD/YYYY (with the
    most plausible ordering tried first), and anything else pandas can infer.

    Returns:
        A ``date`` or ``None`` when the value is blank or unparseable.
    """
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    attempts = []
    match = _NUMERIC_DATE.match(text)
    if match:
        dayfirst = _prefer_dayfirst(int(match.group(1)), int(match.group(2)))
        attempts.append(dayfirst)
        attempts.append(not dayfirst)
    else:
        attempts.append(None)

    last_error: Optional[Exception] = None
    for dayfirst in attempts:
        try:
            if dayfirst is None:
                parsed = pd.to_datetime(text, errors="raise")
            else:
                parsed = pd.to_datetime(text, dayfirst=dayfirst, errors="raise")
        except (ValueError, TypeError, OverflowError) as exc:
            last_error = exc
            continue
        if pd.isna(parsed):
            continue
        return parsed.date()

    _record_parse_failure(value, last_error or ValueError("unrecognized format"))
    return None
