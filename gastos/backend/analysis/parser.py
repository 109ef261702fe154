from datetime import datetime
import re

from gastos.backend.dates import MONTH_MAP
from gastos.backend.parsing import collapse_spaces
from gastos.backend.parsing import fold_text
from gastos.backend.time_utils import DEFAULT_TIMEZONE
from gastos.backend.time_utils import today_in_timezone

MONTH_KEY_PATTERN = re.compile(r"^(20\d{2})-(\d{1,2})$")
MONTH_NAME_PATTERN = re.compile(r"^([a-z]+)(?:\s+(?:de(?:l)?\s+)?(20\d{2}))?$")


def _previous_month(year: int, month: int) -> tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def _format_month_key(year: int, month: int) -> str | None:
    if not 1 <= month <= 12:
        return None
    return f"{year:04d}-{month:02d}"


def parse_analysis_month(
    argument: str | None,
    timezone_name: str = DEFAULT_TIMEZONE,
    now: datetime | None = None,
) -> str | None:
    """Turn the argument of ``/analisis`` into a ``YYYY-MM`` month key.

    Accepts nothing (current month), ``2026-02``, ``mes pasado``, ``este mes``
    and Spanish month names with an optional year ("febrero", "feb 2025").
    Returns None when the argument is not understood.
    """
    base = today_in_timezone(timezone_name, now)
    normalized = collapse_spaces(fold_text(argument or ""))

    if not normalized or normalized == "este mes":
        return _format_month_key(base.year, base.month)

    if normalized == "mes pasado":
        year, month = _previous_month(base.year, base.month)
        return _format_month_key(year, month)

    key_match = MONTH_KEY_PATTERN.match(normalized)
    if key_match:
        return _format_month_key(int(key_match.group(1)), int(key_match.group(2)))

    name_match = MONTH_NAME_PATTERN.match(normalized)
    if name_match:
        month = MONTH_MAP.get(name_match.group(1))
        if month is None:
            return None
        if name_match.group(2):
            return _format_month_key(int(name_match.group(2)), month)
        # Without a year the latest month with that name that is not in the future.
        year = base.year if month <= base.month else base.year - 1
        return _format_month_key(year, month)

    return None
