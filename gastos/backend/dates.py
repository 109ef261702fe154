from datetime import date
from datetime import datetime
from datetime import timedelta
import re

from gastos.backend.parsing import fold_text
from gastos.backend.time_utils import DEFAULT_TIMEZONE
from gastos.backend.time_utils import today_in_timezone

MONTH_MAP = {
    "enero": 1,
    "ene": 1,
    "febrero": 2,
    "feb": 2,
    "marzo": 3,
    "mar": 3,
    "abril": 4,
    "abr": 4,
    "mayo": 5,
    "may": 5,
    "junio": 6,
    "jun": 6,
    "julio": 7,
    "jul": 7,
    "agosto": 8,
    "ago": 8,
    "septiembre": 9,
    "setiembre": 9,
    "sep": 9,
    "set": 9,
    "octubre": 10,
    "oct": 10,
    "noviembre": 11,
    "nov": 11,
    "diciembre": 12,
    "dic": 12,
}

# date.weekday() numbering. "mar" is left out: it is also March and "sea".
WEEKDAY_MAP = {
    "lunes": 0,
    "lun": 0,
    "martes": 1,
    "miercoles": 2,
    "mie": 2,
    "jueves": 3,
    "jue": 3,
    "viernes": 4,
    "vie": 4,
    "sabado": 5,
    "sab": 5,
    "domingo": 6,
    "dom": 6,
}

# Month names more than this many days ahead refer to last year.
FUTURE_TOLERANCE_DAYS = 7

TODAY_PATTERN = re.compile(r"\bhoy\b")
DAY_BEFORE_YESTERDAY_PATTERN = re.compile(r"\b(?:anteayer|antier)\b")
YESTERDAY_PATTERN = re.compile(r"\bayer\b")
ISO_DATE_PATTERN = re.compile(r"\b(20\d{2})-(\d{2})-(\d{2})\b")
DAY_MONTH_PATTERN = re.compile(r"\b(\d{1,2})[/\-](\d{1,2})(?:[/\-](20\d{2}))?\b")
DAY_MONTH_NAME_PATTERN = re.compile(r"\b(\d{1,2})\s+(?:de\s+)?([a-z]+)\b")
WEEKDAY_PATTERN = re.compile(
    r"\b(" + "|".join(sorted(WEEKDAY_MAP, key=len, reverse=True)) + r")\b"
)


def today(timezone_name: str = DEFAULT_TIMEZONE, now: datetime | None = None) -> date:
    return today_in_timezone(timezone_name, now)


def to_iso_date(value: date) -> str:
    return value.isoformat()


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _one_year_earlier(value: date) -> date:
    try:
        return value.replace(year=value.year - 1)
    except ValueError:
        return value.replace(year=value.year - 1, day=28)


def _resolve_day_month_name(text: str, base: date) -> date | None:
    for match in DAY_MONTH_NAME_PATTERN.finditer(text):
        month = MONTH_MAP.get(match.group(2))
        if month is None:
            continue

        candidate = _safe_date(base.year, month, int(match.group(1)))
        if candidate is None:
            continue

        if candidate > base + timedelta(days=FUTURE_TOLERANCE_DAYS):
            return _one_year_earlier(candidate)
        return candidate
    return None


def resolve_date(text: str | None, timezone_name: str = DEFAULT_TIMEZONE, now: datetime | None = None) -> date | None:
    """Resolve a Spanish date expression ("hoy", "ayer", "15/03", "2 de marzo", "lunes").

    Returns None when nothing date-like is found or the numeric date is not a
    real calendar day; callers fall back to ``today``.
    """
    if not text:
        return None

    s = fold_text(str(text))
    base = today(timezone_name, now)

    if TODAY_PATTERN.search(s):
        return base
    if DAY_BEFORE_YESTERDAY_PATTERN.search(s):
        return base - timedelta(days=2)
    if YESTERDAY_PATTERN.search(s):
        return base - timedelta(days=1)

    iso = ISO_DATE_PATTERN.search(s)
    if iso:
        return _safe_date(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))

    dmy = DAY_MONTH_PATTERN.search(s)
    if dmy:
        year = int(dmy.group(3)) if dmy.group(3) else base.year
        return _safe_date(year, int(dmy.group(2)), int(dmy.group(1)))

    by_name = _resolve_day_month_name(s, base)
    if by_name is not None:
        return by_name

    weekday = WEEKDAY_PATTERN.search(s)
    if weekday:
        diff = (base.weekday() - WEEKDAY_MAP[weekday.group(1)]) % 7
        return base - timedelta(days=diff)

    return None


def find_date_spans(folded: str) -> list[tuple[int, int]]:
    """Spans of every date expression in already folded text."""
    spans: list[tuple[int, int]] = []
    for pattern in (
        TODAY_PATTERN,
        DAY_BEFORE_YESTERDAY_PATTERN,
        YESTERDAY_PATTERN,
        ISO_DATE_PATTERN,
        DAY_MONTH_PATTERN,
        WEEKDAY_PATTERN,
    ):
        spans.extend(match.span() for match in pattern.finditer(folded))

    for match in DAY_MONTH_NAME_PATTERN.finditer(folded):
        if match.group(2) in MONTH_MAP:
            spans.append(match.span())

    return sorted(spans)
