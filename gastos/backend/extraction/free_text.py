from datetime import datetime
import re
import unicodedata

from gastos.backend.categories import categorize
from gastos.backend.dates import find_date_spans
from gastos.backend.dates import resolve_date
from gastos.backend.dates import to_iso_date
from gastos.backend.dates import today
from gastos.backend.extraction.records import ExpenseRecord
from gastos.backend.extraction.records import blank_spans
from gastos.backend.parsing import collapse_spaces
from gastos.backend.parsing import fold_text
from gastos.backend.parsing import normalize_amount
from gastos.backend.time_utils import DEFAULT_TIMEZONE

DEFAULT_CONCEPT = "Gasto"

# Numbers glued to a letter ("d1", "sitp12") are names, not amounts.
AMOUNT_TOKEN_PATTERN = re.compile(r"(?<![a-z\d])(?:\$\s*)?(\d[\d.,]*\s*k\b|\d[\d.,]*)")


def split_expense_lines(text: str | None) -> list[str]:
    if not text:
        return []

    normalized = text.replace("\r", "")
    parts = [part.strip() for line in normalized.split("\n") for part in line.split(";")]
    parts = [part for part in parts if part]
    if parts:
        return parts

    stripped = text.strip()
    return [stripped] if stripped else []


def _overlaps(span: tuple[int, int], others: list[tuple[int, int]]) -> bool:
    start, end = span
    return any(start < other_end and other_start < end for other_start, other_end in others)


def _find_amount_span(folded: str, date_spans: list[tuple[int, int]]) -> tuple[int, int] | None:
    for match in AMOUNT_TOKEN_PATTERN.finditer(folded):
        if not _overlaps(match.span(), date_spans):
            return match.span()
    return None


def parse_expense_line(
    line: str,
    timezone_name: str = DEFAULT_TIMEZONE,
    now: datetime | None = None,
) -> ExpenseRecord | None:
    """Parse one chat line such as "20000 almuerzo hoy" or "pagué 150k mercado ayer"."""
    s = unicodedata.normalize("NFC", str(line)).strip()
    folded = fold_text(s)
    date_spans = find_date_spans(folded)

    amount_span = _find_amount_span(folded, date_spans)
    if amount_span is None:
        return None

    amount = normalize_amount(s[amount_span[0] : amount_span[1]])
    if not amount:
        return None

    resolved = resolve_date(s, timezone_name, now) or today(timezone_name, now)

    concept = collapse_spaces(blank_spans(s, [amount_span, *date_spans]))
    if not concept:
        concept = DEFAULT_CONCEPT

    return ExpenseRecord(
        date_iso=to_iso_date(resolved),
        concept=concept,
        amount=amount,
        category=categorize(concept),
    )


def parse_free_text(
    message: str | None,
    timezone_name: str = DEFAULT_TIMEZONE,
    now: datetime | None = None,
) -> list[ExpenseRecord]:
    records: list[ExpenseRecord] = []
    for line in split_expense_lines(message):
        record = parse_expense_line(line, timezone_name=timezone_name, now=now)
        if record is not None:
            records.append(record)
    return records
