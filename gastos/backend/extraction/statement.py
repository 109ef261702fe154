from datetime import datetime
import re
import unicodedata

from gastos.backend.categories import categorize
from gastos.backend.dates import resolve_date
from gastos.backend.dates import to_iso_date
from gastos.backend.dates import today
from gastos.backend.extraction.records import ExpenseRecord
from gastos.backend.extraction.records import blank_spans
from gastos.backend.extraction.records import dedupe_records
from gastos.backend.parsing import collapse_spaces
from gastos.backend.parsing import fold_text
from gastos.backend.parsing import normalize_amount
from gastos.backend.time_utils import DEFAULT_TIMEZONE

DEFAULT_CONCEPT = "Movimiento Bancolombia"

ADMIN_LINE_PATTERN = re.compile(
    r"(saldo|disponible|total|resumen|fecha\s+descripcion|referenc|oficina|\bnit\b|cuenta)"
)
INCOME_LINE_PATTERN = re.compile(
    r"(abono|consign|pago\s+recib|ingreso|transferencia\s+recib)"
)
STATEMENT_DATE_PATTERN = re.compile(r"\b(\d{1,2})[/\-](\d{1,2})(?:[/\-](20\d{2}))?\b")
MONEY_TOKEN_PATTERN = re.compile(r"(?<![a-z\d])-?\$?\s*\d[\d.,]*")


def choose_amount_token(candidates: list[str]) -> str | None:
    """Pick the movement amount among the money tokens of a statement line.

    A token with an explicit minus sign is a debit and wins. Without one the
    last token is used, since scanned layouts usually end with the amount
    column. Unsigned lines are a guess, not a verified reading.
    """
    if not candidates:
        return None
    for candidate in candidates:
        if "-" in candidate:
            return candidate
    return candidates[-1]


def parse_statement_line(
    line: str,
    timezone_name: str = DEFAULT_TIMEZONE,
    now: datetime | None = None,
) -> ExpenseRecord | None:
    s = unicodedata.normalize("NFC", line).strip()
    folded = fold_text(s)

    if ADMIN_LINE_PATTERN.search(folded):
        return None

    date_match = STATEMENT_DATE_PATTERN.search(folded)
    if not date_match:
        return None

    # Only debits are tracked.
    if INCOME_LINE_PATTERN.search(folded):
        return None

    without_date = blank_spans(folded, [date_match.span()])
    money_spans = [match.span() for match in MONEY_TOKEN_PATTERN.finditer(without_date)]
    candidates = [s[start:end].strip() for start, end in money_spans]
    chosen = choose_amount_token(candidates)
    if chosen is None:
        return None

    amount = normalize_amount(chosen)
    if not amount:
        return None

    date_text = s[date_match.start() : date_match.end()]
    resolved = resolve_date(date_text, timezone_name, now) or today(timezone_name, now)

    concept = collapse_spaces(blank_spans(s, [date_match.span(), *money_spans]))
    if not concept:
        concept = DEFAULT_CONCEPT

    return ExpenseRecord(
        date_iso=to_iso_date(resolved),
        concept=concept,
        amount=amount,
        category=categorize(concept),
    )


def parse_statement(
    ocr_text: str | None,
    timezone_name: str = DEFAULT_TIMEZONE,
    now: datetime | None = None,
) -> list[ExpenseRecord]:
    """Extract debit movements from OCR text of a Bancolombia statement."""
    lines = [line.strip() for line in str(ocr_text or "").split("\n")]

    movements: list[ExpenseRecord] = []
    for line in lines:
        if not line:
            continue
        record = parse_statement_line(line, timezone_name=timezone_name, now=now)
        if record is not None:
            movements.append(record)

    return dedupe_records(movements)
