from datetime import datetime
import re

from gastos.backend.extraction.free_text import parse_free_text
from gastos.backend.extraction.records import ExpenseRecord
from gastos.backend.extraction.statement import parse_statement
from gastos.backend.parsing import fold_text
from gastos.backend.time_utils import DEFAULT_TIMEZONE

STATEMENT_HINTS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("brand", re.compile(r"bancolombia")),
    ("balance", re.compile(r"saldo")),
    ("movements", re.compile(r"movimientos|transacci")),
)


def looks_like_statement(text: str) -> bool:
    folded = fold_text(text)
    return any(pattern.search(folded) for _, pattern in STATEMENT_HINTS)


def parse_incoming(
    text: str | None,
    timezone_name: str = DEFAULT_TIMEZONE,
    now: datetime | None = None,
) -> list[ExpenseRecord]:
    t = str(text or "").strip()
    if not t:
        return []

    if looks_like_statement(t):
        return parse_statement(t, timezone_name=timezone_name, now=now)
    return parse_free_text(t, timezone_name=timezone_name, now=now)
