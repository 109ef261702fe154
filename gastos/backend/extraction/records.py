from dataclasses import dataclass
from dataclasses import replace


@dataclass(frozen=True)
class ExpenseRecord:
    date_iso: str
    concept: str
    amount: int
    category: str
    user: str | None = None

    def with_user(self, user: str) -> "ExpenseRecord":
        return replace(self, user=user)


def blank_spans(text: str, spans: list[tuple[int, int]]) -> str:
    """Replace each span with spaces, keeping every other index in place."""
    chars = list(text)
    for start, end in spans:
        for idx in range(start, min(end, len(chars))):
            chars[idx] = " "
    return "".join(chars)


def dedupe_records(records: list[ExpenseRecord]) -> list[ExpenseRecord]:
    seen: set[str] = set()
    unique: list[ExpenseRecord] = []
    for record in records:
        key = f"{record.date_iso}|{record.amount}|{record.concept.lower()}"
        if key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique
