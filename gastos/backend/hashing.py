import hashlib

from gastos.backend.extraction.records import ExpenseRecord


def movement_key(user: str, date_iso: str, amount: int, concept: str | None) -> str:
    base = f"{user}|{date_iso}|{amount}|{(concept or '').strip().lower()}"
    return hashlib.sha256(base.encode("utf-8")).hexdigest()


def record_movement_key(record: ExpenseRecord) -> str:
    if not record.user:
        raise ValueError("ExpenseRecord needs a user before it can be keyed")
    return movement_key(record.user, record.date_iso, record.amount, record.concept)
