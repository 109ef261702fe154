from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from datetime import timezone
import logging
from pathlib import Path
import sqlite3
from typing import Any

from gastos.backend.extraction.records import ExpenseRecord
from gastos.backend.hashing import record_movement_key
from gastos.backend.tuning import SIMILAR_EXAMPLES_LIMIT
from gastos.backend.vectors import ExpenseVectorIndex


def ensure_parent_dir(file_path: Path) -> None:
    file_path.parent.mkdir(parents=True, exist_ok=True)


def load_offset(path: Path, logger: logging.Logger) -> int | None:
    if not path.exists():
        return None

    raw_value = path.read_text(encoding="utf-8").strip()
    if not raw_value:
        return None

    try:
        return int(raw_value)
    except ValueError:
        logger.warning("Invalid offset value in %s. Restarting from scratch.", path)
        return None


def save_offset(path: Path, offset: int) -> None:
    ensure_parent_dir(path)
    path.write_text(str(offset), encoding="utf-8")


def month_key_from_iso_date(date_iso: str) -> str:
    return date_iso[:7]


class ExpensePersistence:
    def __init__(
        self,
        db_path: Path,
        default_currency: str,
        logger: logging.Logger,
        vector_index: ExpenseVectorIndex | None = None,
    ) -> None:
        ensure_parent_dir(db_path)

        self.logger = logger
        self.conn = sqlite3.connect(db_path)
        self._init_schema()

        self.default_currency = default_currency
        self.vector_index = vector_index
        self._vector_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="vector-upsert")

        self.logger.info("SQLite initialized at %s", db_path)

    def _init_schema(self) -> None:
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS expenses (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                movement_hash TEXT NOT NULL UNIQUE,
                update_id INTEGER NOT NULL,
                chat_id INTEGER NOT NULL,
                usuario TEXT NOT NULL,
                concepto TEXT NOT NULL,
                categoria TEXT NOT NULL,
                monto INTEGER NOT NULL,
                currency TEXT NOT NULL,
                fecha TEXT NOT NULL,
                month_key TEXT NOT NULL,
                source TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        self.conn.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_expenses_chat_month
            ON expenses(chat_id, month_key)
            """
        )
        self.conn.commit()

    def _insert_expense(
        self,
        movement_hash: str,
        update_id: int,
        chat_id: int,
        record: ExpenseRecord,
        month_key: str,
        source: str,
    ) -> tuple[int, bool]:
        created_at = datetime.now(timezone.utc).isoformat()
        try:
            cursor = self.conn.execute(
                """
                INSERT INTO expenses (
                    movement_hash, update_id, chat_id, usuario, concepto, categoria, monto,
                    currency, fecha, month_key, source, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    movement_hash,
                    update_id,
                    chat_id,
                    record.user,
                    record.concept,
                    record.category,
                    record.amount,
                    self.default_currency,
                    record.date_iso,
                    month_key,
                    source,
                    created_at,
                ),
            )
            self.conn.commit()
            return int(cursor.lastrowid), True
        except sqlite3.IntegrityError:
            row = self.conn.execute(
                "SELECT id FROM expenses WHERE movement_hash = ?",
                (movement_hash,),
            ).fetchone()
            if row is None:
                raise
            return int(row[0]), False

    def _upsert_vector_background(
        self,
        expense_id: int,
        chat_id: int,
        record: ExpenseRecord,
        month_key: str,
        source: str,
    ) -> None:
        try:
            self.vector_index.upsert(
                expense_id=expense_id,
                chat_id=chat_id,
                record=record,
                month_key=month_key,
                currency=self.default_currency,
                source=source,
            )
        except Exception as exc:
            self.logger.exception("Chroma upsert failed for expense_id=%s: %s", expense_id, exc)

    def retrieve_similar_expenses(
        self,
        chat_id: int | None,
        text: str,
        n_results: int = SIMILAR_EXAMPLES_LIMIT,
    ) -> list[dict[str, Any]]:
        if chat_id is None or self.vector_index is None:
            return []
        return self.vector_index.query_similar(chat_id=chat_id, text=text, n_results=n_results)

    def store_expense(
        self,
        update_id: int,
        chat_id: int | None,
        record: ExpenseRecord,
        source: str,
    ) -> dict[str, Any]:
        if chat_id is None:
            return {
                "status": "skipped",
                "reason": "missing_chat_id",
            }
        if not record.user:
            return {
                "status": "skipped",
                "reason": "missing_user",
            }

        movement_hash = record_movement_key(record)
        month_key = month_key_from_iso_date(record.date_iso)
        expense_id, inserted = self._insert_expense(
            movement_hash=movement_hash,
            update_id=update_id,
            chat_id=chat_id,
            record=record,
            month_key=month_key,
            source=source,
        )

        if not inserted:
            self.logger.warning("Duplicate prevented (hash=%s)", movement_hash)

        vector_status = "disabled"
        if inserted and self.vector_index is not None:
            vector_status = "queued"
            try:
                self._vector_executor.submit(
                    self._upsert_vector_background,
                    expense_id=expense_id,
                    chat_id=chat_id,
                    record=record,
                    month_key=month_key,
                    source=source,
                )
            except Exception as exc:
                vector_status = "error"
                self.logger.exception("Unable to queue Chroma upsert for expense_id=%s: %s", expense_id, exc)

        return {
            "status": "stored",
            "expense_id": expense_id,
            "inserted": inserted,
            "movement_hash": movement_hash,
            "vector_status": vector_status,
            "month_key": month_key,
            "currency": self.default_currency,
        }

    def get_month_expenses(self, chat_id: int, month_key: str) -> list[ExpenseRecord]:
        rows = self.conn.execute(
            """
            SELECT fecha, concepto, monto, categoria, usuario
            FROM expenses
            WHERE chat_id = ? AND month_key = ?
            ORDER BY fecha, id
            """,
            (chat_id, month_key),
        ).fetchall()
        return [
            ExpenseRecord(
                date_iso=row[0],
                concept=row[1],
                amount=int(row[2]),
                category=row[3],
                user=row[4],
            )
            for row in rows
        ]

    def list_month_keys(self, chat_id: int) -> list[str]:
        rows = self.conn.execute(
            "SELECT DISTINCT month_key FROM expenses WHERE chat_id = ? ORDER BY month_key",
            (chat_id,),
        ).fetchall()
        return [str(row[0]) for row in rows]

    def month_totals(self, chat_id: int, month_key: str) -> tuple[int, int]:
        row = self.conn.execute(
            "SELECT COALESCE(SUM(monto), 0), COUNT(*) FROM expenses WHERE chat_id = ? AND month_key = ?",
            (chat_id, month_key),
        ).fetchone()
        if row is None:
            return 0, 0
        return int(row[0]), int(row[1])

    def close(self) -> None:
        try:
            self._vector_executor.shutdown(wait=True)
        finally:
            self.conn.close()
