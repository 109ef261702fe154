from dataclasses import asdict
from dataclasses import dataclass
import json
import logging
from typing import Any

from langchain_ollama import ChatOllama

from gastos.backend.categories import DEFAULT_CATEGORY
from gastos.backend.extraction.records import ExpenseRecord
from gastos.backend.formatting import format_money
from gastos.backend.storage import ExpensePersistence
from gastos.backend.tuning import ANALYSIS_SAMPLE_ROWS

ANALYSIS_INSTRUCTIONS = """
Eres un analista financiero personal. Con base en los datos (COP) genera:

1) Resumen financiero del mes. Si hay historial, compara con meses anteriores.
2) Tabla de distribución por categoría (categoría, total, %).
3) Identificación de "gastos hormiga" (frecuentes, bajos, suman mucho).
4) Tendencias de gasto (semanas, categorías, usuarios).
5) Recomendaciones accionables (bullet points claros).
6) Score financiero 0-100 (explica criterios brevemente).
7) Observaciones personalizadas por usuario (mínimo 3 bullets por usuario).

Requisitos de salida:
- Formato en Markdown.
- Incluye una tabla Markdown para categorías.
- Conclusiones accionables al final.
""".strip()


@dataclass(frozen=True)
class AnalysisResponse:
    handled: bool
    text: str


def summarize_expenses(records: list[ExpenseRecord]) -> dict[str, Any]:
    by_user: dict[str, int] = {}
    by_category: dict[str, int] = {}
    total = 0
    for record in records:
        total += record.amount
        user = record.user or "unknown"
        by_user[user] = by_user.get(user, 0) + record.amount
        category = record.category or DEFAULT_CATEGORY
        by_category[category] = by_category.get(category, 0) + record.amount

    return {
        "total": total,
        "count": len(records),
        "by_user": by_user,
        "by_category": by_category,
    }


def build_analysis_prompt(
    month_key: str,
    records: list[ExpenseRecord],
    history: dict[str, dict[str, int]],
) -> str:
    summary = summarize_expenses(records)
    payload = {
        "month": month_key,
        "totals": {"total": summary["total"], "count": summary["count"]},
        "byUser": summary["by_user"],
        "byCategory": summary["by_category"],
        "rawSample": [asdict(record) for record in records[:ANALYSIS_SAMPLE_ROWS]],
        "history": history,
    }
    return f"{ANALYSIS_INSTRUCTIONS}\n\nDatos JSON:\n{json.dumps(payload, ensure_ascii=False)}"


def render_plain_summary(month_key: str, records: list[ExpenseRecord], currency: str) -> str:
    summary = summarize_expenses(records)
    lines = [
        f"Resumen {month_key}",
        f"- Total: {format_money(summary['total'], currency)} ({summary['count']} gastos)",
        "Por categoría:",
    ]
    for category, amount in sorted(summary["by_category"].items(), key=lambda item: item[1], reverse=True):
        share = amount * 100 / summary["total"] if summary["total"] else 0.0
        lines.append(f"- {category}: {format_money(amount, currency)} ({share:.0f}%)")
    lines.append("Por usuario:")
    for user, amount in sorted(summary["by_user"].items(), key=lambda item: item[1], reverse=True):
        lines.append(f"- {user}: {format_money(amount, currency)}")
    return "\n".join(lines)


class MonthlyAnalysisService:
    def __init__(
        self,
        persistence: ExpensePersistence,
        ollama_base_url: str,
        ollama_model: str,
        default_currency: str,
        logger: logging.Logger,
        llm: Any | None = None,
    ) -> None:
        self.persistence = persistence
        self.default_currency = default_currency
        self.logger = logger
        self.llm = llm or ChatOllama(model=ollama_model, base_url=ollama_base_url, temperature=0.2)

    def _history(self, chat_id: int, month_key: str) -> dict[str, dict[str, int]]:
        history: dict[str, dict[str, int]] = {}
        for key in self.persistence.list_month_keys(chat_id):
            if key == month_key:
                continue
            total, count = self.persistence.month_totals(chat_id, key)
            history[key] = {"total": total, "count": count}
        return history

    def answer(self, chat_id: int | None, month_key: str) -> AnalysisResponse:
        if chat_id is None:
            return AnalysisResponse(handled=True, text="No pude identificar el chat para este análisis.")

        records = self.persistence.get_month_expenses(chat_id, month_key)
        if not records:
            return AnalysisResponse(handled=True, text=f"No hay datos en *{month_key}* todavía.")

        prompt = build_analysis_prompt(month_key, records, self._history(chat_id, month_key))
        try:
            response = self.llm.invoke(prompt)
            text = str(getattr(response, "content", "") or "").strip()
        except Exception as exc:
            self.logger.exception("Monthly analysis generation failed for %s: %s", month_key, exc)
            text = ""

        if not text:
            return AnalysisResponse(
                handled=True,
                text=render_plain_summary(month_key, records, self.default_currency),
            )
        return AnalysisResponse(handled=True, text=text)
