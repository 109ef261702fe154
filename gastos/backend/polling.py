from dataclasses import asdict
from dataclasses import dataclass
import json
import logging
from pathlib import Path
import time
import urllib.error

from gastos.backend.analysis.parser import parse_analysis_month
from gastos.backend.analysis.service import MonthlyAnalysisService
from gastos.backend.category_hints import apply_neighbor_prior
from gastos.backend.categories import DEFAULT_CATEGORY
from gastos.backend.clients import call_telegram_api
from gastos.backend.clients import download_to_tmp
from gastos.backend.clients import extract_sender_name
from gastos.backend.clients import send_telegram_message
from gastos.backend.clients import telegram_get_file_url
from gastos.backend.config import AppConfig
from gastos.backend.extraction.records import ExpenseRecord
from gastos.backend.extraction.router import parse_incoming
from gastos.backend.formatting import format_money
from gastos.backend.ocr import extract_text_from_file
from gastos.backend.storage import ExpensePersistence
from gastos.backend.storage import load_offset
from gastos.backend.storage import save_offset
from gastos.backend.time_utils import get_now_iso_and_epoch
from gastos.backend.tuning import OCR_MIN_TEXT_CHARS
from gastos.backend.tuning import SIMILAR_EXAMPLES_LIMIT
from gastos.backend.tuning import TELEGRAM_MESSAGE_MAX_CHARS

HELP_TEXT = (
    "Hola, {user} 👋\n"
    "Envíame gastos como:\n"
    "- 20000 almuerzo hoy\n"
    "- pagué 150k mercado ayer\n"
    "O envía fotos/PDF de facturas o extractos (Bancolombia).\n"
    "Comando: /analisis (mes actual, o especifica /analisis 2026-02)"
)
UNKNOWN_MESSAGE_TEXT = "No entendí el mensaje. Envíame texto, foto o PDF."
GENERIC_ERROR_TEXT = (
    "Ocurrió un error procesando tu solicitud. Intenta de nuevo o envía el texto del gasto."
)


@dataclass(frozen=True)
class BotContext:
    config: AppConfig
    persistence: ExpensePersistence
    analysis_service: MonthlyAnalysisService
    logger: logging.Logger


@dataclass
class StoreSummary:
    detected: int = 0
    inserted: int = 0
    duplicates: int = 0
    rejected: int = 0
    total: int = 0


def validate_amount(amount: object, min_amount: int, max_amount: int) -> str | None:
    if not isinstance(amount, int) or isinstance(amount, bool):
        return "Monto inválido."
    if amount < min_amount:
        return f"Monto demasiado bajo (< {min_amount})."
    if amount > max_amount:
        return f"Monto demasiado alto (> {max_amount})."
    return None


def build_expense_event(
    update_id: int,
    chat_id: int | None,
    sender: str,
    kind: str,
    records: list[ExpenseRecord],
    summary: StoreSummary | None,
    timestamp_iso: str,
    timestamp_epoch: int,
    error: str | None,
) -> dict:
    return {
        "update_id": update_id,
        "chat_id": chat_id,
        "sender": sender,
        "kind": kind,
        "detected_expenses": [asdict(record) for record in records],
        "persistence": asdict(summary) if summary is not None else None,
        "timestamp_iso": timestamp_iso,
        "timestamp_epoch": timestamp_epoch,
        "error": error,
    }


def _safe_reply(token: str, chat_id: int | None, text: str, logger: logging.Logger) -> None:
    if chat_id is None:
        logger.warning("Cannot reply because chat_id is missing.")
        return
    try:
        send_telegram_message(token=token, chat_id=chat_id, text=text)
    except Exception as exc:
        logger.exception("Failed to send Telegram reply: %s", exc)


def _reply_in_chunks(token: str, chat_id: int | None, text: str, logger: logging.Logger) -> None:
    _safe_reply(token=token, chat_id=chat_id, text=text[:TELEGRAM_MESSAGE_MAX_CHARS], logger=logger)
    if len(text) > TELEGRAM_MESSAGE_MAX_CHARS:
        _safe_reply(
            token=token,
            chat_id=chat_id,
            text="El análisis fue muy largo. Si quieres, lo ajusto para enviarlo en varias partes.",
            logger=logger,
        )


def build_store_reply(summary: StoreSummary, currency: str, from_file: bool) -> str:
    lines = ["OCR listo ✅" if from_file else "Listo ✅"]
    if from_file:
        lines.append(f"- Movimientos detectados: {summary.detected}")
    lines.append(f"- Registrados: {summary.inserted}")
    lines.append(f"- Duplicados evitados: {summary.duplicates}")
    if summary.rejected:
        lines.append(f"- Fuera de rango: {summary.rejected}")
    lines.append(f"- Total: {format_money(summary.total, currency)}")
    return "\n".join(lines)


def _with_category_hint(ctx: BotContext, chat_id: int, record: ExpenseRecord) -> ExpenseRecord:
    if record.category != DEFAULT_CATEGORY:
        return record
    try:
        similar = ctx.persistence.retrieve_similar_expenses(
            chat_id=chat_id,
            text=record.concept,
            n_results=SIMILAR_EXAMPLES_LIMIT,
        )
    except Exception as exc:
        ctx.logger.warning("Vector retrieval failed, keeping rule category: %s", exc)
        return record
    return apply_neighbor_prior(record, similar, logger=ctx.logger)


def store_records(
    ctx: BotContext,
    update_id: int,
    chat_id: int,
    user: str,
    records: list[ExpenseRecord],
    source: str,
) -> StoreSummary:
    summary = StoreSummary(detected=len(records))
    for record in records:
        error = validate_amount(record.amount, ctx.config.min_amount, ctx.config.max_amount)
        if error:
            ctx.logger.info("Skipping %s: %s", record, error)
            summary.rejected += 1
            continue

        candidate = _with_category_hint(ctx, chat_id, record.with_user(user))
        result = ctx.persistence.store_expense(
            update_id=update_id,
            chat_id=chat_id,
            record=candidate,
            source=source,
        )
        if result.get("status") != "stored":
            summary.rejected += 1
        elif result.get("inserted"):
            summary.inserted += 1
            summary.total += candidate.amount
        else:
            summary.duplicates += 1
    return summary


def process_text(
    ctx: BotContext,
    update_id: int,
    chat_id: int,
    user: str,
    text: str,
) -> tuple[list[ExpenseRecord], StoreSummary | None]:
    records = parse_incoming(text, timezone_name=ctx.config.timezone_name)
    if not records:
        _safe_reply(
            ctx.config.token,
            chat_id,
            "No pude detectar un gasto. Ej: 20000 almuerzo hoy",
            ctx.logger,
        )
        return records, None

    summary = store_records(ctx, update_id, chat_id, user, records, source="chat")
    _safe_reply(
        ctx.config.token,
        chat_id,
        build_store_reply(summary, ctx.config.default_currency, from_file=False),
        ctx.logger,
    )
    return records, summary


def process_file(
    ctx: BotContext,
    update_id: int,
    chat_id: int,
    user: str,
    file_id: str,
    filename_hint: str,
) -> tuple[list[ExpenseRecord], StoreSummary | None]:
    token = ctx.config.token
    _safe_reply(token, chat_id, "Procesando archivo (OCR)… ⏳", ctx.logger)

    url = telegram_get_file_url(token, file_id)
    local_path = download_to_tmp(url, filename_hint)
    try:
        ocr_text = extract_text_from_file(
            local_path,
            ollama_base_url=ctx.config.ollama_base_url,
            vision_model=ctx.config.ollama_vision_model,
            logger=ctx.logger,
        )
    finally:
        local_path.unlink(missing_ok=True)

    if len(ocr_text) < OCR_MIN_TEXT_CHARS:
        _safe_reply(
            token,
            chat_id,
            "No pude extraer texto del archivo. Intenta con una imagen más nítida.",
            ctx.logger,
        )
        return [], None

    records = parse_incoming(ocr_text, timezone_name=ctx.config.timezone_name)
    if not records:
        _safe_reply(
            token,
            chat_id,
            "Extraje texto, pero no identifiqué movimientos. Si es un extracto, intenta enviar "
            "una página donde se vean claramente los movimientos.",
            ctx.logger,
        )
        return records, None

    summary = store_records(ctx, update_id, chat_id, user, records, source="ocr")
    _safe_reply(
        token,
        chat_id,
        build_store_reply(summary, ctx.config.default_currency, from_file=True),
        ctx.logger,
    )
    return records, summary


def run_analysis(ctx: BotContext, chat_id: int, text: str) -> None:
    parts = text.strip().split(maxsplit=1)
    argument = parts[1] if len(parts) > 1 else None
    month_key = parse_analysis_month(argument, timezone_name=ctx.config.timezone_name)
    if month_key is None:
        _safe_reply(
            ctx.config.token,
            chat_id,
            "No entendí el mes. Ej: /analisis 2026-02 o /analisis febrero",
            ctx.logger,
        )
        return

    response = ctx.analysis_service.answer(chat_id=chat_id, month_key=month_key)
    if response.handled:
        _reply_in_chunks(ctx.config.token, chat_id, response.text, ctx.logger)


def handle_message(ctx: BotContext, update_id: int, message: dict) -> None:
    chat_id = message.get("chat", {}).get("id")
    sender = extract_sender_name(message)
    text = message.get("text")
    kind = "unknown"
    records: list[ExpenseRecord] = []
    summary: StoreSummary | None = None
    error: str | None = None

    try:
        if isinstance(text, str) and text.startswith("/start"):
            kind = "command_start"
            _safe_reply(ctx.config.token, chat_id, HELP_TEXT.format(user=sender), ctx.logger)
        elif isinstance(text, str) and text.startswith("/analisis"):
            kind = "command_analysis"
            run_analysis(ctx, chat_id, text)
        elif isinstance(text, str):
            kind = "text"
            records, summary = process_text(ctx, update_id, chat_id, sender, text)
        elif message.get("photo"):
            kind = "photo"
            best = message["photo"][-1]
            records, summary = process_file(
                ctx,
                update_id,
                chat_id,
                sender,
                best["file_id"],
                f"photo-{best.get('file_unique_id', update_id)}.jpg",
            )
        elif (message.get("document") or {}).get("file_id"):
            kind = "document"
            document = message["document"]
            filename = document.get("file_name") or f"doc-{document.get('file_unique_id', update_id)}"
            records, summary = process_file(ctx, update_id, chat_id, sender, document["file_id"], filename)
        else:
            _safe_reply(ctx.config.token, chat_id, UNKNOWN_MESSAGE_TEXT, ctx.logger)
    except Exception as exc:
        error = str(exc)
        ctx.logger.exception("Failed to handle update %s: %s", update_id, exc)
        _safe_reply(ctx.config.token, chat_id, GENERIC_ERROR_TEXT, ctx.logger)

    timestamp_iso, timestamp_epoch = get_now_iso_and_epoch(ctx.config.timezone_name, logger=ctx.logger)
    event = build_expense_event(
        update_id=update_id,
        chat_id=chat_id,
        sender=sender,
        kind=kind,
        records=records,
        summary=summary,
        timestamp_iso=timestamp_iso,
        timestamp_epoch=timestamp_epoch,
        error=error,
    )
    ctx.logger.info("telegram_event=%s", json.dumps(event, ensure_ascii=False))


def run_long_polling(ctx: BotContext, offset_file: Path) -> None:
    logger = ctx.logger
    offset = load_offset(offset_file, logger=logger)
    logger.info("Listening for Telegram messages (long polling)...")
    if offset is not None:
        logger.info("Recovered initial offset: %s", offset)

    while True:
        params: dict[str, str | int] = {"timeout": 30}
        if offset is not None:
            params["offset"] = offset

        try:
            updates = call_telegram_api(ctx.config.token, "getUpdates", params=params, timeout=40).get("result", [])
        except urllib.error.URLError as exc:
            logger.warning("Network error: %s. Retrying in 3 seconds...", exc)
            time.sleep(3)
            continue
        except Exception as exc:
            logger.exception("Telegram polling failed: %s. Retrying in 3 seconds...", exc)
            time.sleep(3)
            continue

        for update in updates:
            update_id = update.get("update_id")
            if not isinstance(update_id, int):
                logger.warning("Ignoring update with invalid update_id: %s", update)
                continue
            offset = update_id + 1

            message = update.get("message") or update.get("edited_message")
            if message:
                handle_message(ctx, update_id, message)

            save_offset(offset_file, offset)
