import pytest

from gastos.backend import polling
from gastos.backend.analysis.service import MonthlyAnalysisService
from gastos.backend.config import AppConfig
from gastos.backend.extraction.records import ExpenseRecord
from gastos.backend.polling import BotContext
from gastos.backend.polling import StoreSummary
from gastos.backend.polling import build_store_reply
from gastos.backend.polling import handle_message
from gastos.backend.polling import store_records
from gastos.backend.polling import validate_amount
from gastos.backend.storage import ExpensePersistence


class FakeLLM:
    def invoke(self, prompt):
        raise RuntimeError("offline")


@pytest.fixture
def sent(monkeypatch):
    messages = []

    def fake_send(token, chat_id, text):
        messages.append((chat_id, text))

    monkeypatch.setattr(polling, "send_telegram_message", fake_send)
    return messages


@pytest.fixture
def ctx(tmp_path, logger):
    config = AppConfig(
        token="test-token",
        timezone_name="America/Bogota",
        default_currency="COP",
        min_amount=100,
        max_amount=50_000_000,
        ollama_base_url="http://localhost:11434",
        ollama_vision_model="vision",
        ollama_analysis_model="analysis",
        ollama_embed_model="embed",
        db_path=tmp_path / "e.db",
        chroma_path=tmp_path / "chroma",
        chroma_collection_name="expenses",
        offset_file=tmp_path / "offset",
    )
    persistence = ExpensePersistence(db_path=config.db_path, default_currency="COP", logger=logger)
    analysis_service = MonthlyAnalysisService(
        persistence=persistence,
        ollama_base_url=config.ollama_base_url,
        ollama_model=config.ollama_analysis_model,
        default_currency="COP",
        logger=logger,
        llm=FakeLLM(),
    )
    yield BotContext(config=config, persistence=persistence, analysis_service=analysis_service, logger=logger)
    persistence.close()


def _message(text=None, **extra):
    message = {"chat": {"id": 10}, "from": {"id": 7, "username": "ana"}}
    if text is not None:
        message["text"] = text
    message.update(extra)
    return message


@pytest.mark.parametrize(
    "amount,expected",
    [
        (20000, None),
        (50, "Monto demasiado bajo (< 100)."),
        (60_000_000, "Monto demasiado alto (> 50000000)."),
        ("20000", "Monto inválido."),
        (True, "Monto inválido."),
    ],
)
def test_validate_amount(amount, expected):
    assert validate_amount(amount, 100, 50_000_000) == expected


def test_build_store_reply():
    summary = StoreSummary(detected=3, inserted=2, duplicates=1, total=30000)
    assert build_store_reply(summary, "COP", from_file=False) == (
        "Listo ✅\n- Registrados: 2\n- Duplicados evitados: 1\n- Total: $30.000 COP"
    )
    assert build_store_reply(summary, "COP", from_file=True).startswith(
        "OCR listo ✅\n- Movimientos detectados: 3\n"
    )


def test_store_records_counts_duplicates_and_rejections(ctx):
    records = [
        ExpenseRecord(date_iso="2026-03-18", concept="almuerzo", amount=20000, category="Alimentación"),
        ExpenseRecord(date_iso="2026-03-18", concept="almuerzo", amount=20000, category="Alimentación"),
        ExpenseRecord(date_iso="2026-03-18", concept="chicle", amount=50, category="Otros"),
    ]
    summary = store_records(ctx, update_id=1, chat_id=10, user="ana", records=records, source="chat")
    assert summary == StoreSummary(detected=3, inserted=1, duplicates=1, rejected=1, total=20000)


def test_text_message_is_parsed_and_stored(ctx, sent):
    handle_message(ctx, 1, _message("20000 almuerzo hoy\n10000 uber"))
    assert sent[-1][1].startswith("Listo ✅\n- Registrados: 2")
    stored = ctx.persistence.list_month_keys(10)
    assert len(stored) == 1

    handle_message(ctx, 2, _message("20000 almuerzo hoy"))
    assert "Duplicados evitados: 1" in sent[-1][1]


def test_text_without_expense(ctx, sent):
    handle_message(ctx, 1, _message("hola"))
    assert sent == [(10, "No pude detectar un gasto. Ej: 20000 almuerzo hoy")]


def test_start_command(ctx, sent):
    handle_message(ctx, 1, _message("/start"))
    assert sent[0][1].startswith("Hola, ana")


def test_analysis_command(ctx, sent):
    handle_message(ctx, 1, _message("/analisis 2020-01"))
    assert sent == [(10, "No hay datos en *2020-01* todavía.")]

    handle_message(ctx, 2, _message("/analisis cualquier cosa"))
    assert sent[-1][1].startswith("No entendí el mes.")


def test_unknown_message(ctx, sent):
    handle_message(ctx, 1, _message(sticker={"file_id": "x"}))
    assert sent == [(10, polling.UNKNOWN_MESSAGE_TEXT)]


def test_photo_goes_through_ocr(ctx, sent, monkeypatch, tmp_path):
    downloaded = tmp_path / "photo.jpg"
    downloaded.write_bytes(b"fake")
    monkeypatch.setattr(polling, "telegram_get_file_url", lambda token, file_id: f"https://files/{file_id}")
    monkeypatch.setattr(polling, "download_to_tmp", lambda url, hint: downloaded)
    monkeypatch.setattr(
        polling,
        "extract_text_from_file",
        lambda path, **kwargs: "BANCOLOMBIA\n15/03 COMPRA EXITO -45.000\nSALDO DISPONIBLE 100.000",
    )

    handle_message(ctx, 1, _message(photo=[{"file_id": "small"}, {"file_id": "big", "file_unique_id": "u1"}]))

    assert sent[0][1].startswith("Procesando archivo")
    assert sent[-1][1].startswith("OCR listo ✅\n- Movimientos detectados: 1\n- Registrados: 1")
    assert not downloaded.exists()


def test_unreadable_file(ctx, sent, monkeypatch, tmp_path):
    downloaded = tmp_path / "doc.pdf"
    downloaded.write_bytes(b"fake")
    monkeypatch.setattr(polling, "telegram_get_file_url", lambda token, file_id: "https://files/doc")
    monkeypatch.setattr(polling, "download_to_tmp", lambda url, hint: downloaded)
    monkeypatch.setattr(polling, "extract_text_from_file", lambda path, **kwargs: "")

    handle_message(ctx, 1, _message(document={"file_id": "doc", "file_name": "extracto.pdf"}))
    assert sent[-1][1] == "No pude extraer texto del archivo. Intenta con una imagen más nítida."


def test_failures_reply_with_generic_error(ctx, sent, monkeypatch):
    def boom(token, file_id):
        raise RuntimeError("telegram down")

    monkeypatch.setattr(polling, "telegram_get_file_url", boom)
    handle_message(ctx, 1, _message(document={"file_id": "doc"}))
    assert sent[-1][1] == polling.GENERIC_ERROR_TEXT
