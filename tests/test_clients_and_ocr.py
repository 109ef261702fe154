from types import SimpleNamespace

import pytest

from gastos.backend import clients
from gastos.backend import ocr
from gastos.backend.clients import extract_sender_name
from gastos.backend.formatting import format_money


def test_extract_sender_name():
    assert extract_sender_name({"from": {"id": 1, "username": "ana"}}) == "ana"
    assert extract_sender_name({"from": {"id": 1, "first_name": "Ana", "last_name": "Gómez"}}) == "Ana Gómez"
    assert extract_sender_name({"from": {"id": 1}}) == "1"
    assert extract_sender_name({}) == "unknown"


def test_telegram_get_file_url(monkeypatch):
    calls = []

    def fake_api(token, method, params=None, timeout=35):
        calls.append((method, params))
        return {"ok": True, "result": {"file_path": "photos/file_1.jpg"}}

    monkeypatch.setattr(clients, "call_telegram_api", fake_api)
    assert clients.telegram_get_file_url("T", "abc") == "https://api.telegram.org/file/botT/photos/file_1.jpg"
    assert calls == [("getFile", {"file_id": "abc"})]


def test_telegram_get_file_url_without_path(monkeypatch):
    monkeypatch.setattr(clients, "call_telegram_api", lambda token, method, params=None, timeout=35: {"result": {}})
    with pytest.raises(RuntimeError):
        clients.telegram_get_file_url("T", "abc")


def test_image_ocr_uses_vision_model(monkeypatch, tmp_path, logger):
    image = tmp_path / "recibo.jpg"
    image.write_bytes(b"\xff\xd8fake")
    seen = {}

    def fake_vision(base_url, model, image_bytes):
        seen["args"] = (base_url, model, image_bytes)
        return "15/03 COMPRA EXITO -45.000"

    monkeypatch.setattr(ocr, "call_ollama_vision", fake_vision)
    text = ocr.extract_text_from_file(image, ollama_base_url="http://ollama", vision_model="vision", logger=logger)
    assert text == "15/03 COMPRA EXITO -45.000"
    assert seen["args"] == ("http://ollama", "vision", b"\xff\xd8fake")


def test_format_money():
    assert format_money(1250000, "COP") == "$1.250.000 COP"
    assert format_money(10.5, "USD") == "10,50 USD"


class FakeResponse:
    def __init__(self, chunks):
        self.chunks = list(chunks)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def read(self, size=-1):
        chunk = self.chunks.pop(0)
        if isinstance(chunk, Exception):
            raise chunk
        return chunk


def test_download_to_tmp(monkeypatch, tmp_path):
    monkeypatch.setattr(clients.tempfile, "gettempdir", lambda: str(tmp_path))
    monkeypatch.setattr(
        clients.urllib.request,
        "urlopen",
        lambda url, timeout=60: FakeResponse([b"abc", b"def", b""]),
    )
    path = clients.download_to_tmp("https://files/doc", "extracto.pdf")
    assert path.parent == tmp_path
    assert path.name.endswith("-extracto.pdf")
    assert path.read_bytes() == b"abcdef"


def test_failed_download_leaves_no_partial_file(monkeypatch, tmp_path):
    monkeypatch.setattr(clients.tempfile, "gettempdir", lambda: str(tmp_path))
    monkeypatch.setattr(
        clients.urllib.request,
        "urlopen",
        lambda url, timeout=60: FakeResponse([b"abc", ConnectionResetError("reset")]),
    )
    with pytest.raises(ConnectionResetError):
        clients.download_to_tmp("https://files/doc", "extracto.pdf")
    assert list(tmp_path.iterdir()) == []


class FakePdfLoader:
    pages = []

    def __init__(self, file_path):
        self.file_path = file_path

    def load(self):
        return [SimpleNamespace(page_content=text, metadata={"page": idx}) for idx, text in enumerate(self.pages)]


def _fake_pdf_reader(images_per_page):
    def build(path):
        return SimpleNamespace(
            pages=[
                SimpleNamespace(images=[SimpleNamespace(data=data) for data in images])
                for images in images_per_page
            ]
        )

    return build


def test_pdf_text_layer_and_scanned_pages(monkeypatch, tmp_path, logger):
    pdf = tmp_path / "extracto.PDF"
    pdf.write_bytes(b"%PDF-fake")
    monkeypatch.setattr(FakePdfLoader, "pages", ["BANCOLOMBIA\n", "  ", "15/03 COMPRA EXITO -45.000"])
    monkeypatch.setattr(ocr, "PyPDFLoader", FakePdfLoader)
    monkeypatch.setattr(ocr, "PdfReader", _fake_pdf_reader([[b"p0"], [b"img-a", b"img-b"], []]))
    seen = []

    def fake_vision(base_url, model, image_bytes):
        seen.append(image_bytes)
        return {b"img-a": "14/03 UBER -18.500", b"img-b": ""}[image_bytes]

    monkeypatch.setattr(ocr, "call_ollama_vision", fake_vision)
    text = ocr.extract_text_from_file(pdf, ollama_base_url="http://ollama", vision_model="vision", logger=logger)

    assert text == "BANCOLOMBIA\n14/03 UBER -18.500\n15/03 COMPRA EXITO -45.000"
    assert seen == [b"img-a", b"img-b"]


def test_pdf_with_text_layer_skips_vision(monkeypatch, tmp_path, logger):
    pdf = tmp_path / "extracto.pdf"
    pdf.write_bytes(b"%PDF-fake")
    monkeypatch.setattr(FakePdfLoader, "pages", ["12/03 UBER TRIP -18.500"])
    monkeypatch.setattr(ocr, "PyPDFLoader", FakePdfLoader)

    def unexpected(*args, **kwargs):
        raise AssertionError("vision model should not be called")

    monkeypatch.setattr(ocr, "PdfReader", unexpected)
    monkeypatch.setattr(ocr, "call_ollama_vision", unexpected)
    text = ocr.extract_text_from_file(pdf, ollama_base_url="http://ollama", vision_model="vision", logger=logger)
    assert text == "12/03 UBER TRIP -18.500"
