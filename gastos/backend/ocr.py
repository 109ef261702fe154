import logging
from pathlib import Path

from langchain_community.document_loaders import PyPDFLoader
from pypdf import PdfReader

from gastos.backend.clients import call_ollama_vision

PDF_SUFFIXES = {".pdf"}


def _is_pdf(path: Path) -> bool:
    return path.suffix.lower() in PDF_SUFFIXES


def _transcribe_page_images(
    path: Path,
    page_numbers: list[int],
    ollama_base_url: str,
    vision_model: str,
) -> dict[int, str]:
    reader = PdfReader(str(path))
    transcribed: dict[int, str] = {}
    for page_number in page_numbers:
        parts: list[str] = []
        for image in reader.pages[page_number].images:
            text = call_ollama_vision(ollama_base_url, vision_model, image.data)
            if text:
                parts.append(text)
        transcribed[page_number] = "\n".join(parts)
    return transcribed


def _extract_pdf_text(
    path: Path,
    ollama_base_url: str,
    vision_model: str,
    logger: logging.Logger,
) -> str:
    docs = PyPDFLoader(str(path)).load()
    page_texts = [doc.page_content.strip() for doc in docs]

    # Scanned pages have no text layer; their images go through the vision model.
    scanned_pages = [idx for idx, text in enumerate(page_texts) if not text]
    if scanned_pages:
        logger.info("PDF %s has %s page(s) without text layer", path.name, len(scanned_pages))
        transcribed = _transcribe_page_images(path, scanned_pages, ollama_base_url, vision_model)
        for idx, text in transcribed.items():
            page_texts[idx] = text

    text = "\n".join(part for part in page_texts if part)
    logger.info("OCR PDF extracted (pages=%s, chars=%s)", len(page_texts), len(text))
    return text.strip()


def extract_text_from_file(
    path: Path,
    ollama_base_url: str,
    vision_model: str,
    logger: logging.Logger,
) -> str:
    if _is_pdf(path):
        return _extract_pdf_text(path, ollama_base_url, vision_model, logger)

    text = call_ollama_vision(ollama_base_url, vision_model, path.read_bytes())
    logger.info("OCR image extracted (chars=%s)", len(text))
    return text
