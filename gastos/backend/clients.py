import base64
import json
from pathlib import Path
import tempfile
import time
from typing import Any
import urllib.error
import urllib.parse
import urllib.request

from gastos.backend.tuning import OLLAMA_VISION_NUM_PREDICT

TELEGRAM_API_URL = "https://api.telegram.org"

VISION_PROMPT = (
    "Transcribe ALL the text in this image exactly as printed, line by line.\n"
    "It is usually a Colombian receipt or a Bancolombia account statement in Spanish.\n"
    "Keep each table row on a single line, keep dates, signs and amounts exactly as shown.\n"
    "Do not summarize, translate or add comments. Return only the transcription."
)


def post_json(url: str, payload: dict[str, Any], timeout: int = 60) -> dict[str, Any]:
    body = json.dumps(payload).encode("utf-8")
    request = urllib.request.Request(
        url,
        data=body,
        method="POST",
        headers={"Content-Type": "application/json"},
    )
    with urllib.request.urlopen(request, timeout=timeout) as response:
        return json.loads(response.read().decode("utf-8"))


def call_telegram_api(token: str, method: str, params: dict | None = None, timeout: int = 35) -> dict:
    url = f"{TELEGRAM_API_URL}/bot{token}/{method}"
    data = None

    if params:
        data = urllib.parse.urlencode(params).encode("utf-8")

    request = urllib.request.Request(url, data=data, method="POST")

    with urllib.request.urlopen(request, timeout=timeout) as response:
        payload = json.loads(response.read().decode("utf-8"))

    if not payload.get("ok"):
        description = payload.get("description", "Unknown Telegram API error")
        raise RuntimeError(f"Telegram API error in {method}: {description}")

    return payload


def get_webhook_url(token: str) -> str | None:
    info = call_telegram_api(token, "getWebhookInfo")
    webhook_url = info.get("result", {}).get("url")
    if isinstance(webhook_url, str) and webhook_url:
        return webhook_url
    return None


def send_telegram_message(token: str, chat_id: int, text: str) -> None:
    call_telegram_api(
        token=token,
        method="sendMessage",
        params={
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": "true",
        },
        timeout=30,
    )


def extract_sender_name(message: dict) -> str:
    sender = message.get("from") or {}
    full_name = " ".join(
        part for part in (sender.get("first_name"), sender.get("last_name")) if part
    )
    return sender.get("username") or full_name or str(sender.get("id", "unknown"))


def telegram_get_file_url(token: str, file_id: str) -> str:
    payload = call_telegram_api(token, "getFile", params={"file_id": file_id})
    file_path = payload.get("result", {}).get("file_path")
    if not isinstance(file_path, str) or not file_path:
        raise RuntimeError(f"Telegram getFile returned no file_path for {file_id}")
    return f"{TELEGRAM_API_URL}/file/bot{token}/{file_path}"


def download_to_tmp(url: str, filename_hint: str = "file", timeout: int = 60) -> Path:
    safe_name = Path(filename_hint).name or "file"
    out_path = Path(tempfile.gettempdir()) / f"{int(time.time() * 1000)}-{safe_name}"
    try:
        with urllib.request.urlopen(url, timeout=timeout) as response, out_path.open("wb") as handle:
            while True:
                chunk = response.read(64 * 1024)
                if not chunk:
                    break
                handle.write(chunk)
    except Exception:
        out_path.unlink(missing_ok=True)
        raise
    return out_path


def call_ollama_vision(
    base_url: str,
    model: str,
    image_bytes: bytes,
    prompt: str = VISION_PROMPT,
    timeout: int = 180,
) -> str:
    payload = post_json(
        url=f"{base_url.rstrip('/')}/api/generate",
        payload={
            "model": model,
            "prompt": prompt,
            "images": [base64.b64encode(image_bytes).decode("ascii")],
            "stream": False,
            "options": {
                "temperature": 0,
                "num_predict": OLLAMA_VISION_NUM_PREDICT,
            },
        },
        timeout=timeout,
    )
    raw_response = payload.get("response")
    if not isinstance(raw_response, str):
        raise RuntimeError("Ollama vision response does not contain text.")
    return raw_response.strip()


def call_ollama_embed(base_url: str, model: str, text: str, timeout: int = 60) -> list[float]:
    normalized_base_url = base_url.rstrip("/")
    embed_url = f"{normalized_base_url}/api/embed"
    try:
        payload = post_json(
            url=embed_url,
            payload={
                "model": model,
                "input": text,
            },
            timeout=timeout,
        )
        embeddings = payload.get("embeddings")
        if (
            isinstance(embeddings, list)
            and embeddings
            and isinstance(embeddings[0], list)
            and embeddings[0]
        ):
            return embeddings[0]
    except urllib.error.HTTPError as exc:
        if exc.code != 404:
            raise

    legacy_payload = post_json(
        url=f"{normalized_base_url}/api/embeddings",
        payload={
            "model": model,
            "prompt": text,
        },
        timeout=timeout,
    )
    embedding = legacy_payload.get("embedding")
    if isinstance(embedding, list) and embedding:
        return embedding

    raise RuntimeError("Ollama embedding response does not contain a valid vector.")
