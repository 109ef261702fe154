import os


def _read_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, value)


def _read_float(name: str, default: float, minimum: float = 0.0, maximum: float = 1.0) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return max(minimum, min(maximum, value))


SIMILAR_EXAMPLES_LIMIT = _read_int("SIMILAR_EXAMPLES_LIMIT", 3, minimum=1)
NEIGHBOR_PRIOR_TOP_K = _read_int("NEIGHBOR_PRIOR_TOP_K", SIMILAR_EXAMPLES_LIMIT, minimum=1)
NEIGHBOR_PRIOR_MIN_CONSIDERED = _read_int("NEIGHBOR_PRIOR_MIN_CONSIDERED", 2, minimum=1)
NEIGHBOR_PRIOR_RATIO = _read_float("NEIGHBOR_PRIOR_RATIO", 0.60)

# Telegram rejects messages above 4096 chars.
TELEGRAM_MESSAGE_MAX_CHARS = _read_int("TELEGRAM_MESSAGE_MAX_CHARS", 3800, minimum=100)
ANALYSIS_SAMPLE_ROWS = _read_int("ANALYSIS_SAMPLE_ROWS", 200, minimum=1)
OCR_MIN_TEXT_CHARS = _read_int("OCR_MIN_TEXT_CHARS", 10, minimum=1)
OLLAMA_VISION_NUM_PREDICT = _read_int("OLLAMA_VISION_NUM_PREDICT", 2048, minimum=64)
