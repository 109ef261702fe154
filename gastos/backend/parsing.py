import math
import re
import unicodedata

K_SHORTHAND_PATTERN = re.compile(r"(\d+(?:[.,]\d+)?)\s*k\b")
# Far above any plausible COP amount; longer digit runs are OCR noise.
MAX_AMOUNT_DIGITS = 15


def collapse_spaces(text: str) -> str:
    return " ".join(text.split())


def _strip_accents(text: str) -> str:
    normalized = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in normalized if unicodedata.category(ch) != "Mn")


def _fold_char(ch: str) -> str:
    base = unicodedata.normalize("NFD", ch)[:1] or ch
    return base.lower()[:1] or base


def fold_text(text: str) -> str:
    """Lowercase and drop diacritics keeping one output char per input char.

    For NFC input, regex spans found on the folded text index the same
    characters of the input, so matches can be cut out of the original
    (accented) text.
    """
    return "".join(_fold_char(ch) for ch in unicodedata.normalize("NFC", text))


def normalize_amount(raw: str | None) -> int | None:
    if not raw:
        return None

    compact = _strip_accents(str(raw).lower().strip())

    k_match = K_SHORTHAND_PATTERN.search(compact)
    if k_match:
        value = float(k_match.group(1).replace(",", "."))
        scaled = value * 1000
        if not math.isfinite(scaled) or scaled >= 10**MAX_AMOUNT_DIGITS:
            return None
        return int(math.floor(scaled + 0.5))

    # COP amounts carry no decimals: "." and "," are grouping only.
    cleaned = re.sub(r"[^\d.,\-]", "", compact)
    digits = re.sub(r"[.,]", "", cleaned)
    if not re.search(r"\d", digits):
        return None
    if len(digits.lstrip("-0")) > MAX_AMOUNT_DIGITS:
        return None

    try:
        value = int(digits)
    except ValueError:
        return None

    return abs(value)
