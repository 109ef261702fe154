import logging

from gastos.backend.categories import CATEGORY_LABELS
from gastos.backend.categories import DEFAULT_CATEGORY
from gastos.backend.extraction.records import ExpenseRecord
from gastos.backend.tuning import NEIGHBOR_PRIOR_MIN_CONSIDERED
from gastos.backend.tuning import NEIGHBOR_PRIOR_RATIO
from gastos.backend.tuning import NEIGHBOR_PRIOR_TOP_K


def neighbor_majority(
    similar_examples: list[dict],
    top_k: int = NEIGHBOR_PRIOR_TOP_K,
) -> tuple[str | None, float, int]:
    votes: dict[str, int] = {}
    considered = 0

    for example in similar_examples[:top_k]:
        category = example.get("category")
        if category not in CATEGORY_LABELS:
            continue
        votes[category] = votes.get(category, 0) + 1
        considered += 1

    if considered == 0:
        return None, 0.0, 0

    dominant_category, dominant_count = max(votes.items(), key=lambda item: item[1])
    return dominant_category, dominant_count / considered, considered


def apply_neighbor_prior(
    record: ExpenseRecord,
    similar_examples: list[dict],
    logger: logging.Logger,
    min_considered: int = NEIGHBOR_PRIOR_MIN_CONSIDERED,
    min_ratio: float = NEIGHBOR_PRIOR_RATIO,
) -> ExpenseRecord:
    """Re-label an uncategorized record when the user's similar past expenses agree."""
    if record.category != DEFAULT_CATEGORY:
        return record

    dominant_category, dominant_ratio, considered = neighbor_majority(similar_examples)
    if dominant_category is None or dominant_category == DEFAULT_CATEGORY:
        return record
    if considered < min_considered or dominant_ratio < min_ratio:
        return record

    logger.info(
        "Neighbor prior adjusted category %s -> %s (ratio=%.2f, considered=%s)",
        record.category,
        dominant_category,
        dominant_ratio,
        considered,
    )
    return ExpenseRecord(
        date_iso=record.date_iso,
        concept=record.concept,
        amount=record.amount,
        category=dominant_category,
        user=record.user,
    )
