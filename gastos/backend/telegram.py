#!/usr/bin/env python3
import logging

from gastos.backend.analysis.service import MonthlyAnalysisService
from gastos.backend.clients import get_webhook_url
from gastos.backend.config import load_config
from gastos.backend.polling import BotContext
from gastos.backend.polling import run_long_polling
from gastos.backend.storage import ExpensePersistence
from gastos.backend.vectors import ExpenseVectorIndex

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


def main() -> int:
    try:
        config = load_config()
    except RuntimeError as exc:
        logger.error(str(exc))
        return 1

    webhook_url = get_webhook_url(config.token)
    if webhook_url:
        logger.warning(
            "Active webhook detected. For long polling, run:\n"
            "curl -X POST \"https://api.telegram.org/bot$TELEGRAM_BOT_TOKEN/deleteWebhook\"\n"
        )

    try:
        vector_index = ExpenseVectorIndex(
            chroma_path=config.chroma_path,
            collection_name=config.chroma_collection_name,
            ollama_base_url=config.ollama_base_url,
            ollama_embed_model=config.ollama_embed_model,
            logger=logger,
        )
    except Exception as exc:
        logger.warning("Chroma unavailable, category hints disabled: %s", exc)
        vector_index = None

    persistence = ExpensePersistence(
        db_path=config.db_path,
        default_currency=config.default_currency,
        logger=logger,
        vector_index=vector_index,
    )
    analysis_service = MonthlyAnalysisService(
        persistence=persistence,
        ollama_base_url=config.ollama_base_url,
        ollama_model=config.ollama_analysis_model,
        default_currency=config.default_currency,
        logger=logger,
    )
    ctx = BotContext(
        config=config,
        persistence=persistence,
        analysis_service=analysis_service,
        logger=logger,
    )

    try:
        run_long_polling(ctx=ctx, offset_file=config.offset_file)
    except KeyboardInterrupt:
        logger.info("Stopped by user.")
        return 0
    finally:
        persistence.close()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
