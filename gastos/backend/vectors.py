import logging
from pathlib import Path
from typing import Any

import chromadb

from gastos.backend.clients import call_ollama_embed
from gastos.backend.extraction.records import ExpenseRecord
from gastos.backend.parsing import collapse_spaces
from gastos.backend.tuning import SIMILAR_EXAMPLES_LIMIT


def build_document(record: ExpenseRecord, month_key: str, currency: str) -> str:
    return (
        f"categoria={record.category}; monto={record.amount} {currency}; "
        f"fecha={record.date_iso}; month_key={month_key}; concepto={collapse_spaces(record.concept)}"
    )


class ExpenseVectorIndex:
    """Chroma collection of stored expenses, embedded with Ollama."""

    def __init__(
        self,
        chroma_path: Path,
        collection_name: str,
        ollama_base_url: str,
        ollama_embed_model: str,
        logger: logging.Logger,
    ) -> None:
        chroma_path.mkdir(parents=True, exist_ok=True)
        self.logger = logger
        self.client = chromadb.PersistentClient(path=str(chroma_path))
        self.collection = self.client.get_or_create_collection(name=collection_name)
        self.ollama_base_url = ollama_base_url
        self.ollama_embed_model = ollama_embed_model
        self.logger.info("Chroma initialized at %s (collection=%s)", chroma_path, collection_name)

    def _embed(self, text: str) -> list[float]:
        return call_ollama_embed(
            base_url=self.ollama_base_url,
            model=self.ollama_embed_model,
            text=text,
        )

    def upsert(
        self,
        expense_id: int,
        chat_id: int,
        record: ExpenseRecord,
        month_key: str,
        currency: str,
        source: str,
    ) -> None:
        document = build_document(record, month_key, currency)
        metadata = {
            "expense_id": expense_id,
            "chat_id": chat_id,
            "categoria": record.category,
            "monto": record.amount,
            "currency": currency,
            "month_key": month_key,
            "source": source,
        }
        self.collection.upsert(
            ids=[str(expense_id)],
            documents=[document],
            metadatas=[metadata],
            embeddings=[self._embed(document)],
        )

    def query_similar(
        self,
        chat_id: int,
        text: str,
        n_results: int = SIMILAR_EXAMPLES_LIMIT,
    ) -> list[dict[str, Any]]:
        normalized_text = collapse_spaces(text)
        if not normalized_text:
            return []

        result = self.collection.query(
            query_embeddings=[self._embed(f"concepto={normalized_text}")],
            n_results=max(1, n_results),
            where={"chat_id": chat_id},
            include=["documents", "metadatas", "distances"],
        )

        documents = result.get("documents") or [[]]
        metadatas = result.get("metadatas") or [[]]
        distances = result.get("distances") or [[]]
        if not documents or not isinstance(documents[0], list):
            return []

        doc_list = documents[0]
        metadata_list = metadatas[0] if metadatas and isinstance(metadatas[0], list) else []
        distance_list = distances[0] if distances and isinstance(distances[0], list) else []

        similar_items: list[dict[str, Any]] = []
        for idx, document in enumerate(doc_list):
            if not isinstance(document, str):
                continue

            metadata = metadata_list[idx] if idx < len(metadata_list) else {}
            if not isinstance(metadata, dict):
                metadata = {}

            distance = distance_list[idx] if idx < len(distance_list) else None
            if not isinstance(distance, (int, float)):
                distance = None

            similar_items.append(
                {
                    "document": document,
                    "category": metadata.get("categoria"),
                    "amount": metadata.get("monto"),
                    "distance": distance,
                    "month_key": metadata.get("month_key"),
                }
            )

        return similar_items
