"""
Understanding Recorder

Validates a developer's submission, embeds the text and stores the resulting
Understanding. Embedding happens here, upstream of the consensus engine, so
every stored understanding either carries a vector or was never stored.
"""

import logging
from typing import Optional

from ..common.embedding_service import EmbeddingService
from ..common.schemas import Understanding
from ..common.store import DocumentStore

logger = logging.getLogger("accord.ingest.recorder")

MIN_CONFIDENCE = 1
MAX_CONFIDENCE = 5


class RecordValidationError(ValueError):
    """Raised when a submission is missing a field or has an invalid value."""


def _require(value: Optional[str], label: str) -> str:
    if value is None or not value.strip():
        raise RecordValidationError(f"{label} is required")
    return value.strip()


class UnderstandingRecorder:
    """
    Records understandings into the document store.

    Pipeline:
    1. Trim and validate fields
    2. Check the project exists
    3. Embed the understanding text
    4. Store the frozen Understanding
    """

    def __init__(self, store: DocumentStore, embedding_service: EmbeddingService):
        self._store = store
        self._embedding = embedding_service

    def record(
        self,
        project_id: str,
        developer_name: str,
        module_name: str,
        understanding_text: str,
        change_description: Optional[str] = None,
        confidence_score: Optional[int] = None,
    ) -> Understanding:
        """
        Validate, embed and store one understanding.

        Raises:
            RecordValidationError: Missing field or confidence outside 1-5
            RecordNotFoundError: Unknown project
            EmbeddingServiceError: Embedding failed (nothing is stored)
        """
        project_id = _require(project_id, "Project ID")
        developer_name = _require(developer_name, "Developer name")
        module_name = _require(module_name, "Module name")
        understanding_text = _require(understanding_text, "Understanding text")

        if confidence_score is not None and not (MIN_CONFIDENCE <= confidence_score <= MAX_CONFIDENCE):
            raise RecordValidationError(
                f"Confidence score must be between {MIN_CONFIDENCE} and {MAX_CONFIDENCE}"
            )

        self._store.get_project(project_id)

        embedding = self._embedding.embed_single(understanding_text)
        logger.info("Generated embedding with %d dimensions", len(embedding))

        understanding = Understanding(
            project_id=project_id,
            developer_name=developer_name,
            module_name=module_name,
            understanding_text=understanding_text,
            change_description=(change_description or "").strip() or None,
            confidence_score=confidence_score,
            embedding=embedding,
        )
        self._store.add_understanding(understanding)
        logger.info(
            "Recorded understanding %s for %s by %s",
            understanding.id, module_name, developer_name,
        )
        return understanding
