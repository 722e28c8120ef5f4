"""
Searcher

Hybrid search over one project's understandings and design documents.

Sources, highest fixed score first:
- hld / lld: case-insensitive substring match in the project's design docs (95)
- text: substring match in understanding text, module, developer or change description (90)
- semantic: cosine similarity of the embedded query >= threshold (similarity x 100)

An understanding appears once, under the first source that matched it.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..common.embedding_service import EmbeddingService, EmbeddingServiceError
from ..common.schemas import Project, Understanding, truncate
from ..common.store import DocumentStore
from ..consensus.engine import cosine_similarity, filter_embedded

logger = logging.getLogger("accord.retriever.searcher")

DOCUMENT_SCORE = 95.0
TEXT_SCORE = 90.0
EXCERPT_CHARS = 500


@dataclass
class SearchResult:
    """A single search hit"""
    id: str
    module_name: str
    developer_name: str
    text: str
    score: float  # 0-100
    source: str  # hld, lld, text, semantic
    created_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "module_name": self.module_name,
            "developer_name": self.developer_name,
            "text": self.text,
            "score": self.score,
            "source": self.source,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            **self.metadata,
        }


def _understanding_result(u: Understanding, score: float, source: str) -> SearchResult:
    return SearchResult(
        id=u.id,
        module_name=u.module_name,
        developer_name=u.developer_name,
        text=u.understanding_text,
        score=score,
        source=source,
        created_at=u.created_at,
        metadata={
            "change_description": u.change_description,
            "confidence_score": u.confidence_score,
        },
    )


class Searcher:
    """
    Searches a project's understandings and design documents.

    The embedding service is optional: without one (or if embedding the
    query fails) only the text sources are searched.
    """

    def __init__(
        self,
        store: DocumentStore,
        embedding_service: Optional[EmbeddingService] = None,
        threshold: float = 0.3,
        limit: int = 10,
    ):
        """
        Args:
            store: Document store to search
            embedding_service: For embedding queries
            threshold: Minimum cosine similarity for semantic hits
            limit: Maximum number of results
        """
        self._store = store
        self._embedding = embedding_service
        self._threshold = threshold
        self._limit = limit

    def search(self, project_id: str, query: str) -> List[SearchResult]:
        """
        Search a project.

        Raises:
            ValueError: Empty query
            RecordNotFoundError: Unknown project
        """
        term = (query or "").strip()
        if not term:
            raise ValueError("Query is required")

        project = self._store.get_project(project_id)
        understandings = self._store.list_understandings(project_id)
        logger.info('Searching for "%s" in project %s', term, project_id)

        results = self._search_documents(project, term)
        seen = set()

        for u in self._search_text(understandings, term):
            seen.add(u.id)
            results.append(_understanding_result(u, TEXT_SCORE, "text"))

        for u, similarity in self._search_semantic(understandings, term):
            if u.id in seen:
                continue
            seen.add(u.id)
            results.append(_understanding_result(u, round(similarity * 100, 1), "semantic"))

        results.sort(key=lambda r: r.score, reverse=True)
        logger.info("Found %d total results", len(results))
        return results[:self._limit]

    @staticmethod
    def _search_documents(project: Project, term: str) -> List[SearchResult]:
        needle = term.lower()
        results = []
        for source, label, text in (
            ("hld", "High-Level Design", project.hld_text),
            ("lld", "Low-Level Design", project.lld_text),
        ):
            if text and needle in text.lower():
                results.append(SearchResult(
                    id=f"{source}-{project.id}",
                    module_name=label,
                    developer_name="Project Documentation",
                    text=truncate(text, EXCERPT_CHARS),
                    score=DOCUMENT_SCORE,
                    source=source,
                    created_at=project.created_at,
                ))
        return results

    @staticmethod
    def _search_text(understandings: List[Understanding], term: str) -> List[Understanding]:
        needle = term.lower()
        matches = []
        for u in understandings:
            fields = (u.understanding_text, u.module_name, u.developer_name, u.change_description or "")
            if any(needle in value.lower() for value in fields):
                matches.append(u)
        return matches

    def _search_semantic(self, understandings: List[Understanding], term: str):
        if self._embedding is None or not self._embedding.is_available:
            return []

        try:
            query_vector = self._embedding.embed_single(term)
        except EmbeddingServiceError as e:
            logger.warning("Semantic search unavailable, falling back to text only: %s", e)
            return []

        matches = []
        for u, vector in filter_embedded(understandings):
            if len(vector) != len(query_vector):
                continue
            similarity = cosine_similarity(vector, query_vector)
            if similarity >= self._threshold:
                matches.append((u, similarity))
        return matches
