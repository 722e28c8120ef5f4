"""
Accord Common Module

Shared infrastructure: configuration, record store, embedding and LLM clients.
"""

from .config import AccordConfig, load_config
from .embedding_service import EmbeddingService, EmbeddingServiceError
from .llm_client import LLMClient
from .store import DocumentStore, RecordNotFoundError, StoreLoadError

__all__ = [
    "AccordConfig",
    "load_config",
    "EmbeddingService",
    "EmbeddingServiceError",
    "LLMClient",
    "DocumentStore",
    "RecordNotFoundError",
    "StoreLoadError",
]
