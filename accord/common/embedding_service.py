"""
Embedding Service

Turns understanding text into fixed-length vectors.

Providers:
- google: Gemini embedding API (default, 768 dimensions)
- openai: OpenAI embeddings API
- femb: fastembed, on-device, no API key

The service is an explicit dependency of the recorder and searcher. The
consensus engine never calls it; it only sees vectors already stored on the
understandings.
"""

import logging
from typing import TYPE_CHECKING, List, Optional

import numpy as np

if TYPE_CHECKING:
    from .config import EmbeddingConfig

logger = logging.getLogger("accord.common.embedding_service")


class EmbeddingServiceError(Exception):
    """Raised when the embedding provider fails or returns an unusable result."""


class EmbeddingService:
    """
    Embedding generation across providers.

    Provider SDKs are imported lazily; a missing SDK or API key leaves the
    service unavailable rather than failing at construction.
    """

    def __init__(
        self,
        provider: str = "google",
        model: str = "models/text-embedding-004",
        api_key: Optional[str] = None,
        dimension: Optional[int] = None,
    ):
        """
        Initialize embedding service.

        Args:
            provider: google, openai or femb
            model: Provider model name
            api_key: API key (not needed for femb)
            dimension: Expected vector length (None = accept what the model returns)
        """
        self.provider = (provider or "google").lower()
        self.model = model
        self.dimension = dimension
        self._backend = None

        try:
            if self.provider == "google":
                if not api_key:
                    logger.info("google API key not provided, embeddings unavailable")
                    return
                import google.generativeai as genai

                genai.configure(api_key=api_key)
                self._backend = genai
            elif self.provider == "openai":
                if not api_key:
                    logger.info("openai API key not provided, embeddings unavailable")
                    return
                from openai import OpenAI

                self._backend = OpenAI(api_key=api_key)
            elif self.provider == "femb":
                from fastembed import TextEmbedding

                self._backend = TextEmbedding(model_name=model)
            else:
                logger.warning("Unsupported embedding provider: %s", self.provider)
                return
            logger.info("Embedding service initialized with provider=%s, model=%s", self.provider, model)
        except ImportError as e:
            logger.warning("%s embedding SDK not installed: %s", self.provider, e)
            self._backend = None

    @classmethod
    def from_config(cls, config: "EmbeddingConfig") -> "EmbeddingService":
        return cls(
            provider=config.provider,
            model=config.model,
            api_key=config.api_key or None,
            dimension=config.dimension or None,
        )

    @property
    def is_available(self) -> bool:
        """Check if embedding service is available"""
        return self._backend is not None

    def embed(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for a list of texts.

        Args:
            texts: List of strings to embed

        Returns:
            One vector per input text, in input order

        Raises:
            EmbeddingServiceError: On provider failure or a malformed response
        """
        if not self.is_available:
            raise EmbeddingServiceError("Embedding service is not available")

        if not texts:
            return []

        try:
            if self.provider == "google":
                result = self._backend.embed_content(model=self.model, content=texts)
                vectors = result["embedding"]
            elif self.provider == "openai":
                response = self._backend.embeddings.create(model=self.model, input=texts)
                vectors = [item.embedding for item in sorted(response.data, key=lambda d: d.index)]
            else:
                vectors = list(self._backend.embed(texts))
        except Exception as e:
            raise EmbeddingServiceError(f"{self.provider} embedding request failed: {e}") from e

        try:
            matrix = np.asarray(vectors, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise EmbeddingServiceError(f"Embedding response parse error: {e}") from e

        if matrix.ndim != 2 or matrix.shape[0] != len(texts):
            raise EmbeddingServiceError(
                f"Expected {len(texts)} embeddings, got array of shape {matrix.shape}"
            )
        if self.dimension and matrix.shape[1] != self.dimension:
            raise EmbeddingServiceError(
                f"{self.model} returned {matrix.shape[1]}-dimensional vectors, "
                f"configured dimension is {self.dimension}"
            )
        return matrix.tolist()

    def embed_single(self, text: str) -> List[float]:
        """
        Generate embedding for a single text.

        Raises:
            ValueError: If text is empty
            EmbeddingServiceError: On provider failure
        """
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")

        return self.embed([text])[0]
