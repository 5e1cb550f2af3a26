"""LiteLLM-based embedding client."""

from enum import Enum
from typing import Any

from litellm import aembedding

from faqdesk.constants import DOCUMENT_INSTRUCTION, EMBEDDING_DIMENSIONS, QUERY_INSTRUCTION


class EmbeddingError(Exception):
    """Raised when the embedding provider fails or returns unusable output."""

    pass


class DimensionMismatchError(EmbeddingError):
    """Raised when an embedding does not have the expected dimensionality."""

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Embedding has {actual} dimensions, expected {expected}")
        self.expected = expected
        self.actual = actual


class EmbedMode(str, Enum):
    """Which side of the retrieval pair a text is embedded for."""

    QUERY = "query"
    DOCUMENT = "document"


class Embedder:
    """Converts text into fixed-dimension vectors.

    Queries and documents are embedded asymmetrically: each mode has its own
    instruction prefix, so vectors produced in one mode must not be compared
    against an index built with the other.
    """

    def __init__(
        self,
        model: str,
        dimensions: int = EMBEDDING_DIMENSIONS,
        query_instruction: str = QUERY_INSTRUCTION,
        document_instruction: str = DOCUMENT_INSTRUCTION,
        api_key: str | None = None,
        endpoint: str | None = None,
    ):
        """Initialize embedder.

        Args:
            model: LiteLLM embedding model string (e.g. huggingface/BAAI/bge-small-en-v1.5).
            dimensions: Expected vector length.
            query_instruction: Prefix prepended to query texts.
            document_instruction: Prefix prepended to document texts.
            api_key: Optional API key (uses env var if not provided).
            endpoint: Optional custom endpoint.
        """
        self.model = model
        self.dimensions = dimensions
        self.query_instruction = query_instruction
        self.document_instruction = document_instruction
        self.api_key = api_key
        self.endpoint = endpoint

    def _prepare(self, text: str, mode: EmbedMode) -> str:
        prefix = self.query_instruction if mode == EmbedMode.QUERY else self.document_instruction
        return f"{prefix}{text}"

    async def embed(self, text: str, mode: EmbedMode = EmbedMode.QUERY) -> list[float]:
        """Embed a single text.

        Args:
            text: Text to embed.
            mode: Query or document embedding.

        Returns:
            Vector of length ``dimensions``.

        Raises:
            EmbeddingError: If the provider fails.
            DimensionMismatchError: If the vector has the wrong length.
        """
        vectors = await self.embed_many([text], mode=mode)
        return vectors[0]

    async def embed_many(
        self, texts: list[str], mode: EmbedMode = EmbedMode.DOCUMENT
    ) -> list[list[float]]:
        """Embed a batch of texts, preserving order.

        Args:
            texts: Texts to embed.
            mode: Query or document embedding.

        Returns:
            One vector per input text.

        Raises:
            EmbeddingError: If the provider fails or returns the wrong count.
            DimensionMismatchError: If any vector has the wrong length.
        """
        if not texts:
            return []

        kwargs: dict[str, Any] = {
            "model": self.model,
            "input": [self._prepare(t, mode) for t in texts],
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.endpoint:
            kwargs["api_base"] = self.endpoint

        try:
            response = await aembedding(**kwargs)
        except Exception as e:
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        vectors = [self._vector_of(item) for item in (response.data or [])]
        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"Embedding provider returned {len(vectors)} vectors for {len(texts)} inputs"
            )
        for vector in vectors:
            if len(vector) != self.dimensions:
                raise DimensionMismatchError(self.dimensions, len(vector))
        return vectors

    @staticmethod
    def _vector_of(item: Any) -> list[float]:
        raw = item.get("embedding") if isinstance(item, dict) else getattr(item, "embedding", None)
        if not isinstance(raw, list):
            raise EmbeddingError("Unexpected embedding output shape")
        return [float(x) for x in raw]
