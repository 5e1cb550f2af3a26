"""Embedding generation for queries and FAQ documents."""

from faqdesk.embedding.client import (
    DimensionMismatchError,
    EmbedMode,
    Embedder,
    EmbeddingError,
)

__all__ = ["DimensionMismatchError", "EmbedMode", "Embedder", "EmbeddingError"]
