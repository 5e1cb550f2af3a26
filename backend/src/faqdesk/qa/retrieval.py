"""Question-to-candidates retrieval."""

from faqdesk.constants import MIN_SIMILARITY, TOP_K
from faqdesk.embedding import EmbedMode, Embedder
from faqdesk.schemas import Passage
from faqdesk.vectorstore import FaqStore


class Retriever:
    """Finds ranked FAQ candidates for a question.

    Embedding and vector store failures propagate unchanged: without a query
    vector there is nothing to fall back on.
    """

    def __init__(
        self,
        embedder: Embedder,
        store: FaqStore,
        top_k: int = TOP_K,
        min_similarity: float = MIN_SIMILARITY,
    ) -> None:
        """Initialize retriever.

        Args:
            embedder: Embedder used in query mode.
            store: Vector store holding document-mode FAQ embeddings.
            top_k: Maximum candidates requested.
            min_similarity: Similarity floor passed to the store.
        """
        self._embedder = embedder
        self._store = store
        self._top_k = top_k
        self._min_similarity = min_similarity

    async def retrieve(self, question: str) -> list[Passage]:
        """Return candidates for a question, most similar first.

        Args:
            question: Non-empty, trimmed user question.

        Returns:
            Passages sorted by similarity descending (possibly empty).

        Raises:
            EmbeddingError: If the question cannot be embedded.
            RetrievalError: If the vector store query fails.
        """
        vector = await self._embedder.embed(question, mode=EmbedMode.QUERY)
        candidates = self._store.query(
            vector, k=self._top_k, min_similarity=self._min_similarity
        )
        # Store ordering is not trusted
        return rank_passages(candidates)


def rank_passages(passages: list[Passage]) -> list[Passage]:
    """Sort passages by similarity descending, keeping ties in input order."""
    return sorted(passages, key=lambda p: p.similarity, reverse=True)
