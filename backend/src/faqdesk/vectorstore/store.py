"""ChromaDB store of embedded FAQ entries."""

import gc
from pathlib import Path
from typing import Any, cast

import chromadb
from chromadb.config import Settings

from faqdesk.schemas import Passage


class RetrievalError(Exception):
    """Raised when the vector store cannot be queried."""

    pass


class FaqStore:
    """Vector store wrapper for ChromaDB.

    Holds already-embedded FAQ entries in a cosine-space collection. The
    store never embeds text itself: vectors are supplied on insert and on
    query, so query and document embeddings stay under the caller's control.
    """

    COLLECTION_NAME = "faq_entries"

    def __init__(self, persist_path: Path) -> None:
        """Initialize the store with persistent storage.

        Args:
            persist_path: Directory path for ChromaDB persistence.
        """
        self._client = chromadb.PersistentClient(
            path=str(persist_path),
            settings=Settings(anonymized_telemetry=False),
        )
        self._collection = self._client.get_or_create_collection(
            name=self.COLLECTION_NAME,
            metadata={"hnsw:space": "cosine"},
            embedding_function=None,
        )

    @property
    def collection(self) -> chromadb.Collection:
        """Get the underlying ChromaDB collection."""
        return self._collection

    def add_entries(
        self,
        ids: list[int],
        questions: list[str],
        answers: list[str],
        embeddings: list[list[float]],
    ) -> None:
        """Add (or replace) embedded FAQ entries.

        Args:
            ids: FAQ entry identifiers.
            questions: Question text per entry.
            answers: Answer text per entry.
            embeddings: Document-mode embedding per entry.
        """
        self._collection.upsert(
            ids=[str(i) for i in ids],
            embeddings=cast(Any, embeddings),
            documents=[f"{q}\n{a}" for q, a in zip(questions, answers)],
            metadatas=[{"question": q, "answer": a} for q, a in zip(questions, answers)],
        )

    def count(self) -> int:
        """Number of stored entries."""
        return self._collection.count()

    def query(self, vector: list[float], k: int, min_similarity: float) -> list[Passage]:
        """Find the entries most similar to a query vector.

        Args:
            vector: Query-mode embedding.
            k: Maximum number of candidates.
            min_similarity: Candidates below this cosine similarity are dropped.

        Returns:
            Passages in the order ChromaDB returned them.

        Raises:
            RetrievalError: If ChromaDB fails.
        """
        try:
            if self._collection.count() == 0:
                return []
            result = self._collection.query(
                query_embeddings=cast(Any, [vector]),
                n_results=k,
                include=cast(Any, ["metadatas", "distances"]),
            )
        except Exception as e:
            raise RetrievalError(f"Vector query failed: {e}") from e

        ids = (result.get("ids") or [[]])[0]
        metadatas = (result.get("metadatas") or [[]])[0]
        distances = (result.get("distances") or [[]])[0]

        passages: list[Passage] = []
        for i, doc_id in enumerate(ids):
            if i >= len(metadatas) or i >= len(distances):
                break
            # Cosine distance is 1 - cosine similarity
            similarity = min(max(1.0 - float(distances[i]), 0.0), 1.0)
            if similarity < min_similarity:
                continue
            metadata = metadatas[i] or {}
            passages.append(
                Passage(
                    id=int(doc_id),
                    question=str(metadata.get("question", "")),
                    answer=str(metadata.get("answer", "")),
                    similarity=similarity,
                )
            )
        return passages

    def close(self) -> None:
        """Close the store and release resources."""
        if self._client is not None:
            try:
                if hasattr(self._client, "_identifier_to_system"):
                    for system in list(self._client._identifier_to_system.values()):
                        if hasattr(system, "stop"):
                            system.stop()
            except Exception:
                pass  # Best effort cleanup

        self._collection = None  # type: ignore[assignment]
        self._client = None  # type: ignore[assignment]

        gc.collect()
