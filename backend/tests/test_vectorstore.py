"""Tests for the ChromaDB FAQ store."""

import math
from unittest.mock import MagicMock

import pytest

from faqdesk.vectorstore import RetrievalError


def unit(*components):
    norm = math.sqrt(sum(c * c for c in components))
    return [c / norm for c in components]


@pytest.fixture
def loaded_store(temp_faq_store):
    """Store with three orthogonal-ish FAQ entries."""
    temp_faq_store.add_entries(
        ids=[1, 2, 3],
        questions=["How do I reset my password?", "How do refunds work?", "Do you ship abroad?"],
        answers=["Use the reset link.", "Refunds take 5 days.", "Yes, to 40 countries."],
        embeddings=[unit(1, 0, 0), unit(0, 1, 0), unit(0, 0, 1)],
    )
    return temp_faq_store


def test_empty_store_returns_no_results(temp_faq_store):
    assert temp_faq_store.query(unit(1, 0, 0), k=8, min_similarity=0.0) == []


def test_query_returns_passages_with_similarity(loaded_store):
    """Similarity is one minus cosine distance."""
    results = loaded_store.query(unit(1, 0, 0), k=8, min_similarity=0.5)

    assert [p.id for p in results] == [1]
    assert results[0].question == "How do I reset my password?"
    assert results[0].answer == "Use the reset link."
    assert results[0].similarity == pytest.approx(1.0, abs=1e-4)


def test_similarity_floor_drops_weak_matches(loaded_store):
    """Entries below min_similarity are never returned."""
    query = unit(0.9, 0.3, 0)

    results = loaded_store.query(query, k=8, min_similarity=0.2)

    assert {p.id for p in results} == {1, 2}
    assert all(p.similarity >= 0.2 for p in results)


def test_similarity_is_clamped(loaded_store):
    """Opposite vectors score zero rather than a negative similarity."""
    results = loaded_store.query(unit(-1, 0, 0), k=8, min_similarity=0.0)

    assert all(0.0 <= p.similarity <= 1.0 for p in results)


def test_k_limits_results(loaded_store):
    results = loaded_store.query(unit(1, 1, 1), k=2, min_similarity=0.0)

    assert len(results) == 2


def test_add_entries_replaces_existing_ids(loaded_store):
    loaded_store.add_entries(
        ids=[1],
        questions=["How do I change my password?"],
        answers=["Go to settings."],
        embeddings=[unit(1, 0, 0)],
    )

    assert loaded_store.count() == 3
    result = loaded_store.query(unit(1, 0, 0), k=1, min_similarity=0.0)[0]
    assert result.answer == "Go to settings."


def test_chroma_failure_raises_retrieval_error(loaded_store):
    """Datastore errors surface as RetrievalError."""
    broken = MagicMock()
    broken.count.return_value = 3
    broken.query.side_effect = RuntimeError("disk gone")
    loaded_store._collection = broken

    with pytest.raises(RetrievalError):
        loaded_store.query(unit(1, 0, 0), k=8, min_similarity=0.0)
