"""Shared pytest fixtures for all tests.

These fixtures properly clean up resources to prevent file descriptor leaks.
"""

import gc
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from litellm.exceptions import ContextWindowExceededError, ServiceUnavailableError

from faqdesk.db import ConversationStore, Database, run_migrations
from faqdesk.llm import LLMClient, LLMError
from faqdesk.vectorstore import FaqStore


@pytest.fixture(autouse=True)
def cleanup_after_test():
    """Clean up resources after each test to prevent file descriptor leaks.

    This runs automatically after every test to help garbage collect
    any lingering ChromaDB or SQLite connections.
    """
    yield
    gc.collect()


@pytest.fixture
def temp_faq_store(tmp_path):
    """Create a temporary FAQ vector store that cleans up properly."""
    chroma_path = tmp_path / "chroma"
    chroma_path.mkdir()
    store = FaqStore(chroma_path)
    yield store
    store.close()
    gc.collect()


@pytest.fixture
def temp_db(tmp_path):
    """Create a temporary migrated database that cleans up properly."""
    db = Database(tmp_path / "test.db")
    run_migrations(db)
    yield db
    db.close()
    gc.collect()


@pytest.fixture
def conversation_store(temp_db):
    """ConversationStore over a temporary database."""
    return ConversationStore(temp_db)


@pytest.fixture
def mock_llm():
    """LLM client double whose generate calls return canned text."""
    llm = MagicMock()
    llm.generate = AsyncMock(return_value="Generated text")
    llm.generate_with_json = AsyncMock(return_value="{}")
    return llm


@pytest.fixture
def failing_llm():
    """LLM client double whose every call fails."""
    llm = MagicMock()
    llm.generate = AsyncMock(side_effect=LLMError("service unavailable"))
    llm.generate_with_json = AsyncMock(side_effect=LLMError("service unavailable"))
    return llm


@pytest.fixture(
    params=[
        ServiceUnavailableError(message="503", llm_provider="openai", model="gpt-4o-mini"),
        ContextWindowExceededError(
            message="prompt is too long", model="gpt-4o-mini", llm_provider="openai"
        ),
    ],
    ids=["unavailable", "context-window"],
)
def provider_error_llm(request):
    """Real LLMClient whose litellm completion call raises a provider error."""
    with patch("faqdesk.llm.client.acompletion", new=AsyncMock(side_effect=request.param)):
        yield LLMClient(provider="openai", model="gpt-4o-mini")
