"""Wiring of configuration onto engine components."""

import logging

from faqdesk.config import Config, load_settings
from faqdesk.conversation.packing import ContextPacker
from faqdesk.db import ConversationStore, Database, run_migrations
from faqdesk.embedding import Embedder
from faqdesk.llm.client import LLMClient
from faqdesk.qa import AnswerComposer, ConfidenceClassifier, Retriever
from faqdesk.service import SupportService
from faqdesk.tickets import TicketDraftSynthesizer
from faqdesk.vectorstore import FaqStore

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(__name__)


def configure_logging(level: int = logging.INFO) -> None:
    """Install the application log format on the root logger."""
    logging.basicConfig(format=LOG_FORMAT, datefmt=DATE_FORMAT, level=level)


def build_service(settings: Config | None = None, persist: bool = True) -> SupportService:
    """Build a SupportService from configuration.

    Args:
        settings: Configuration to use. Defaults to ``load_settings()``.
        persist: Whether to persist conversations and tickets in SQLite.
            Without persistence ticket requests only produce drafts.

    Returns:
        A ready-to-use service.
    """
    if settings is None:
        settings = load_settings()

    llm = LLMClient(
        provider=settings.active_provider,
        model=settings.active_model,
        api_key=settings.llm_api_key,
        endpoint=settings.llm_endpoint,
        log_path=settings.llm_log_path,
        default_temperature=settings.llm.default_temperature,
        max_tokens=settings.llm.max_tokens,
        json_temperature=settings.llm.json_temperature,
    )
    embedder = Embedder(
        model=settings.embedding_model,
        dimensions=settings.embedding.dimensions,
        query_instruction=settings.embedding.query_instruction,
        document_instruction=settings.embedding.document_instruction,
        api_key=settings.embedding_api_key,
        endpoint=settings.ollama_endpoint
        if settings.embedding_model.startswith("ollama/")
        else None,
    )

    retriever = Retriever(
        embedder,
        FaqStore(settings.chroma_path),
        top_k=settings.retrieval.top_k,
        min_similarity=settings.retrieval.min_similarity,
    )
    classifier = ConfidenceClassifier(
        strong_similarity=settings.retrieval.strong_similarity,
        margin_accept=settings.retrieval.margin_accept,
    )
    composer = AnswerComposer(
        llm,
        top_n=settings.retrieval.answer_top_n,
        max_tokens=settings.llm.max_tokens,
        temperature=settings.llm.default_temperature,
        clarify_max_tokens=settings.llm.clarify_max_tokens,
    )
    packer = ContextPacker(
        llm,
        model_limit=settings.context.model_limit,
        reserved_output_tokens=settings.context.reserved_output_tokens,
        safety_margin_tokens=settings.context.safety_margin_tokens,
        split_ratio=settings.context.split_ratio,
        digest_max_tokens=settings.context.digest_max_tokens,
        head_fallback_chars=settings.context.head_fallback_chars,
    )
    synthesizer = TicketDraftSynthesizer(
        llm,
        packer=packer,
        title_max_chars=settings.ticket.title_max_chars,
        max_steps=settings.ticket.max_steps,
        excerpt_messages=settings.ticket.excerpt_messages,
        excerpt_max_chars=settings.ticket.excerpt_max_chars,
        max_tokens=settings.ticket.max_tokens,
    )

    store = None
    if persist:
        db = Database(settings.db_path)
        run_migrations(db)
        store = ConversationStore(db)

    logger.info(
        f"Support engine ready (llm={settings.active_provider}/{settings.active_model}, "
        f"embedding={settings.embedding_model})"
    )
    return SupportService(
        retriever,
        classifier,
        composer,
        synthesizer,
        packer,
        store=store,
        max_history_turns=settings.history.max_turns,
        store_fetch_limit=settings.history.store_fetch_limit,
    )
