"""Support service tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from faqdesk.app import build_service
from faqdesk.config import Config
from faqdesk.conversation.packing import ContextPacker
from faqdesk.embedding import EmbeddingError
from faqdesk.qa import AnswerComposer, ConfidenceClassifier
from faqdesk.schemas import ChatMessage, Passage, Role
from faqdesk.service import (
    SIGN_IN_REQUIRED,
    TICKET_NUDGE,
    SupportAction,
    SupportService,
    idempotency_key,
)
from faqdesk.tickets import TicketDraftSynthesizer


def user(content: str) -> ChatMessage:
    return ChatMessage(role=Role.USER, content=content)


def assistant(content: str) -> ChatMessage:
    return ChatMessage(role=Role.ASSISTANT, content=content)


STRONG = [
    Passage(
        id=12,
        question="Can I get a price adjustment?",
        answer="Yes, within 7 days of purchase.",
        similarity=0.62,
    ),
    Passage(id=40, question="How do refunds work?", answer="Refunds take 5 days.", similarity=0.31),
]
WEAK = [
    Passage(id=3, question="Shipping?", answer="Free over $50.", similarity=0.2),
    Passage(id=4, question="Returns?", answer="30 days.", similarity=0.17),
]


@pytest.fixture
def retriever():
    mock = MagicMock()
    mock.retrieve = AsyncMock(return_value=STRONG)
    return mock


def make_service(retriever, llm=None, store=None) -> SupportService:
    packer = ContextPacker(llm)
    return SupportService(
        retriever=retriever,
        classifier=ConfidenceClassifier(),
        composer=AnswerComposer(llm),
        synthesizer=TicketDraftSynthesizer(llm, packer=packer),
        packer=packer,
        store=store,
    )


# =============================================================================
# Stateless
# =============================================================================


async def test_confident_answer(retriever, mock_llm):
    mock_llm.generate.return_value = "Yes, within 7 days [FAQ-12]."
    service = make_service(retriever, mock_llm)

    reply = await service.respond("  Can I get a price adjustment?  ")

    retriever.retrieve.assert_awaited_once_with("Can I get a price adjustment?")
    assert reply.action == SupportAction.ANSWER
    assert reply.reply == "Yes, within 7 days [FAQ-12]."
    assert [p.id for p in reply.sources] == [12, 40]
    assert reply.suggestions == []
    assert reply.conversation_id is None


async def test_low_confidence_asks_to_clarify(retriever):
    retriever.retrieve.return_value = WEAK
    service = make_service(retriever)

    reply = await service.respond("it doesn't work")

    assert reply.action == SupportAction.CLARIFY
    assert reply.reply.endswith(TICKET_NUDGE)
    assert reply.sources == []
    assert [p.id for p in reply.suggestions] == [3, 4]


async def test_empty_message_rejected(retriever):
    service = make_service(retriever)

    with pytest.raises(ValueError):
        await service.respond("   ")
    retriever.retrieve.assert_not_called()


async def test_generation_failure_still_answers(retriever, failing_llm):
    """A failing generator degrades to the cited top answer."""
    reply = await make_service(retriever, failing_llm).respond("price adjustment?")

    assert reply.action == SupportAction.ANSWER
    assert reply.reply == "Yes, within 7 days of purchase. [FAQ-12]"


async def test_embedding_failure_propagates(retriever):
    retriever.retrieve.side_effect = EmbeddingError("provider down")

    with pytest.raises(EmbeddingError):
        await make_service(retriever).respond("price adjustment?")


async def test_ticket_request_without_store_returns_draft(retriever):
    """Without persistence a ticket request yields a draft from the client history."""
    service = make_service(retriever)
    client_history = [
        user("Can I get a price adjustment?"),
        assistant("Yes, within 7 days [FAQ-12]."),
    ]

    reply = await service.respond("create ticket", client_history=client_history)

    assert reply.action == SupportAction.TICKET_DRAFT
    assert reply.reply == SIGN_IN_REQUIRED
    assert reply.draft.title == "Price adjustment request within 7-day window"
    assert reply.draft.faq_refs == frozenset({12})
    assert reply.ticket is None
    retriever.retrieve.assert_not_called()


async def test_force_ticket(retriever):
    reply = await make_service(retriever).respond("my refund never came", force_ticket=True)

    assert reply.action == SupportAction.TICKET_DRAFT
    assert reply.draft.title == "Refund request"


# =============================================================================
# Persisted
# =============================================================================


async def test_persisted_conversation_records_messages(retriever, conversation_store):
    service = make_service(retriever, store=conversation_store)

    reply = await service.respond("Can I get a price adjustment?")

    assert reply.conversation_id is not None
    messages = conversation_store.get_messages(reply.conversation_id)
    assert messages == [
        user("Can I get a price adjustment?"),
        assistant(reply.reply),
    ]


async def test_unknown_conversation_rejected(retriever, conversation_store):
    service = make_service(retriever, store=conversation_store)

    with pytest.raises(ValueError):
        await service.respond("hello", conversation_id="does-not-exist")


async def test_ticket_created_from_persisted_and_client_history(retriever, conversation_store):
    service = make_service(retriever, store=conversation_store)
    first = await service.respond("Can I get a price adjustment on the iPhone app?")

    reply = await service.respond(
        "create ticket",
        conversation_id=first.conversation_id,
        client_history=[user("My order is #A-1001")],
    )

    assert reply.action == SupportAction.TICKET_CREATED
    assert reply.ticket is not None
    assert reply.ticket.title == "Price adjustment request within 7-day window"
    assert reply.ticket.environment == "ios"
    assert "#A-1001" in reply.ticket.summary
    assert reply.reply == f"I've created ticket #{reply.ticket.id}: {reply.ticket.title}"
    stored = conversation_store.get_messages(first.conversation_id)
    assert stored[-1] == assistant(reply.reply)


async def test_repeated_ticket_request_is_idempotent(retriever, conversation_store):
    """Asking twice without new information returns the same ticket."""
    service = make_service(retriever, store=conversation_store)
    first = await service.respond("My refund never arrived")
    conversation_id = first.conversation_id

    one = await service.respond("create ticket", conversation_id=conversation_id)
    two = await service.respond("please create a ticket", conversation_id=conversation_id)

    assert one.ticket.id == two.ticket.id

    await service.respond("It was order #77", conversation_id=conversation_id)
    three = await service.respond("create ticket", conversation_id=conversation_id)

    assert three.ticket.id != one.ticket.id


# =============================================================================
# Engine Surface
# =============================================================================


async def test_engine_surface_delegates(retriever, mock_llm):
    service = make_service(retriever, mock_llm)

    results = await service.retrieve("q")
    decision = service.classify(results)
    merged = service.merge_history([user("a")], [user("a "), user("create ticket")])
    packed = await service.pack_context(merged, token_budget=100)
    answer = await service.compose_answer("q", results)
    draft = await service.synthesize_ticket(merged)

    assert decision.accepted is True
    assert merged == [user("a")]
    assert packed == "User: a"
    assert answer == "Generated text"
    assert draft.title


def test_idempotency_key_is_stable():
    history = [user("refund"), assistant("See [FAQ-40].")]

    assert idempotency_key(history) == idempotency_key(list(history))
    assert idempotency_key(history) != idempotency_key(history[:1])


def test_build_service_wires_configuration(tmp_path):
    settings = Config(data_dir=tmp_path)
    service = build_service(settings)

    assert service.max_history_turns == settings.history.max_turns
    assert service.store_fetch_limit == settings.history.store_fetch_limit
    assert service._packer.token_budget == (
        settings.context.model_limit
        - settings.context.reserved_output_tokens
        - settings.context.safety_margin_tokens
    )
    assert settings.db_path.exists()
