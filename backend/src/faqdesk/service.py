"""Support engine: answers FAQ questions and escalates conversations to tickets."""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from faqdesk.constants import MAX_HISTORY_TURNS, STORE_HISTORY_LIMIT
from faqdesk.conversation.history import is_ticket_request, merge_history
from faqdesk.conversation.packing import format_transcript
from faqdesk.schemas import ChatMessage, Passage, Role, TicketDraft

if TYPE_CHECKING:
    from faqdesk.conversation.packing import ContextPacker
    from faqdesk.db.conversations import ConversationStore, TicketRecord
    from faqdesk.qa.composer import AnswerComposer
    from faqdesk.qa.confidence import ConfidenceClassifier, ConfidenceDecision
    from faqdesk.qa.retrieval import Retriever
    from faqdesk.tickets.synthesizer import TicketDraftSynthesizer

logger = logging.getLogger(__name__)

TICKET_NUDGE = 'If you\'d like, I can create a support ticket. Just say "create ticket".'
SIGN_IN_REQUIRED = (
    "I've drafted a support ticket from our conversation. Sign in to submit it "
    "and our team will follow up."
)


class SupportAction(str, Enum):
    """What the engine did with an incoming message."""

    ANSWER = "answer"
    CLARIFY = "clarify"
    TICKET_DRAFT = "ticket_draft"
    TICKET_CREATED = "ticket_created"


@dataclass
class ChatReply:
    """Outcome of one chat turn."""

    action: SupportAction
    reply: str
    conversation_id: str | None = None
    sources: list[Passage] = field(default_factory=list)
    suggestions: list[Passage] = field(default_factory=list)
    draft: TicketDraft | None = None
    ticket: TicketRecord | None = None


def idempotency_key(history: Sequence[ChatMessage]) -> str:
    """Key identifying a ticket request by the conversation it escalates.

    Repeating a ticket request without adding to the conversation yields the
    same key.
    """
    return hashlib.sha256(format_transcript(history).encode("utf-8")).hexdigest()[:32]


class SupportService:
    """Runs the per-message pipeline over injected components.

    Each message is handled independently: embed and retrieve, gate on
    confidence, then answer or ask a clarifying question. Ticket requests
    merge, pack and summarize the conversation instead. When a
    ``ConversationStore`` is present, messages and tickets are persisted;
    without one the service is stateless and ticket requests only produce a
    draft.
    """

    def __init__(
        self,
        retriever: Retriever,
        classifier: ConfidenceClassifier,
        composer: AnswerComposer,
        synthesizer: TicketDraftSynthesizer,
        packer: ContextPacker,
        store: ConversationStore | None = None,
        max_history_turns: int = MAX_HISTORY_TURNS,
        store_fetch_limit: int = STORE_HISTORY_LIMIT,
    ) -> None:
        self._retriever = retriever
        self._classifier = classifier
        self._composer = composer
        self._synthesizer = synthesizer
        self._packer = packer
        self._store = store
        self.max_history_turns = max_history_turns
        self.store_fetch_limit = store_fetch_limit

    async def retrieve(self, question: str) -> list[Passage]:
        return await self._retriever.retrieve(question)

    def classify(self, results: list[Passage]) -> ConfidenceDecision:
        return self._classifier.classify(results)

    def merge_history(
        self, primary: Sequence[ChatMessage], secondary: Sequence[ChatMessage]
    ) -> list[ChatMessage]:
        return merge_history(primary, secondary, max_turns=self.max_history_turns)

    async def pack_context(
        self, history: Sequence[ChatMessage], token_budget: int | None = None
    ) -> str:
        return await self._packer.pack(history, token_budget=token_budget)

    async def compose_answer(
        self, question: str, passages: list[Passage], top_n: int | None = None
    ) -> str:
        return await self._composer.compose(question, passages, top_n=top_n)

    async def synthesize_ticket(self, history: Sequence[ChatMessage]) -> TicketDraft:
        return await self._synthesizer.synthesize(history)

    async def respond(
        self,
        message: str,
        conversation_id: str | None = None,
        client_history: Sequence[ChatMessage] = (),
        force_ticket: bool = False,
    ) -> ChatReply:
        """Handle one user message.

        Args:
            message: The user's message.
            conversation_id: Persisted conversation to continue, or None to
                start a new one (ignored without a store).
            client_history: Messages the client collected on its own, e.g.
                before the user signed in.
            force_ticket: Treat the message as a ticket request.

        Returns:
            The reply and the action taken.

        Raises:
            ValueError: If the message is empty or the conversation is unknown.
            EmbeddingError: If the question cannot be embedded.
            RetrievalError: If the vector store query fails.
        """
        text = message.strip()
        if not text:
            raise ValueError("Message must not be empty")

        wants_ticket = force_ticket or is_ticket_request(text)
        user_message = ChatMessage(role=Role.USER, content=text)

        if self._store is None:
            if wants_ticket:
                history = self.merge_history(client_history, [user_message])
                draft = await self.synthesize_ticket(history)
                return ChatReply(
                    action=SupportAction.TICKET_DRAFT, reply=SIGN_IN_REQUIRED, draft=draft
                )
            return await self._answer(text)

        if conversation_id is None:
            conversation_id = self._store.create_conversation()
            logger.info(f"Started conversation {conversation_id}")
        elif not self._store.conversation_exists(conversation_id):
            raise ValueError(f"Unknown conversation: {conversation_id}")

        self._store.add_message(conversation_id, user_message)

        if wants_ticket:
            return await self._create_ticket(conversation_id, client_history)

        reply = await self._answer(text)
        reply.conversation_id = conversation_id
        self._store.add_message(
            conversation_id, ChatMessage(role=Role.ASSISTANT, content=reply.reply)
        )
        return reply

    async def _answer(self, question: str) -> ChatReply:
        results = await self.retrieve(question)
        decision = self.classify(results)

        if decision.accepted:
            selected = results[: self._composer.top_n]
            answer = await self.compose_answer(question, selected)
            return ChatReply(action=SupportAction.ANSWER, reply=answer, sources=selected)

        best = f"{decision.best.similarity:.3f}" if decision.best else "none"
        logger.info(f"Low retrieval confidence (best={best}), asking to clarify")
        follow_up = await self._composer.clarify(question)
        return ChatReply(
            action=SupportAction.CLARIFY,
            reply=f"{follow_up}\n\n{TICKET_NUDGE}",
            suggestions=results[: self._composer.top_n],
        )

    async def _create_ticket(
        self, conversation_id: str, client_history: Sequence[ChatMessage]
    ) -> ChatReply:
        assert self._store is not None
        persisted = self._store.get_messages(conversation_id, limit=self.store_fetch_limit)
        history = self.merge_history(persisted, client_history)

        draft = await self.synthesize_ticket(history)
        ticket = self._store.create_ticket(
            conversation_id, draft, idempotency_key=idempotency_key(history)
        )
        logger.info(f"Ticket #{ticket.id} for conversation {conversation_id}: {ticket.title}")

        confirmation = f"I've created ticket #{ticket.id}: {ticket.title}"
        self._store.add_message(
            conversation_id, ChatMessage(role=Role.ASSISTANT, content=confirmation)
        )
        return ChatReply(
            action=SupportAction.TICKET_CREATED,
            reply=confirmation,
            conversation_id=conversation_id,
            draft=draft,
            ticket=ticket,
        )
