"""Persisted conversations, messages and tickets."""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass, field

from faqdesk.constants import STORE_HISTORY_LIMIT
from faqdesk.db.connection import Database
from faqdesk.schemas import ChatMessage, Role, TicketDraft

logger = logging.getLogger(__name__)


@dataclass
class TicketRecord:
    """A ticket row from the database."""

    id: int
    conversation_id: str | None
    title: str
    summary: str
    severity: str
    environment: str
    status: str
    priority: str
    created_at: str
    faq_refs: list[int] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> TicketRecord:
        return cls(
            id=row["id"],
            conversation_id=row["conversation_id"],
            title=row["title"],
            summary=row["summary"],
            severity=row["severity"],
            environment=row["environment"],
            status=row["status"],
            priority=row["priority"],
            created_at=row["created_at"],
            faq_refs=json.loads(row["faq_refs"]) if row["faq_refs"] else [],
        )


class ConversationStore:
    """SQLite-backed history source and ticket sink.

    Expects a database on which ``run_migrations`` has already been applied.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def create_conversation(self) -> str:
        """Create an empty conversation and return its id."""
        conversation_id = str(uuid.uuid4())
        with self._db.transaction() as db:
            db.execute("INSERT INTO conversations (id) VALUES (?)", (conversation_id,))
        return conversation_id

    def conversation_exists(self, conversation_id: str) -> bool:
        row = self._db.execute(
            "SELECT 1 FROM conversations WHERE id = ?", (conversation_id,)
        ).fetchone()
        return row is not None

    def add_message(self, conversation_id: str, message: ChatMessage) -> int:
        """Append a message to a conversation.

        Returns:
            The message row id.
        """
        with self._db.transaction() as db:
            cursor = db.execute(
                "INSERT INTO messages (conversation_id, role, content) VALUES (?, ?, ?)",
                (conversation_id, message.role.value, message.content),
            )
        return int(cursor.lastrowid or 0)

    def get_messages(
        self, conversation_id: str, limit: int = STORE_HISTORY_LIMIT
    ) -> list[ChatMessage]:
        """Read the most recent messages of a conversation in chronological order."""
        rows = self._db.execute(
            """
            SELECT role, content FROM (
                SELECT id, role, content FROM messages
                WHERE conversation_id = ?
                ORDER BY id DESC
                LIMIT ?
            ) ORDER BY id ASC
            """,
            (conversation_id, limit),
        ).fetchall()
        return [ChatMessage(role=Role(row["role"]), content=row["content"]) for row in rows]

    def message_count(self, conversation_id: str) -> int:
        row = self._db.execute(
            "SELECT COUNT(*) FROM messages WHERE conversation_id = ?", (conversation_id,)
        ).fetchone()
        return int(row[0]) if row else 0

    def create_ticket(
        self, conversation_id: str, draft: TicketDraft, idempotency_key: str
    ) -> TicketRecord:
        """Persist a ticket draft, at most once per idempotency key.

        A second call with the same conversation and key returns the ticket
        created by the first call instead of inserting a duplicate.

        Args:
            conversation_id: Conversation the ticket escalates.
            draft: Synthesized ticket draft.
            idempotency_key: Caller-chosen key identifying this create request.

        Returns:
            The stored ticket.
        """
        with self._db.transaction() as db:
            cursor = db.execute(
                """
                INSERT OR IGNORE INTO tickets (
                    conversation_id, idempotency_key, title, summary,
                    severity, environment, faq_refs, status, priority
                ) VALUES (?, ?, ?, ?, ?, ?, ?, 'new', ?)
                """,
                (
                    conversation_id,
                    idempotency_key,
                    draft.title,
                    draft.summary,
                    draft.severity.value,
                    draft.environment.value,
                    json.dumps(sorted(draft.faq_refs)),
                    draft.severity.value,
                ),
            )
        if cursor.rowcount == 0:
            logger.info(
                f"Ticket for conversation {conversation_id} key {idempotency_key} already exists"
            )

        row = self._db.execute(
            "SELECT * FROM tickets WHERE conversation_id = ? AND idempotency_key = ?",
            (conversation_id, idempotency_key),
        ).fetchone()
        return TicketRecord.from_row(row)

    def get_ticket(self, ticket_id: int) -> TicketRecord | None:
        row = self._db.execute("SELECT * FROM tickets WHERE id = ?", (ticket_id,)).fetchone()
        return TicketRecord.from_row(row) if row else None
