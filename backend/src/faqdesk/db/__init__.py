"""Database layer for conversations, messages and tickets."""

from faqdesk.db.connection import Database
from faqdesk.db.conversations import ConversationStore, TicketRecord
from faqdesk.db.migrations import run_migrations

__all__ = ["ConversationStore", "Database", "TicketRecord", "run_migrations"]
