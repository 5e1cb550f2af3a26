"""Schema for the conversation store."""

import logging
import sqlite3

from faqdesk.db.connection import Database

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- One row per support conversation
CREATE TABLE IF NOT EXISTS conversations (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Chat turns; id order is chronological order
CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    conversation_id TEXT NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
    role TEXT NOT NULL,  -- 'user' or 'assistant'
    content TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Escalation tickets
-- idempotency_key makes a repeated create request for an unchanged
-- conversation return the ticket that already exists
CREATE TABLE IF NOT EXISTS tickets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    conversation_id TEXT REFERENCES conversations(id) ON DELETE SET NULL,
    idempotency_key TEXT NOT NULL,
    title TEXT NOT NULL,
    summary TEXT NOT NULL,
    severity TEXT NOT NULL DEFAULT 'normal',
    environment TEXT NOT NULL DEFAULT 'unknown',
    faq_refs TEXT,  -- JSON list of FAQ ids
    status TEXT NOT NULL DEFAULT 'new',  -- 'new', 'open', 'closed'
    priority TEXT NOT NULL DEFAULT 'normal',
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    UNIQUE(conversation_id, idempotency_key)
);

CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages(conversation_id, id);
CREATE INDEX IF NOT EXISTS idx_tickets_conversation ON tickets(conversation_id);
"""


def run_migrations(db: Database) -> None:
    """Create the conversation, message and ticket tables if they are missing."""
    try:
        row = db.execute("SELECT MAX(version) FROM schema_version").fetchone()
        current = row[0] or 0
    except sqlite3.OperationalError:
        # fresh database
        current = 0

    if current >= SCHEMA_VERSION:
        return

    logger.info(f"Migrating conversation store from schema {current} to {SCHEMA_VERSION}")
    db.executescript(SCHEMA_SQL)
    with db.transaction():
        db.execute(
            "INSERT OR REPLACE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
        )
