"""Merging and cleaning of multi-source conversation history."""

import re
from collections.abc import Iterable, Sequence

from faqdesk.constants import MAX_HISTORY_TURNS
from faqdesk.schemas import ChatMessage, Role

# Control utterances that ask for escalation rather than describe the problem
TICKET_REQUEST_RE = re.compile(
    r"open.*ticket|create.*ticket|raise.*ticket|support ticket|file a ticket|escalate",
    re.IGNORECASE,
)


def is_ticket_request(text: str) -> bool:
    """Check whether text is a request to open a support ticket."""
    return TICKET_REQUEST_RE.search(text) is not None


def strip_ticket_requests(messages: Iterable[ChatMessage]) -> list[ChatMessage]:
    """Drop messages that match the ticket-request pattern.

    This also removes assistant nudges and confirmations about tickets, which
    say nothing about the user's problem.
    """
    return [m for m in messages if not is_ticket_request(m.content)]


def _dedup_key(message: ChatMessage) -> tuple[Role, str]:
    return (message.role, message.content.strip())


def merge_history(
    primary: Sequence[ChatMessage],
    secondary: Sequence[ChatMessage],
    max_turns: int = MAX_HISTORY_TURNS,
) -> list[ChatMessage]:
    """Combine persisted and client-cached history into one clean sequence.

    Messages are concatenated (primary first), deduplicated on role and
    trimmed content keeping the first occurrence in place, stripped of
    ticket-request commands, and capped at the most recent ``max_turns``.
    Neither input is modified.

    Args:
        primary: Authoritative persisted history.
        secondary: History cached by the client (e.g. before sign-in).
        max_turns: Maximum number of messages returned.

    Returns:
        A new list of messages in chronological order.
    """
    seen: set[tuple[Role, str]] = set()
    unique: list[ChatMessage] = []
    for message in [*primary, *secondary]:
        key = _dedup_key(message)
        if key in seen:
            continue
        seen.add(key)
        unique.append(message)

    cleaned = strip_ticket_requests(unique)
    if max_turns <= 0:
        return []
    return cleaned[-max_turns:]
