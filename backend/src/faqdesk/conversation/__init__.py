"""Conversation history merging and context packing."""

from faqdesk.conversation.history import is_ticket_request, merge_history, strip_ticket_requests
from faqdesk.conversation.packing import ContextPacker, estimate_tokens, format_transcript

__all__ = [
    "ContextPacker",
    "estimate_tokens",
    "format_transcript",
    "is_ticket_request",
    "merge_history",
    "strip_ticket_requests",
]
