"""Ticket draft synthesis."""

from faqdesk.tickets.rules import extract_faq_refs, heuristic_title, infer_environment
from faqdesk.tickets.synthesizer import TicketDraftSynthesizer, render_summary

__all__ = [
    "TicketDraftSynthesizer",
    "extract_faq_refs",
    "heuristic_title",
    "infer_environment",
    "render_summary",
]
