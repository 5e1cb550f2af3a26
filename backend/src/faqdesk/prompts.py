"""Prompt templates for answers, clarifications, digests and tickets."""

from dataclasses import dataclass
from typing import Any


@dataclass
class PromptTemplate:
    """A template for generating prompts with variable substitution."""

    template: str

    def render(self, **kwargs: Any) -> str:
        """Render the template with the given variables.

        Raises:
            KeyError: If a required variable is missing.
        """
        return self.template.format(**kwargs)


# =============================================================================
# Grounded Answers
# =============================================================================

ANSWER_SYSTEM_PROMPT = """You are a helpful support assistant.
Answer ONLY using the provided FAQs. Be concise (1-3 short paragraphs).
Cite facts with [FAQ-<id>] at the end of sentences where used.
If the FAQs do not fully cover the question, say you are not fully sure and
point to the most relevant FAQs. Never invent information."""

ANSWER_TEMPLATE = PromptTemplate(
    """User question:
{question}

Context FAQs:
{context}"""
)


# =============================================================================
# Clarifying Question
# =============================================================================

CLARIFY_SYSTEM_PROMPT = """Ask ONE short clarifying question to resolve the user's issue.
No preamble. Keep it under 18 words."""

CLARIFY_TEMPLATE = PromptTemplate(
    """User said: "{question}"
What is the single most useful follow-up question?"""
)


# =============================================================================
# History Digest
# =============================================================================

DIGEST_SYSTEM_PROMPT = """You compress the earlier part of a customer support conversation.

Rules:
- Write 6 to 10 bullet points, each starting with "- ".
- Preserve exact identifiers verbatim: order numbers, ticket ids, error codes,
  FAQ markers like [FAQ-12], amounts, dates and other numbers.
- Only restate what the transcript says. Do not add facts, advice or guesses.
- No preamble and no closing remarks."""

DIGEST_TEMPLATE = PromptTemplate(
    """Transcript:
{transcript}"""
)


# =============================================================================
# Ticket Draft
# =============================================================================

TICKET_SYSTEM_PROMPT = """Create an internal support ticket from the chat transcript.

Return STRICT JSON:
{
  "title": "concise issue (max 90 chars)",
  "summary": "2-5 sentences: what the user needs, key constraints, policy refs if any",
  "severity": "low|normal|high|critical",
  "environment": "web|ios|android|api|unknown",
  "steps": ["bullet 1", "bullet 2"],
  "faq_refs": [135, 209]
}

Rules:
- Ground ONLY in the transcript; never invent order ids, dates or other identifiers.
- If something is not stated, use "unknown" or omit it.
- Prefer a task-like title (e.g. "Price adjustment request within 7 days").
- Never use "Create New Ticket" as the title.
- Extract numbers from tokens like [FAQ-123] into faq_refs (unique).
- Keep the JSON under 1200 characters."""

TICKET_TEMPLATE = PromptTemplate(
    """Transcript:
{transcript}"""
)
