"""Grounded, citation-bearing answers composed from FAQ passages."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from faqdesk.constants import ANSWER_TOP_N, CLARIFY_MAX_TOKENS, DEFAULT_TEMPERATURE, MAX_TOKENS
from faqdesk.llm.client import LLMError
from faqdesk.prompts import (
    ANSWER_SYSTEM_PROMPT,
    ANSWER_TEMPLATE,
    CLARIFY_SYSTEM_PROMPT,
    CLARIFY_TEMPLATE,
)
from faqdesk.schemas import Passage

if TYPE_CHECKING:
    from faqdesk.llm.client import LLMClient

logger = logging.getLogger(__name__)

NOT_CONFIDENT_MESSAGE = "I'm not fully sure based on the current FAQs."
CLARIFY_FALLBACK = (
    "Could you share a bit more detail (what you tried, the exact error or message, "
    "and your account email)?"
)

_WRAPPING_QUOTES_RE = re.compile(r'^[“"]|[”"]$')


def citation_marker(faq_id: int) -> str:
    """Marker used to cite an FAQ entry inside generated text."""
    return f"[FAQ-{faq_id}]"


def format_passages(passages: list[Passage]) -> str:
    """Render passages as labeled context blocks for the answer prompt."""
    return "\n\n".join(
        f"{citation_marker(p.id)} Q: {p.question}\nA: {p.answer}" for p in passages
    )


class AnswerComposer:
    """Composes answers from top passages, with a non-LLM fallback.

    The fallback answer is the top passage's stored answer followed by its
    citation marker, so a reply is never empty or unattributed.
    """

    def __init__(
        self,
        llm: LLMClient | None = None,
        top_n: int = ANSWER_TOP_N,
        max_tokens: int = MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        clarify_max_tokens: int = CLARIFY_MAX_TOKENS,
    ) -> None:
        """Initialize composer.

        Args:
            llm: Text generator; None means always use the fallback.
            top_n: Default number of passages put into the prompt.
            max_tokens: Answer length cap.
            temperature: Sampling temperature.
            clarify_max_tokens: Clarifying question length cap.
        """
        self._llm = llm
        self.top_n = top_n
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.clarify_max_tokens = clarify_max_tokens

    async def compose(
        self, question: str, passages: list[Passage], top_n: int | None = None
    ) -> str:
        """Answer a question from the given passages.

        Args:
            question: The user's question.
            passages: Ranked passages, best first.
            top_n: Passages to ground on (defaults to the configured value).

        Returns:
            Answer text with [FAQ-<id>] citations.
        """
        if not passages:
            return NOT_CONFIDENT_MESSAGE

        selected = passages[: top_n or self.top_n]

        if self._llm is not None:
            prompt = ANSWER_TEMPLATE.render(question=question, context=format_passages(selected))
            try:
                text = await self._llm.generate(
                    prompt=prompt,
                    system_prompt=ANSWER_SYSTEM_PROMPT,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                )
            except LLMError as e:
                logger.warning(f"Answer generation failed, using top passage: {e}")
            else:
                if text.strip():
                    return text.strip()
                logger.warning("Answer generation returned no text, using top passage")

        top = selected[0]
        return f"{top.answer} {citation_marker(top.id)}"

    async def clarify(self, question: str) -> str:
        """Ask one short clarifying question about a low-confidence message.

        Args:
            question: The user's message.

        Returns:
            A single follow-up question.
        """
        if self._llm is None:
            return CLARIFY_FALLBACK

        try:
            text = await self._llm.generate(
                prompt=CLARIFY_TEMPLATE.render(question=question),
                system_prompt=CLARIFY_SYSTEM_PROMPT,
                temperature=self.temperature,
                max_tokens=self.clarify_max_tokens,
            )
        except LLMError as e:
            logger.warning(f"Clarifying question generation failed: {e}")
            return CLARIFY_FALLBACK

        text = _WRAPPING_QUOTES_RE.sub("", text.strip()).strip()
        return text or CLARIFY_FALLBACK
