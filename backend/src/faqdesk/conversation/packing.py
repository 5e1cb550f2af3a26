"""Fitting long conversations into a bounded token budget.

Token counts are estimated at four characters per token, rounded up. The
estimate is monotonic in text length, which is all the binary search over
retained messages relies on.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from faqdesk.constants import (
    CHARS_PER_TOKEN,
    DIGEST_MAX_TOKENS,
    HEAD_FALLBACK_CHARS,
    MODEL_CONTEXT_LIMIT,
    RESERVED_OUTPUT_TOKENS,
    SAFETY_MARGIN_TOKENS,
    SPLIT_RATIO,
)
from faqdesk.llm.client import LLMError
from faqdesk.prompts import DIGEST_SYSTEM_PROMPT, DIGEST_TEMPLATE
from faqdesk.schemas import ChatMessage, Role

if TYPE_CHECKING:
    from faqdesk.llm.client import LLMClient

logger = logging.getLogger(__name__)

SUMMARY_HEADER = "Summary of earlier conversation:"
TRUNCATED_HEADER = "Earlier conversation (truncated):"
RECENT_HEADER = "Recent messages:"

_ROLE_LABELS = {Role.USER: "User", Role.ASSISTANT: "Assistant"}


def estimate_tokens(text: str) -> int:
    """Estimate token count for text (characters / 4, rounded up)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def format_message(message: ChatMessage) -> str:
    return f"{_ROLE_LABELS[message.role]}: {message.content}"


def format_transcript(messages: Sequence[ChatMessage]) -> str:
    """Render messages as role-labeled lines, one message per line."""
    return "\n".join(format_message(m) for m in messages)


def truncate_to_budget(text: str, token_budget: int) -> str:
    """Cut text so that its estimated cost is within ``token_budget``."""
    return text[: max(token_budget, 0) * CHARS_PER_TOKEN]


def first_fitting(lo: int, hi: int, fits: Callable[[int], bool]) -> int | None:
    """Binary search for the smallest x in [lo, hi] with ``fits(x)`` true.

    ``fits`` must be monotonic: once true for some x it stays true for every
    larger x. Evaluates ``fits`` O(log(hi - lo)) times.

    Returns:
        The smallest fitting x, or None if ``fits(hi)`` is false.
    """
    if lo > hi or not fits(hi):
        return None
    while lo < hi:
        mid = (lo + hi) // 2
        if fits(mid):
            hi = mid
        else:
            lo = mid + 1
    return lo


class ContextPacker:
    """Packs a message history into one prompt-ready block within a budget.

    Histories that fit are returned verbatim. Longer ones are split: the
    older head is compressed into a bullet digest and the newer tail is kept
    verbatim, dropping the oldest tail messages only as far as needed.
    """

    def __init__(
        self,
        llm: LLMClient | None = None,
        model_limit: int = MODEL_CONTEXT_LIMIT,
        reserved_output_tokens: int = RESERVED_OUTPUT_TOKENS,
        safety_margin_tokens: int = SAFETY_MARGIN_TOKENS,
        split_ratio: float = SPLIT_RATIO,
        digest_max_tokens: int = DIGEST_MAX_TOKENS,
        head_fallback_chars: int = HEAD_FALLBACK_CHARS,
    ) -> None:
        """Initialize packer.

        Args:
            llm: Text generator used for the digest; None means hard truncation.
            model_limit: Context window of the downstream model, in tokens.
            reserved_output_tokens: Tokens reserved for the model's response.
            safety_margin_tokens: Slack for estimator error.
            split_ratio: Share of messages (by count) that form the head.
            digest_max_tokens: Response cap for the digest call.
            head_fallback_chars: Characters of head kept when summarizing fails.
        """
        self._llm = llm
        self.model_limit = model_limit
        self.reserved_output_tokens = reserved_output_tokens
        self.safety_margin_tokens = safety_margin_tokens
        self.split_ratio = split_ratio
        self.digest_max_tokens = digest_max_tokens
        self.head_fallback_chars = head_fallback_chars

    @property
    def token_budget(self) -> int:
        """Default budget: model limit minus response reserve and safety margin."""
        return max(
            self.model_limit - self.reserved_output_tokens - self.safety_margin_tokens, 1
        )

    def split_point(self, count: int) -> int:
        """Number of head messages for a history of ``count`` messages.

        Head and tail each keep at least one message when count >= 2.
        """
        return min(max(int(count * self.split_ratio), 1), count - 1)

    async def pack(
        self, history: Sequence[ChatMessage], token_budget: int | None = None
    ) -> str:
        """Fit a history into ``token_budget`` estimated tokens.

        Args:
            history: Messages in chronological order.
            token_budget: Budget override (defaults to ``token_budget``).

        Returns:
            Prompt-ready text whose estimated cost is within the budget. When
            the most recent message alone is over budget, that message is
            returned truncated to the budget.
        """
        budget = self.token_budget if token_budget is None else max(token_budget, 0)
        if not history:
            return ""

        transcript = format_transcript(history)
        if estimate_tokens(transcript) <= budget:
            return transcript

        last = format_message(history[-1])
        if estimate_tokens(last) > budget:
            logger.warning(
                f"Most recent message alone ({estimate_tokens(last)} tokens) exceeds "
                f"budget of {budget}; truncating it"
            )
            return truncate_to_budget(last, budget)

        head_count = self.split_point(len(history))
        head, tail = list(history[:head_count]), list(history[head_count:])
        digest_block = await self._digest_block(head)

        def render(dropped: int) -> str:
            kept = tail[dropped:]
            if not kept:
                return digest_block
            return f"{digest_block}\n\n{RECENT_HEADER}\n{format_transcript(kept)}"

        def fits(dropped: int) -> bool:
            return estimate_tokens(render(dropped)) <= budget

        dropped = first_fitting(0, len(tail), fits)
        if dropped is None:
            # Even the digest alone is over budget
            logger.warning(f"Digest of {len(head)} messages exceeds budget of {budget}")
            return truncate_to_budget(digest_block, budget)
        if dropped:
            logger.info(f"Dropped {dropped} of {len(tail)} recent messages to fit budget")
        return render(dropped)

    async def _digest_block(self, head: list[ChatMessage]) -> str:
        head_text = format_transcript(head)

        if self._llm is not None:
            try:
                digest = await self._llm.generate(
                    prompt=DIGEST_TEMPLATE.render(transcript=head_text),
                    system_prompt=DIGEST_SYSTEM_PROMPT,
                    max_tokens=self.digest_max_tokens,
                )
            except LLMError as e:
                logger.warning(f"History summarization failed, truncating instead: {e}")
            else:
                if digest.strip():
                    return f"{SUMMARY_HEADER}\n{digest.strip()}"
                logger.warning("History summarization returned no text, truncating instead")

        cut = head_text[: self.head_fallback_chars]
        if len(cut) < len(head_text):
            cut = cut.rstrip() + " ..."
        return f"{TRUNCATED_HEADER}\n{cut}"
