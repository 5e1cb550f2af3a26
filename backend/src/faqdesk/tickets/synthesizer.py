"""Ticket draft synthesis from a support conversation."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any

from faqdesk.constants import (
    DEFAULT_STEPS,
    EXCERPT_MAX_CHARS,
    EXCERPT_MESSAGES,
    MAX_STEPS,
    TICKET_MAX_TOKENS,
    TITLE_MAX_CHARS,
)
from faqdesk.conversation.history import is_ticket_request, strip_ticket_requests
from faqdesk.conversation.packing import format_transcript
from faqdesk.llm.client import LLMError
from faqdesk.llm.parsing import MalformedOutputError, parse_json_loose
from faqdesk.prompts import TICKET_SYSTEM_PROMPT, TICKET_TEMPLATE
from faqdesk.schemas import ChatMessage, Environment, Severity, TicketDraft
from faqdesk.tickets.rules import extract_faq_refs, heuristic_title, infer_environment

if TYPE_CHECKING:
    from faqdesk.conversation.packing import ContextPacker
    from faqdesk.llm.client import LLMClient

logger = logging.getLogger(__name__)


def render_summary(
    title: str,
    severity: Severity,
    environment: Environment,
    body: str,
    steps: Iterable[str],
    faq_refs: Iterable[int],
) -> str:
    """Render the human-readable ticket block that gets persisted.

    Example:
        Issue: Refund request
        Severity: normal
        Environment: web

        The user wants a refund for a duplicate charge.

        Steps / Context:
        - Charged twice on 3 May

        FAQ refs: #12, #40
    """
    lines = [
        f"Issue: {title}",
        f"Severity: {severity.value}",
        f"Environment: {environment.value}",
    ]
    if body.strip():
        lines.extend(["", body.strip()])
    steps = list(steps)
    if steps:
        lines.extend(["", "Steps / Context:"])
        lines.extend(f"- {step}" for step in steps)
    refs = sorted(faq_refs)
    if refs:
        lines.extend(["", "FAQ refs: " + ", ".join(f"#{n}" for n in refs)])
    return "\n".join(lines)


def shorten_title(title: str, max_chars: int) -> str:
    """Cut a title to ``max_chars``, preferring a word boundary."""
    title = " ".join(title.split())
    if len(title) <= max_chars:
        return title
    cut = title[:max_chars]
    space = cut.rfind(" ")
    if space > max_chars // 2:
        cut = cut[:space]
    return cut.rstrip(" ,;:-")


class TicketDraftSynthesizer:
    """Builds a structured ticket draft from a conversation.

    Environment, title and cited FAQ ids are always derived from keyword
    rules first. When a generator is available its structured output
    overrides those values field by field; any field it gets wrong keeps the
    rule-based value. Cited FAQ ids found in the conversation are never
    dropped.
    """

    def __init__(
        self,
        llm: LLMClient | None = None,
        packer: ContextPacker | None = None,
        title_max_chars: int = TITLE_MAX_CHARS,
        max_steps: int = MAX_STEPS,
        excerpt_messages: int = EXCERPT_MESSAGES,
        excerpt_max_chars: int = EXCERPT_MAX_CHARS,
        max_tokens: int = TICKET_MAX_TOKENS,
    ) -> None:
        """Initialize synthesizer.

        Args:
            llm: Generator for the structured draft; None means rules only.
            packer: Fits long transcripts into the generator's budget.
            title_max_chars: Title length cap.
            max_steps: Maximum number of steps kept.
            excerpt_messages: Messages quoted in a rule-based summary.
            excerpt_max_chars: Character cap on the quoted excerpt.
            max_tokens: Response cap for the generator.
        """
        self._llm = llm
        self._packer = packer
        self.title_max_chars = title_max_chars
        self.max_steps = max_steps
        self.excerpt_messages = excerpt_messages
        self.excerpt_max_chars = excerpt_max_chars
        self.max_tokens = max_tokens

    async def synthesize(self, history: Sequence[ChatMessage]) -> TicketDraft:
        """Summarize a conversation into a ticket draft.

        Args:
            history: Conversation messages in chronological order.

        Returns:
            A draft whose ``summary`` is the rendered ticket block.
        """
        cleaned = strip_ticket_requests(history)
        environment = infer_environment(cleaned)
        faq_refs = extract_faq_refs(history)
        title = shorten_title(heuristic_title(cleaned), self.title_max_chars)
        body = self._excerpt_body(title, cleaned)

        fallback = dict(
            title=title,
            body=body,
            severity=Severity.NORMAL,
            environment=environment,
            steps=list(DEFAULT_STEPS),
        )

        if self._llm is None:
            return self._build(faq_refs=faq_refs, **fallback)

        if self._packer is not None:
            transcript = await self._packer.pack(cleaned)
        else:
            transcript = format_transcript(cleaned)

        try:
            raw = await self._llm.generate_with_json(
                prompt=TICKET_TEMPLATE.render(transcript=transcript),
                system_prompt=TICKET_SYSTEM_PROMPT,
                max_tokens=self.max_tokens,
            )
        except LLMError as e:
            logger.warning(f"Ticket generation failed, using keyword rules: {e}")
            return self._build(faq_refs=faq_refs, **fallback)

        try:
            data = parse_json_loose(raw)
        except MalformedOutputError as e:
            logger.warning(f"Unusable ticket output, using keyword rules: {e}")
            return self._build(faq_refs=faq_refs, **fallback)

        generated_env = self._valid_enum(data.get("environment"), Environment)
        if generated_env is Environment.UNKNOWN:
            generated_env = None

        return self._build(
            title=self._valid_title(data.get("title")) or fallback["title"],
            body=self._valid_text(data.get("summary")) or fallback["body"],
            severity=self._valid_enum(data.get("severity"), Severity) or fallback["severity"],
            environment=generated_env or fallback["environment"],
            steps=self._valid_steps(data.get("steps"), fallback["steps"]),
            faq_refs=faq_refs | self._valid_refs(data.get("faq_refs")),
        )

    def _build(
        self,
        title: str,
        body: str,
        severity: Severity,
        environment: Environment,
        steps: list[str],
        faq_refs: frozenset[int],
    ) -> TicketDraft:
        steps = steps[: self.max_steps]
        return TicketDraft(
            title=title,
            summary=render_summary(title, severity, environment, body, steps, faq_refs),
            severity=severity,
            environment=environment,
            steps=tuple(steps),
            faq_refs=faq_refs,
        )

    def _excerpt_body(self, title: str, messages: list[ChatMessage]) -> str:
        excerpt = format_transcript(messages[-self.excerpt_messages :])
        if len(excerpt) > self.excerpt_max_chars:
            excerpt = "..." + excerpt[-self.excerpt_max_chars :]
        return f"The user needs help related to: {title}.\n\nRecent conversation:\n{excerpt}"

    def _valid_title(self, value: Any) -> str | None:
        if not isinstance(value, str) or not value.strip():
            return None
        if is_ticket_request(value):
            logger.debug(f"Discarding command-like generated title: {value!r}")
            return None
        return shorten_title(value, self.title_max_chars) or None

    @staticmethod
    def _valid_text(value: Any) -> str | None:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    @staticmethod
    def _valid_enum(value: Any, enum_type: type[Severity] | type[Environment]) -> Any:
        if not isinstance(value, str):
            return None
        try:
            return enum_type(value.strip().lower())
        except ValueError:
            logger.debug(f"Discarding generated {enum_type.__name__.lower()}: {value!r}")
            return None

    @staticmethod
    def _valid_steps(value: Any, default: list[str]) -> list[str]:
        if not isinstance(value, list):
            return default
        steps = [s.strip() for s in value if isinstance(s, str) and s.strip()]
        if value and not steps:
            return default
        return steps

    @staticmethod
    def _valid_refs(value: Any) -> frozenset[int]:
        if not isinstance(value, list):
            return frozenset()
        refs = set()
        for item in value:
            if isinstance(item, bool):
                continue
            if isinstance(item, int) and item >= 0:
                refs.add(item)
            elif isinstance(item, str) and item.strip().isdecimal():
                refs.add(int(item.strip()))
        return frozenset(refs)
