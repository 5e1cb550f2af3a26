"""Deterministic keyword rules for ticket drafts.

Rules are evaluated in order and the first matching pattern wins, so more
specific patterns must come before broader ones.
"""

import re
from collections.abc import Sequence
from typing import Any

from faqdesk.schemas import ChatMessage, Environment

DEFAULT_TITLE = "Support request"

# Messages scanned for title keywords, most recent last
TITLE_SCAN_MESSAGES = 20

TITLE_RULES: list[tuple[re.Pattern[str], str]] = [
    (
        re.compile(r"price adjustment", re.IGNORECASE),
        "Price adjustment request within 7-day window",
    ),
    (re.compile(r"password", re.IGNORECASE), "Password reset/login issue"),
    (re.compile(r"refund", re.IGNORECASE), "Refund request"),
    (re.compile(r"\b2fa\b|two-factor", re.IGNORECASE), "2FA setup/verification issue"),
    (re.compile(r"billing|invoice", re.IGNORECASE), "Billing/invoice question"),
]

ENVIRONMENT_RULES: list[tuple[re.Pattern[str], Environment]] = [
    (re.compile(r"\b(ios|iphone|ipad)\b", re.IGNORECASE), Environment.IOS),
    (re.compile(r"\bandroid\b", re.IGNORECASE), Environment.ANDROID),
    (re.compile(r"\b(api|sdk|webhooks?|endpoint)\b", re.IGNORECASE), Environment.API),
    (
        re.compile(r"\b(web|website|browser|chrome|firefox|safari)\b", re.IGNORECASE),
        Environment.WEB,
    ),
]

FAQ_REF_RE = re.compile(r"\[FAQ-(\d+)\]")


def first_match(rules: Sequence[tuple[re.Pattern[str], Any]], text: str, default: Any) -> Any:
    """Return the result of the first rule whose pattern occurs in text."""
    for pattern, result in rules:
        if pattern.search(text):
            return result
    return default


def _joined(messages: Sequence[ChatMessage]) -> str:
    return "\n".join(m.content for m in messages)


def heuristic_title(messages: Sequence[ChatMessage]) -> str:
    """Pick a task-like title from keywords in the recent conversation."""
    return first_match(TITLE_RULES, _joined(messages[-TITLE_SCAN_MESSAGES:]), DEFAULT_TITLE)


def infer_environment(messages: Sequence[ChatMessage]) -> Environment:
    """Infer the user's platform from keyword cues across the conversation."""
    return first_match(ENVIRONMENT_RULES, _joined(messages), Environment.UNKNOWN)


def extract_faq_refs(messages: Sequence[ChatMessage]) -> frozenset[int]:
    """Collect FAQ ids cited as ``[FAQ-<id>]`` anywhere in the conversation."""
    return frozenset(int(n) for m in messages for n in FAQ_REF_RE.findall(m.content))
