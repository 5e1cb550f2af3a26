"""Ticket draft synthesis tests."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from hypothesis import given, settings, strategies as st

from faqdesk.conversation.packing import ContextPacker
from faqdesk.llm import LLMError
from faqdesk.schemas import ChatMessage, Environment, Role, Severity
from faqdesk.tickets.synthesizer import TicketDraftSynthesizer, render_summary, shorten_title


def user(content: str) -> ChatMessage:
    return ChatMessage(role=Role.USER, content=content)


def assistant(content: str) -> ChatMessage:
    return ChatMessage(role=Role.ASSISTANT, content=content)


@pytest.fixture
def history():
    return [
        user("I bought a jacket last week and now it's cheaper on the iPhone app"),
        assistant("You can request a price adjustment within 7 days [FAQ-12]."),
        user("The app says my order #A-1001 is not eligible"),
        user("create ticket"),
    ]


def ticket_llm(payload) -> MagicMock:
    llm = MagicMock()
    raw = payload if isinstance(payload, str) else json.dumps(payload)
    llm.generate_with_json = AsyncMock(return_value=raw)
    llm.generate = AsyncMock(return_value="- digest")
    return llm


# =============================================================================
# Rendering
# =============================================================================


def test_render_summary_layout():
    text = render_summary(
        title="Refund request",
        severity=Severity.HIGH,
        environment=Environment.WEB,
        body="User was charged twice.",
        steps=["Check payment log", "Refund duplicate"],
        faq_refs={40, 12},
    )

    assert text == (
        "Issue: Refund request\n"
        "Severity: high\n"
        "Environment: web\n"
        "\n"
        "User was charged twice.\n"
        "\n"
        "Steps / Context:\n"
        "- Check payment log\n"
        "- Refund duplicate\n"
        "\n"
        "FAQ refs: #12, #40"
    )


def test_render_summary_omits_empty_sections():
    text = render_summary("Support request", Severity.NORMAL, Environment.UNKNOWN, "", [], [])

    assert text == "Issue: Support request\nSeverity: normal\nEnvironment: unknown"


def test_shorten_title_prefers_word_boundary():
    title = "Customer cannot complete checkout because the promo code field rejects valid codes"

    short = shorten_title(title, 40)

    assert len(short) <= 40
    assert title.startswith(short)
    assert not short.endswith(" ")
    assert title[len(short)] == " "


# =============================================================================
# Without a Generator
# =============================================================================


async def test_rule_based_draft_without_generator(history):
    """No generator: keyword rules plus a transcript excerpt."""
    draft = await TicketDraftSynthesizer().synthesize(history)

    assert draft.title == "Price adjustment request within 7-day window"
    assert draft.environment == Environment.IOS
    assert draft.severity == Severity.NORMAL
    assert draft.faq_refs == frozenset({12})
    assert draft.steps == ("Review conversation log", "Respond according to policy")
    assert draft.summary.startswith("Issue: Price adjustment request within 7-day window")
    assert "The user needs help related to: Price adjustment" in draft.summary
    assert "Recent conversation:" in draft.summary
    assert "order #A-1001" in draft.summary
    assert "FAQ refs: #12" in draft.summary


async def test_ticket_commands_are_not_summarized(history):
    draft = await TicketDraftSynthesizer().synthesize(history)

    assert "create ticket" not in draft.summary


async def test_excerpt_is_capped():
    history = [user(f"message {i} " + "x" * 200) for i in range(30)]

    draft = await TicketDraftSynthesizer(excerpt_messages=12, excerpt_max_chars=500).synthesize(
        history
    )

    assert "message 29" in draft.summary
    assert "message 17" not in draft.summary
    assert len(draft.summary) < 800


async def test_generator_failure_falls_back_to_rules(failing_llm, history):
    """A generation error never surfaces; the draft is rule-based."""
    draft = await TicketDraftSynthesizer(failing_llm).synthesize(history)

    assert draft.title == "Price adjustment request within 7-day window"
    assert draft.faq_refs == frozenset({12})
    assert draft.summary


async def test_provider_error_falls_back_to_rules(provider_error_llm, history):
    """Provider outages and context-window overflows yield the rule-based draft."""
    packer = ContextPacker(provider_error_llm)

    draft = await TicketDraftSynthesizer(provider_error_llm, packer=packer).synthesize(history)

    assert draft.title == "Price adjustment request within 7-day window"
    assert draft.environment == Environment.IOS
    assert draft.faq_refs == frozenset({12})
    assert "Recent conversation:" in draft.summary


# =============================================================================
# With a Generator
# =============================================================================


async def test_valid_generator_fields_override_rules(history):
    llm = ticket_llm(
        {
            "title": "Price adjustment denied for order #A-1001",
            "summary": "User was told the order is not eligible for a price adjustment.",
            "severity": "high",
            "environment": "android",
            "steps": ["Check order date", "Apply adjustment"],
            "faq_refs": [12],
        }
    )

    draft = await TicketDraftSynthesizer(llm).synthesize(history)

    assert draft.title == "Price adjustment denied for order #A-1001"
    assert draft.severity == Severity.HIGH
    assert draft.environment == Environment.ANDROID
    assert draft.steps == ("Check order date", "Apply adjustment")
    assert "User was told the order is not eligible" in draft.summary
    assert "- Check order date" in draft.summary


async def test_generator_sees_cleaned_transcript(history):
    llm = ticket_llm({})

    await TicketDraftSynthesizer(llm).synthesize(history)

    prompt = llm.generate_with_json.call_args.kwargs["prompt"]
    assert "order #A-1001" in prompt
    assert "create ticket" not in prompt
    assert "never invent" in llm.generate_with_json.call_args.kwargs["system_prompt"]


async def test_generator_uses_packer_for_long_history():
    """Long conversations are packed before they reach the ticket prompt."""
    history = [user(f"detail {i} " + "x" * 200) for i in range(100)]
    llm = ticket_llm({"title": "Account locked"})
    packer = ContextPacker(
        llm, model_limit=2000, reserved_output_tokens=500, safety_margin_tokens=100
    )

    draft = await TicketDraftSynthesizer(llm, packer=packer).synthesize(history)

    llm.generate.assert_awaited_once()
    prompt = llm.generate_with_json.call_args.kwargs["prompt"]
    assert "Summary of earlier conversation:" in prompt
    assert draft.title == "Account locked"


async def test_union_keeps_extracted_refs(history):
    """Generator refs are added to, never replace, refs cited in the chat."""
    llm = ticket_llm({"title": "Price adjustment", "faq_refs": [209, "135", "x", True, -4]})

    draft = await TicketDraftSynthesizer(llm).synthesize(history)

    assert draft.faq_refs == frozenset({12, 135, 209})
    assert "FAQ refs: #12, #135, #209" in draft.summary


async def test_malformed_output_falls_back_entirely(history):
    llm = ticket_llm("Sorry, I cannot help with that.")

    draft = await TicketDraftSynthesizer(llm).synthesize(history)

    assert draft.title == "Price adjustment request within 7-day window"
    assert draft.environment == Environment.IOS
    assert draft.faq_refs == frozenset({12})


async def test_invalid_fields_fall_back_individually(history):
    """Each unusable field keeps its rule-based value; usable ones still apply."""
    llm = ticket_llm(
        {
            "title": "Create New Ticket",
            "summary": 42,
            "severity": "urgent!!",
            "environment": "smart fridge",
            "steps": "not a list",
            "faq_refs": "12, 13",
        }
    )

    draft = await TicketDraftSynthesizer(llm).synthesize(history)

    assert draft.title == "Price adjustment request within 7-day window"
    assert draft.severity == Severity.NORMAL
    assert draft.environment == Environment.IOS
    assert draft.steps == ("Review conversation log", "Respond according to policy")
    assert draft.faq_refs == frozenset({12})
    assert "Recent conversation:" in draft.summary


async def test_enum_fields_are_case_insensitive(history):
    llm = ticket_llm({"severity": " Critical ", "environment": "WEB"})

    draft = await TicketDraftSynthesizer(llm).synthesize(history)

    assert draft.severity == Severity.CRITICAL
    assert draft.environment == Environment.WEB


async def test_unknown_environment_keeps_detected_platform(history):
    llm = ticket_llm({"environment": "unknown"})

    draft = await TicketDraftSynthesizer(llm).synthesize(history)

    assert draft.environment == Environment.IOS


async def test_long_title_and_steps_are_capped(history):
    llm = ticket_llm(
        {
            "title": "Refund " * 40,
            "steps": [f"step {i}" for i in range(25)] + ["", 3],
        }
    )

    draft = await TicketDraftSynthesizer(llm, max_steps=10).synthesize(history)

    assert 0 < len(draft.title) <= 90
    assert draft.steps == tuple(f"step {i}" for i in range(10))


async def test_fenced_output_is_accepted(history):
    llm = ticket_llm('Here you go:\n```json\n{"title": "Refund for order #A-1001"}\n```')

    draft = await TicketDraftSynthesizer(llm).synthesize(history)

    assert draft.title == "Refund for order #A-1001"


# =============================================================================
# Properties
# =============================================================================

generated_refs = st.lists(
    st.one_of(
        st.integers(min_value=-5, max_value=10_000),
        st.text(max_size=6),
        st.booleans(),
        st.none(),
    ),
    max_size=8,
)


@given(
    cited=st.sets(st.integers(min_value=0, max_value=10_000), max_size=6),
    proposed=st.one_of(generated_refs, st.text(max_size=10), st.none()),
    fail=st.booleans(),
)
@settings(max_examples=100)
async def test_extracted_refs_always_survive(cited, proposed, fail):
    """Refs cited in the conversation are a subset of the final draft refs."""
    history = [assistant(f"See [FAQ-{n}].") for n in sorted(cited)] + [user("still broken")]
    llm = ticket_llm({"title": "Issue", "faq_refs": proposed})
    if fail:
        llm.generate_with_json.side_effect = LLMError("down")

    draft = await TicketDraftSynthesizer(llm).synthesize(history)

    assert cited <= draft.faq_refs
    assert draft.summary
    assert draft.title
