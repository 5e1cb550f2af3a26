"""Ticket draft configuration."""

# =============================================================================
# Draft Limits
# =============================================================================
# Ticket titles are shown in list views, so they are capped at
# TITLE_MAX_CHARS. Generated step lists are capped at MAX_STEPS.

TITLE_MAX_CHARS = 90
MAX_STEPS = 10

# =============================================================================
# Heuristic Fallback
# =============================================================================
# Without a usable generator response the summary body is an excerpt of the
# last EXCERPT_MESSAGES messages, capped at EXCERPT_MAX_CHARS characters.

EXCERPT_MESSAGES = 12
EXCERPT_MAX_CHARS = 2000
DEFAULT_STEPS = ("Review conversation log", "Respond according to policy")

# =============================================================================
# Generation
# =============================================================================

TICKET_MAX_TOKENS = 700
