"""LLM client configuration.

Default parameters for text generation calls. These can be overridden per
call but provide sensible defaults for support answers.
"""

# =============================================================================
# Generation Defaults
# =============================================================================
# Support answers are short and grounded, so MAX_TOKENS stays small and
# DEFAULT_TEMPERATURE is low. JSON_TEMPERATURE applies to structured output
# (ticket drafts) where consistency matters more than variety.

MAX_TOKENS = 500
DEFAULT_TEMPERATURE = 0.2
JSON_TEMPERATURE = 0.2

# =============================================================================
# Clarifying Questions
# =============================================================================
# A clarifying question is a single sentence; the cap keeps the model from
# drifting into a full answer.

CLARIFY_MAX_TOKENS = 60
