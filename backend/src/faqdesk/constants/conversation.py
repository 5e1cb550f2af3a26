"""Conversation history and context packing configuration."""

# =============================================================================
# History Merging
# =============================================================================
# Persisted and client-cached histories are merged and capped at
# MAX_HISTORY_TURNS messages (most recent kept). STORE_HISTORY_LIMIT bounds
# how many persisted messages are read for one ticket request.

MAX_HISTORY_TURNS = 60
STORE_HISTORY_LIMIT = 100

# =============================================================================
# Token Budget
# =============================================================================
# Token counts are estimated at CHARS_PER_TOKEN characters per token. The
# packing budget is the model's context limit minus the tokens reserved for
# the response and a fixed safety margin.

CHARS_PER_TOKEN = 4
MODEL_CONTEXT_LIMIT = 8192
RESERVED_OUTPUT_TOKENS = 700
SAFETY_MARGIN_TOKENS = 256

# =============================================================================
# Summarization
# =============================================================================
# When a transcript does not fit, the oldest SPLIT_RATIO share of messages is
# compressed into a bullet digest of at most DIGEST_MAX_TOKENS. If the
# generator is unavailable the head is cut to HEAD_FALLBACK_CHARS instead.

SPLIT_RATIO = 0.7
DIGEST_MAX_TOKENS = 400
HEAD_FALLBACK_CHARS = 2000
