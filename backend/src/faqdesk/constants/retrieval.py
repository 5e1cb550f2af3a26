"""Retrieval and confidence configuration.

These settings control how a user question is turned into ranked FAQ
candidates and how the engine decides whether the best candidate is strong
enough to answer from.
"""

# =============================================================================
# Embeddings
# =============================================================================
# FAQ entries are embedded with a 384-dimension BGE model. Queries and
# documents are embedded asymmetrically: BGE expects a retrieval instruction
# in front of queries and nothing in front of documents, so query-time and
# ingest-time vectors are not interchangeable.

EMBEDDING_DIMENSIONS = 384
QUERY_INSTRUCTION = "Represent this sentence for searching relevant passages: "
DOCUMENT_INSTRUCTION = ""

# =============================================================================
# Candidate Retrieval
# =============================================================================
# TOP_K candidates are requested from the vector store. Anything below
# MIN_SIMILARITY (cosine similarity, 1.0 = identical) is noise and dropped.

TOP_K = 8
MIN_SIMILARITY = 0.15

# =============================================================================
# Confidence Gate
# =============================================================================
# A result set is accepted when the best candidate is strong on its own
# (STRONG_SIMILARITY) or clearly ahead of the runner-up (MARGIN_ACCEPT).
# ANSWER_TOP_N passages are handed to the answer composer.

STRONG_SIMILARITY = 0.33
MARGIN_ACCEPT = 0.06
ANSWER_TOP_N = 3
