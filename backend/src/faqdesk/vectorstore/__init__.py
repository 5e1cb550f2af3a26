"""Vector store module for FAQ similarity search."""

from faqdesk.vectorstore.store import FaqStore, RetrievalError

__all__ = ["FaqStore", "RetrievalError"]
