"""Retrieval, confidence gating and grounded answers."""

from faqdesk.qa.composer import AnswerComposer, citation_marker
from faqdesk.qa.confidence import ConfidenceClassifier, ConfidenceDecision
from faqdesk.qa.retrieval import Retriever

__all__ = [
    "AnswerComposer",
    "ConfidenceClassifier",
    "ConfidenceDecision",
    "Retriever",
    "citation_marker",
]
