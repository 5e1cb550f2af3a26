"""Deterministic accept/reject decision over ranked candidates."""

import math
from dataclasses import dataclass

from faqdesk.constants import MARGIN_ACCEPT, STRONG_SIMILARITY
from faqdesk.schemas import Passage


@dataclass(frozen=True)
class ConfidenceDecision:
    """Whether the best candidate is good enough to answer from."""

    accepted: bool
    best: Passage | None


class ConfidenceClassifier:
    """Accepts a ranked result set on absolute strength or on a clear lead.

    The absolute test alone rejects a top result that is only moderately
    similar but decisively ahead of every alternative, so the gap to the
    runner-up is a second way to accept.
    """

    def __init__(
        self,
        strong_similarity: float = STRONG_SIMILARITY,
        margin_accept: float = MARGIN_ACCEPT,
    ) -> None:
        self.strong_similarity = strong_similarity
        self.margin_accept = margin_accept

    def classify(self, results: list[Passage]) -> ConfidenceDecision:
        """Decide whether to answer from ``results``.

        Args:
            results: Passages sorted by similarity descending.

        Returns:
            Decision carrying the best passage (None when results is empty).
        """
        if not results:
            return ConfidenceDecision(accepted=False, best=None)

        best = results[0]
        if best.similarity >= self.strong_similarity:
            return ConfidenceDecision(accepted=True, best=best)

        if len(results) > 1:
            gap = best.similarity - results[1].similarity
            # A gap equal to the margin accepts, despite float rounding
            if gap >= self.margin_accept or math.isclose(gap, self.margin_accept, abs_tol=1e-9):
                return ConfidenceDecision(accepted=True, best=best)

        return ConfidenceDecision(accepted=False, best=best)
