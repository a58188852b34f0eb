import math

from shared.models.config import RAGSettings
from shared.models.rag import FusionCandidate


class ConfidenceScorer:
    """Heuristic answer confidence from fused relevance and candidate coverage.

    relevance = sum(score of the first top_n candidates) / top_n
    coverage  = min(candidate count, coverage_target) / coverage_target
    confidence = relevance * relevance_weight + coverage * coverage_weight, within [0, cap]
    """

    def __init__(self, settings: RAGSettings):
        self._settings = settings

    def score(self, candidates: list[FusionCandidate]) -> float:
        top_n = max(1, int(self._settings.confidence_top_n))
        target = max(1, int(self._settings.confidence_coverage_target))

        # missing candidates count as zero, the divisor stays top_n
        relevance = math.fsum(candidate.score for candidate in candidates[:top_n]) / top_n
        coverage = min(len(candidates), target) / target

        confidence = (
            relevance * self._settings.confidence_relevance_weight
            + coverage * self._settings.confidence_coverage_weight
        )
        return max(0.0, min(self._settings.confidence_cap, confidence))
