import pytest

from services.mention_rag.ConfidenceScorer import ConfidenceScorer
from shared.clients.rag.models.VectorRecord import VectorMatch, VectorMetadata
from shared.models.config import RAGSettings
from shared.models.rag import FusionCandidate


def candidate(record_id: str, score: float) -> FusionCandidate:
    metadata = VectorMetadata(
        message_id=record_id,
        channel_id="c",
        channel_type="public",
        channel_name="general",
        sender_id="u",
        timestamp="2024-05-01T12:00:00+00:00",
        content="text",
    )
    return FusionCandidate(record_id=record_id, score=score, match=VectorMatch(record_id=record_id, score=0.5, metadata=metadata))


@pytest.fixture
def scorer() -> ConfidenceScorer:
    return ConfidenceScorer(RAGSettings())


class TestConfidenceScorer:
    def test_no_candidates_is_zero(self, scorer):
        assert scorer.score([]) == 0.0

    def test_relevance_and_coverage_are_weighted(self, scorer):
        candidates = [candidate(str(i), 0.1) for i in range(5)]
        # relevance 0.1, coverage 1.0
        assert scorer.score(candidates) == pytest.approx(0.1 * 0.6 + 1.0 * 0.4)

    def test_fewer_candidates_than_top_n_keep_the_divisor(self, scorer):
        assert scorer.score([candidate("a", 0.3)]) == pytest.approx(0.3 / 3 * 0.6 + 1 / 5 * 0.4)

    def test_confidence_is_capped(self, scorer):
        candidates = [candidate(str(i), 10.0) for i in range(6)]
        assert scorer.score(candidates) == 0.95

    @pytest.mark.parametrize("count", [1, 2, 3, 5, 8])
    def test_fused_scores_stay_within_range(self, scorer, count):
        candidates = [candidate(str(i), 5 / (60 + i)) for i in range(count)]
        assert 0.0 <= scorer.score(candidates) <= 0.95
