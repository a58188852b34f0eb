import asyncio
import itertools

import httpx
import pytest

from fakes import FakeRAGClient, fake_vector
from services.mention_rag.FusionRetriever import FusionRetriever, reciprocal_rank_fusion
from shared.clients.rag.models.VectorRecord import VectorMatch, VectorMetadata, VectorRecord
from shared.exceptions import ClientRequestError, GenerationUnavailableError, RetrievalError


def match(record_id: str, score: float = 0.5, **metadata) -> VectorMatch:
    return VectorMatch(record_id=record_id, score=score, metadata=_metadata(record_id, **metadata))


def _metadata(record_id: str, channel_id: str = "c-public", channel_type: str = "public", sender_id: str = "u-alice", content: str = "text") -> VectorMetadata:
    return VectorMetadata(
        message_id=record_id.split("#")[0],
        channel_id=channel_id,
        channel_type=channel_type,
        channel_name="general",
        sender_id=sender_id,
        timestamp="2024-05-01T12:00:00+00:00",
        content=content,
    )


def store(rag_client, record_id: str, text: str, **metadata) -> None:
    rag_client.records[record_id] = VectorRecord(id=record_id, values=fake_vector(text), metadata=_metadata(record_id, content=text, **metadata))


@pytest.fixture
def retriever(helper_config, rag_client, gateway, settings) -> FusionRetriever:
    return FusionRetriever(helper_config=helper_config, rag_client=rag_client, gateway=gateway, settings=settings)


class TestReciprocalRankFusion:
    def test_scores_sum_reciprocal_ranks(self):
        fused = reciprocal_rank_fusion([[match("a"), match("b")], [match("b"), match("c")]], k=60)
        scores = {candidate.record_id: candidate.score for candidate in fused}

        assert scores["a"] == pytest.approx(1 / 60)
        assert scores["b"] == pytest.approx(1 / 61 + 1 / 60)
        assert scores["c"] == pytest.approx(1 / 61)
        assert [candidate.record_id for candidate in fused] == ["b", "a", "c"]

    def test_absent_records_never_appear(self):
        fused = reciprocal_rank_fusion([[match("a")], []], k=60)
        assert [candidate.record_id for candidate in fused] == ["a"]

    def test_result_does_not_depend_on_list_order(self):
        lists = [
            [match("a"), match("b"), match("c")],
            [match("c"), match("a")],
            [match("d"), match("b"), match("a"), match("e")],
        ]
        expected = [(c.record_id, c.score) for c in reciprocal_rank_fusion(lists)]
        for permutation in itertools.permutations(lists):
            assert [(c.record_id, c.score) for c in reciprocal_rank_fusion(list(permutation))] == expected

    def test_ties_are_ordered_by_record_id(self):
        fused = reciprocal_rank_fusion([[match("b")], [match("a")]], k=60)
        assert [candidate.record_id for candidate in fused] == ["a", "b"]

    def test_ranks_and_best_match_are_kept(self):
        fused = reciprocal_rank_fusion([[match("x"), match("a", score=0.2)], [match("a", score=0.9)]], k=60)
        candidate = next(c for c in fused if c.record_id == "a")
        assert candidate.ranks == [0, 1]
        assert candidate.match.score == 0.9


class TestQueryExpansion:
    def test_list_markers_and_blank_lines_are_stripped(self):
        queries = FusionRetriever.parse_expansion("1. first\n\n2) second\n- third\n* fourth\n   \nfifth", 10)
        assert queries == ["first", "second", "third", "fourth", "fifth"]

    def test_expansion_is_truncated_to_n_queries(self):
        assert FusionRetriever.parse_expansion("a\nb\nc\nd", 2) == ["a", "b"]

    async def test_expand_query_uses_completion(self, retriever):
        expansion = await retriever.expand_query("what about databases?")
        assert expansion.original_query == "what about databases?"
        assert expansion.queries == ["first variant", "second variant", "third variant", "fourth variant", "fifth variant"]

    async def test_empty_expansion_is_unavailable(self, retriever, llm_client):
        llm_client.chat = lambda messages: "\n  \n"
        with pytest.raises(GenerationUnavailableError):
            await retriever.expand_query("anything")


class TestFusionRetriever:
    def test_threshold(self, retriever):
        assert retriever.get_threshold(5) == pytest.approx(5 / 70)

    async def test_single_record_in_every_list_ranks_first(self, retriever, rag_client):
        store(rag_client, "m1", "the answer")

        candidates = await retriever.retrieve("question", channel_id="c-public", target_user_id="u-alice")

        assert [candidate.record_id for candidate in candidates] == ["m1"]
        assert candidates[0].score == pytest.approx(5 / 60)
        assert candidates[0].ranks == [0, 0, 0, 0, 0]
        assert len(rag_client.queries) == 5

    async def test_access_filter_excludes_foreign_private_channels_and_senders(self, retriever, rag_client):
        store(rag_client, "public", "a", channel_id="c-public", channel_type="public")
        store(rag_client, "own-private", "b", channel_id="c-private", channel_type="private")
        store(rag_client, "other-private", "c", channel_id="c-other", channel_type="private")
        store(rag_client, "other-sender", "d", sender_id="u-bob")

        candidates = await retriever.retrieve("question", channel_id="c-private", target_user_id="u-alice")

        assert sorted(candidate.record_id for candidate in candidates) == ["own-private", "public"]

    async def test_candidates_below_threshold_are_dropped(self, retriever, rag_client, settings):
        for index in range(12):
            store(rag_client, f"m{index:02d}", f"text {index}")

        candidates = await retriever.retrieve("question", channel_id="c-public", target_user_id="u-alice")

        # top 10 of 12 per query: a record missing from any list scores at most 4/60 < 5/70
        threshold = retriever.get_threshold(settings.n_queries)
        assert len(candidates) >= 2
        assert all(candidate.score >= threshold for candidate in candidates)
        assert all(len(candidate.ranks) == 5 for candidate in candidates)

    async def test_vector_store_failure_is_retrieval_error(self, retriever, rag_client):
        rag_client.query_error = httpx.ConnectError("refused")
        with pytest.raises(RetrievalError):
            await retriever.retrieve("question", channel_id="c-public", target_user_id="u-alice")

    async def test_failed_search_cancels_the_other_searches(self, helper_config, gateway, settings):
        class FirstQueryFails(FakeRAGClient):
            def __init__(self) -> None:
                super().__init__()
                self.started = 0
                self.cancelled = 0

            async def do_query(self, vector, metadata_filter=None, top_k=10):
                self.started += 1
                if self.started == 1:
                    raise ClientRequestError("http://vector", 500)
                try:
                    await asyncio.sleep(10)
                except asyncio.CancelledError:
                    self.cancelled += 1
                    raise
                return []

        rag_client = FirstQueryFails()
        slow_retriever = FusionRetriever(helper_config, rag_client, gateway, settings)

        with pytest.raises(RetrievalError):
            await slow_retriever.retrieve("question", channel_id="c-public", target_user_id="u-alice")
        assert rag_client.cancelled == rag_client.started - 1
