from datetime import datetime, timedelta

import pytest
import pytz

from fakes import make_message
from shared.clients.db.models.MetricsSample import MetricsSample
from shared.exceptions import (
    AuthorizationError,
    ClientRequestError,
    GenerationUnavailableError,
    NotFoundError,
    OperationCancelledError,
)
from shared.helper.CancellationToken import CancellationToken


@pytest.fixture
async def indexed(rag_service, db_client):
    """Two messages of alice and one of bob, stored and indexed."""
    messages = [
        make_message("m1", content="We moved the database to Postgres last week."),
        make_message("m2", channel_id="c-private", content="Postgres migration is done 🎉"),
        make_message("m3", sender_id="u-bob", content="I prefer MySQL."),
    ]
    for message in messages:
        db_client.add_message(message)
    await rag_service.batch_process_messages(messages)
    return messages


class TestHandleMentionQuery:
    async def test_answers_with_sources_and_confidence(self, rag_service, db_client, indexed):
        result = await rag_service.handle_mention_query("@alice which database?", "c-private", "u-alice")

        assert result.response == "generated answer"
        assert sorted(message.id for message in result.relevant_messages) == ["m1", "m2"]
        assert 0.0 < result.confidence <= 0.95
        assert len(db_client.metrics) == 1
        sample = db_client.metrics[0]
        assert sample.target_user_id == "u-alice"
        assert sample.message_count == 2
        assert sample.confidence_score == result.confidence

    async def test_prompt_carries_profile_and_style_examples(self, rag_service, llm_client, indexed):
        await rag_service.handle_mention_query("which database?", "c-public", "u-alice")

        system, user = llm_client.chat_calls[-1]
        assert "Name: Alice Doe" in system["content"]
        assert "Title: Engineer" in system["content"]
        assert 'Question: "which database?"' in user["content"]
        assert "Writing Style Examples:" in user["content"]
        assert "Postgres migration is done" in user["content"]

    async def test_non_member_is_rejected_before_any_retrieval(self, rag_service, llm_client, rag_client, db_client, indexed):
        llm_client.embed_calls.clear()
        rag_client.queries.clear()

        with pytest.raises(AuthorizationError):
            await rag_service.handle_mention_query("question", "c-private", "u-bob")

        assert llm_client.embed_calls == []
        assert llm_client.chat_calls == []
        assert rag_client.queries == []
        assert db_client.metrics == []

    async def test_missing_profile_is_not_found(self, rag_service, db_client):
        db_client.members.add(("c-public", "u-ghost"))
        with pytest.raises(NotFoundError):
            await rag_service.handle_mention_query("question", "c-public", "u-ghost")

    async def test_provider_outage_writes_no_metrics(self, rag_service, llm_client, db_client, indexed):
        llm_client.persistent_embed_error = ClientRequestError("http://llm", 503)

        with pytest.raises(GenerationUnavailableError):
            await rag_service.handle_mention_query("question", "c-public", "u-alice")

        assert db_client.metrics == []

    async def test_deleted_source_rows_are_left_out(self, rag_service, db_client, indexed):
        del db_client.messages["m1"]
        result = await rag_service.handle_mention_query("question", "c-private", "u-alice")
        assert [message.id for message in result.relevant_messages] == ["m2"]

    async def test_no_indexed_messages_still_answers(self, rag_service, db_client):
        result = await rag_service.handle_mention_query("question", "c-public", "u-alice")
        assert result.relevant_messages == []
        assert result.confidence == 0.0

    async def test_cancelled_query_records_nothing(self, rag_service, db_client, indexed):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelledError):
            await rag_service.handle_mention_query("question", "c-public", "u-alice", cancel_token=token)
        assert db_client.metrics == []


class TestWritePath:
    async def test_delete_removes_all_records_of_a_message(self, rag_service, db_client, rag_client):
        message = db_client.add_message(make_message("long", content="k" * 2500))
        await rag_service.process_message(message)
        assert rag_client.record_ids_of("long") == ["long#0", "long#1", "long#2"]

        await rag_service.update_message_vectors("long")

        assert rag_client.record_ids_of("long") == []


class TestGetMetrics:
    async def test_window_aggregation(self, rag_service, db_client, indexed):
        now = datetime.now(pytz.utc)
        for latency, age in [(100, 1), (300, 2), (10_000, 48)]:
            db_client.metrics.append(MetricsSample(
                query="q",
                channel_id="c-public",
                target_user_id="u-alice",
                response_time_ms=latency,
                message_count=1,
                confidence_score=0.5,
                timestamp=now - timedelta(hours=age),
            ))

        metrics = await rag_service.get_metrics()

        assert metrics.total_vectors == 3
        assert metrics.query_count == 2
        assert metrics.average_latency == pytest.approx(200.0)

    async def test_empty_window(self, rag_service):
        metrics = await rag_service.get_metrics()
        assert (metrics.total_vectors, metrics.average_latency, metrics.query_count) == (0, 0.0, 0)
