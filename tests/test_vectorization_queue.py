import pytest

from fakes import make_message
from services.message_rag_sync.VectorizationQueue import VectorizationJob, VectorizationQueue, is_rag_response
from shared.exceptions import ClientRequestError


@pytest.fixture
def queue(helper_config, db_client, rag_service, settings) -> VectorizationQueue:
    return VectorizationQueue(helper_config=helper_config, db_client=db_client, rag_service=rag_service, settings=settings)


class TestIsRagResponse:
    def test_flagged_message(self):
        assert is_rag_response(make_message("m1", metadata={"is_rag_response": True}))

    def test_plain_message(self):
        assert not is_rag_response(make_message("m1"))
        assert not is_rag_response(make_message("m1", metadata={"mentioned_users": ["u-bob"]}))


class TestVectorizationQueue:
    async def test_worker_processes_queued_jobs(self, queue, rag_client):
        queue.start()
        queue.enqueue(VectorizationJob(kind="process", message_id="m1", message=make_message("m1")))
        queue.enqueue(VectorizationJob(kind="process", message_id="m2", message=make_message("m2")))
        await queue.stop(drain=True)

        assert sorted(rag_client.records) == ["m1", "m2"]
        assert queue.pending == 0

    async def test_generated_replies_are_not_indexed(self, queue, rag_client):
        message = make_message("r1", metadata={"is_rag_response": True})
        assert await queue.run_job(VectorizationJob(kind="process", message_id="r1", message=message))
        assert rag_client.records == {}

    async def test_update_and_delete_jobs(self, queue, db_client, rag_client):
        db_client.add_message(make_message("m1", content="before"))
        await queue.run_job(VectorizationJob(kind="process", message_id="m1", message=db_client.messages["m1"]))

        assert await queue.run_job(VectorizationJob(kind="update", message_id="m1", content="after"))
        assert rag_client.records["m1"].metadata.content == "after"

        assert await queue.run_job(VectorizationJob(kind="delete", message_id="m1"))
        assert rag_client.records == {}

    async def test_failing_job_is_retried_then_dropped(self, queue, rag_client):
        rag_client.upsert_error = ClientRequestError("http://vector", 503)

        ok = await queue.run_job(VectorizationJob(kind="process", message_id="m1", message=make_message("m1")))

        assert ok is False
        assert rag_client.records == {}

    async def test_failed_attempt_is_retried(self, queue, llm_client, rag_client):
        llm_client.embed_errors = [ValueError("bad payload")]

        ok = await queue.run_job(VectorizationJob(kind="process", message_id="m1", message=make_message("m1")))

        assert ok is True
        assert list(rag_client.records) == ["m1"]

    async def test_worker_survives_a_dropped_job(self, queue, rag_client):
        queue.start()
        queue.enqueue(VectorizationJob(kind="process", message_id="m1", message=make_message("m1", channel_id="c-gone")))
        queue.enqueue(VectorizationJob(kind="process", message_id="m2", message=make_message("m2")))
        await queue.join()
        await queue.stop()

        assert list(rag_client.records) == ["m2"]


class TestMentionJobs:
    async def test_replies_are_posted_in_thread(self, queue, db_client, rag_service):
        await rag_service.process_message(db_client.add_message(make_message("m0", content="Postgres all the way.")))
        question = db_client.add_message(make_message("q1", sender_id="u-bob", content="@alice which database?"))

        assert await queue.run_job(VectorizationJob(kind="mention", message_id="q1", message=question, mentioned_user_ids=["u-alice"]))

        [reply] = db_client.inserted_messages
        assert reply.parent_id == "q1"
        assert reply.sender_id == "u-alice"
        assert reply.type == "system"
        assert reply.content == "generated answer"
        assert reply.metadata["is_rag_response"] is True
        assert reply.metadata["mentioned_user"] == "alice"
        assert 0.0 <= reply.metadata["confidence"] <= 0.95

    async def test_one_failing_user_does_not_block_the_others(self, queue, db_client):
        question = db_client.add_message(make_message("q1", channel_id="c-private", content="@alice @bob status?"))

        # bob is not a member of the private channel
        assert await queue.run_job(VectorizationJob(kind="mention", message_id="q1", message=question, mentioned_user_ids=["u-bob", "u-alice"]))

        assert [reply.sender_id for reply in db_client.inserted_messages] == ["u-alice"]

    async def test_unknown_users_are_ignored(self, queue, db_client):
        question = db_client.add_message(make_message("q1", content="@nobody hi"))
        assert await queue.run_job(VectorizationJob(kind="mention", message_id="q1", message=question, mentioned_user_ids=["u-nobody"]))
        assert db_client.inserted_messages == []
