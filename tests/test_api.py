import httpx
import pytest
from fastapi import FastAPI

from fakes import make_message
from server.dependencies.errors import register_exception_handlers
from server.routers.QueryRouter import router as query_router
from server.routers.WebhookRouter import router as webhook_router
from shared.exceptions import ClientRequestError

API_KEY = "test-key"


class RecordingQueue:
    def __init__(self) -> None:
        self.jobs = []

    def enqueue(self, job) -> None:
        self.jobs.append(job)


@pytest.fixture
def queue() -> RecordingQueue:
    return RecordingQueue()


@pytest.fixture
def app(helper_config, rag_service, queue, monkeypatch) -> FastAPI:
    monkeypatch.setenv("APP_API_KEY", API_KEY)
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(webhook_router)
    app.include_router(query_router)
    app.state.helper_config = helper_config
    app.state.rag_service = rag_service
    app.state.vectorization_queue = queue
    return app


@pytest.fixture
async def http(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test", headers={"X-API-Key": API_KEY}) as client:
        yield client


def message_json(message_id: str = "m1", **kwargs) -> dict:
    return make_message(message_id, **kwargs).model_dump(mode="json")


class TestAuth:
    async def test_wrong_key_is_rejected(self, http):
        response = await http.get("/query/metrics", headers={"X-API-Key": "wrong"})
        assert response.status_code == 401

    async def test_missing_key_is_rejected(self, app):
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
            response = await client.post("/webhook/message", json={"event": "deleted", "message_id": "m1"})
        assert response.status_code == 401


class TestQueryRouter:
    async def test_mention_query(self, http, rag_service, db_client):
        await rag_service.process_message(db_client.add_message(make_message("m1", content="Postgres.")))

        response = await http.post("/query/mention", json={"query": "which db?", "channel_id": "c-public", "target_user_id": "u-alice"})

        assert response.status_code == 200
        body = response.json()
        assert body["response"] == "generated answer"
        assert [message["id"] for message in body["relevant_messages"]] == ["m1"]
        assert 0.0 < body["confidence"] <= 0.95

    async def test_non_member_is_forbidden(self, http):
        response = await http.post("/query/mention", json={"query": "q", "channel_id": "c-private", "target_user_id": "u-bob"})
        assert response.status_code == 403

    async def test_unknown_profile_is_not_found(self, http, db_client):
        db_client.members.add(("c-public", "u-ghost"))
        response = await http.post("/query/mention", json={"query": "q", "channel_id": "c-public", "target_user_id": "u-ghost"})
        assert response.status_code == 404

    async def test_provider_outage_is_service_unavailable(self, http, llm_client):
        llm_client.persistent_chat_error = ClientRequestError("http://llm", 500)
        response = await http.post("/query/mention", json={"query": "q", "channel_id": "c-public", "target_user_id": "u-alice"})
        assert response.status_code == 503

    async def test_vector_store_failure_is_bad_gateway(self, http, rag_client):
        rag_client.query_error = ClientRequestError("http://vector", 500)
        response = await http.post("/query/mention", json={"query": "q", "channel_id": "c-public", "target_user_id": "u-alice"})
        assert response.status_code == 502

    async def test_metrics(self, http):
        response = await http.get("/query/metrics")
        assert response.status_code == 200
        assert response.json() == {"total_vectors": 0, "average_latency": 0.0, "query_count": 0}


class TestWebhookRouter:
    async def test_created_message_is_queued(self, http, queue):
        response = await http.post("/webhook/message", json={"event": "created", "message": message_json()})

        assert response.status_code == 202
        assert response.json() == {"status": "accepted", "message_id": "m1", "jobs": ["process"]}
        assert queue.jobs[0].message.id == "m1"

    async def test_mentions_from_metadata_queue_a_mention_job(self, http, queue):
        body = {"event": "created", "message": message_json(metadata={"mentioned_users": ["u-alice"]})}

        response = await http.post("/webhook/message", json=body)

        assert response.json()["jobs"] == ["process", "mention"]
        assert queue.jobs[1].mentioned_user_ids == ["u-alice"]

    async def test_generated_replies_do_not_trigger_mentions(self, http, queue):
        body = {
            "event": "created",
            "message": message_json(metadata={"is_rag_response": True}),
            "mentioned_users": ["u-alice"],
        }
        response = await http.post("/webhook/message", json=body)
        assert response.json()["jobs"] == ["process"]

    async def test_update_and_delete(self, http, queue):
        updated = await http.post("/webhook/message", json={"event": "updated", "message_id": "m1", "content": "new"})
        deleted = await http.post("/webhook/message", json={"event": "deleted", "message_id": "m1"})

        assert updated.json()["jobs"] == ["update"]
        assert deleted.json()["jobs"] == ["delete"]
        assert [(job.kind, job.content) for job in queue.jobs] == [("update", "new"), ("delete", None)]

    async def test_update_without_content_is_invalid(self, http, queue):
        response = await http.post("/webhook/message", json={"event": "updated", "message_id": "m1"})
        assert response.status_code == 422
        assert queue.jobs == []
