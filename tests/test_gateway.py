import asyncio

import httpx
import pytest

from fakes import FakeLLMClient
from shared.clients.llm.LLMGateway import LLMGateway
from shared.exceptions import ClientRequestError, GenerationUnavailableError, OperationCancelledError
from shared.helper.CancellationToken import CancellationToken


class TestLLMGateway:
    async def test_embed_returns_single_vector(self, gateway, llm_client):
        vector = await gateway.embed("hello")
        assert len(vector) == llm_client.dimension
        assert llm_client.embed_calls == [["hello"]]

    async def test_embed_many_keeps_order(self, gateway):
        vectors = await gateway.embed_many(["a", "b", "c"])
        assert vectors == [await gateway.embed(text) for text in ["a", "b", "c"]]

    async def test_transient_failures_are_retried(self, gateway, llm_client):
        llm_client.chat_errors = [ClientRequestError("http://llm", 429), httpx.ConnectError("reset")]
        assert await gateway.complete([{"role": "user", "content": "hi"}]) == "generated answer"
        assert len(llm_client.chat_calls) == 3

    async def test_exhausted_retries_are_generation_unavailable(self, gateway, llm_client):
        llm_client.persistent_embed_error = ClientRequestError("http://llm", 503)
        with pytest.raises(GenerationUnavailableError):
            await gateway.embed("hello")
        assert len(llm_client.embed_calls) == 3

    async def test_permanent_failure_is_not_retried(self, gateway, llm_client):
        llm_client.persistent_chat_error = ClientRequestError("http://llm", 400, "bad request")
        with pytest.raises(GenerationUnavailableError):
            await gateway.complete([{"role": "user", "content": "hi"}])
        assert len(llm_client.chat_calls) == 1

    async def test_invalid_response_is_not_retried(self, gateway, llm_client):
        llm_client.persistent_embed_error = ValueError("expected 1 embedding, got 0")
        with pytest.raises(GenerationUnavailableError):
            await gateway.embed("hello")
        assert len(llm_client.embed_calls) == 1

    async def test_timeout_counts_as_transient(self, helper_config, llm_client, settings):
        llm_client.delay = 0.2
        gateway = LLMGateway(helper_config, llm_client, settings.model_copy(update={"embed_timeout": 0.01, "max_attempts": 2}))
        with pytest.raises(GenerationUnavailableError):
            await gateway.embed("slow")
        assert len(llm_client.embed_calls) == 2

    async def test_cancelled_token_skips_the_call(self, gateway, llm_client):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelledError):
            await gateway.embed("hello", cancel_token=token)
        assert llm_client.embed_calls == []

    async def test_cancellation_aborts_in_flight_call_without_retry(self, gateway, llm_client):
        llm_client.delay = 5.0
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.05, token.cancel)
        with pytest.raises(OperationCancelledError):
            await gateway.complete([{"role": "user", "content": "hi"}], cancel_token=token)
        assert len(llm_client.chat_calls) == 1

    async def test_failed_embedding_cancels_the_rest_of_the_batch(self, helper_config, settings):
        cancelled = []

        class OneBadText(FakeLLMClient):
            async def do_embed(self, texts):
                if texts == ["bad"]:
                    raise ValueError("no embedding returned")
                try:
                    await asyncio.sleep(5)
                except asyncio.CancelledError:
                    cancelled.append(texts[0])
                    raise
                return await super().do_embed(texts)

        gateway = LLMGateway(helper_config, OneBadText(), settings)

        with pytest.raises(GenerationUnavailableError):
            await gateway.embed_many(["slow-1", "bad", "slow-2"])
        assert sorted(cancelled) == ["slow-1", "slow-2"]
