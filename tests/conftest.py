import logging

import pytest

from fakes import CharEncoding, FakeDBClient, FakeLLMClient, FakeRAGClient
from services.mention_rag.RAGService import RAGService
from services.message_rag_sync.IndexingService import IndexingService
from shared.clients.llm.LLMGateway import LLMGateway
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import RAGSettings


@pytest.fixture
def helper_config() -> HelperConfig:
    return HelperConfig(logger=logging.getLogger("chat_rag_bridge.tests"))


@pytest.fixture
def settings() -> RAGSettings:
    """Default tuning without any sleeping between batches or retries."""
    return RAGSettings(
        upsert_batch_delay=0,
        sync_page_delay=0,
        retry_wait_multiplier=0,
        retry_wait_max=0,
        queue_retry_delay=0,
    )


@pytest.fixture
def db_client() -> FakeDBClient:
    db = FakeDBClient()
    db.add_channel("c-public", "public", "general")
    db.add_channel("c-private", "private", "secret-project")
    db.add_channel("c-other", "private", "other-team")
    db.add_profile("u-alice", "alice", full_name="Alice Doe", title="Engineer", bio="Likes databases.")
    db.add_profile("u-bob", "bob", full_name="Bob Roe")
    db.members.update({("c-private", "u-alice"), ("c-public", "u-alice"), ("c-public", "u-bob")})
    return db


@pytest.fixture
def rag_client() -> FakeRAGClient:
    return FakeRAGClient()


@pytest.fixture
def llm_client() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def gateway(helper_config, llm_client, settings) -> LLMGateway:
    return LLMGateway(helper_config=helper_config, llm_client=llm_client, settings=settings)


@pytest.fixture
def indexing_service(helper_config, db_client, rag_client, gateway, settings) -> IndexingService:
    return IndexingService(
        helper_config=helper_config,
        db_client=db_client,
        rag_client=rag_client,
        gateway=gateway,
        settings=settings,
        encoding=CharEncoding(),
    )


@pytest.fixture
def rag_service(helper_config, db_client, rag_client, gateway, settings, indexing_service) -> RAGService:
    return RAGService(
        helper_config=helper_config,
        db_client=db_client,
        rag_client=rag_client,
        gateway=gateway,
        settings=settings,
        indexing_service=indexing_service,
    )
