"""FastAPI application entry point for chat_rag_bridge."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import RAGSettings
from shared.exceptions import ConfigurationError
from shared.clients.ClientInterface import ClientInterface
from shared.clients.db.DBClientManager import DBClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.llm.LLMGateway import LLMGateway
from services.mention_rag.RAGService import RAGService
from services.message_rag_sync.VectorizationQueue import VectorizationQueue
from server.dependencies.errors import register_exception_handlers
from server.routers.WebhookRouter import router as webhook_router
from server.routers.QueryRouter import router as query_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = HelperConfig(logger=logging)
    settings = RAGSettings.from_helper_config(app.state.helper_config)

    db_client = DBClientManager(helper_config=app.state.helper_config).get_client()
    rag_client = RAGClientManager(helper_config=app.state.helper_config, settings=settings).get_client()
    llm_client = LLMClientManager(helper_config=app.state.helper_config).get_client()
    clients: list[ClientInterface] = [db_client, rag_client, llm_client]

    logging.info("Booting all clients...")
    for client in clients:
        await client.boot()
    logging.info("All clients booted successfully.")

    await check_connections(clients)

    # the vector index must exist before the first message is indexed
    vector_size, distance = await llm_client.do_fetch_embedding_vector_size()
    await rag_client.do_ensure_index(vector_size=vector_size, distance=distance)

    gateway = LLMGateway(helper_config=app.state.helper_config, llm_client=llm_client, settings=settings)
    app.state.rag_service = RAGService(
        helper_config=app.state.helper_config,
        db_client=db_client,
        rag_client=rag_client,
        gateway=gateway,
        settings=settings,
    )
    app.state.vectorization_queue = VectorizationQueue(
        helper_config=app.state.helper_config,
        db_client=db_client,
        rag_service=app.state.rag_service,
        settings=settings,
    )
    app.state.vectorization_queue.start()

    # while the app is running...
    yield

    # when the app shuts down, finish queued work and close all client connections
    logging.info("Shutting down, draining %d queued jobs...", app.state.vectorization_queue.pending)
    await app.state.vectorization_queue.stop(drain=True)
    for client in clients:
        await client.close()
    logging.info("All clients closed.")


app = FastAPI(
    title="chat_rag_bridge",
    description=(
        "Retrieval-augmented @mention engine for a chat backend. "
        "Messages are chunked and indexed into a vector database via POST /webhook/message; "
        "questions addressed to a user are answered in that user's voice via POST /query/mention."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)
app.include_router(webhook_router)
app.include_router(query_router)


async def check_connections(clients: list[ClientInterface]) -> None:
    """Check connectivity to all configured backends on startup.

    Every backend is required: without the relational store, the vector
    index or the ML provider neither indexing nor queries can be served.

    Raises:
        ConfigurationError: If a backend is not reachable.
    """
    for client in clients:
        result: httpx.Response = await client.do_healthcheck()
        if not result.is_success:
            raise ConfigurationError(
                f"{client.get_client_type().upper()} client '{client.__class__.__name__}' is not reachable "
                f"(status {result.status_code})."
            )


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting chat_rag_bridge API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
