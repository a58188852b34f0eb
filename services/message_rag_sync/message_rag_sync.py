"""Sync runner entry point.

Backfills the message vector index from the relational store. Set
SYNC_START_AFTER to the cursor reported by a failed run to resume it.

Usage:
    python -m services.message_rag_sync.message_rag_sync
"""

import asyncio

from services.message_rag_sync.IndexingService import IndexingService
from services.message_rag_sync.SyncService import SyncService
from shared.clients.db.DBClientManager import DBClientManager
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.llm.LLMGateway import LLMGateway
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.exceptions import PartialBatchFailure
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.config import RAGSettings


async def main() -> None:
    """Run the full synchronisation pipeline."""
    logger = setup_logging()
    config = HelperConfig(logger=logger)
    settings = RAGSettings.from_helper_config(config)
    db_client = DBClientManager(helper_config=config).get_client()
    rag_client = RAGClientManager(helper_config=config, settings=settings).get_client()
    llm_client = LLMClientManager(helper_config=config).get_client()
    start_after = config.get_string_val("SYNC_START_AFTER", default="") or None

    try:
        # boot all clients. every one of them is required
        for client in (llm_client, db_client, rag_client):
            try:
                await client.boot()
                await client.do_healthcheck()
            except Exception as e:
                logger.error(f"Error booting {client.get_client_type().upper()} client {client.get_engine_name()}: {e}. Aborting.")
                return

        # create the rag index, if not already existing
        vector_size, distance = await llm_client.do_fetch_embedding_vector_size()
        await rag_client.do_ensure_index(vector_size=vector_size, distance=distance)

        indexing_service = IndexingService(
            helper_config=config,
            db_client=db_client,
            rag_client=rag_client,
            gateway=LLMGateway(helper_config=config, llm_client=llm_client, settings=settings),
            settings=settings,
        )
        sync_service = SyncService(
            helper_config=config,
            db_client=db_client,
            indexing_service=indexing_service,
            settings=settings,
        )
        try:
            report = await sync_service.do_full_sync(start_after=start_after)
        except PartialBatchFailure as e:
            logger.error("Sync failed. Restart with SYNC_START_AFTER=%s to resume. %s", e.cursor or "", e)
            raise
        total_vectors = await rag_client.do_describe_stats()
        logger.info(
            "Final metrics: %d messages, %d chunks processed, %d vectors in index.",
            report.messages_processed, report.chunks_processed, total_vectors, color="green",
        )
    finally:
        for client in (llm_client, db_client, rag_client):
            await client.close()


if __name__ == "__main__":
    asyncio.run(main())
