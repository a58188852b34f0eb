"""Batch ingestion driver.

Backfills the vector index from historical messages. Pages through live
messages in ascending id order, chunks every page, and embeds + upserts the
flattened chunk list in bounded groups. Upserts replace by record id, so a
run can be resumed from the last committed cursor at any time.
"""

import asyncio

import httpx

from services.message_rag_sync.IndexingService import IndexingService
from shared.clients.db.DBClientInterface import DBClientInterface
from shared.exceptions import ChatRAGError, PartialBatchFailure
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import RAGSettings
from shared.models.rag import SyncReport


class SyncService:
    """Orchestrates the full sync pipeline from the relational store to the vector index."""

    def __init__(
        self,
        helper_config: HelperConfig,
        db_client: DBClientInterface,
        indexing_service: IndexingService,
        settings: RAGSettings,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._db_client = db_client
        self._indexing_service = indexing_service
        self._settings = settings

    ##########################################
    ############### CORE SYNC ################
    ##########################################

    async def do_full_sync(self, start_after: str | None = None) -> SyncReport:
        """Index every live message with an id greater than start_after.

        Args:
            start_after (str | None): Resume cursor. None starts from the first message.

        Returns:
            SyncReport: Totals of the completed run.

        Raises:
            PartialBatchFailure: If a page failed. Carries the last fully committed
                cursor and the totals committed so far.
        """
        report = SyncReport(last_cursor=start_after)
        self.logging.info("Starting full sync (after ID: %s)...", start_after or "start")

        while True:
            try:
                page = await self._db_client.do_fetch_messages_page(
                    after_id=report.last_cursor,
                    limit=int(self._settings.sync_page_size),
                )
                if not page:
                    break
                items, channels = await self._indexing_service.collect_chunks(page, skip_missing_channels=True)
                chunk_count = await self._indexing_service.index_chunks(items, channels)
            except (ChatRAGError, httpx.HTTPError, ValueError) as e:
                self.logging.error(
                    "Sync aborted after cursor %s (%d messages, %d chunks committed): %s",
                    report.last_cursor, report.messages_processed, report.chunks_processed, e,
                )
                raise PartialBatchFailure(
                    cursor=report.last_cursor,
                    messages_processed=report.messages_processed,
                    chunks_processed=report.chunks_processed,
                    reason=str(e),
                ) from e

            indexed = len({message.id for message, _ in items})
            report.messages_processed += indexed
            report.messages_skipped += len(page) - indexed
            report.chunks_processed += chunk_count
            report.last_cursor = page[-1].id
            report.pages += 1
            self.logging.info(
                "Processed %d messages (%d chunks) total, cursor at %s.",
                report.messages_processed, report.chunks_processed, report.last_cursor,
            )

            if self._settings.sync_page_delay > 0:
                await asyncio.sleep(self._settings.sync_page_delay)

        self.logging.info(
            "Sync complete: %d messages, %d chunks in %d pages (%d messages skipped).",
            report.messages_processed, report.chunks_processed, report.pages, report.messages_skipped,
        )
        return report
