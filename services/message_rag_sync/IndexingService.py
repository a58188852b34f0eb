"""Write path of the message index.

Turns messages into chunk records (chunk, embed, upsert) and keeps the
index in step with edits and deletions.
"""

import asyncio

from services.message_rag_sync.Chunker import TokenEncoding, chunk_message_text, get_encoding
from shared.clients.db.DBClientInterface import DBClientInterface
from shared.clients.db.models.Channel import Channel
from shared.clients.db.models.Message import Message
from shared.clients.llm.LLMGateway import LLMGateway
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorRecord import VectorMetadata, VectorRecord
from shared.exceptions import NotFoundError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import RAGSettings
from shared.models.rag import MessageChunk


def build_record_id(chunk: MessageChunk) -> str:
    """Message id for single-chunk messages, "<message id>#<chunk index>" otherwise."""
    if chunk.total_chunks > 1:
        return f"{chunk.message_id}#{chunk.chunk_index}"
    return chunk.message_id


class IndexingService:
    def __init__(
        self,
        helper_config: HelperConfig,
        db_client: DBClientInterface,
        rag_client: RAGClientInterface,
        gateway: LLMGateway,
        settings: RAGSettings,
        encoding: TokenEncoding | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._db_client = db_client
        self._rag_client = rag_client
        self._gateway = gateway
        self._settings = settings
        self._encoding = encoding

    ##########################################
    ############### BUILDERS #################
    ##########################################

    def _get_encoding(self) -> TokenEncoding:
        if self._encoding is None:
            self._encoding = get_encoding(self._settings.tokenizer_encoding)
        return self._encoding

    def chunk_message(self, message: Message) -> list[MessageChunk]:
        return chunk_message_text(
            message_id=message.id,
            text=message.content,
            max_tokens=self._settings.max_tokens_per_chunk,
            encoding=self._get_encoding(),
        )

    def build_metadata(self, message: Message, channel: Channel, chunk: MessageChunk) -> VectorMetadata:
        """Build the metadata stored with one chunk record.

        The content field holds the chunk text, capped at metadata_content_max_chars.
        """
        return VectorMetadata(
            message_id=message.id,
            channel_id=message.channel_id,
            channel_type=channel.type,
            channel_name=channel.name,
            sender_id=message.sender_id,
            timestamp=message.created_at.isoformat(),
            content=chunk.content[: self._settings.metadata_content_max_chars],
            type=message.type,
            is_edited=message.is_edited,
            parent_id=message.parent_id or "",
            thread_context="reply" if message.parent_id else "main",
            chunk_index=chunk.chunk_index,
            total_chunks=chunk.total_chunks,
            chunk_start=chunk.chunk_start,
            chunk_end=chunk.chunk_end,
            is_chunked=chunk.total_chunks > 1,
        )

    ##########################################
    ############### INDEXING #################
    ##########################################

    async def index_chunks(self, items: list[tuple[Message, MessageChunk]], channels: dict[str, Channel]) -> int:
        """Embed and upsert chunks in groups of upsert_batch_size.

        Chunks of one group are embedded concurrently; groups run sequentially
        with upsert_batch_delay between them. A failing group aborts the rest,
        earlier groups stay committed.

        Args:
            items (list[tuple[Message, MessageChunk]]): Chunks with their source message.
            channels (dict[str, Channel]): Channels keyed by id, must cover every message.

        Returns:
            int: Number of chunks upserted.
        """
        batch_size = max(1, int(self._settings.upsert_batch_size))
        upserted = 0
        for start in range(0, len(items), batch_size):
            if start > 0 and self._settings.upsert_batch_delay > 0:
                await asyncio.sleep(self._settings.upsert_batch_delay)
            group = items[start:start + batch_size]
            vectors = await self._gateway.embed_many([chunk.content for _, chunk in group])
            records = [
                VectorRecord(
                    id=build_record_id(chunk),
                    values=vector,
                    metadata=self.build_metadata(message, channels[message.channel_id], chunk),
                )
                for (message, chunk), vector in zip(group, vectors)
            ]
            await self._rag_client.do_upsert_records(records)
            upserted += len(records)
            self.logging.debug("Upserted chunk batch of %d records.", len(records))
        return upserted

    async def process_message(self, message: Message) -> int:
        """Embed and upsert one message as one or more chunk records.

        Returns:
            int: Number of chunk records written.

        Raises:
            NotFoundError: If the message's channel does not exist.
        """
        channel = await self._db_client.do_fetch_channel(message.channel_id)
        if channel is None:
            raise NotFoundError(f"Channel {message.channel_id} of message {message.id} not found.")
        items = [(message, chunk) for chunk in self.chunk_message(message)]
        count = await self.index_chunks(items, {channel.id: channel})
        self.logging.info("Indexed message %s as %d chunk record(s).", message.id, count)
        return count

    async def collect_chunks(
        self, messages: list[Message], skip_missing_channels: bool = False
    ) -> tuple[list[tuple[Message, MessageChunk]], dict[str, Channel]]:
        """Resolve the channels of messages in one read and chunk every message.

        Args:
            messages (list[Message]): Messages to chunk.
            skip_missing_channels (bool): Leave out messages whose channel is gone instead of failing.

        Returns:
            tuple: The flattened (message, chunk) list and the channels keyed by id.

        Raises:
            NotFoundError: If a channel is missing and skip_missing_channels is not set.
        """
        if not messages:
            return [], {}
        channels = await self._db_client.do_fetch_channels([m.channel_id for m in messages])
        items: list[tuple[Message, MessageChunk]] = []
        for message in messages:
            if message.channel_id not in channels:
                if skip_missing_channels:
                    self.logging.warning("Skipping message %s: channel %s not found.", message.id, message.channel_id)
                    continue
                raise NotFoundError(f"Channel {message.channel_id} of message {message.id} not found.")
            items.extend((message, chunk) for chunk in self.chunk_message(message))
        return items, channels

    async def batch_process_messages(self, messages: list[Message], skip_missing_channels: bool = False) -> int:
        """Bulk variant of process_message.

        Returns:
            int: Number of chunk records written.

        Raises:
            NotFoundError: If a channel is missing and skip_missing_channels is not set.
        """
        items, channels = await self.collect_chunks(messages, skip_missing_channels=skip_missing_channels)
        return await self.index_chunks(items, channels)

    async def delete_message_vectors(self, message_id: str) -> None:
        """Remove the message's record and all of its chunk records."""
        await self._rag_client.do_delete_one(message_id)
        await self._rag_client.do_delete_chunk_records(message_id)
        self.logging.info("Deleted vectors of message %s.", message_id)

    async def update_message_vectors(self, message_id: str, new_content: str | None = None) -> int:
        """Re-embed an edited message or delete its vectors.

        The new record set is upserted before stale records are removed, so a
        failed re-embedding leaves the previous vectors searchable.

        Args:
            message_id (str): The message id.
            new_content (str | None): The new text, None to delete.

        Returns:
            int: Number of chunk records written, 0 for a deletion.

        Raises:
            NotFoundError: If the message or its channel does not exist.
        """
        if new_content is None:
            await self.delete_message_vectors(message_id)
            return 0

        message = await self._db_client.do_fetch_message(message_id)
        if message is None:
            raise NotFoundError(f"Message {message_id} not found.")
        channel = await self._db_client.do_fetch_channel(message.channel_id)
        if channel is None:
            raise NotFoundError(f"Channel {message.channel_id} of message {message_id} not found.")

        updated = message.model_copy(update={"content": new_content})
        chunks = self.chunk_message(updated)
        count = await self.index_chunks([(updated, chunk) for chunk in chunks], {channel.id: channel})

        # the new content may split differently than the old one
        new_ids = [build_record_id(chunk) for chunk in chunks]
        if message_id not in new_ids:
            await self._rag_client.do_delete_one(message_id)
        await self._rag_client.do_delete_chunk_records(message_id, keep_ids=new_ids)
        self.logging.info("Re-indexed message %s as %d chunk record(s).", message_id, count)
        return count
