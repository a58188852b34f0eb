"""Vector record models stored in and returned from a RAG backend."""

from typing import Literal

from pydantic import BaseModel


class VectorMetadata(BaseModel):
    """Metadata payload stored alongside each message chunk vector.

    The content field always mirrors the chunk's literal text, never the
    full original message, so retrieval returns matchable fragments.

    Attributes:
        message_id:     Id of the source message.
        channel_id:     Id of the channel the message was posted in.
        channel_type:   Visibility class of the channel (e.g. "public", "private").
        channel_name:   Display name of the channel.
        sender_id:      Profile id of the author. Used for access isolation.
        timestamp:      ISO-8601 creation time of the message.
        content:        Literal chunk text, capped in length.
        type:           Message kind.
        is_edited:      Whether the message was edited after posting.
        parent_id:      Thread parent id, "" for top-level messages.
        thread_context: "reply" when parent_id is set, otherwise "main".
        chunk_index:    Zero-based position of this chunk within the message.
        total_chunks:   Number of chunks the message was split into.
        chunk_start:    Token offset where the chunk starts.
        chunk_end:      Token offset where the chunk ends (exclusive).
        is_chunked:     True when the message was split into more than one chunk.
    """

    message_id: str
    channel_id: str
    channel_type: str
    channel_name: str
    sender_id: str
    timestamp: str
    content: str
    type: Literal["text", "image", "file", "system"] = "text"
    is_edited: bool = False
    parent_id: str = ""
    thread_context: Literal["main", "reply"] = "main"

    # chunk provenance
    chunk_index: int = 0
    total_chunks: int = 1
    chunk_start: int = 0
    chunk_end: int = 0
    is_chunked: bool = False


class VectorRecord(BaseModel):
    """One embedding plus its metadata.

    The id equals the message id for single-chunk messages and
    "<message id>#<chunk index>" for split ones.
    """

    id: str
    values: list[float]
    metadata: VectorMetadata


class VectorMatch(BaseModel):
    """One ranked hit of a similarity query."""

    record_id: str
    score: float
    metadata: VectorMetadata
