"""Pydantic models flowing through the indexing and mention-query pipelines."""

from pydantic import BaseModel, Field

from shared.clients.db.models.Message import Message
from shared.clients.rag.models.VectorRecord import VectorMatch


class MessageChunk(BaseModel):
    """A token-bounded slice of one message. Offsets are token positions, end exclusive."""

    message_id: str
    chunk_index: int
    total_chunks: int
    chunk_start: int
    chunk_end: int
    content: str


class QueryExpansionSet(BaseModel):
    """Reformulations of one question, at most n_queries entries."""

    original_query: str
    queries: list[str]


class FusionCandidate(BaseModel):
    """Per-record accumulator of one fusion run.

    Attributes:
        record_id: Vector record id.
        score:     Fused reciprocal rank score.
        ranks:     Zero-based rank of the record in every list it appeared in.
        match:     Best-scored match seen for this record.
    """

    record_id: str
    score: float
    ranks: list[int] = []
    match: VectorMatch


class RAGQueryResult(BaseModel):
    """Answer to a mention query."""

    response: str
    relevant_messages: list[Message]
    confidence: float = Field(ge=0.0, le=1.0)


class RAGMetrics(BaseModel):
    """Usage snapshot over the configured rolling window."""

    total_vectors: int
    average_latency: float
    query_count: int


class SyncReport(BaseModel):
    """Outcome of a completed batch ingestion run."""

    messages_processed: int = 0
    messages_skipped: int = 0
    chunks_processed: int = 0
    last_cursor: str | None = None
    pages: int = 0
