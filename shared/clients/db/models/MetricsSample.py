from datetime import datetime

from pydantic import BaseModel


class MetricsSample(BaseModel):
    """
    Represents one completed mention query. Rows are append-only.

    Attributes:
        query:             The question that was asked.
        channel_id:        Channel the question was asked in.
        target_user_id:    Profile id of the mentioned user.
        response_time_ms:  Elapsed milliseconds from retrieval start to answer.
        message_count:     Number of fused candidates.
        confidence_score:  Reported confidence.
        timestamp:         Completion time.
    """
    query: str
    channel_id: str
    target_user_id: str
    response_time_ms: int
    message_count: int
    confidence_score: float
    timestamp: datetime
