"""Chat message rows as read from and written to the relational store."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class Message(BaseModel):
    """
    Represents a single chat message row.

    Attributes:
        id:          Message id.
        channel_id:  Channel the message was posted in.
        sender_id:   Profile id of the author.
        content:     Full message text.
        type:        Message kind.
        is_edited:   Whether the message was edited after posting.
        parent_id:   Thread parent id, None for top-level messages.
        created_at:  Creation time.
        deleted_at:  Soft-delete time, None while the message is live.
        metadata:    Free-form JSON (e.g. mentioned_users, is_rag_response).
    """
    id: str
    channel_id: str
    sender_id: str
    content: str = ""
    type: Literal["text", "image", "file", "system"] = "text"
    is_edited: bool = False
    parent_id: str | None = None
    created_at: datetime
    deleted_at: datetime | None = None
    metadata: dict | None = None


class MessageCreate(BaseModel):
    """
    Represents a message to be inserted. The store assigns id and created_at.
    """
    channel_id: str
    sender_id: str
    content: str
    type: Literal["text", "image", "file", "system"] = "text"
    parent_id: str | None = None
    metadata: dict = {}
