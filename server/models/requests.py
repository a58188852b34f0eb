from typing import Literal

from pydantic import BaseModel, model_validator

from shared.clients.db.models.Message import Message


class MentionQueryRequest(BaseModel):
    query: str
    channel_id: str
    target_user_id: str


class MessageWebhookRequest(BaseModel):
    """Message lifecycle event sent by the messaging layer.

    "created" carries the full message, "updated" the new content and
    "deleted" only the id.
    """

    event: Literal["created", "updated", "deleted"]
    message_id: str | None = None
    message: Message | None = None
    content: str | None = None
    mentioned_users: list[str] = []

    @model_validator(mode="after")
    def check_event_payload(self) -> "MessageWebhookRequest":
        if self.message is not None and self.message_id is None:
            self.message_id = self.message.id
        if self.event == "created" and self.message is None:
            raise ValueError("a 'created' event requires the message")
        if self.event == "updated" and self.content is None:
            raise ValueError("an 'updated' event requires the new content")
        if self.message_id is None:
            raise ValueError("message_id is required")
        return self
