from pydantic import BaseModel


class WebhookAcceptedResponse(BaseModel):
    status: str
    message_id: str
    jobs: list[str]


class ErrorResponse(BaseModel):
    detail: str
