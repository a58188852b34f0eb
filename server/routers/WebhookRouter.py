from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import MessageWebhookRequest
from server.models.responses import WebhookAcceptedResponse
from services.message_rag_sync.VectorizationQueue import VectorizationJob, is_rag_response

router = APIRouter(prefix="/webhook", tags=["webhook"])


@router.post("/message", status_code=202)
async def webhook_message(
    request: Request,
    body: MessageWebhookRequest,
    _: None = Depends(verify_api_key),
) -> WebhookAcceptedResponse:
    """Accept a message lifecycle event and queue the matching vectorization jobs.

    Args:
        request (Request): FastAPI request (provides app.state.vectorization_queue).
        body (MessageWebhookRequest): The event.
        _ (None): Auth dependency result (unused).

    Returns:
        WebhookAcceptedResponse: Acknowledgement with the queued job kinds.
    """
    queue = request.app.state.vectorization_queue
    jobs: list[VectorizationJob] = []

    if body.event == "created":
        jobs.append(VectorizationJob(kind="process", message_id=body.message_id, message=body.message))
        mentioned = body.mentioned_users or (body.message.metadata or {}).get("mentioned_users") or []
        if mentioned and not is_rag_response(body.message):
            jobs.append(VectorizationJob(kind="mention", message_id=body.message_id, message=body.message, mentioned_user_ids=list(mentioned)))
    elif body.event == "updated":
        jobs.append(VectorizationJob(kind="update", message_id=body.message_id, content=body.content))
    else:
        jobs.append(VectorizationJob(kind="delete", message_id=body.message_id))

    for job in jobs:
        queue.enqueue(job)
    return WebhookAcceptedResponse(status="accepted", message_id=body.message_id, jobs=[job.kind for job in jobs])
