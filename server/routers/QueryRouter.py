import asyncio
import contextlib

from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import MentionQueryRequest
from shared.helper.CancellationToken import CancellationToken
from shared.models.rag import RAGMetrics, RAGQueryResult

router = APIRouter(prefix="/query", tags=["query"])

DISCONNECT_POLL_INTERVAL = 0.5


async def _cancel_on_disconnect(request: Request, cancel_token: CancellationToken) -> None:
    while not cancel_token.is_cancelled:
        if await request.is_disconnected():
            cancel_token.cancel("Client disconnected.")
            return
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)


@router.post("/mention")
async def query_mention(
    request: Request,
    body: MentionQueryRequest,
    _: None = Depends(verify_api_key),
) -> RAGQueryResult:
    """Answer an @mention question on behalf of the mentioned user.

    The in-flight embedding, completion and vector calls are abandoned when
    the client disconnects.

    Args:
        request (Request): FastAPI request (provides app.state.rag_service).
        body (MentionQueryRequest): Question, channel and mentioned user.
        _ (None): Auth dependency result (unused).

    Returns:
        RAGQueryResult: Answer, source messages and confidence.
    """
    rag_service = request.app.state.rag_service
    cancel_token = CancellationToken()
    watcher = asyncio.create_task(_cancel_on_disconnect(request, cancel_token))
    try:
        return await rag_service.handle_mention_query(
            query=body.query,
            channel_id=body.channel_id,
            target_user_id=body.target_user_id,
            cancel_token=cancel_token,
        )
    finally:
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher


@router.get("/metrics")
async def query_metrics(
    request: Request,
    _: None = Depends(verify_api_key),
) -> RAGMetrics:
    """Return vector count, average latency and query count of the rolling window."""
    rag_service = request.app.state.rag_service
    return await rag_service.get_metrics()
