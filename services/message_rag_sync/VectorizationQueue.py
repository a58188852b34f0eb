"""Best-effort background vectorization.

The message write path enqueues jobs and returns immediately; one worker
task drains the queue, retrying each job a bounded number of times. A job
that keeps failing is logged and dropped so the worker can move on.
"""

import asyncio
import contextlib
import logging
from typing import Literal

import httpx
from pydantic import BaseModel
from tenacity import AsyncRetrying, before_sleep_log, stop_after_attempt, wait_fixed

from services.mention_rag.RAGService import RAGService
from shared.clients.db.DBClientInterface import DBClientInterface
from shared.clients.db.models.Message import Message, MessageCreate
from shared.exceptions import ChatRAGError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import RAGSettings


class VectorizationJob(BaseModel):
    """
    Attributes:
        kind:               "process" (new message), "update" (edited content), "delete" or "mention".
        message_id:         Id of the affected message.
        message:            The full message, required for "process" and "mention".
        content:            New content of an "update".
        mentioned_user_ids: Profile ids to answer for, "mention" only.
    """

    kind: Literal["process", "update", "delete", "mention"]
    message_id: str
    message: Message | None = None
    content: str | None = None
    mentioned_user_ids: list[str] = []


def is_rag_response(message: Message) -> bool:
    return bool((message.metadata or {}).get("is_rag_response"))


class VectorizationQueue:
    def __init__(self, helper_config: HelperConfig, db_client: DBClientInterface, rag_service: RAGService, settings: RAGSettings):
        self.logging = helper_config.get_logger()
        self._db_client = db_client
        self._rag_service = rag_service
        self._settings = settings
        self._queue: asyncio.Queue[VectorizationJob] = asyncio.Queue()
        self._worker: asyncio.Task | None = None

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run_worker())
            self.logging.debug("Vectorization worker started.")

    async def stop(self, drain: bool = True) -> None:
        """Stop the worker, by default after the queued jobs are done."""
        if self._worker is None:
            return
        if drain:
            await self._queue.join()
        self._worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None
        self.logging.debug("Vectorization worker stopped.")

    async def join(self) -> None:
        """Wait until every queued job has been handled."""
        await self._queue.join()

    def enqueue(self, job: VectorizationJob) -> None:
        self._queue.put_nowait(job)
        self.logging.debug("Enqueued %s job for message %s (%d pending).", job.kind, job.message_id, self._queue.qsize())

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    ##########################################
    ################ WORKER ##################
    ##########################################

    async def _run_worker(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self.run_job(job)
            finally:
                self._queue.task_done()

    async def run_job(self, job: VectorizationJob) -> bool:
        """Run one job with retries.

        Returns:
            bool: True if the job succeeded, False if it was dropped after the last attempt.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, int(self._settings.queue_job_max_attempts))),
            wait=wait_fixed(self._settings.queue_retry_delay),
            before_sleep=before_sleep_log(self.logging, logging.WARNING),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    await self._dispatch(job)
        except Exception as e:
            # background work: the caller's write already succeeded
            self.logging.error("Dropping %s job for message %s after %d attempts: %s", job.kind, job.message_id, self._settings.queue_job_max_attempts, e)
            return False
        return True

    async def _dispatch(self, job: VectorizationJob) -> None:
        if job.kind == "process":
            if job.message is None:
                raise ValueError(f"process job for message {job.message_id} carries no message")
            if is_rag_response(job.message):
                self.logging.debug("Not vectorizing generated reply %s.", job.message_id)
                return
            await self._rag_service.process_message(job.message)
        elif job.kind == "update":
            await self._rag_service.update_message_vectors(job.message_id, job.content)
        elif job.kind == "delete":
            await self._rag_service.update_message_vectors(job.message_id, None)
        elif job.kind == "mention":
            if job.message is None:
                raise ValueError(f"mention job for message {job.message_id} carries no message")
            await self._answer_mentions(job.message, job.mentioned_user_ids)

    async def _answer_mentions(self, message: Message, mentioned_user_ids: list[str]) -> None:
        """Answer the message on behalf of every mentioned user and post the replies in its thread.

        A failure for one user is logged and does not affect the others.
        """
        profiles = await self._db_client.do_fetch_profiles(mentioned_user_ids)
        for profile in profiles:
            try:
                self.logging.info("Generating response for @%s", profile.username)
                result = await self._rag_service.handle_mention_query(message.content, message.channel_id, profile.id)
                await self._db_client.do_insert_message(MessageCreate(
                    channel_id=message.channel_id,
                    sender_id=profile.id,
                    content=result.response,
                    type="system",
                    parent_id=message.id,
                    metadata={
                        "is_rag_response": True,
                        "confidence": result.confidence,
                        "mentioned_user": profile.username,
                    },
                ))
            except (ChatRAGError, httpx.HTTPError) as e:
                self.logging.error("Failed to generate response for @%s: %s", profile.username, e)
