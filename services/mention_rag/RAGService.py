"""Entry point of the retrieval-augmented mention engine.

Exposes the write path (process, batch process, update/delete vectors) and
the read path (answer an @mention on behalf of a user, usage metrics) to
the messaging layer.
"""

import time
from datetime import datetime

import pytz

from services.mention_rag.ConfidenceScorer import ConfidenceScorer
from services.mention_rag.FusionRetriever import FusionRetriever
from services.mention_rag.MetricsRecorder import MetricsRecorder
from services.mention_rag.StyleGenerator import StyleGenerator
from services.message_rag_sync.IndexingService import IndexingService
from shared.clients.db.DBClientInterface import DBClientInterface
from shared.clients.db.models.Message import Message
from shared.clients.db.models.MetricsSample import MetricsSample
from shared.clients.llm.LLMGateway import LLMGateway
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.exceptions import AuthorizationError, NotFoundError
from shared.helper.CancellationToken import CancellationToken
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import RAGSettings
from shared.models.rag import RAGMetrics, RAGQueryResult


class RAGService:
    def __init__(
        self,
        helper_config: HelperConfig,
        db_client: DBClientInterface,
        rag_client: RAGClientInterface,
        gateway: LLMGateway,
        settings: RAGSettings,
        indexing_service: IndexingService | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._db_client = db_client
        self._rag_client = rag_client
        self._settings = settings

        self.indexing_service = indexing_service or IndexingService(
            helper_config=helper_config,
            db_client=db_client,
            rag_client=rag_client,
            gateway=gateway,
            settings=settings,
        )
        self.retriever = FusionRetriever(helper_config=helper_config, rag_client=rag_client, gateway=gateway, settings=settings)
        self.generator = StyleGenerator(helper_config=helper_config, rag_client=rag_client, gateway=gateway, settings=settings)
        self.scorer = ConfidenceScorer(settings=settings)
        self.metrics = MetricsRecorder(helper_config=helper_config, db_client=db_client, settings=settings)

    ##########################################
    ############### WRITE PATH ###############
    ##########################################

    async def process_message(self, message: Message) -> int:
        return await self.indexing_service.process_message(message)

    async def batch_process_messages(self, messages: list[Message]) -> int:
        return await self.indexing_service.batch_process_messages(messages)

    async def update_message_vectors(self, message_id: str, new_content: str | None = None) -> int:
        """Re-embed a message with new content, or delete its vectors when new_content is None."""
        return await self.indexing_service.update_message_vectors(message_id, new_content)

    ##########################################
    ############### READ PATH ################
    ##########################################

    async def handle_mention_query(
        self,
        query: str,
        channel_id: str,
        target_user_id: str,
        cancel_token: CancellationToken | None = None,
    ) -> RAGQueryResult:
        """Answer a question addressed to a user, in that user's voice.

        Args:
            query (str): The question.
            channel_id (str): Channel the question was asked in.
            target_user_id (str): Profile id of the mentioned user.
            cancel_token (CancellationToken | None): Abandons in-flight work when cancelled.

        Returns:
            RAGQueryResult: Answer, hydrated source messages and confidence.

        Raises:
            AuthorizationError: If the user is not a member of the channel. Raised before any retrieval.
            NotFoundError: If the user's profile does not exist.
            GenerationUnavailableError: If the embedding or completion provider failed.
            RetrievalError: If the vector store failed.
            OperationCancelledError: If the token was cancelled.
        """
        if not await self._db_client.do_check_membership(channel_id, target_user_id):
            raise AuthorizationError(f"User {target_user_id} is not a member of channel {channel_id}.")
        profile = await self._db_client.do_fetch_profile(target_user_id)
        if profile is None:
            raise NotFoundError(f"Profile {target_user_id} not found.")

        started = time.perf_counter()
        candidates = await self.retriever.retrieve(query, channel_id, target_user_id, cancel_token=cancel_token)

        # hydrate source messages in candidate order; rows gone from the store are left out
        message_ids = list(dict.fromkeys(candidate.match.metadata.message_id for candidate in candidates))
        by_id = {message.id: message for message in await self._db_client.do_fetch_messages_by_ids(message_ids)}
        relevant_messages = [by_id[message_id] for message_id in message_ids if message_id in by_id]

        response = await self.generator.generate(query, candidates, profile, cancel_token=cancel_token)
        confidence = self.scorer.score(candidates)
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        elapsed_ms = int(round((time.perf_counter() - started) * 1000))
        await self.metrics.record(MetricsSample(
            query=query,
            channel_id=channel_id,
            target_user_id=target_user_id,
            response_time_ms=elapsed_ms,
            message_count=len(candidates),
            confidence_score=confidence,
            timestamp=datetime.now(pytz.utc),
        ))
        self.logging.info(
            "Answered mention of %s in channel %s: %d candidates, confidence %.3f, %d ms.",
            target_user_id, channel_id, len(candidates), confidence, elapsed_ms,
        )
        return RAGQueryResult(response=response, relevant_messages=relevant_messages, confidence=confidence)

    async def get_metrics(self) -> RAGMetrics:
        total_vectors = await self._rag_client.do_describe_stats()
        average_latency, query_count = await self.metrics.summarize()
        return RAGMetrics(total_vectors=total_vectors, average_latency=average_latency, query_count=query_count)
