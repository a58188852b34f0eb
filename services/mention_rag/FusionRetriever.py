"""Multi-query retrieval with reciprocal rank fusion.

One question is reformulated into several search queries. Every
reformulation is embedded and searched independently and concurrently;
the ranked result lists are then merged by summing 1 / (rank + k) per
record. The merge only looks at ranks, so the outcome does not depend on
which search finished first.
"""

import math
import re

import httpx

from shared.clients.llm.LLMGateway import LLMGateway
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.MetadataFilter import MetadataFilter, build_access_filter
from shared.clients.rag.models.VectorRecord import VectorMatch
from shared.exceptions import ClientRequestError, GenerationUnavailableError, RetrievalError
from shared.helper.CancellationToken import CancellationToken, gather_or_cancel
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import RAGSettings
from shared.models.rag import FusionCandidate, QueryExpansionSet

EXPANSION_SYSTEM_PROMPT = "You are a helpful assistant that generates multiple search queries based on a single input query."

# leading "1.", "2)", "-", "*" or "•" of a list item
_LIST_MARKER = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s*")


def reciprocal_rank_fusion(result_lists: list[list[VectorMatch]], k: int = 60) -> list[FusionCandidate]:
    """Merge ranked result lists.

    A record at 0-based rank r of a list contributes 1 / (r + k). Contributions
    of every list the record appears in are summed; absence contributes nothing.

    Args:
        result_lists (list[list[VectorMatch]]): One ranked list per query, best first.
        k (int): Damping constant.

    Returns:
        list[FusionCandidate]: All records seen, by descending fused score, ties by record id.
    """
    contributions: dict[str, list[float]] = {}
    ranks: dict[str, list[int]] = {}
    best: dict[str, VectorMatch] = {}
    for results in result_lists:
        for rank, match in enumerate(results):
            contributions.setdefault(match.record_id, []).append(1.0 / (rank + k))
            ranks.setdefault(match.record_id, []).append(rank)
            seen = best.get(match.record_id)
            if seen is None or match.score > seen.score:
                best[match.record_id] = match

    # fsum is exact, so the summation order of the lists cannot change the score
    candidates = [
        FusionCandidate(
            record_id=record_id,
            score=math.fsum(values),
            ranks=sorted(ranks[record_id]),
            match=best[record_id],
        )
        for record_id, values in contributions.items()
    ]
    candidates.sort(key=lambda candidate: (-candidate.score, candidate.record_id))
    return candidates


async def search_index(
    rag_client: RAGClientInterface,
    vector: list[float],
    metadata_filter: MetadataFilter | None,
    top_k: int,
    cancel_token: CancellationToken | None = None,
) -> list[VectorMatch]:
    """Run one vector query, surfacing every adapter failure as RetrievalError.

    Raises:
        RetrievalError: If the vector store failed or answered with an invalid payload.
        OperationCancelledError: If the token was cancelled.
    """
    if cancel_token is not None:
        cancel_token.raise_if_cancelled()
    query = rag_client.do_query(vector, metadata_filter, top_k)
    try:
        if cancel_token is not None:
            return await cancel_token.run(query)
        return await query
    except (ClientRequestError, httpx.HTTPError, ValueError) as e:
        raise RetrievalError(f"Vector query on {rag_client.get_engine_name()} failed: {e}") from e


class FusionRetriever:
    def __init__(self, helper_config: HelperConfig, rag_client: RAGClientInterface, gateway: LLMGateway, settings: RAGSettings):
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._gateway = gateway
        self._settings = settings

    ##########################################
    ############ QUERY EXPANSION #############
    ##########################################

    def build_expansion_prompt(self, query: str) -> list[dict]:
        return [
            {"role": "system", "content": EXPANSION_SYSTEM_PROMPT},
            {"role": "user", "content": f"Generate multiple search queries related to: {query}"},
            {"role": "user", "content": f"OUTPUT ({self._settings.n_queries} queries):"},
        ]

    @staticmethod
    def parse_expansion(completion: str, n_queries: int) -> list[str]:
        """Split a completion into at most n_queries non-blank queries."""
        queries = []
        for line in completion.splitlines():
            cleaned = _LIST_MARKER.sub("", line).strip()
            if cleaned:
                queries.append(cleaned)
        return queries[:n_queries]

    async def expand_query(self, query: str, cancel_token: CancellationToken | None = None) -> QueryExpansionSet:
        """Ask the completion model for reformulations of the question.

        Raises:
            GenerationUnavailableError: If the completion failed or produced no usable query.
        """
        completion = await self._gateway.complete(self.build_expansion_prompt(query), cancel_token=cancel_token)
        queries = self.parse_expansion(completion, int(self._settings.n_queries))
        if not queries:
            raise GenerationUnavailableError("Query expansion produced no search queries.")
        self.logging.debug("Expanded query into %d search queries: %s", len(queries), queries)
        return QueryExpansionSet(original_query=query, queries=queries)

    ##########################################
    ############### RETRIEVAL ################
    ##########################################

    def get_threshold(self, n_queries: int) -> float:
        """Minimum fused score a candidate needs to survive: N / (k + 2 * M)."""
        return n_queries / (self._settings.rrf_k + 2 * self._settings.n_messages)

    async def _search(self, query: str, metadata_filter: MetadataFilter, cancel_token: CancellationToken | None) -> list[VectorMatch]:
        vector = await self._gateway.embed(query, cancel_token=cancel_token)
        return await search_index(
            self._rag_client,
            vector,
            metadata_filter,
            int(self._settings.max_messages_per_query),
            cancel_token=cancel_token,
        )

    async def retrieve(self, query: str, channel_id: str, target_user_id: str, cancel_token: CancellationToken | None = None) -> list[FusionCandidate]:
        """Retrieve the target user's messages relevant to the question.

        Args:
            query (str): The natural-language question.
            channel_id (str): Channel the question was asked in.
            target_user_id (str): The mentioned user whose messages are searched.
            cancel_token (CancellationToken | None): Aborts in-flight calls when cancelled.

        Returns:
            list[FusionCandidate]: Candidates above the threshold, best first.

        Raises:
            GenerationUnavailableError: If expansion or an embedding failed.
            RetrievalError: If a vector query failed.
        """
        expansion = await self.expand_query(query, cancel_token=cancel_token)
        metadata_filter = build_access_filter(channel_id=channel_id, sender_id=target_user_id)

        # one failed search cancels the rest
        result_lists = await gather_or_cancel(
            self._search(expanded, metadata_filter, cancel_token) for expanded in expansion.queries
        )

        fused = reciprocal_rank_fusion(list(result_lists), k=int(self._settings.rrf_k))
        threshold = self.get_threshold(len(expansion.queries))
        survivors = [candidate for candidate in fused if candidate.score >= threshold]
        self.logging.info(
            "Fusion retrieval: %d queries, %d fused records, %d above threshold %.4f.",
            len(expansion.queries), len(fused), len(survivors), threshold,
        )
        return survivors
