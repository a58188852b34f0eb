import asyncio
from abc import abstractmethod
from collections.abc import Iterable

from shared.clients.ClientInterface import ClientInterface
from shared.clients.rag.models.MetadataFilter import FilterClause, FilterGroup, MetadataFilter
from shared.clients.rag.models.VectorRecord import VectorMatch, VectorRecord
from shared.exceptions import ConfigurationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import RAGSettings


class RAGClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig, settings: RAGSettings | None = None):
        super().__init__(helper_config=helper_config)
        self.settings = settings or RAGSettings.from_helper_config(helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "rag"

    def _get_method_upsert(self) -> str:
        """
        Returns the HTTP method used for upsert requests.
        """
        return "POST"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_upsert(self) -> str:
        """
        Returns the endpoint path for record upsert requests.

        Returns:
            str: The endpoint path (e.g. "/vectors/upsert")
        """
        pass

    @abstractmethod
    def _get_endpoint_query(self) -> str:
        """
        Returns the endpoint path for similarity query requests.

        Returns:
            str: The endpoint path (e.g. "/query")
        """
        pass

    @abstractmethod
    def _get_endpoint_delete(self) -> str:
        """
        Returns the endpoint path for delete requests.

        Returns:
            str: The endpoint path (e.g. "/vectors/delete")
        """
        pass

    @abstractmethod
    def _get_endpoint_stats(self) -> str:
        """
        Returns the endpoint path for record count requests.

        Returns:
            str: The endpoint path (e.g. "/describe_index_stats")
        """
        pass

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def translate_filter(self, metadata_filter: MetadataFilter) -> dict:
        """
        Translates an engine-neutral filter tree into the backend filter syntax.

        Args:
            metadata_filter (MetadataFilter): The filter tree.

        Returns:
            dict: The backend-specific filter.
        """
        if isinstance(metadata_filter, FilterClause):
            return self._translate_clause(metadata_filter)
        translated = [self.translate_filter(clause) for clause in metadata_filter.clauses]
        return self._translate_group(metadata_filter, translated)

    @abstractmethod
    def _translate_clause(self, clause: FilterClause) -> dict:
        """
        Translates a single equality clause.
        """
        pass

    @abstractmethod
    def _translate_group(self, group: FilterGroup, translated_clauses: list[dict]) -> dict:
        """
        Combines already translated clauses with the group's operator.
        """
        pass

    @abstractmethod
    def get_upsert_payload(self, records: list[VectorRecord]) -> dict:
        """
        Builds the request payload for an upsert of the given records.

        Args:
            records (list[VectorRecord]): The records of one batch.

        Returns:
            dict: The payload for the upsert request.
        """
        pass

    @abstractmethod
    def get_query_payload(self, vector: list[float], metadata_filter: MetadataFilter | None, top_k: int) -> dict:
        """
        Builds the request payload for a similarity query.

        Args:
            vector (list[float]): The query embedding.
            metadata_filter (MetadataFilter | None): Optional filter tree.
            top_k (int): Maximum number of matches.

        Returns:
            dict: The payload for the query request.
        """
        pass

    @abstractmethod
    def get_delete_ids_payload(self, record_ids: list[str]) -> dict:
        """
        Builds the request payload for a delete by record ids.
        """
        pass

    @abstractmethod
    def get_stats_payload(self) -> dict:
        """
        Builds the request payload for a record count request.
        """
        pass

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    @abstractmethod
    def extract_matches(self, raw_response: dict) -> list[VectorMatch]:
        """
        Extracts ranked matches from a raw query response, best first.
        """
        pass

    @abstractmethod
    def extract_record_count(self, raw_response: dict) -> int:
        """
        Extracts the record count from a raw stats response.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def do_existence_check(self) -> bool:
        """Check if the index exists in the rag backend.

        Returns:
            bool: True if the index exists, False otherwise.
        """
        pass

    @abstractmethod
    async def do_create_index(self, vector_size: int, distance: str) -> None:
        """Create the index in the rag backend.

        Raises:
            ConfigurationError: If the backend does not support creating indexes.
        """
        pass

    @abstractmethod
    async def do_delete_chunk_records(self, message_id: str, keep_ids: Iterable[str] = ()) -> None:
        """Delete the "<message_id>#<n>" chunk records of one message.

        Args:
            message_id (str): The message id.
            keep_ids (Iterable[str]): Chunk record ids to leave in place, e.g. a freshly upserted set.
        """
        pass

    async def do_ensure_index(self, vector_size: int, distance: str = "Cosine") -> None:
        """Make sure the configured index exists, creating it if the engine supports that.

        Args:
            vector_size (int): Dimension of the embedding vectors.
            distance (str): Distance metric of the index.

        Raises:
            ConfigurationError: If the index is absent and cannot be created.
        """
        if await self.do_existence_check():
            self.logging.debug("RAG index on %s already exists.", self.get_engine_name())
            return
        self.logging.info("RAG index on %s does not exist. Creating it (size=%d, distance=%s)...", self.get_engine_name(), vector_size, distance)
        await self.do_create_index(vector_size=vector_size, distance=distance)
        if not await self.do_existence_check():
            raise ConfigurationError(f"RAG index on '{self.get_engine_name()}' is still missing after creation.")

    async def do_upsert_records(self, records: list[VectorRecord]) -> None:
        """Upsert records in sequential batches.
        Inserts new records or replaces existing ones with the same id.

        Args:
            records (list[VectorRecord]): The records to upsert.

        Raises:
            ClientRequestError: If a batch was rejected. Earlier batches stay committed.
        """
        batch_size = max(1, int(self.settings.upsert_batch_size))
        for start in range(0, len(records), batch_size):
            if start > 0 and self.settings.upsert_batch_delay > 0:
                await asyncio.sleep(self.settings.upsert_batch_delay)
            batch = records[start:start + batch_size]
            await self.do_request(
                method=self._get_method_upsert(),
                json=self.get_upsert_payload(batch),
                endpoint=self._get_endpoint_upsert(),
                raise_on_error=True,
            )
            self.logging.debug("Upserted %d records to %s.", len(batch), self.get_engine_name())

    async def do_query(self, vector: list[float], metadata_filter: MetadataFilter | None = None, top_k: int = 10) -> list[VectorMatch]:
        """Run a metadata-filtered similarity query.

        Args:
            vector (list[float]): The query embedding.
            metadata_filter (MetadataFilter | None): Optional filter tree.
            top_k (int): Maximum number of matches.

        Returns:
            list[VectorMatch]: Matches ranked best first.
        """
        resp = await self.do_request(
            method="POST",
            json=self.get_query_payload(vector, metadata_filter, top_k),
            endpoint=self._get_endpoint_query(),
            raise_on_error=True,
        )
        return self.extract_matches(resp.json())

    async def do_delete_one(self, record_id: str) -> None:
        """Delete a single record by id. Deleting an unknown id is not an error."""
        await self.do_delete_ids([record_id])

    async def do_delete_ids(self, record_ids: list[str]) -> None:
        if not record_ids:
            return
        await self.do_request(
            method="POST",
            json=self.get_delete_ids_payload(record_ids),
            endpoint=self._get_endpoint_delete(),
            raise_on_error=True,
        )

    async def do_describe_stats(self) -> int:
        """Count the records stored in the configured index / namespace.

        Returns:
            int: Total number of records.
        """
        resp = await self.do_request(
            method="POST",
            json=self.get_stats_payload(),
            endpoint=self._get_endpoint_stats(),
            raise_on_error=True,
        )
        return self.extract_record_count(resp.json())
