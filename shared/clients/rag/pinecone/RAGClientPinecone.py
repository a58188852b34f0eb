from collections.abc import Iterable

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.MetadataFilter import FilterClause, FilterGroup, MetadataFilter
from shared.clients.rag.models.VectorRecord import VectorMatch, VectorMetadata, VectorRecord
from shared.exceptions import ConfigurationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig, RAGSettings


class RAGClientPinecone(RAGClientInterface):
    """Pinecone data plane client.

    BASE_URL is the index host (e.g. "https://my-index-abc123.svc.us-east1-gcp.pinecone.io").
    Records are isolated by namespace ("production", "test", ...).
    """

    DELETE_BATCH_SIZE = 1000

    def __init__(self, helper_config: HelperConfig, settings: RAGSettings | None = None):
        super().__init__(helper_config=helper_config, settings=settings)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")
        self._namespace = self.get_config_val("NAMESPACE", default="production", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Pinecone"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
            EnvConfig(env_key="NAMESPACE", val_type="string", default="production"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Api-Key": self._api_key}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/describe_index_stats"

    def _get_endpoint_upsert(self) -> str:
        return "/vectors/upsert"

    def _get_endpoint_query(self) -> str:
        return "/query"

    def _get_endpoint_delete(self) -> str:
        return "/vectors/delete"

    def _get_endpoint_stats(self) -> str:
        return "/describe_index_stats"

    def _get_endpoint_list(self) -> str:
        return "/vectors/list"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def _translate_clause(self, clause: FilterClause) -> dict:
        return {clause.key: {"$eq": clause.value}}

    def _translate_group(self, group: FilterGroup, translated_clauses: list[dict]) -> dict:
        return {f"${group.operator}": translated_clauses}

    def get_upsert_payload(self, records: list[VectorRecord]) -> dict:
        return {
            "vectors": [
                {"id": record.id, "values": record.values, "metadata": record.metadata.model_dump()}
                for record in records
            ],
            "namespace": self._namespace,
        }

    def get_query_payload(self, vector: list[float], metadata_filter: MetadataFilter | None, top_k: int) -> dict:
        payload = {
            "vector": vector,
            "topK": top_k,
            "includeMetadata": True,
            "namespace": self._namespace,
        }
        if metadata_filter is not None:
            payload["filter"] = self.translate_filter(metadata_filter)
        return payload

    def get_delete_ids_payload(self, record_ids: list[str]) -> dict:
        return {"ids": record_ids, "namespace": self._namespace}

    def get_stats_payload(self) -> dict:
        return {}

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_matches(self, raw_response: dict) -> list[VectorMatch]:
        return [
            VectorMatch(
                record_id=match["id"],
                score=float(match.get("score", 0.0)),
                metadata=VectorMetadata(**(match.get("metadata") or {})),
            )
            for match in raw_response.get("matches", [])
        ]

    def extract_record_count(self, raw_response: dict) -> int:
        namespaces: dict = raw_response.get("namespaces") or {}
        if self._namespace in namespaces:
            return int(namespaces[self._namespace].get("vectorCount", 0))
        if namespaces:
            # the namespace has no records yet
            return 0
        return int(raw_response.get("totalVectorCount", 0))

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_existence_check(self) -> bool:
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_stats())
        return resp.is_success

    async def do_create_index(self, vector_size: int, distance: str) -> None:
        raise ConfigurationError(
            f"Pinecone index at '{self._base_url}' does not exist. "
            f"Create it (dimension {vector_size}, metric {distance.lower()}) in the Pinecone console before starting."
        )

    async def do_list_ids(self, prefix: str) -> list[str]:
        """List every record id in the namespace starting with the given prefix.

        Args:
            prefix (str): The id prefix.

        Returns:
            list[str]: All matching record ids across all pages.
        """
        ids: list[str] = []
        pagination_token: str | None = None
        while True:
            params = {"prefix": prefix, "namespace": self._namespace}
            if pagination_token:
                params["paginationToken"] = pagination_token
            resp = await self.do_request(method="GET", endpoint=self._get_endpoint_list(), params=params, raise_on_error=True)
            data = resp.json()
            ids.extend(vector["id"] for vector in data.get("vectors", []))
            pagination_token = (data.get("pagination") or {}).get("next")
            if not pagination_token:
                break
        return ids

    async def do_delete_chunk_records(self, message_id: str, keep_ids: Iterable[str] = ()) -> None:
        # serverless indexes cannot delete by metadata filter
        keep = set(keep_ids)
        ids = [i for i in await self.do_list_ids(prefix=f"{message_id}#") if i not in keep]
        for start in range(0, len(ids), self.DELETE_BATCH_SIZE):
            await self.do_delete_ids(ids[start:start + self.DELETE_BATCH_SIZE])
        if ids:
            self.logging.debug("Deleted %d chunk records of message %s from Pinecone.", len(ids), message_id)
