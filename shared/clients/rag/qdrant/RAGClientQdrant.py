import uuid
from collections.abc import Iterable

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.MetadataFilter import FilterClause, FilterGroup, MetadataFilter, all_of, equals
from shared.clients.rag.models.VectorRecord import VectorMatch, VectorMetadata, VectorRecord
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig, RAGSettings


class RAGClientQdrant(RAGClientInterface):
    def __init__(self, helper_config: HelperConfig, settings: RAGSettings | None = None):
        super().__init__(helper_config=helper_config, settings=settings)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._collection_name = self.get_config_val("COLLECTION", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Qdrant"

    def _get_method_upsert(self) -> str:
        return "PUT"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default=None)
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"api-key": f"{self._api_key}"}
        else:
            return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_upsert(self) -> str:
        return f"/collections/{self._collection_name}/points"

    def _get_endpoint_query(self) -> str:
        return f"/collections/{self._collection_name}/points/search"

    def _get_endpoint_delete(self) -> str:
        return f"/collections/{self._collection_name}/points/delete"

    def _get_endpoint_stats(self) -> str:
        return f"/collections/{self._collection_name}/points/count"

    def _get_endpoint_check_collection_existence(self) -> str:
        return f"/collections/{self._collection_name}/exists"

    def _get_endpoint_create_collection(self) -> str:
        return f"/collections/{self._collection_name}"

    ################ IDS ##################
    @staticmethod
    def to_point_id(record_id: str) -> str:
        """Qdrant only accepts unsigned ints and UUIDs as point ids.

        Returns:
            str: A deterministic UUID derived from the record id.
        """
        return str(uuid.uuid5(uuid.NAMESPACE_URL, record_id))

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def _translate_clause(self, clause: FilterClause) -> dict:
        return {"key": clause.key, "match": {"value": clause.value}}

    def _translate_group(self, group: FilterGroup, translated_clauses: list[dict]) -> dict:
        return {"must" if group.operator == "and" else "should": translated_clauses}

    def get_upsert_payload(self, records: list[VectorRecord]) -> dict:
        return {
            "points": [
                {
                    "id": self.to_point_id(record.id),
                    "vector": record.values,
                    "payload": {"record_id": record.id, **record.metadata.model_dump()},
                }
                for record in records
            ]
        }

    def get_query_payload(self, vector: list[float], metadata_filter: MetadataFilter | None, top_k: int) -> dict:
        payload = {"vector": vector, "limit": top_k, "with_payload": True}
        if metadata_filter is not None:
            translated = self.translate_filter(metadata_filter)
            # a top-level filter must be a group
            payload["filter"] = translated if isinstance(metadata_filter, FilterGroup) else {"must": [translated]}
        return payload

    def get_delete_ids_payload(self, record_ids: list[str]) -> dict:
        return {"points": [self.to_point_id(record_id) for record_id in record_ids]}

    def get_stats_payload(self) -> dict:
        return {"exact": True}

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_matches(self, raw_response: dict) -> list[VectorMatch]:
        matches = []
        for point in raw_response.get("result", []):
            payload = dict(point.get("payload") or {})
            record_id = payload.pop("record_id", None) or str(point.get("id"))
            matches.append(VectorMatch(
                record_id=record_id,
                score=float(point.get("score", 0.0)),
                metadata=VectorMetadata(**payload),
            ))
        return matches

    def extract_record_count(self, raw_response: dict) -> int:
        return int(raw_response.get("result", {}).get("count", 0))

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_existence_check(self) -> bool:
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_check_collection_existence(), raise_on_error=True)
        return bool(resp.json().get("result", {}).get("exists"))

    async def do_create_index(self, vector_size: int, distance: str) -> None:
        await self.do_request(
            method="PUT",
            json={
                "vectors": {
                    "size": vector_size,
                    "distance": distance}},
            endpoint=self._get_endpoint_create_collection(),
            raise_on_error=True)

    async def do_delete_chunk_records(self, message_id: str, keep_ids: Iterable[str] = ()) -> None:
        chunk_filter = self.translate_filter(all_of(equals("message_id", message_id), equals("is_chunked", True)))
        keep_points = [self.to_point_id(record_id) for record_id in keep_ids]
        if keep_points:
            chunk_filter["must_not"] = [{"has_id": keep_points}]
        await self.do_request(
            method="POST",
            json={"filter": chunk_filter},
            endpoint=self._get_endpoint_delete(),
            raise_on_error=True,
        )
