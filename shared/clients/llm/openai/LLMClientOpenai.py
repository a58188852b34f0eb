from typing import Tuple

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientOpenai(LLMClientInterface):
    """OpenAI-compatible REST provider (/v1/embeddings, /v1/chat/completions)."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.openai.com", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")
        self._embed_dimensions = self.get_config_val("EMBED_DIMENSIONS", default=1536, val_type="number")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Openai"

    def _get_default_embed_model(self) -> str:
        return "text-embedding-3-small"

    def _get_default_chat_model(self) -> str:
        return "gpt-4o-mini-2024-07-18"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.openai.com"),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
            EnvConfig(env_key="EMBED_DIMENSIONS", val_type="number", default=1536),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/v1/models"

    def get_endpoint_embedding(self) -> str:
        return "/v1/embeddings"

    def _get_endpoint_chat(self) -> str:
        return "/v1/chat/completions"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, texts: list[str]) -> dict:
        return {"model": self.embed_model, "input": texts}

    def get_chat_payload(self, messages: list[dict]) -> dict:
        return {
            "model": self.chat_model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": int(self.max_tokens),
        }

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        data = response_data.get("data")
        if not data:
            raise ValueError(
                "OpenAI response does not contain embeddings. "
                "Response keys: %s" % list(response_data.keys())
            )
        # items carry their input position; the API does not promise ordering
        ordered = sorted(data, key=lambda item: item.get("index", 0))
        embeddings = [item.get("embedding") for item in ordered]
        if any(not vector for vector in embeddings):
            raise ValueError("OpenAI response contains an empty embedding.")
        return embeddings

    def extract_chat_response(self, response_data: dict) -> str:
        choices = response_data.get("choices") or []
        if not choices:
            raise ValueError(
                "OpenAI chat response does not contain any choices. "
                "Response keys: %s" % list(response_data.keys())
            )
        content = (choices[0].get("message") or {}).get("content")
        if content is None:
            raise ValueError("OpenAI chat response does not contain message content.")
        return content

    async def do_fetch_embedding_vector_size(self) -> Tuple[int, str]:
        # the models endpoint does not report dimensions; they are configured
        return int(self._embed_dimensions), self.embed_distance
