from typing import Tuple

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientOllama(LLMClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Ollama"

    def _get_default_embed_model(self) -> str:
        return "nomic-embed-text"

    def _get_default_chat_model(self) -> str:
        return "llama3.1"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"Authorization": f"Bearer {self._api_key}"}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        # ollama lists local models under /api/tags
        return "/api/tags"

    def get_endpoint_embedding(self) -> str:
        return "/api/embed"

    def _get_endpoint_chat(self) -> str:
        return "/api/chat"

    def _get_endpoint_model_details(self) -> str:
        return "/api/show"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, texts: list[str]) -> dict:
        return {"model": self.embed_model, "input": texts}

    def get_chat_payload(self, messages: list[dict]) -> dict:
        """Build the Ollama chat request body.

        Args:
            messages (list[dict]): OpenAI-format messages.

        Returns:
            dict: {"model": "...", "messages": [...], "stream": False, "options": {...}}
        """
        return {
            "model": self.chat_model,
            "messages": messages,
            "stream": False,
            "options": {"temperature": self.temperature, "num_predict": int(self.max_tokens)},
        }

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        embeddings = response_data.get("embeddings")
        if not embeddings or not embeddings[0]:
            raise ValueError(
                "Ollama response does not contain valid embeddings. "
                "Response keys: %s" % list(response_data.keys())
            )
        return embeddings

    def extract_chat_response(self, response_data: dict) -> str:
        message = response_data.get("message") or {}
        content = message.get("content")
        if content is None:
            raise ValueError(
                "Ollama chat response does not contain a valid message. "
                "Response keys: %s" % list(response_data.keys())
            )
        return content

    async def do_fetch_embedding_vector_size(self) -> Tuple[int, str]:
        response = await self.do_request(
            method="POST",
            json={"name": self.embed_model},
            endpoint=self._get_endpoint_model_details(),
            raise_on_error=True,
        )
        info: dict = response.json().get("model_info", {})
        for key, value in info.items():
            if key.endswith(".embedding_length"):
                return int(value), self.embed_distance
        raise ValueError("Could not determine embedding vector size for model '%s'" % self.embed_model)
