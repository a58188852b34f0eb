from abc import abstractmethod

import httpx
from typing import Tuple
from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig


class LLMClientInterface(ClientInterface):
    """Embedding + chat completion provider.

    Only the raw request/response mapping lives here. Retry, timeout and
    cancellation policy belongs to LLMGateway.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # embedding config
        self.embed_distance = helper_config.get_string_val("LLM_DISTANCE", default="Cosine")
        self.embed_model = helper_config.get_string_val("LLM_EMBED_MODEL", default=self._get_default_embed_model())

        # chat / completion config
        self.chat_model = helper_config.get_string_val("LLM_CHAT_MODEL", default=self._get_default_chat_model())
        self.temperature = helper_config.get_number_val("LLM_TEMPERATURE", default=0.7)
        self.max_tokens = helper_config.get_number_val("LLM_MAX_TOKENS", default=4000)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "llm"

    @abstractmethod
    def _get_default_embed_model(self) -> str:
        """Returns the embedding model used when LLM_EMBED_MODEL is not set."""
        pass

    @abstractmethod
    def _get_default_chat_model(self) -> str:
        """Returns the chat model used when LLM_CHAT_MODEL is not set."""
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """Returns the endpoint path for embedding requests (e.g. "/api/embed")."""
        pass

    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        """Returns the endpoint path for chat/completion requests (e.g. "/api/chat")."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            dict: JSON-serialisable request body (e.g. {"model": "...", "input": [...]}).
        """
        pass

    @abstractmethod
    def get_chat_payload(self, messages: list[dict]) -> dict:
        """Build the backend-specific request body for a chat/completion request.

        Args:
            messages (list[dict]): OpenAI-format messages
                (e.g. [{"role": "user", "content": "..."}]).

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a raw embedding API response.

        Response format differs by backend:
        - Ollama /api/embed: {"embeddings": [[...], [...]]}, already ordered
        - OpenAI /v1/embeddings: {"data": [{"embedding": [...], "index": 0}]}, needs sorting

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the input texts.

        Raises:
            ValueError: If the response does not contain valid embeddings.
        """
        pass

    @abstractmethod
    def extract_chat_response(self, response_data: dict) -> str:
        """Extract the assistant reply text from a raw chat API response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            str: The assistant reply text.

        Raises:
            ValueError: If the response does not contain a valid reply.
        """
        pass

    @abstractmethod
    async def do_fetch_embedding_vector_size(self) -> Tuple[int, str]:
        """Fetch the output vector dimension and distance metric of the configured embedding model.

        Returns:
            Tuple[int, str]: (vector_dimension, distance_metric)
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        """Send an embedding request and return the extracted vectors.

        Args:
            texts (list[str] | str): One or more texts to embed.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the inputs.

        Raises:
            ClientRequestError: If the provider returned a non-2xx status.
            ValueError: If the response does not contain valid embeddings.
        """
        texts = [texts] if isinstance(texts, str) else texts
        body = self.get_embed_payload(texts)
        response = await self.do_request(
            method="POST",
            endpoint=self.get_endpoint_embedding(),
            json=body,
            raise_on_error=True,
        )
        vectors = self.extract_embeddings_from_response(response.json())
        if len(vectors) != len(texts):
            raise ValueError("Embedding response contains %d vectors for %d inputs." % (len(vectors), len(texts)))
        return vectors

    async def do_chat(self, messages: list[dict]) -> str:
        """Send a chat/completion request and return the assistant reply text.

        Args:
            messages (list[dict]): OpenAI-format messages
                (e.g. [{"role": "user", "content": "..."}]).

        Returns:
            str: The assistant reply text.

        Raises:
            ClientRequestError: If the provider returned a non-2xx status.
            ValueError: If the response does not contain a valid reply.
        """
        body = self.get_chat_payload(messages)
        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_chat(),
            json=body,
            raise_on_error=True,
        )
        return self.extract_chat_response(response.json())

    async def do_fetch_models(self) -> httpx.Response:
        """Fetch the list of available models from the backend."""
        return await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck())
