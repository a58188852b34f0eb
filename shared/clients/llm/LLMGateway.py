"""Single point of contact with the embedding and completion provider.

All retry, backoff and timeout policy lives here. Callers see two fallible
operations that either return a result or raise GenerationUnavailableError.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

import httpx
from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.exceptions import ClientRequestError, GenerationUnavailableError, ProviderError, TransientProviderError
from shared.helper.CancellationToken import CancellationToken, gather_or_cancel
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import RAGSettings

T = TypeVar("T")


class LLMGateway:
    def __init__(self, helper_config: HelperConfig, llm_client: LLMClientInterface, settings: RAGSettings):
        self.logging = helper_config.get_logger()
        self.llm_client = llm_client
        self.settings = settings

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def embed(self, text: str, cancel_token: CancellationToken | None = None) -> list[float]:
        """Embed a single text.

        Args:
            text (str): The text to embed.
            cancel_token (CancellationToken | None): Aborts the call when cancelled.

        Returns:
            list[float]: The embedding vector.

        Raises:
            GenerationUnavailableError: If the provider failed permanently or retries were exhausted.
            OperationCancelledError: If the token was cancelled.
        """
        vectors = await self._call(
            "embed",
            lambda: self.llm_client.do_embed([text]),
            timeout=self.settings.embed_timeout,
            cancel_token=cancel_token,
        )
        return vectors[0]

    async def embed_many(self, texts: list[str], cancel_token: CancellationToken | None = None) -> list[list[float]]:
        """Embed several texts with one concurrent call per text.

        A failing text cancels the calls still in flight.

        Returns:
            list[list[float]]: Vectors in the same order as the texts.
        """
        return await gather_or_cancel(self.embed(text, cancel_token=cancel_token) for text in texts)

    async def complete(self, messages: list[dict], cancel_token: CancellationToken | None = None) -> str:
        """Run a chat completion.

        Args:
            messages (list[dict]): OpenAI-format chat messages.
            cancel_token (CancellationToken | None): Aborts the call when cancelled.

        Returns:
            str: The assistant reply text.

        Raises:
            GenerationUnavailableError: If the provider failed permanently or retries were exhausted.
            OperationCancelledError: If the token was cancelled.
        """
        return await self._call(
            "complete",
            lambda: self.llm_client.do_chat(messages),
            timeout=self.settings.complete_timeout,
            cancel_token=cancel_token,
        )

    ##########################################
    ################# OTHER ##################
    ##########################################

    async def _call(self, operation: str, request: Callable[[], Awaitable[T]], timeout: float, cancel_token: CancellationToken | None) -> T:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, int(self.settings.max_attempts))),
            wait=wait_exponential(multiplier=self.settings.retry_wait_multiplier, max=self.settings.retry_wait_max),
            retry=retry_if_exception_type(TransientProviderError),
            before_sleep=before_sleep_log(self.logging, logging.WARNING),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._attempt(operation, request, timeout, cancel_token)
        except TransientProviderError as e:
            self.logging.error("LLM %s failed after %d attempts: %s", operation, self.settings.max_attempts, e)
            raise GenerationUnavailableError(f"LLM {operation} unavailable after {self.settings.max_attempts} attempts: {e}") from e
        except ProviderError as e:
            self.logging.error("LLM %s failed: %s", operation, e)
            raise GenerationUnavailableError(f"LLM {operation} failed: {e}") from e

    async def _attempt(self, operation: str, request: Callable[[], Awaitable[T]], timeout: float, cancel_token: CancellationToken | None) -> T:
        """Run one attempt and classify its failure as transient or permanent."""
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        call = asyncio.wait_for(request(), timeout=timeout)
        try:
            if cancel_token is not None:
                return await cancel_token.run(call)
            return await call
        except asyncio.TimeoutError as e:
            raise TransientProviderError(f"LLM {operation} timed out after {timeout}s") from e
        except httpx.TransportError as e:
            raise TransientProviderError(f"LLM {operation} transport error: {e}") from e
        except ClientRequestError as e:
            if e.is_transient:
                raise TransientProviderError(f"LLM {operation} returned status {e.status_code}") from e
            raise ProviderError(f"LLM {operation} returned status {e.status_code}: {e.detail}") from e
        except ValueError as e:
            raise ProviderError(f"LLM {operation} returned an invalid response: {e}") from e
