"""Typed errors raised across the chat RAG bridge.

Hierarchy:
  ChatRAGError                : base class for everything below.
  ConfigurationError          : missing credentials / absent index. Fatal at boot.
  ClientRequestError          : a backend answered with a non-2xx status.
  TransientProviderError      : timeout / rate limit / 5xx from the ML provider. Retried by the gateway.
  ProviderError               : non-retryable ML provider failure.
  GenerationUnavailableError  : the gateway gave up. Aborts the enclosing operation.
  NotFoundError               : channel / profile / message absent.
  AuthorizationError          : target user is not a member of the queried channel.
  RetrievalError              : the vector store failed during a query.
  PartialBatchFailure         : a batch ingestion run stopped at a cursor.
  OperationCancelledError     : the caller cancelled the request.
"""


class ChatRAGError(Exception):
    """Base class for all errors raised by the bridge."""


class ConfigurationError(ChatRAGError, ValueError):
    """A required configuration value is missing or invalid."""


class ClientRequestError(ChatRAGError):
    """A backend request returned a non-2xx status.

    Attributes:
        url (str): The requested URL.
        status_code (int): The HTTP status code returned by the backend.
    """

    TRANSIENT_STATUS_CODES = {408, 429, 500, 502, 503, 504}

    def __init__(self, url: str, status_code: int, detail: str = ""):
        self.url = url
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Request to {url} failed with status {status_code}")

    @property
    def is_transient(self) -> bool:
        """Whether retrying the request may succeed (rate limit or server side error)."""
        return self.status_code in self.TRANSIENT_STATUS_CODES


class TransientProviderError(ChatRAGError):
    """Timeout or rate limit from the embedding or completion provider."""


class ProviderError(ChatRAGError):
    """Non-retryable failure from the embedding or completion provider."""


class GenerationUnavailableError(ChatRAGError):
    """The embedding or completion capability could not produce a result."""


class NotFoundError(ChatRAGError):
    """A channel, profile or message required by an operation does not exist."""


class AuthorizationError(ChatRAGError):
    """The target user may not be queried in the given channel."""


class RetrievalError(ChatRAGError):
    """The vector index failed while answering a query."""


class PartialBatchFailure(ChatRAGError):
    """A batch ingestion run aborted. Batches before the cursor remain committed.

    Attributes:
        cursor (str | None): Id of the last message of the last fully committed page.
            None when no page was committed. Resume with start_after=cursor.
        messages_processed (int): Messages committed before the failure.
        chunks_processed (int): Chunks committed before the failure.
    """

    def __init__(self, cursor: str | None, messages_processed: int, chunks_processed: int, reason: str):
        self.cursor = cursor
        self.messages_processed = messages_processed
        self.chunks_processed = chunks_processed
        super().__init__(
            f"Batch ingestion aborted after cursor {cursor!r} "
            f"({messages_processed} messages, {chunks_processed} chunks committed): {reason}"
        )


class OperationCancelledError(ChatRAGError):
    """The caller abandoned the operation."""
