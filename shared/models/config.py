from pydantic import BaseModel, ConfigDict

from shared.helper.HelperConfig import HelperConfig


class EnvConfig(BaseModel):
    """
    Represents a single configuration parameter required for a env setting.

    Attributes:
        env_key (str): The key/name of the environment variable to read.
        val_type (str): The expected type of the environment variable's value. Supported types are "string", "number", "bool", and "list".
        default (str | int | bool | list | None): An optional default value if the environment variable is not set. If None, the variable is required and an error will be raised if it is not set.
    """

    env_key: str
    val_type: str
    default: str | int | float | bool | list | None = None


class RAGSettings(BaseModel):
    """Tuning knobs of the mention-query pipeline, resolved once at startup.

    The confidence weights, cap and RRF constant are heuristics and are
    exposed here so they can be recalibrated against real query logs.

    Attributes:
        n_queries:                 Number of reformulated queries generated per question.
        n_messages:                Number of content candidates fed into the prompt (M).
        max_messages_per_query:    Top-K for every expanded query search.
        rrf_k:                     Reciprocal rank fusion damping constant.
        style_probe_text:          Topic-neutral text embedded for style retrieval.
        style_top_k:               Top-K for the style exemplar search.
        confidence_top_n:          Number of leading candidates averaged for relevance.
        confidence_relevance_weight: Weight of the averaged fused score.
        confidence_coverage_weight:  Weight of the candidate-count coverage term.
        confidence_coverage_target:  Candidate count that yields full coverage.
        confidence_cap:            Upper bound of the reported confidence.
        max_tokens_per_chunk:      Token bound of a message chunk.
        tokenizer_encoding:        tiktoken encoding used by the chunker.
        metadata_content_max_chars: Cap for the literal content stored with a vector.
        upsert_batch_size:         Max records per vector upsert call.
        upsert_batch_delay:        Seconds between consecutive upsert batches.
        sync_page_size:            Messages fetched per ingestion page.
        sync_page_delay:           Seconds between ingestion pages.
        embed_timeout:             Per-call embedding timeout in seconds.
        complete_timeout:          Per-call completion timeout in seconds.
        max_attempts:              Total attempts per gateway call.
        retry_wait_multiplier:     Exponential backoff multiplier in seconds.
        retry_wait_max:            Upper bound of a single backoff wait in seconds.
        metrics_window_hours:      Rolling window for metrics aggregation.
        queue_job_max_attempts:    Attempts per background vectorization job.
        queue_retry_delay:         Seconds between attempts of a background job.
    """

    model_config = ConfigDict(frozen=True)

    # fusion retrieval
    n_queries: int = 5
    n_messages: int = 5
    max_messages_per_query: int = 10
    rrf_k: int = 60

    # style retrieval
    style_probe_text: str = "general conversation casual chat"
    style_top_k: int = 10

    # confidence
    confidence_top_n: int = 3
    confidence_relevance_weight: float = 0.6
    confidence_coverage_weight: float = 0.4
    confidence_coverage_target: int = 5
    confidence_cap: float = 0.95

    # chunking / indexing
    max_tokens_per_chunk: int = 1024
    tokenizer_encoding: str = "cl100k_base"
    metadata_content_max_chars: int = 8000
    upsert_batch_size: int = 100
    upsert_batch_delay: float = 0.1
    sync_page_size: int = 100
    sync_page_delay: float = 1.0

    # gateway
    embed_timeout: float = 30.0
    complete_timeout: float = 60.0
    max_attempts: int = 3
    retry_wait_multiplier: float = 0.5
    retry_wait_max: float = 8.0

    # metrics / background work
    metrics_window_hours: int = 24
    queue_job_max_attempts: int = 3
    queue_retry_delay: float = 2.0

    @classmethod
    def from_helper_config(cls, helper_config: HelperConfig) -> "RAGSettings":
        """Build the settings from environment variables, falling back to the defaults above.

        Args:
            helper_config (HelperConfig): The configuration helper.

        Returns:
            RAGSettings: The resolved settings.
        """
        defaults = cls()
        number = helper_config.get_number_val
        return cls(
            n_queries=number("FUSION_N_QUERIES", default=defaults.n_queries),
            n_messages=number("FUSION_N_MESSAGES", default=defaults.n_messages),
            max_messages_per_query=number("FUSION_MAX_MESSAGES_PER_QUERY", default=defaults.max_messages_per_query),
            rrf_k=number("FUSION_RRF_K", default=defaults.rrf_k),
            style_probe_text=helper_config.get_string_val("STYLE_PROBE_TEXT", default=defaults.style_probe_text),
            style_top_k=number("STYLE_TOP_K", default=defaults.style_top_k),
            confidence_top_n=number("CONFIDENCE_TOP_N", default=defaults.confidence_top_n),
            confidence_relevance_weight=number("CONFIDENCE_RELEVANCE_WEIGHT", default=defaults.confidence_relevance_weight),
            confidence_coverage_weight=number("CONFIDENCE_COVERAGE_WEIGHT", default=defaults.confidence_coverage_weight),
            confidence_coverage_target=number("CONFIDENCE_COVERAGE_TARGET", default=defaults.confidence_coverage_target),
            confidence_cap=number("CONFIDENCE_CAP", default=defaults.confidence_cap),
            max_tokens_per_chunk=number("RAG_MAX_TOKENS_PER_CHUNK", default=defaults.max_tokens_per_chunk),
            tokenizer_encoding=helper_config.get_string_val("RAG_TOKENIZER_ENCODING", default=defaults.tokenizer_encoding),
            metadata_content_max_chars=number("RAG_METADATA_CONTENT_MAX_CHARS", default=defaults.metadata_content_max_chars),
            upsert_batch_size=number("RAG_UPSERT_BATCH_SIZE", default=defaults.upsert_batch_size),
            upsert_batch_delay=number("RAG_UPSERT_BATCH_DELAY", default=defaults.upsert_batch_delay),
            sync_page_size=number("SYNC_PAGE_SIZE", default=defaults.sync_page_size),
            sync_page_delay=number("SYNC_PAGE_DELAY", default=defaults.sync_page_delay),
            embed_timeout=number("LLM_EMBED_TIMEOUT", default=defaults.embed_timeout),
            complete_timeout=number("LLM_COMPLETE_TIMEOUT", default=defaults.complete_timeout),
            max_attempts=number("LLM_MAX_ATTEMPTS", default=defaults.max_attempts),
            retry_wait_multiplier=number("LLM_RETRY_WAIT_MULTIPLIER", default=defaults.retry_wait_multiplier),
            retry_wait_max=number("LLM_RETRY_WAIT_MAX", default=defaults.retry_wait_max),
            metrics_window_hours=number("METRICS_WINDOW_HOURS", default=defaults.metrics_window_hours),
            queue_job_max_attempts=number("QUEUE_JOB_MAX_ATTEMPTS", default=defaults.queue_job_max_attempts),
            queue_retry_delay=number("QUEUE_RETRY_DELAY", default=defaults.queue_retry_delay),
        )
