"""Token-bounded message chunking.

Splits message text into contiguous, non-overlapping windows of at most
max_tokens tokens. Decoding a token window does not always reproduce the
exact source bytes around window boundaries, so every chunk's text is
treated as independently valid content.
"""

from functools import lru_cache
from typing import Protocol

import tiktoken

from shared.models.rag import MessageChunk

DEFAULT_MAX_TOKENS = 1024
DEFAULT_ENCODING = "cl100k_base"


class TokenEncoding(Protocol):
    def encode(self, text: str) -> list[int]: ...

    def decode(self, tokens: list[int]) -> str: ...


@lru_cache(maxsize=4)
def get_encoding(name: str = DEFAULT_ENCODING) -> TokenEncoding:
    """Load a tiktoken encoding once per process."""
    return tiktoken.get_encoding(name)


def chunk_message_text(message_id: str, text: str, max_tokens: int = DEFAULT_MAX_TOKENS, encoding: TokenEncoding | None = None) -> list[MessageChunk]:
    """Split a message into token-bounded chunks.

    Args:
        message_id (str): Id of the owning message.
        text (str): The message text.
        max_tokens (int): Upper bound of tokens per chunk.
        encoding (TokenEncoding | None): Tokenizer, defaults to the cl100k_base encoding.

    Returns:
        list[MessageChunk]: Chunks in order. Texts at or below the bound yield
            exactly one chunk holding the original text.

    Raises:
        ValueError: If max_tokens is smaller than 1.
    """
    if max_tokens < 1:
        raise ValueError(f"max_tokens must be at least 1, got {max_tokens}")
    encoding = encoding or get_encoding()
    tokens = encoding.encode(text or "")

    if len(tokens) <= max_tokens:
        return [MessageChunk(
            message_id=message_id,
            chunk_index=0,
            total_chunks=1,
            chunk_start=0,
            chunk_end=len(tokens),
            content=text or "",
        )]

    # first pass: partition into windows
    windows: list[tuple[int, int]] = []
    for start in range(0, len(tokens), max_tokens):
        windows.append((start, min(start + max_tokens, len(tokens))))

    # second pass: stamp the final count on every chunk
    return [
        MessageChunk(
            message_id=message_id,
            chunk_index=index,
            total_chunks=len(windows),
            chunk_start=start,
            chunk_end=end,
            content=encoding.decode(tokens[start:end]),
        )
        for index, (start, end) in enumerate(windows)
    ]
