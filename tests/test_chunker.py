import pytest

from fakes import CharEncoding
from services.message_rag_sync.Chunker import chunk_message_text


@pytest.fixture
def encoding() -> CharEncoding:
    return CharEncoding()


class TestChunkMessageText:
    def test_short_text_is_one_chunk_with_original_content(self, encoding):
        chunks = chunk_message_text("m1", "hello world", max_tokens=1024, encoding=encoding)
        assert len(chunks) == 1
        assert chunks[0].content == "hello world"
        assert chunks[0].chunk_index == 0
        assert chunks[0].total_chunks == 1
        assert (chunks[0].chunk_start, chunks[0].chunk_end) == (0, 11)

    def test_text_exactly_at_bound_is_not_split(self, encoding):
        chunks = chunk_message_text("m1", "a" * 10, max_tokens=10, encoding=encoding)
        assert len(chunks) == 1

    def test_long_text_is_split_into_contiguous_windows(self, encoding):
        text = "x" * 2000
        chunks = chunk_message_text("m1", text, max_tokens=1024, encoding=encoding)

        assert [(c.chunk_start, c.chunk_end) for c in chunks] == [(0, 1024), (1024, 2000)]
        assert all(c.total_chunks == 2 for c in chunks)
        assert [c.chunk_index for c in chunks] == [0, 1]
        assert "".join(c.content for c in chunks) == text

    @pytest.mark.parametrize("length,max_tokens", [(11, 5), (25, 5), (7, 1), (100, 33)])
    def test_windows_cover_every_token_once(self, encoding, length, max_tokens):
        chunks = chunk_message_text("m1", "abcdefghij" * 10 + "z" * length, max_tokens=max_tokens, encoding=encoding)

        assert chunks[0].chunk_start == 0
        assert chunks[-1].chunk_end == 100 + length
        for previous, current in zip(chunks, chunks[1:]):
            assert previous.chunk_end == current.chunk_start
        assert all(0 < c.chunk_end - c.chunk_start <= max_tokens for c in chunks)

    def test_empty_text_yields_single_empty_chunk(self, encoding):
        chunks = chunk_message_text("m1", "", encoding=encoding)
        assert len(chunks) == 1
        assert chunks[0].content == ""
        assert chunks[0].chunk_end == 0

    def test_invalid_bound_is_rejected(self, encoding):
        with pytest.raises(ValueError):
            chunk_message_text("m1", "text", max_tokens=0, encoding=encoding)
