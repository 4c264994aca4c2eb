"""
Tests for llmbridge UTF-8 stream decoding.

Tests:
- find_complete_prefix_end boundaries
- Code points split across chunks
- Invalid bytes and flush behaviour
"""

import pytest

from llmbridge.streaming.utf8 import (
    Utf8StreamDecoder,
    decode_stream,
    find_complete_prefix_end,
)


# ============================================================================
# find_complete_prefix_end
# ============================================================================

class TestFindCompletePrefixEnd:

    def test_empty(self):
        assert find_complete_prefix_end(b"") == -1

    def test_ascii(self):
        assert find_complete_prefix_end(b"abc") == 2

    def test_complete_multibyte(self):
        data = "é".encode("utf-8")
        assert find_complete_prefix_end(data) == 1

    def test_truncated_three_byte_sequence(self):
        data = b"a" + "€".encode("utf-8")[:2]
        assert find_complete_prefix_end(data) == 0

    def test_only_truncated_lead(self):
        assert find_complete_prefix_end("😀".encode("utf-8")[:1]) == -1

    def test_complete_four_byte_sequence(self):
        data = "x😀".encode("utf-8")
        assert find_complete_prefix_end(data) == len(data) - 1


# ============================================================================
# Utf8StreamDecoder
# ============================================================================

class TestUtf8StreamDecoder:

    def test_empty_chunk(self):
        decoder = Utf8StreamDecoder()
        assert decoder.decode(b"") == ""
        assert decoder.has_buffered_bytes is False

    def test_plain_ascii(self):
        decoder = Utf8StreamDecoder()
        assert decoder.decode(b"hello") == "hello"

    def test_split_two_byte_code_point(self):
        decoder = Utf8StreamDecoder()
        data = "café".encode("utf-8")
        assert decoder.decode(data[:-1]) == "caf"
        assert decoder.buffered_byte_count == 1
        assert decoder.decode(data[-1:]) == "é"
        assert decoder.has_buffered_bytes is False

    def test_emoji_fed_byte_by_byte(self):
        decoder = Utf8StreamDecoder()
        data = "😀".encode("utf-8")
        out = [decoder.decode(data[i:i + 1]) for i in range(len(data))]
        assert out == ["", "", "", "😀"]

    def test_any_split_point_reassembles(self):
        text = "Grüße, 世界 👋!"
        data = text.encode("utf-8")
        for cut in range(len(data) + 1):
            decoder = Utf8StreamDecoder()
            result = decoder.decode(data[:cut]) + decoder.decode(data[cut:]) + decoder.flush()
            assert result == text

    def test_invalid_bytes_dropped_mid_stream(self):
        decoder = Utf8StreamDecoder()
        assert decoder.decode(b"ok\xff\xfeyes") == "okyes"

    def test_flush_returns_empty_for_truncated_tail(self):
        decoder = Utf8StreamDecoder()
        decoder.decode(b"a" + "€".encode("utf-8")[:2])
        assert decoder.flush() == ""
        assert decoder.has_buffered_bytes is False

    def test_flush_empty(self):
        assert Utf8StreamDecoder().flush() == ""

    def test_reset(self):
        decoder = Utf8StreamDecoder()
        decoder.decode("é".encode("utf-8")[:1])
        decoder.reset()
        assert decoder.has_buffered_bytes is False
        assert decoder.decode(b"x") == "x"

    def test_accepts_bytearray_and_memoryview(self):
        decoder = Utf8StreamDecoder()
        assert decoder.decode(bytearray(b"ab")) == "ab"
        assert decoder.decode(memoryview(b"cd")) == "cd"


class TestDecodeStream:

    @pytest.mark.asyncio
    async def test_decodes_async_chunks(self):
        data = "naïve ☕".encode("utf-8")

        async def chunks():
            for i in range(len(data)):
                yield data[i:i + 1]

        out = [text async for text in decode_stream(chunks())]
        assert "".join(out) == "naïve ☕"
        assert "" not in out
