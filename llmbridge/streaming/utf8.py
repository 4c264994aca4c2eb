"""
llmbridge UTF-8 Stream Decoder - Incremental decoding of raw HTTP byte chunks

HTTP bodies arrive in arbitrary byte chunks, so a multi-byte UTF-8 code point
can be split across two chunks. The decoder holds back any truncated trailing
sequence until the rest of it arrives.

Usage:
    decoder = Utf8StreamDecoder()
    async for chunk in response.aiter_bytes():
        text = decoder.decode(chunk)
        ...
    text = decoder.flush()
"""

import logging
from typing import AsyncIterable, AsyncIterator, Union

logger = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray, memoryview]


def _sequence_length(lead: int) -> int:
    """Expected length of a UTF-8 sequence from its lead byte, 0 if not a valid lead"""
    if lead & 0xE0 == 0xC0:
        return 2
    if lead & 0xF0 == 0xE0:
        return 3
    if lead & 0xF8 == 0xF0:
        return 4
    return 0


def find_complete_prefix_end(data: BytesLike) -> int:
    """
    Index of the last byte of the longest prefix with no truncated sequence.

    Scans backward: an ASCII byte ends a complete prefix; a lead byte ends one
    when all of its continuation bytes are present. Anything else (continuation
    bytes, invalid or incomplete leads) keeps the scan moving backward.

    Returns:
        Byte index (inclusive), or -1 when no complete prefix exists
    """
    size = len(data)
    for i in range(size - 1, -1, -1):
        byte = data[i]
        if byte <= 0x7F:
            return i
        if byte & 0xC0 != 0xC0:
            continue

        length = _sequence_length(byte)
        if length == 0 or i + length > size:
            continue

        if all(data[j] & 0xC0 == 0x80 for j in range(i + 1, i + length)):
            return i + length - 1

    return -1


class Utf8StreamDecoder:
    """
    Stateful UTF-8 decoder for one byte stream.

    The internal buffer only ever holds the trailing bytes of an incomplete
    multi-byte sequence from the previous chunk.
    """

    def __init__(self):
        self._buffer = bytearray()

    def decode(self, data: BytesLike) -> str:
        """
        Decode a chunk, holding back any truncated trailing code point.

        Args:
            data: Raw bytes from the transport

        Returns:
            The decodable text so far (may be empty)
        """
        if not data:
            return ""

        self._buffer.extend(data)
        end = find_complete_prefix_end(self._buffer)
        if end < 0:
            return ""

        complete = bytes(self._buffer[:end + 1])
        del self._buffer[:end + 1]

        try:
            return complete.decode("utf-8")
        except UnicodeDecodeError as e:
            # Invalid bytes inside the stream are dropped, valid text is kept
            logger.debug(f"Dropping invalid UTF-8 bytes in stream chunk: {e}")
            return complete.decode("utf-8", errors="ignore")

    def flush(self) -> str:
        """
        Decode whatever is left at end of stream and clear the buffer.

        Trailing bytes that are not valid UTF-8 are discarded and an empty
        string is returned instead of raising.
        """
        if not self._buffer:
            return ""

        remaining = bytes(self._buffer)
        self._buffer.clear()
        try:
            return remaining.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug(f"Discarding {len(remaining)} undecodable trailing byte(s)")
            return ""

    def reset(self) -> None:
        """Drop any buffered bytes"""
        self._buffer.clear()

    @property
    def has_buffered_bytes(self) -> bool:
        return len(self._buffer) > 0

    @property
    def buffered_byte_count(self) -> int:
        return len(self._buffer)


async def decode_stream(chunks: AsyncIterable[BytesLike]) -> AsyncIterator[str]:
    """Adapt an async byte-chunk source into decoded text chunks"""
    decoder = Utf8StreamDecoder()
    async for chunk in chunks:
        text = decoder.decode(chunk)
        if text:
            yield text

    tail = decoder.flush()
    if tail:
        yield tail
