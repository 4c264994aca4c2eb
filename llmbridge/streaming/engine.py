"""
llmbridge Stream Engine - Drive a translator from a raw chunk source

    bytes -> Utf8StreamDecoder -> SseChunkParser -> StreamTranslator -> StreamEvents

translate_stream() guarantees that the returned event stream:
- ends with exactly one CompletionEvent or ErrorEvent
- never raises: transport failures and cancellation become an ErrorEvent
- stops reading (and closes the source) as soon as the terminal event is out

Usage:
    translator = ChatCompletionsTranslator(provider_id="openai", model="gpt-4o")
    async for event in translate_stream(response.aiter_bytes(), translator, cancel_token=token):
        ...
"""

import asyncio
import logging
from typing import AsyncIterable, AsyncIterator, List, Optional, Union

from ..cancellation import CancellationToken, iterate_cancellable
from ..errors import CancelledError, map_transport_exception
from .models import StreamEvent
from .sse import SseChunkParser, SseLine
from .translators.base import StreamTranslator
from .utf8 import Utf8StreamDecoder

logger = logging.getLogger(__name__)

Chunk = Union[bytes, bytearray, memoryview, str]


class StreamPipeline:
    """
    Synchronous decoding pipeline for one stream.

    Feed raw chunks, get events; call close() at end of input.
    """

    def __init__(self, translator: StreamTranslator):
        self.translator = translator
        self.decoder = Utf8StreamDecoder()
        self.parser = SseChunkParser(provider=translator.provider_id)

    @property
    def is_finished(self) -> bool:
        return self.translator.is_finished

    def feed(self, chunk: Chunk) -> List[StreamEvent]:
        text = chunk if isinstance(chunk, str) else self.decoder.decode(chunk)
        return self._feed_lines(self.parser.parse(text))

    def close(self) -> List[StreamEvent]:
        """Flush buffered bytes and lines, then complete if nothing terminal was seen"""
        events = self._feed_lines(self.parser.parse(self.decoder.flush()))
        if self.parser.has_pending:
            logger.debug(f"{self.translator.provider_id} stream ended mid-line, parsing trailing line")
        events.extend(self._feed_lines(self.parser.flush()))
        events.extend(self.translator.finish())
        return events

    def _feed_lines(self, lines: List[SseLine]) -> List[StreamEvent]:
        events: List[StreamEvent] = []
        for line in lines:
            events.extend(self.translator.feed(line))
            if self.translator.is_finished:
                break
        return events


async def translate_stream(
    chunks: AsyncIterable[Chunk],
    translator: StreamTranslator,
    cancel_token: Optional[CancellationToken] = None,
) -> AsyncIterator[StreamEvent]:
    """
    Translate a raw chunk source into normalized events.

    Args:
        chunks: Byte (or already decoded string) chunks from the transport
        translator: Fresh translator for this stream
        cancel_token: Optional token checked before and during the stream

    Yields:
        StreamEvents, the last one being a Completion or an Error
    """
    provider = translator.provider_id

    if cancel_token is not None and cancel_token.is_cancelled:
        for event in translator.fail(CancelledError(cancel_token.reason, provider=provider)):
            yield event
        return

    pipeline = StreamPipeline(translator)
    source = iterate_cancellable(chunks, cancel_token, provider)
    try:
        async for chunk in source:
            for event in pipeline.feed(chunk):
                yield event
            if pipeline.is_finished:
                return

        for event in pipeline.close():
            yield event
    except asyncio.CancelledError:
        # The consuming task itself was cancelled; let asyncio unwind it
        raise
    except Exception as e:
        error = map_transport_exception(e, provider)
        for event in translator.fail(error):
            yield event
    finally:
        await source.aclose()
