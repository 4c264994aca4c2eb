"""
llmbridge Stream Adapter - Turn StreamEvents into StreamParts

Single-pass transducer that inserts explicit block boundaries:

    TextDelta("Hel"), TextDelta("lo"), ToolCallDelta(call_1), Completion
        -> TextStart, TextDelta("Hel"), TextDelta("lo"),
           ToolCallStart(call_1),
           TextEnd("Hello"), ToolCallEnd(call_1), ProviderMetadata, Finish

On completion the open blocks are closed in order (text, reasoning, tool
calls in start order) before Finish. An Error is forwarded as-is without
closing open blocks.
"""

import logging
from typing import AsyncIterable, AsyncIterator, List, Set

from .models import (
    CompletionEvent,
    ErrorEvent,
    ErrorPart,
    FinishPart,
    ProviderMetadataPart,
    ReasoningDeltaPart,
    ReasoningEndPart,
    ReasoningStartPart,
    StreamEvent,
    StreamPart,
    TextDeltaEvent,
    TextDeltaPart,
    TextEndPart,
    TextStartPart,
    ThinkingDeltaEvent,
    ToolCallDeltaEvent,
    ToolCallDeltaPart,
    ToolCallEndPart,
    ToolCallStartPart,
)

logger = logging.getLogger(__name__)


class StreamPartsAdapter:
    """Stateful StreamEvent -> StreamPart transducer for one stream"""

    def __init__(self):
        self.in_text = False
        self.in_reasoning = False
        self.finished = False
        self._full_text: List[str] = []
        self._full_reasoning: List[str] = []
        self._started_tool_calls: List[str] = []
        self._ended_tool_calls: Set[str] = set()

    def feed(self, event: StreamEvent) -> List[StreamPart]:
        """
        Convert one event into parts.

        Raises:
            TypeError: Unknown event variant
        """
        if self.finished:
            logger.debug(f"Dropping {event.type.value} event after terminal part")
            return []

        if isinstance(event, TextDeltaEvent):
            parts: List[StreamPart] = []
            if not self.in_text:
                self.in_text = True
                parts.append(TextStartPart())
            self._full_text.append(event.delta)
            parts.append(TextDeltaPart(event.delta))
            return parts

        elif isinstance(event, ThinkingDeltaEvent):
            parts = []
            if not self.in_reasoning:
                self.in_reasoning = True
                parts.append(ReasoningStartPart())
            self._full_reasoning.append(event.delta)
            parts.append(ReasoningDeltaPart(event.delta))
            return parts

        elif isinstance(event, ToolCallDeltaEvent):
            call = event.tool_call
            if call.id not in self._started_tool_calls:
                self._started_tool_calls.append(call.id)
                return [ToolCallStartPart(call)]
            return [ToolCallDeltaPart(call)]

        elif isinstance(event, CompletionEvent):
            self.finished = True
            return self._close_blocks() + self._finish_parts(event)

        elif isinstance(event, ErrorEvent):
            self.finished = True
            return [ErrorPart(event.error)]

        else:
            raise TypeError(f"Unknown stream event: {event!r}")

    def _close_blocks(self) -> List[StreamPart]:
        parts: List[StreamPart] = []
        if self.in_text:
            self.in_text = False
            parts.append(TextEndPart("".join(self._full_text)))
        if self.in_reasoning:
            self.in_reasoning = False
            parts.append(ReasoningEndPart("".join(self._full_reasoning)))
        for call_id in self._started_tool_calls:
            if call_id not in self._ended_tool_calls:
                self._ended_tool_calls.add(call_id)
                parts.append(ToolCallEndPart(call_id))
        return parts

    def _finish_parts(self, event: CompletionEvent) -> List[StreamPart]:
        parts: List[StreamPart] = []
        metadata = event.response.provider_metadata
        if metadata:
            parts.append(ProviderMetadataPart(metadata))
        parts.append(FinishPart(event.response))
        return parts


async def adapt_stream_parts(events: AsyncIterable[StreamEvent]) -> AsyncIterator[StreamPart]:
    """
    Adapt an event stream into a parts stream.

    Example:
        async for part in adapt_stream_parts(client.stream_completion(messages)):
            if part.type == PartType.TEXT_DELTA:
                print(part.delta, end="")
    """
    adapter = StreamPartsAdapter()
    async for event in events:
        for part in adapter.feed(event):
            yield part
        if adapter.finished:
            break
