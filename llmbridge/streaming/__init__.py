"""
llmbridge Streaming - Normalize vendor SSE/JSONL streams into typed events

Provides:
- Utf8StreamDecoder: Incremental UTF-8 decoding across chunk boundaries
- SseChunkParser: SSE / JSONL line parsing with partial-line buffering
- ToolCallAggregator: Merge streamed tool call fragments
- Stream translators: One state machine per vendor wire format
- StreamPartsAdapter: StreamEvents -> StreamParts with block boundaries
- translate_stream: bytes -> events with a guaranteed terminal event

Usage:
    from llmbridge.streaming import ChatCompletionsTranslator, translate_stream

    translator = ChatCompletionsTranslator(model="gpt-4o")
    async for event in translate_stream(response.aiter_bytes(), translator):
        if event.type == EventType.TEXT_DELTA:
            print(event.delta, end="")
"""

from .models import (
    EventType,
    PartType,
    StreamEvent,
    StreamPart,
    TextDeltaEvent,
    ThinkingDeltaEvent,
    ToolCallDeltaEvent,
    CompletionEvent,
    ErrorEvent,
    TextStartPart,
    TextDeltaPart,
    TextEndPart,
    ReasoningStartPart,
    ReasoningDeltaPart,
    ReasoningEndPart,
    ToolCallStartPart,
    ToolCallDeltaPart,
    ToolCallEndPart,
    ToolResultPart,
    ProviderMetadataPart,
    FinishPart,
    ErrorPart,
    is_terminal_event,
    is_terminal_part,
)
from .utf8 import Utf8StreamDecoder, decode_stream
from .sse import SseChunkParser, SseLine
from .tool_calls import ToolCallAggregator, ToolCallStreamState, is_parsable_json
from .reasoning import (
    ThinkTagParser,
    contains_thinking_tags,
    extract_reasoning_content,
    extract_thinking_content,
    filter_thinking_content,
)
from .translators import (
    StreamTranslator,
    ChatCompletionsTranslator,
    ResponsesTranslator,
    MessagesTranslator,
    GeminiTranslator,
    OllamaTranslator,
)
from .adapter import StreamPartsAdapter, adapt_stream_parts
from .engine import StreamPipeline, translate_stream

__all__ = [
    # Models
    "EventType",
    "PartType",
    "StreamEvent",
    "StreamPart",
    "TextDeltaEvent",
    "ThinkingDeltaEvent",
    "ToolCallDeltaEvent",
    "CompletionEvent",
    "ErrorEvent",
    "TextStartPart",
    "TextDeltaPart",
    "TextEndPart",
    "ReasoningStartPart",
    "ReasoningDeltaPart",
    "ReasoningEndPart",
    "ToolCallStartPart",
    "ToolCallDeltaPart",
    "ToolCallEndPart",
    "ToolResultPart",
    "ProviderMetadataPart",
    "FinishPart",
    "ErrorPart",
    "is_terminal_event",
    "is_terminal_part",
    # Decoding
    "Utf8StreamDecoder",
    "decode_stream",
    "SseChunkParser",
    "SseLine",
    # Tool calls
    "ToolCallAggregator",
    "ToolCallStreamState",
    "is_parsable_json",
    # Reasoning
    "ThinkTagParser",
    "contains_thinking_tags",
    "extract_reasoning_content",
    "extract_thinking_content",
    "filter_thinking_content",
    # Translators
    "StreamTranslator",
    "ChatCompletionsTranslator",
    "ResponsesTranslator",
    "MessagesTranslator",
    "GeminiTranslator",
    "OllamaTranslator",
    # Adapter / engine
    "StreamPartsAdapter",
    "adapt_stream_parts",
    "StreamPipeline",
    "translate_stream",
]
