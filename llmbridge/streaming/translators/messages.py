"""
llmbridge Messages Translator - Anthropic Messages API streams

Block-oriented SSE:

    event: message_start          {"message": {"id", "model", "usage"}}
    event: content_block_start    {"index": 0, "content_block": {"type": "text" | "thinking" |
                                   "redacted_thinking" | "tool_use" | "server_tool_use" | ...}}
    event: content_block_delta    {"index": 0, "delta": {"type": "text_delta" | "thinking_delta" |
                                   "input_json_delta" | "signature_delta" | "citations_delta"}}
    event: content_block_stop     {"index": 0}
    event: message_delta          {"delta": {"stop_reason"}, "usage": {...}}
    event: message_stop

The type of the block opened at an index decides how later deltas for that
index are read. Server tools (web search, web fetch, ...) and their result
blocks are kept in provider metadata and never surface as local tool calls.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ...errors import map_stream_error
from ...models import ChatResponse, StopReason, Usage
from ...tools.models import FunctionCall, ToolCall
from ..models import StreamEvent
from .base import StreamState, StreamTranslator

logger = logging.getLogger(__name__)


STOP_REASONS = {
    "end_turn": StopReason.END_TURN,
    "max_tokens": StopReason.MAX_TOKENS,
    "stop_sequence": StopReason.STOP_SEQUENCE,
    "tool_use": StopReason.TOOL_USE,
    "pause_turn": StopReason.PAUSE_TURN,
    "refusal": StopReason.CONTENT_FILTER,
}

# Tool names Anthropic executes server side when no function tool claims them
SERVER_TOOL_NAMES = {"web_search", "web_fetch", "code_execution"}

_USAGE_COUNTERS = (
    "input_tokens",
    "output_tokens",
    "cache_creation_input_tokens",
    "cache_read_input_tokens",
)


def parse_usage(usage: Optional[Dict[str, Any]]) -> Optional[Usage]:
    """Parse an Anthropic usage object"""
    if not usage:
        return None
    input_tokens = usage.get("input_tokens") or 0
    cache_read = usage.get("cache_read_input_tokens") or 0
    cache_write = usage.get("cache_creation_input_tokens") or 0
    return Usage(
        prompt_tokens=input_tokens + cache_read + cache_write,
        completion_tokens=usage.get("output_tokens") or 0,
        cached_tokens=cache_read or None,
    )


def merge_usage(current: Dict[str, Any], update: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Merge a usage update; message_delta counters are cumulative"""
    merged = dict(current)
    for key, value in (update or {}).items():
        if value is None:
            continue
        if key in _USAGE_COUNTERS:
            merged[key] = max(value, merged.get(key) or 0)
        else:
            merged[key] = value
    return merged


@dataclass
class ActiveBlock:
    """A content block between content_block_start and content_block_stop"""
    block_type: str
    block: Dict[str, Any]
    text: str = ""
    input_json: str = ""
    signature: str = ""
    citations: List[Dict[str, Any]] = field(default_factory=list)
    tool_call_id: Optional[str] = None
    tool_name: str = ""
    prefilled_input: bool = False
    provider_tool: bool = False

    def to_content_block(self) -> Dict[str, Any]:
        block = dict(self.block)
        if self.block_type == "text":
            block["text"] = self.text
            if self.citations:
                block["citations"] = self.citations
        elif self.block_type == "thinking":
            block["thinking"] = self.text
            if self.signature:
                block["signature"] = self.signature
        elif self.block_type in ("tool_use", "server_tool_use") and not self.prefilled_input:
            if self.input_json:
                try:
                    block["input"] = json.loads(self.input_json)
                except json.JSONDecodeError:
                    logger.debug(f"Tool input for block {block.get('id')} is not valid JSON")
                    block["input"] = {}
        return block


@dataclass
class MessagesState(StreamState):
    blocks: Dict[int, ActiveBlock] = field(default_factory=dict)
    content_blocks: List[Dict[str, Any]] = field(default_factory=list)
    usage_raw: Dict[str, Any] = field(default_factory=dict)
    stop_sequence: Optional[str] = None


class MessagesTranslator(StreamTranslator):
    """Translator for Anthropic Messages API SSE events"""

    provider = "anthropic"
    state_class = MessagesState

    def _translate(self, data: Dict[str, Any], event_name: Optional[str]) -> List[StreamEvent]:
        state = self.state
        event_type = data.get("type") or event_name or ""

        if event_type == "message_start":
            message = data.get("message") or {}
            state.response_id = message.get("id") or state.response_id
            state.model = message.get("model") or state.model
            state.usage_raw = merge_usage(state.usage_raw, message.get("usage"))
            return []

        if event_type == "content_block_start":
            return self._on_block_start(data.get("index", 0), data.get("content_block") or {})

        if event_type == "content_block_delta":
            return self._on_block_delta(data.get("index", 0), data.get("delta") or {})

        if event_type == "content_block_stop":
            block = state.blocks.pop(data.get("index", 0), None)
            if block is not None:
                state.content_blocks.append(block.to_content_block())
            return []

        if event_type == "message_delta":
            delta = data.get("delta") or {}
            if delta.get("stop_reason"):
                state.finish_reason = delta["stop_reason"]
            if delta.get("stop_sequence"):
                state.stop_sequence = delta["stop_sequence"]
            state.usage_raw = merge_usage(state.usage_raw, data.get("usage"))
            return []

        if event_type == "message_stop":
            return self._complete()

        if event_type == "error":
            return self.fail(map_stream_error(data.get("error") or data, self.provider_id))

        # ping and unknown events
        return []

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def _is_provider_tool(self, request_name: str) -> bool:
        mapping = self.tool_name_mapping
        if mapping.is_provider_tool_request_name(request_name):
            return True
        return request_name in SERVER_TOOL_NAMES and mapping.original_function_name(request_name) is None

    def _on_block_start(self, index: int, content_block: Dict[str, Any]) -> List[StreamEvent]:
        block_type = content_block.get("type") or ""
        block = ActiveBlock(block_type=block_type, block=dict(content_block))
        self.state.blocks[index] = block

        if block_type == "text":
            block.text = content_block.get("text") or ""
            self._track_reasoning({"content": block.text})
            return self._emit_content(block.text)

        if block_type == "thinking":
            self._track_reasoning({"thinking": content_block.get("thinking") or ""})
            block.text = content_block.get("thinking") or ""
            block.signature = content_block.get("signature") or ""
            return self._emit_thinking(block.text)

        if block_type == "tool_use":
            request_name = content_block.get("name") or ""
            block.tool_call_id = content_block.get("id") or f"toolu_{index}"
            block.tool_name = request_name
            if self._is_provider_tool(request_name):
                block.provider_tool = True
                logger.debug(f"Provider tool call '{request_name}' kept out of local tool calls")
                return []

            prefilled = content_block.get("input")
            arguments = ""
            if prefilled:
                block.prefilled_input = True
                arguments = json.dumps(prefilled)
            return self._emit_tool_call(ToolCall(
                id=block.tool_call_id,
                function=FunctionCall(name=request_name, arguments=arguments),
            ))

        if block_type == "server_tool_use":
            block.provider_tool = True
            block.tool_call_id = content_block.get("id")
            block.tool_name = content_block.get("name") or ""
            return []

        # redacted_thinking, *_tool_result and future block types are recorded only
        return []

    def _on_block_delta(self, index: int, delta: Dict[str, Any]) -> List[StreamEvent]:
        block = self.state.blocks.get(index)
        delta_type = delta.get("type")

        if delta_type == "text_delta":
            text = delta.get("text") or ""
            if block is not None:
                block.text += text
            self._track_reasoning({"content": text})
            return self._emit_content(text)

        if delta_type == "thinking_delta":
            thinking = delta.get("thinking") or ""
            if block is not None:
                block.text += thinking
            self._track_reasoning({"thinking": thinking})
            return self._emit_thinking(thinking)

        if block is None:
            logger.debug(f"Delta {delta_type} for unknown block index {index}")
            return []

        if delta_type == "signature_delta":
            block.signature += delta.get("signature") or ""
            return []

        if delta_type == "citations_delta":
            citation = delta.get("citation")
            if citation:
                block.citations.append(citation)
            return []

        if delta_type == "input_json_delta":
            partial = delta.get("partial_json") or ""
            block.input_json += partial
            if block.provider_tool or block.prefilled_input or not partial or block.tool_call_id is None:
                return []
            return self._emit_tool_call(ToolCall(
                id=block.tool_call_id,
                function=FunctionCall(name=block.tool_name, arguments=partial),
            ))

        return []

    # ------------------------------------------------------------------
    # Response
    # ------------------------------------------------------------------

    def _build_response(self) -> ChatResponse:
        state = self.state

        # Blocks still open when the stream ended
        for index in sorted(state.blocks):
            state.content_blocks.append(state.blocks[index].to_content_block())
        state.blocks.clear()

        tool_calls = self._completed_tool_calls()
        stop_reason = STOP_REASONS.get(state.finish_reason or "", StopReason.END_TURN)
        if stop_reason == StopReason.TOOL_USE and not tool_calls:
            stop_reason = StopReason.END_TURN
        elif tool_calls and state.finish_reason is None:
            stop_reason = StopReason.TOOL_USE

        model = state.model or self.model
        return ChatResponse(
            text=state.text or None,
            thinking=state.thinking or None,
            tool_calls=tool_calls,
            usage=parse_usage(state.usage_raw),
            stop_reason=stop_reason,
            finish_reason=state.finish_reason,
            model=model,
            response_id=state.response_id,
            provider_metadata=self._metadata(
                id=state.response_id,
                model=model,
                stopReason=state.finish_reason,
                stopSequence=state.stop_sequence,
                usage=state.usage_raw,
                contentBlocks=state.content_blocks,
            ),
        )


def message_to_frames(message: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Expand a non-streaming Messages API body into the equivalent stream frames.

    Lets the non-streaming path share the translator's block handling.
    """
    if message.get("type") == "error":
        return [message]

    frames: List[Dict[str, Any]] = [{
        "type": "message_start",
        "message": {
            "id": message.get("id"),
            "model": message.get("model"),
            "usage": message.get("usage") or {},
        },
    }]

    for index, block in enumerate(message.get("content") or []):
        frames.append({"type": "content_block_start", "index": index, "content_block": block})
        frames.append({"type": "content_block_stop", "index": index})

    frames.append({
        "type": "message_delta",
        "delta": {
            "stop_reason": message.get("stop_reason"),
            "stop_sequence": message.get("stop_sequence"),
        },
    })
    frames.append({"type": "message_stop"})
    return frames
