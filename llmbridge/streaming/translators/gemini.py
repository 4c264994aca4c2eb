"""
llmbridge Gemini Translator - Google Generative Language API streams

streamGenerateContent?alt=sse sends whole GenerateContentResponse objects:

    data: {"candidates": [{"content": {"parts": [{"text": "Plan", "thought": true}]}}]}
    data: {"candidates": [{"content": {"parts": [{"functionCall": {"name": "f", "args": {}}}]}}]}
    data: {"candidates": [{"content": {...}, "finishReason": "STOP"}], "usageMetadata": {...}}

Function calls arrive whole; parts flagged "thought" are reasoning.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ...errors import map_stream_error
from ...models import ChatResponse, StopReason, Usage
from ...tools.models import FunctionCall, ToolCall
from ..models import StreamEvent
from .base import StreamState, StreamTranslator

logger = logging.getLogger(__name__)


FINISH_REASONS = {
    "STOP": StopReason.END_TURN,
    "MAX_TOKENS": StopReason.MAX_TOKENS,
    "SAFETY": StopReason.CONTENT_FILTER,
    "RECITATION": StopReason.CONTENT_FILTER,
    "BLOCKLIST": StopReason.CONTENT_FILTER,
    "PROHIBITED_CONTENT": StopReason.CONTENT_FILTER,
    "SPII": StopReason.CONTENT_FILTER,
}


def parse_usage(metadata: Optional[Dict[str, Any]]) -> Optional[Usage]:
    """Parse Gemini usageMetadata"""
    if not metadata:
        return None
    return Usage(
        prompt_tokens=metadata.get("promptTokenCount") or 0,
        completion_tokens=(metadata.get("candidatesTokenCount") or 0) + (metadata.get("thoughtsTokenCount") or 0),
        total_tokens=metadata.get("totalTokenCount") or 0,
        reasoning_tokens=metadata.get("thoughtsTokenCount"),
        cached_tokens=metadata.get("cachedContentTokenCount"),
    )


@dataclass
class GeminiState(StreamState):
    block_reason: Optional[str] = None
    call_count: int = 0


class GeminiTranslator(StreamTranslator):
    """Translator for Gemini SSE frames"""

    provider = "google"
    state_class = GeminiState

    def _translate(self, data: Dict[str, Any], event_name: Optional[str]) -> List[StreamEvent]:
        state = self.state

        if data.get("error"):
            return self.fail(map_stream_error(data["error"], self.provider_id))

        state.response_id = data.get("responseId") or state.response_id
        state.model = data.get("modelVersion") or state.model

        usage = parse_usage(data.get("usageMetadata"))
        if usage is not None:
            state.usage = usage

        block_reason = (data.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            state.block_reason = block_reason
            state.finish_reason = block_reason
            return self._complete()

        events: List[StreamEvent] = []
        candidates = data.get("candidates") or []
        if candidates:
            candidate = candidates[0]
            for part in (candidate.get("content") or {}).get("parts") or []:
                events.extend(self._translate_part(part))
            if candidate.get("finishReason"):
                state.finish_reason = candidate["finishReason"]

        events.extend(self._maybe_complete())
        return events

    def _translate_part(self, part: Dict[str, Any]) -> List[StreamEvent]:
        if part.get("functionCall"):
            call = part["functionCall"]
            name = call.get("name") or ""
            call_id = call.get("id") or f"call_{self.state.call_count}_{name}"
            self.state.call_count += 1
            return self._emit_tool_call(ToolCall(
                id=call_id,
                function=FunctionCall(name=name, arguments=json.dumps(call.get("args") or {})),
            ))

        text = part.get("text")
        if not isinstance(text, str) or not text:
            return []

        if part.get("thought"):
            self._track_reasoning({"thinking": text})
            return self._emit_thinking(text)

        self._track_reasoning({"content": text})
        return self._emit_content(text)

    def _build_response(self) -> ChatResponse:
        state = self.state
        tool_calls = self._completed_tool_calls()

        if tool_calls:
            stop_reason = StopReason.TOOL_USE
        elif state.block_reason:
            stop_reason = StopReason.CONTENT_FILTER
        else:
            stop_reason = FINISH_REASONS.get(state.finish_reason or "", StopReason.END_TURN)

        model = state.model or self.model
        return ChatResponse(
            text=state.text or None,
            thinking=state.thinking or None,
            tool_calls=tool_calls,
            usage=state.usage,
            stop_reason=stop_reason,
            finish_reason=state.finish_reason,
            model=model,
            response_id=state.response_id,
            provider_metadata=self._metadata(
                id=state.response_id,
                model=model,
                finishReason=state.finish_reason,
                blockReason=state.block_reason,
            ),
        )
