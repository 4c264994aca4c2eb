"""
llmbridge Chat-Completions Translator - OpenAI-style SSE streams

Used for OpenAI /v1/chat/completions and every compatible vendor
(DeepSeek, Groq, xAI, OpenRouter, vLLM, ...):

    data: {"id": "...", "choices": [{"delta": {"content": "Hi"}, "finish_reason": null}]}
    data: {"choices": [{"delta": {}, "finish_reason": "stop"}]}
    data: {"choices": [], "usage": {"prompt_tokens": 9, "completion_tokens": 2}}
    data: [DONE]

The finish_reason frame may be followed by a usage-only tail frame, so the
Completion is emitted once both are known, at [DONE], or when the upstream
closes, whichever happens first. Deltas after finish_reason are ignored.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ...errors import map_stream_error
from ...models import ChatResponse, StopReason, Usage
from ..models import StreamEvent
from ..reasoning import extract_reasoning_content
from ..tool_calls import ToolCallStreamState
from .base import StreamState, StreamTranslator, translate_body

logger = logging.getLogger(__name__)


FINISH_REASONS = {
    "stop": StopReason.END_TURN,
    "length": StopReason.MAX_TOKENS,
    "tool_calls": StopReason.TOOL_USE,
    "function_call": StopReason.TOOL_USE,  # Legacy
    "content_filter": StopReason.CONTENT_FILTER,
}


def parse_stop_reason(finish_reason: Optional[str], has_tool_calls: bool = False) -> StopReason:
    """Parse a Chat-Completions finish_reason to StopReason"""
    if finish_reason is None:
        return StopReason.TOOL_USE if has_tool_calls else StopReason.END_TURN
    return FINISH_REASONS.get(finish_reason, StopReason.END_TURN)


def parse_usage(usage: Optional[Dict[str, Any]]) -> Optional[Usage]:
    """Parse a Chat-Completions usage object"""
    if not usage:
        return None
    completion_details = usage.get("completion_tokens_details") or {}
    prompt_details = usage.get("prompt_tokens_details") or {}
    return Usage(
        prompt_tokens=usage.get("prompt_tokens") or 0,
        completion_tokens=usage.get("completion_tokens") or 0,
        total_tokens=usage.get("total_tokens") or 0,
        reasoning_tokens=completion_details.get("reasoning_tokens"),
        cached_tokens=prompt_details.get("cached_tokens") or usage.get("prompt_cache_hit_tokens"),
    )


@dataclass
class ChatCompletionsState(StreamState):
    tool_state: ToolCallStreamState = field(default_factory=ToolCallStreamState)
    system_fingerprint: Optional[str] = None


class ChatCompletionsTranslator(StreamTranslator):
    """
    Translator for Chat-Completions SSE frames.

    Example:
        translator = ChatCompletionsTranslator(provider_id="deepseek", model="deepseek-reasoner")
        for line in parser.parse(text):
            for event in translator.feed(line):
                ...
        for event in translator.finish():
            ...
    """

    provider = "openai"
    state_class = ChatCompletionsState

    def _translate(self, data: Dict[str, Any], event_name: Optional[str]) -> List[StreamEvent]:
        state = self.state

        if data.get("error"):
            return self.fail(map_stream_error(data["error"], self.provider_id))

        state.response_id = state.response_id or data.get("id")
        state.model = data.get("model") or state.model
        state.system_fingerprint = data.get("system_fingerprint") or state.system_fingerprint

        usage = parse_usage(data.get("usage"))
        if usage is not None:
            state.usage = usage

        events: List[StreamEvent] = []
        choices = data.get("choices") or []
        if choices:
            if state.finish_reason is not None:
                logger.debug(f"Ignoring {self.provider_id} delta after finish_reason")
            else:
                choice = choices[0]
                delta = choice.get("delta") or choice.get("message") or {}
                events.extend(self._translate_delta(delta))
                if choice.get("finish_reason"):
                    state.finish_reason = choice["finish_reason"]

        events.extend(self._maybe_complete())
        return events

    def _translate_delta(self, delta: Dict[str, Any]) -> List[StreamEvent]:
        state = self.state
        events: List[StreamEvent] = []

        self._track_reasoning(delta)

        reasoning = extract_reasoning_content(delta)
        if reasoning:
            events.extend(self._emit_thinking(reasoning))

        content = delta.get("content")
        if isinstance(content, str) and content:
            events.extend(self._emit_content(content))

        for raw in delta.get("tool_calls") or []:
            if not isinstance(raw, dict):
                continue
            call = state.tool_state.process_delta(raw)
            if call is not None:
                events.extend(self._emit_tool_call(call))

        return events

    def _build_response(self) -> ChatResponse:
        state = self.state
        tool_calls = self._completed_tool_calls()
        return ChatResponse(
            text=state.text or None,
            thinking=state.thinking or None,
            tool_calls=tool_calls,
            usage=state.usage,
            stop_reason=parse_stop_reason(state.finish_reason, bool(tool_calls)),
            finish_reason=state.finish_reason,
            model=state.model or self.model,
            response_id=state.response_id,
            provider_metadata=self._metadata(
                id=state.response_id,
                model=state.model or self.model,
                systemFingerprint=state.system_fingerprint,
                finishReason=state.finish_reason,
            ),
        )


def parse_chat_completion(
    body: Dict[str, Any],
    translator: ChatCompletionsTranslator,
) -> ChatResponse:
    """
    Parse a non-streaming Chat-Completions body.

    The message is fed through the translator as one delta so reasoning
    fields, inline <think> tags and tool name mapping behave exactly as they
    do when streaming.
    """
    choices = body.get("choices") or []
    choice = choices[0] if choices else {}
    message = dict(choice.get("message") or {})

    tool_calls = message.pop("tool_calls", None) or []
    message["tool_calls"] = [
        {"index": i, **raw} for i, raw in enumerate(tool_calls) if isinstance(raw, dict)
    ]

    frame = {
        "id": body.get("id"),
        "model": body.get("model"),
        "system_fingerprint": body.get("system_fingerprint"),
        "usage": body.get("usage"),
        "choices": [{"delta": message, "finish_reason": choice.get("finish_reason")}],
    }
    if body.get("error"):
        frame["error"] = body["error"]

    response = translate_body(translator, [frame])
    response.raw_response = body
    return response
