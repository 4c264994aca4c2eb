"""
llmbridge Ollama Translator - Newline-delimited JSON from /api/chat

    {"model": "qwen3", "message": {"role": "assistant", "thinking": "Hmm"}, "done": false}
    {"model": "qwen3", "message": {"role": "assistant", "content": "Hi"}, "done": false}
    {"model": "qwen3", "message": {"tool_calls": [{"function": {"name": "f", "arguments": {}}}]}, "done": false}
    {"done": true, "done_reason": "stop", "prompt_eval_count": 12, "eval_count": 4}

Ollama sends tool calls whole, with arguments as an object.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from ...errors import ProviderError
from ...models import ChatResponse, StopReason, Usage
from ...tools.models import FunctionCall, ToolCall
from ..models import StreamEvent
from .base import StreamTranslator

logger = logging.getLogger(__name__)


def parse_usage(chunk: Dict[str, Any]) -> Optional[Usage]:
    """Parse Ollama eval counters"""
    if "prompt_eval_count" not in chunk and "eval_count" not in chunk:
        return None
    return Usage(
        prompt_tokens=chunk.get("prompt_eval_count") or 0,
        completion_tokens=chunk.get("eval_count") or 0,
    )


class OllamaTranslator(StreamTranslator):
    """Translator for Ollama /api/chat JSONL frames"""

    provider = "ollama"

    def _translate(self, data: Dict[str, Any], event_name: Optional[str]) -> List[StreamEvent]:
        state = self.state

        if data.get("error"):
            return self.fail(ProviderError(str(data["error"]), self.provider_id, raw=data))

        state.model = data.get("model") or state.model

        events: List[StreamEvent] = []
        message = data.get("message") or {}

        self._track_reasoning(message)

        thinking = message.get("thinking")
        if isinstance(thinking, str) and thinking:
            events.extend(self._emit_thinking(thinking))

        content = message.get("content")
        if isinstance(content, str) and content:
            events.extend(self._emit_content(content))

        for raw in message.get("tool_calls") or []:
            events.extend(self._emit_tool_call(self._tool_call(raw)))

        if data.get("done"):
            state.finish_reason = data.get("done_reason") or "stop"
            state.usage = parse_usage(data)
            events.extend(self._complete())

        return events

    def _tool_call(self, raw: Dict[str, Any]) -> ToolCall:
        function = raw.get("function") or {}
        name = function.get("name") or ""
        arguments = function.get("arguments")
        if arguments is None:
            arguments = ""
        elif not isinstance(arguments, str):
            arguments = json.dumps(arguments)

        call_id = raw.get("id") or f"call_{len(self.state.aggregator)}_{name}"
        return ToolCall(id=call_id, function=FunctionCall(name=name, arguments=arguments))

    def _build_response(self) -> ChatResponse:
        state = self.state
        tool_calls = self._completed_tool_calls()

        if tool_calls:
            stop_reason = StopReason.TOOL_USE
        elif state.finish_reason == "length":
            stop_reason = StopReason.MAX_TOKENS
        else:
            stop_reason = StopReason.END_TURN

        model = state.model or self.model
        return ChatResponse(
            text=state.text or None,
            thinking=state.thinking or None,
            tool_calls=tool_calls,
            usage=state.usage,
            stop_reason=stop_reason,
            finish_reason=state.finish_reason,
            model=model,
            provider_metadata=self._metadata(model=model, doneReason=state.finish_reason),
        )
