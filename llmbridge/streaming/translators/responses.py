"""
llmbridge Responses Translator - OpenAI Responses API streams

The Responses API streams typed envelopes; the event type drives branching
rather than the payload shape:

    {"type": "response.created", "response": {...}}
    {"type": "response.output_item.added", "output_index": 0, "item": {"type": "function_call", ...}}
    {"type": "response.function_call_arguments.delta", "item_id": "fc_1", "delta": "{\\"q\\""}
    {"type": "response.output_text.delta", "delta": "Hello"}
    {"type": "response.reasoning_summary_text.delta", "delta": "Thinking..."}
    {"type": "response.completed", "response": {"output": [...], "usage": {...}}}

Provider-native tools (web search, file search, code interpreter, ...) show
up as output items of their own type and are never surfaced as local tool
calls; they are reported in provider metadata instead.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from ...errors import map_stream_error
from ...models import ChatResponse, StopReason, Usage
from ...tools.models import FunctionCall, ToolCall
from ..models import StreamEvent
from .base import StreamState, StreamTranslator

logger = logging.getLogger(__name__)


# Output item types executed by OpenAI itself
PROVIDER_ITEM_TYPES = {
    "web_search_call",
    "file_search_call",
    "code_interpreter_call",
    "computer_call",
    "image_generation_call",
    "mcp_call",
    "mcp_list_tools",
    "local_shell_call",
}

TEXT_DELTA_EVENTS = {"response.output_text.delta", "response.refusal.delta"}

REASONING_DELTA_EVENTS = {
    "response.reasoning_summary_text.delta",
    "response.reasoning_text.delta",
}


def parse_usage(usage: Optional[Dict[str, Any]]) -> Optional[Usage]:
    """Parse a Responses API usage object"""
    if not usage:
        return None
    output_details = usage.get("output_tokens_details") or {}
    input_details = usage.get("input_tokens_details") or {}
    return Usage(
        prompt_tokens=usage.get("input_tokens") or 0,
        completion_tokens=usage.get("output_tokens") or 0,
        total_tokens=usage.get("total_tokens") or 0,
        reasoning_tokens=output_details.get("reasoning_tokens"),
        cached_tokens=input_details.get("cached_tokens"),
    )


def output_text(output: List[Dict[str, Any]]) -> str:
    """Concatenate the output_text parts of message items"""
    texts = []
    for item in output:
        if item.get("type") != "message":
            continue
        for part in item.get("content") or []:
            if part.get("type") == "output_text" and part.get("text"):
                texts.append(part["text"])
    return "".join(texts)


def reasoning_summary(output: List[Dict[str, Any]]) -> str:
    """Concatenate the summary texts of reasoning items"""
    texts = []
    for item in output:
        if item.get("type") != "reasoning":
            continue
        for part in item.get("summary") or []:
            if part.get("text"):
                texts.append(part["text"])
    return "\n\n".join(texts)


@dataclass
class ResponsesState(StreamState):
    # Growing output array of finished items
    output: List[Dict[str, Any]] = field(default_factory=list)
    call_ids_by_item: Dict[str, str] = field(default_factory=dict)
    call_ids_by_index: Dict[int, str] = field(default_factory=dict)
    call_names: Dict[str, str] = field(default_factory=dict)
    streamed_arguments: Set[str] = field(default_factory=set)
    provider_items: Set[str] = field(default_factory=set)
    response: Optional[Dict[str, Any]] = None


class ResponsesTranslator(StreamTranslator):
    """Translator for Responses API SSE events"""

    provider = "openai"
    state_class = ResponsesState

    def _translate(self, data: Dict[str, Any], event_name: Optional[str]) -> List[StreamEvent]:
        state = self.state
        event_type = data.get("type") or event_name or ""

        if event_type in ("response.created", "response.in_progress"):
            response = data.get("response") or {}
            state.response_id = response.get("id") or state.response_id
            state.model = response.get("model") or state.model
            return []

        if event_type in TEXT_DELTA_EVENTS:
            return self._emit_text_delta(data.get("delta") or "")

        if event_type in REASONING_DELTA_EVENTS:
            self._track_reasoning({"reasoning": data.get("delta") or ""})
            return self._emit_thinking(data.get("delta") or "")

        if event_type == "response.output_item.added":
            return self._on_item_added(data.get("item") or {}, data.get("output_index"))

        if event_type == "response.function_call_arguments.delta":
            return self._on_arguments(data, data.get("delta") or "")

        if event_type == "response.function_call_arguments.done":
            call_id = self._call_id_for(data)
            if call_id and call_id not in state.streamed_arguments:
                return self._on_arguments(data, data.get("arguments") or "")
            return []

        if event_type == "response.output_item.done":
            return self._on_item_done(data.get("item") or {}, data.get("output_index"))

        if event_type in ("response.completed", "response.incomplete"):
            state.response = data.get("response") or {}
            return self._complete()

        if event_type == "response.failed":
            response = data.get("response") or {}
            error = response.get("error") or {"message": "Response failed"}
            return self.fail(map_stream_error(error, self.provider_id))

        if event_type == "error":
            error = data.get("error") or {"code": data.get("code"), "message": data.get("message")}
            return self.fail(map_stream_error(error, self.provider_id))

        return []

    def _emit_text_delta(self, delta: str) -> List[StreamEvent]:
        self._track_reasoning({"content": delta})
        return self._emit_content(delta)

    # ------------------------------------------------------------------
    # Function call items
    # ------------------------------------------------------------------

    def _is_provider_item(self, item: Dict[str, Any]) -> bool:
        item_type = item.get("type")
        if item_type in PROVIDER_ITEM_TYPES:
            return True
        if item_type == "function_call":
            return self.tool_name_mapping.is_provider_tool_request_name(item.get("name") or "")
        return False

    def _register_call(self, item: Dict[str, Any], output_index: Optional[int]) -> str:
        state = self.state
        call_id = item.get("call_id") or item.get("id") or f"call_{len(state.call_names)}"
        if item.get("id"):
            state.call_ids_by_item[item["id"]] = call_id
        if output_index is not None:
            state.call_ids_by_index[output_index] = call_id
        state.call_names[call_id] = self.tool_name_mapping.resolve_function_name(item.get("name") or "")
        return call_id

    def _call_id_for(self, data: Dict[str, Any]) -> Optional[str]:
        state = self.state
        item_id = data.get("item_id")
        if item_id and item_id in state.call_ids_by_item:
            return state.call_ids_by_item[item_id]
        return state.call_ids_by_index.get(data.get("output_index"))

    def _on_item_added(self, item: Dict[str, Any], output_index: Optional[int]) -> List[StreamEvent]:
        if self._is_provider_item(item):
            if item.get("id"):
                self.state.provider_items.add(item["id"])
            logger.debug(f"Provider tool item started: {item.get('type')}")
            return []

        if item.get("type") != "function_call":
            return []

        call_id = self._register_call(item, output_index)
        arguments = item.get("arguments") or ""
        if arguments:
            self.state.streamed_arguments.add(call_id)
        return self._emit_tool_call(ToolCall(
            id=call_id,
            function=FunctionCall(name=item.get("name") or "", arguments=arguments),
        ))

    def _on_arguments(self, data: Dict[str, Any], fragment: str) -> List[StreamEvent]:
        call_id = self._call_id_for(data)
        if call_id is None:
            logger.debug(f"Dropping arguments for unknown item {data.get('item_id')}")
            return []
        if fragment:
            self.state.streamed_arguments.add(call_id)
        return self._emit_tool_call(ToolCall(
            id=call_id,
            function=FunctionCall(name=self.state.call_names.get(call_id, ""), arguments=fragment),
        ))

    def _on_item_done(self, item: Dict[str, Any], output_index: Optional[int]) -> List[StreamEvent]:
        state = self.state
        state.output.append(item)

        if item.get("type") != "function_call" or self._is_provider_item(item):
            return []

        call_id = self._call_id_for({"item_id": item.get("id"), "output_index": output_index})
        if call_id is None:
            # Item never announced: emit it whole
            return self._on_item_added(item, output_index)

        arguments = item.get("arguments") or ""
        if arguments and call_id not in state.streamed_arguments:
            return self._on_arguments({"item_id": item.get("id"), "output_index": output_index}, arguments)
        return []

    # ------------------------------------------------------------------
    # Response
    # ------------------------------------------------------------------

    def _tool_calls_from_output(self, output: List[Dict[str, Any]]) -> List[ToolCall]:
        calls = []
        for item in output:
            if item.get("type") != "function_call" or self._is_provider_item(item):
                continue
            arguments = item.get("arguments") or ""
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments)
            calls.append(ToolCall(
                id=item.get("call_id") or item.get("id") or "",
                function=FunctionCall(
                    name=self.tool_name_mapping.resolve_function_name(item.get("name") or ""),
                    arguments=arguments,
                ),
            ))
        return calls

    def _build_response(self) -> ChatResponse:
        state = self.state
        response = state.response or {}
        output = response.get("output") or state.output

        text = state.text or output_text(output)
        thinking = state.thinking or reasoning_summary(output)
        tool_calls = self._completed_tool_calls() or self._tool_calls_from_output(output) or None

        status = response.get("status")
        incomplete_reason = (response.get("incomplete_details") or {}).get("reason")
        finish_reason = incomplete_reason or status

        if tool_calls:
            stop_reason = StopReason.TOOL_USE
        elif incomplete_reason == "max_output_tokens":
            stop_reason = StopReason.MAX_TOKENS
        elif incomplete_reason == "content_filter":
            stop_reason = StopReason.CONTENT_FILTER
        else:
            stop_reason = StopReason.END_TURN

        model = response.get("model") or state.model or self.model
        response_id = response.get("id") or state.response_id
        provider_calls = [item for item in output if self._is_provider_item(item)]

        return ChatResponse(
            text=text or None,
            thinking=thinking or None,
            tool_calls=tool_calls,
            usage=parse_usage(response.get("usage")),
            stop_reason=stop_reason,
            finish_reason=finish_reason,
            model=model,
            response_id=response_id,
            provider_metadata=self._metadata(
                id=response_id,
                model=model,
                status=status,
                serviceTier=response.get("service_tier"),
                providerToolCalls=provider_calls,
            ),
            raw_response=state.response,
        )
