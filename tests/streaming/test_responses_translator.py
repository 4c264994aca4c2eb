"""
Tests for the OpenAI Responses API stream translator.
"""

import pytest

from llmbridge.errors import InvalidRequestError, ProviderError
from llmbridge.models import StopReason
from llmbridge.streaming.models import (
    CompletionEvent,
    ErrorEvent,
    TextDeltaEvent,
    ThinkingDeltaEvent,
    ToolCallDeltaEvent,
)
from llmbridge.streaming.sse import SseLine
from llmbridge.streaming.translators.base import translate_body
from llmbridge.streaming.translators.responses import (
    ResponsesTranslator,
    output_text,
    parse_usage,
    reasoning_summary,
)
from llmbridge.tools.name_mapping import create_tool_name_mapping


def run(translator, frames):
    events = []
    for frame in frames:
        events.extend(translator.feed(SseLine(data=frame, event=frame.get("type"))))
    events.extend(translator.finish())
    return events


def completed(**response):
    return {"type": "response.completed", "response": response}


# ============================================================================
# Text and reasoning
# ============================================================================

class TestTextAndReasoning:

    def test_text_deltas(self):
        events = run(ResponsesTranslator(model="gpt-4.1"), [
            {"type": "response.created", "response": {"id": "resp_1", "model": "gpt-4.1-2025"}},
            {"type": "response.output_text.delta", "delta": "Hel"},
            {"type": "response.output_text.delta", "delta": "lo"},
            completed(id="resp_1", status="completed",
                      usage={"input_tokens": 4, "output_tokens": 2, "total_tokens": 6}),
        ])

        assert [e.delta for e in events if isinstance(e, TextDeltaEvent)] == ["Hel", "lo"]
        response = events[-1].response
        assert response.text == "Hello"
        assert response.response_id == "resp_1"
        assert response.usage.total_tokens == 6
        assert response.stop_reason == StopReason.END_TURN
        assert response.provider_metadata["openai"]["status"] == "completed"

    def test_reasoning_summary_deltas(self):
        events = run(ResponsesTranslator(), [
            {"type": "response.reasoning_summary_text.delta", "delta": "Weighing"},
            {"type": "response.reasoning_summary_text.delta", "delta": " options"},
            {"type": "response.output_text.delta", "delta": "Pick A"},
            completed(status="completed",
                      usage={"input_tokens": 1, "output_tokens": 9,
                             "output_tokens_details": {"reasoning_tokens": 7}}),
        ])

        assert [e.delta for e in events if isinstance(e, ThinkingDeltaEvent)] == ["Weighing", " options"]
        response = events[-1].response
        assert response.thinking == "Weighing options"
        assert response.text == "Pick A"
        assert response.usage.reasoning_tokens == 7

    def test_text_from_output_when_not_streamed(self):
        events = run(ResponsesTranslator(), [
            completed(status="completed", output=[
                {"type": "reasoning", "summary": [{"type": "summary_text", "text": "plan"}]},
                {"type": "message", "content": [{"type": "output_text", "text": "Done"}]},
            ]),
        ])
        response = events[-1].response
        assert response.text == "Done"
        assert response.thinking == "plan"

    def test_incomplete_max_tokens(self):
        events = run(ResponsesTranslator(), [
            {"type": "response.output_text.delta", "delta": "Trunc"},
            {"type": "response.incomplete", "response": {
                "status": "incomplete",
                "incomplete_details": {"reason": "max_output_tokens"},
            }},
        ])
        response = events[-1].response
        assert response.stop_reason == StopReason.MAX_TOKENS
        assert response.finish_reason == "max_output_tokens"


# ============================================================================
# Function calls
# ============================================================================

class TestFunctionCalls:

    def test_streamed_arguments(self):
        item = {"type": "function_call", "id": "fc_1", "call_id": "call_1", "name": "lookup", "arguments": ""}
        events = run(ResponsesTranslator(), [
            {"type": "response.output_item.added", "output_index": 0, "item": item},
            {"type": "response.function_call_arguments.delta", "item_id": "fc_1", "output_index": 0, "delta": '{"q":'},
            {"type": "response.function_call_arguments.delta", "item_id": "fc_1", "output_index": 0, "delta": ' "x"}'},
            {"type": "response.function_call_arguments.done", "item_id": "fc_1", "output_index": 0,
             "arguments": '{"q": "x"}'},
            {"type": "response.output_item.done", "output_index": 0, "item": {**item, "arguments": '{"q": "x"}'}},
            completed(status="completed"),
        ])

        deltas = [e for e in events if isinstance(e, ToolCallDeltaEvent)]
        assert len(deltas) == 3
        assert {e.tool_call.id for e in deltas} == {"call_1"}

        response = events[-1].response
        assert response.stop_reason == StopReason.TOOL_USE
        assert len(response.tool_calls) == 1
        assert response.tool_calls[0].parse_arguments() == {"q": "x"}

    def test_arguments_only_in_done_event(self):
        item = {"type": "function_call", "id": "fc_1", "call_id": "call_1", "name": "lookup"}
        events = run(ResponsesTranslator(), [
            {"type": "response.output_item.added", "output_index": 0, "item": item},
            {"type": "response.function_call_arguments.done", "item_id": "fc_1", "arguments": '{"a": 1}'},
            completed(status="completed"),
        ])
        assert events[-1].response.tool_calls[0].parse_arguments() == {"a": 1}

    def test_item_done_without_announcement(self):
        item = {"type": "function_call", "id": "fc_2", "call_id": "call_2", "name": "f", "arguments": "{}"}
        events = run(ResponsesTranslator(), [
            {"type": "response.output_item.done", "output_index": 0, "item": item},
            completed(status="completed"),
        ])
        assert events[0].tool_call.id == "call_2"
        assert events[-1].response.tool_calls[0].name == "f"

    def test_tool_calls_from_completed_output(self):
        events = run(ResponsesTranslator(), [
            completed(status="completed", output=[
                {"type": "function_call", "call_id": "call_9", "name": "f", "arguments": '{"k": 2}'},
            ]),
        ])
        response = events[-1].response
        assert response.tool_calls[0].id == "call_9"
        assert response.stop_reason == StopReason.TOOL_USE

    def test_provider_items_not_surfaced(self):
        events = run(ResponsesTranslator(), [
            {"type": "response.output_item.added", "output_index": 0,
             "item": {"type": "web_search_call", "id": "ws_1"}},
            {"type": "response.output_item.done", "output_index": 0,
             "item": {"type": "web_search_call", "id": "ws_1", "status": "completed"}},
            {"type": "response.output_text.delta", "delta": "Found it"},
            completed(status="completed"),
        ])
        assert not any(isinstance(e, ToolCallDeltaEvent) for e in events)
        response = events[-1].response
        assert response.tool_calls is None
        assert response.provider_metadata["openai"]["providerToolCalls"][0]["id"] == "ws_1"

    def test_renamed_function_mapped_back(self):
        mapping = create_tool_name_mapping(["web_search"], {"openai.web_search": "web_search"})
        item = {"type": "function_call", "id": "fc_1", "call_id": "call_1", "name": "web_search__1", "arguments": "{}"}
        events = run(ResponsesTranslator(tool_name_mapping=mapping), [
            {"type": "response.output_item.added", "output_index": 0, "item": item},
            completed(status="completed"),
        ])
        assert events[0].tool_call.name == "web_search"
        assert events[-1].response.tool_calls[0].name == "web_search"


# ============================================================================
# Errors
# ============================================================================

class TestErrors:

    def test_response_failed(self):
        events = run(ResponsesTranslator(), [
            {"type": "response.output_text.delta", "delta": "a"},
            {"type": "response.failed", "response": {"error": {"code": "server_error", "message": "oops"}}},
        ])
        assert isinstance(events[-1], ErrorEvent)
        assert isinstance(events[-1].error, ProviderError)
        assert events[-1].error.message == "oops"

    def test_error_event(self):
        events = run(ResponsesTranslator(), [
            {"type": "error", "code": "invalid_request_error", "message": "bad input"},
        ])
        assert len(events) == 1
        assert isinstance(events[0].error, InvalidRequestError)

    def test_translate_body_raises_on_failure(self):
        frame = {"type": "response.failed", "response": {"error": {"message": "nope"}}}
        with pytest.raises(ProviderError):
            translate_body(ResponsesTranslator(), [frame])


# ============================================================================
# Helpers
# ============================================================================

class TestHelpers:

    def test_parse_usage(self):
        usage = parse_usage({
            "input_tokens": 10,
            "output_tokens": 5,
            "input_tokens_details": {"cached_tokens": 3},
        })
        assert usage.total_tokens == 15
        assert usage.cached_tokens == 3

    def test_output_text_ignores_other_items(self):
        output = [
            {"type": "function_call", "name": "f"},
            {"type": "message", "content": [{"type": "output_text", "text": "a"},
                                            {"type": "refusal", "refusal": "no"}]},
        ]
        assert output_text(output) == "a"

    def test_reasoning_summary_joins_items(self):
        output = [
            {"type": "reasoning", "summary": [{"text": "one"}]},
            {"type": "reasoning", "summary": [{"text": "two"}]},
        ]
        assert reasoning_summary(output) == "one\n\ntwo"
