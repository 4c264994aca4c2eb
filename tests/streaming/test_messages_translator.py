"""
Tests for the Anthropic Messages API stream translator.
"""

import pytest

from llmbridge.errors import RateLimitError
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
from llmbridge.streaming.translators.messages import (
    MessagesTranslator,
    merge_usage,
    message_to_frames,
    parse_usage,
)
from llmbridge.tools.name_mapping import create_tool_name_mapping


def run(translator, frames):
    events = []
    for frame in frames:
        events.extend(translator.feed(SseLine(data=frame, event=frame["type"])))
    events.extend(translator.finish())
    return events


def message_start(**usage):
    return {"type": "message_start", "message": {
        "id": "msg_1", "model": "claude-sonnet-4-5", "usage": usage or {"input_tokens": 10, "output_tokens": 1},
    }}


def block_start(index, **block):
    return {"type": "content_block_start", "index": index, "content_block": block}


def block_delta(index, **delta):
    return {"type": "content_block_delta", "index": index, "delta": delta}


def block_stop(index):
    return {"type": "content_block_stop", "index": index}


def message_delta(stop_reason, output_tokens=5):
    return {"type": "message_delta", "delta": {"stop_reason": stop_reason}, "usage": {"output_tokens": output_tokens}}


MESSAGE_STOP = {"type": "message_stop"}


# ============================================================================
# Text and thinking
# ============================================================================

class TestTextAndThinking:

    def test_text_stream(self):
        events = run(MessagesTranslator(), [
            message_start(),
            block_start(0, type="text", text=""),
            block_delta(0, type="text_delta", text="Hello"),
            block_delta(0, type="text_delta", text=" there"),
            block_stop(0),
            {"type": "ping"},
            message_delta("end_turn", output_tokens=7),
            MESSAGE_STOP,
        ])

        assert [e.delta for e in events if isinstance(e, TextDeltaEvent)] == ["Hello", " there"]
        response = events[-1].response
        assert response.text == "Hello there"
        assert response.response_id == "msg_1"
        assert response.model == "claude-sonnet-4-5"
        assert response.stop_reason == StopReason.END_TURN
        assert (response.usage.prompt_tokens, response.usage.completion_tokens) == (10, 7)

    def test_thinking_block_with_signature(self):
        events = run(MessagesTranslator(), [
            message_start(),
            block_start(0, type="thinking", thinking=""),
            block_delta(0, type="thinking_delta", thinking="Let me see"),
            block_delta(0, type="signature_delta", signature="sig=="),
            block_stop(0),
            block_start(1, type="text", text=""),
            block_delta(1, type="text_delta", text="42"),
            block_stop(1),
            message_delta("end_turn"),
            MESSAGE_STOP,
        ])

        assert [e.delta for e in events if isinstance(e, ThinkingDeltaEvent)] == ["Let me see"]
        response = events[-1].response
        assert response.thinking == "Let me see"
        assert response.text == "42"
        blocks = response.provider_metadata["anthropic"]["contentBlocks"]
        assert blocks[0] == {"type": "thinking", "thinking": "Let me see", "signature": "sig=="}

    def test_redacted_thinking_recorded_only(self):
        events = run(MessagesTranslator(), [
            message_start(),
            block_start(0, type="redacted_thinking", data="opaque"),
            block_stop(0),
            message_delta("end_turn"),
            MESSAGE_STOP,
        ])
        assert len(events) == 1
        blocks = events[0].response.provider_metadata["anthropic"]["contentBlocks"]
        assert blocks == [{"type": "redacted_thinking", "data": "opaque"}]

    def test_citations_kept_on_text_block(self):
        citation = {"type": "web_search_result_location", "url": "https://example.com"}
        events = run(MessagesTranslator(), [
            block_start(0, type="text", text=""),
            block_delta(0, type="citations_delta", citation=citation),
            block_delta(0, type="text_delta", text="Cited"),
            block_stop(0),
            MESSAGE_STOP,
        ])
        blocks = events[-1].response.provider_metadata["anthropic"]["contentBlocks"]
        assert blocks[0]["citations"] == [citation]


# ============================================================================
# Tool use
# ============================================================================

class TestToolUse:

    def test_tool_use_streamed_input(self):
        events = run(MessagesTranslator(), [
            message_start(),
            block_start(0, type="tool_use", id="toolu_1", name="get_weather", input={}),
            block_delta(0, type="input_json_delta", partial_json=""),
            block_delta(0, type="input_json_delta", partial_json='{"city": '),
            block_delta(0, type="input_json_delta", partial_json='"Oslo"}'),
            block_stop(0),
            message_delta("tool_use"),
            MESSAGE_STOP,
        ])

        deltas = [e for e in events if isinstance(e, ToolCallDeltaEvent)]
        assert len(deltas) == 3
        assert {e.tool_call.id for e in deltas} == {"toolu_1"}

        response = events[-1].response
        assert response.stop_reason == StopReason.TOOL_USE
        assert response.tool_calls[0].parse_arguments() == {"city": "Oslo"}
        blocks = response.provider_metadata["anthropic"]["contentBlocks"]
        assert blocks[0]["input"] == {"city": "Oslo"}

    def test_server_tool_use_suppressed(self):
        events = run(MessagesTranslator(), [
            message_start(),
            block_start(0, type="server_tool_use", id="srvtoolu_1", name="web_search", input={}),
            block_delta(0, type="input_json_delta", partial_json='{"query": "news"}'),
            block_stop(0),
            block_start(1, type="web_search_tool_result", tool_use_id="srvtoolu_1", content=[]),
            block_stop(1),
            block_start(2, type="text", text=""),
            block_delta(2, type="text_delta", text="Summary"),
            block_stop(2),
            message_delta("end_turn"),
            MESSAGE_STOP,
        ])

        assert not any(isinstance(e, ToolCallDeltaEvent) for e in events)
        response = events[-1].response
        assert response.tool_calls is None
        assert response.text == "Summary"
        block_types = [b["type"] for b in response.provider_metadata["anthropic"]["contentBlocks"]]
        assert block_types == ["server_tool_use", "web_search_tool_result", "text"]

    def test_server_tool_name_on_tool_use_block_suppressed(self):
        events = run(MessagesTranslator(), [
            block_start(0, type="tool_use", id="toolu_1", name="web_fetch", input={}),
            block_delta(0, type="input_json_delta", partial_json="{}"),
            block_stop(0),
            message_delta("tool_use"),
            MESSAGE_STOP,
        ])
        response = events[-1].response
        assert response.tool_calls is None
        assert response.stop_reason == StopReason.END_TURN

    def test_function_sharing_server_tool_name_is_renamed(self):
        mapping = create_tool_name_mapping(["web_search"], {"anthropic.web_search": "web_search"})
        events = run(MessagesTranslator(tool_name_mapping=mapping), [
            block_start(0, type="server_tool_use", id="srv_1", name="web_search", input={}),
            block_stop(0),
            block_start(1, type="tool_use", id="toolu_2", name="web_search__1", input={}),
            block_delta(1, type="input_json_delta", partial_json='{"q": 1}'),
            block_stop(1),
            message_delta("tool_use"),
            MESSAGE_STOP,
        ])
        response = events[-1].response
        assert [c.name for c in response.tool_calls] == ["web_search"]
        assert response.tool_calls[0].id == "toolu_2"


# ============================================================================
# Errors and termination
# ============================================================================

class TestTermination:

    def test_error_event(self):
        events = run(MessagesTranslator(), [
            message_start(),
            block_start(0, type="text", text=""),
            block_delta(0, type="text_delta", text="partial"),
            {"type": "error", "error": {"type": "rate_limit_error", "message": "slow down"}},
            MESSAGE_STOP,
        ])
        assert isinstance(events[-1], ErrorEvent)
        assert isinstance(events[-1].error, RateLimitError)
        assert sum(isinstance(e, (CompletionEvent, ErrorEvent)) for e in events) == 1

    def test_close_without_message_stop(self):
        events = run(MessagesTranslator(), [
            message_start(),
            block_start(0, type="text", text=""),
            block_delta(0, type="text_delta", text="cut"),
        ])
        response = events[-1].response
        assert response.text == "cut"
        assert response.provider_metadata["anthropic"]["contentBlocks"][0]["text"] == "cut"

    def test_stop_sequence(self):
        events = run(MessagesTranslator(), [
            block_start(0, type="text", text="x"),
            block_stop(0),
            {"type": "message_delta", "delta": {"stop_reason": "stop_sequence", "stop_sequence": "END"}},
            MESSAGE_STOP,
        ])
        response = events[-1].response
        assert response.stop_reason == StopReason.STOP_SEQUENCE
        assert response.provider_metadata["anthropic"]["stopSequence"] == "END"


# ============================================================================
# Usage and non-streaming bodies
# ============================================================================

class TestUsageAndBodies:

    def test_merge_usage_keeps_cumulative_max(self):
        merged = merge_usage({"input_tokens": 10, "output_tokens": 1}, {"output_tokens": 30, "input_tokens": None})
        assert merged == {"input_tokens": 10, "output_tokens": 30}

    def test_parse_usage_includes_cache(self):
        usage = parse_usage({
            "input_tokens": 5,
            "output_tokens": 2,
            "cache_read_input_tokens": 100,
            "cache_creation_input_tokens": 20,
        })
        assert usage.prompt_tokens == 125
        assert usage.cached_tokens == 100
        assert usage.total_tokens == 127

    def test_message_body_through_translator(self):
        body = {
            "id": "msg_2",
            "type": "message",
            "model": "claude-opus-4",
            "content": [
                {"type": "thinking", "thinking": "hmm", "signature": "s"},
                {"type": "text", "text": "Calling tool"},
                {"type": "tool_use", "id": "toolu_3", "name": "lookup", "input": {"id": 7}},
            ],
            "stop_reason": "tool_use",
            "usage": {"input_tokens": 3, "output_tokens": 4},
        }
        response = translate_body(MessagesTranslator(), message_to_frames(body))
        assert response.thinking == "hmm"
        assert response.text == "Calling tool"
        assert response.tool_calls[0].parse_arguments() == {"id": 7}
        assert response.stop_reason == StopReason.TOOL_USE
        assert response.usage.total_tokens == 7

    def test_error_body(self):
        body = {"type": "error", "error": {"type": "rate_limit_error", "message": "busy"}}
        with pytest.raises(RateLimitError):
            translate_body(MessagesTranslator(), message_to_frames(body))
