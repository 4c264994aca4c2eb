"""
Tests for llmbridge tool call fragment aggregation.
"""

import pytest

from llmbridge.streaming.tool_calls import (
    ToolCallAggregator,
    ToolCallStreamState,
    is_parsable_json,
)
from llmbridge.tools.models import FunctionCall, ToolCall


def _delta(call_id="", name="", arguments=""):
    return ToolCall(id=call_id, function=FunctionCall(name=name, arguments=arguments))


# ============================================================================
# ToolCallAggregator
# ============================================================================

class TestToolCallAggregator:

    def test_first_delta_establishes_call(self):
        agg = ToolCallAggregator()
        snapshot = agg.add_delta(_delta("call_1", "get_weather", ""))
        assert snapshot.id == "call_1"
        assert snapshot.name == "get_weather"
        assert len(agg) == 1

    def test_arguments_concatenate(self):
        agg = ToolCallAggregator()
        agg.add_delta(_delta("call_1", "get_weather", '{"loc'))
        agg.add_delta(_delta("call_1", "", 'ation": "Paris"}'))
        call = agg.get("call_1")
        assert call.arguments == '{"location": "Paris"}'
        assert call.parse_arguments() == {"location": "Paris"}

    def test_empty_name_does_not_overwrite(self):
        agg = ToolCallAggregator()
        agg.add_delta(_delta("call_1", "search", ""))
        agg.add_delta(_delta("call_1", "", "{}"))
        assert agg.get("call_1").name == "search"

    def test_indexed_key_backfills_id(self):
        agg = ToolCallAggregator()
        agg.add_delta(_delta("", "search", ""), index=0)
        snapshot = agg.add_delta(_delta("call_9", "", "{}"), index=0)
        assert snapshot.id == "call_9"

    def test_snapshots_are_copies(self):
        agg = ToolCallAggregator()
        snapshot = agg.add_delta(_delta("call_1", "f", "{"))
        snapshot.function.arguments += "broken"
        assert agg.get("call_1").arguments == "{"

    def test_completed_calls_skip_unnamed(self):
        agg = ToolCallAggregator()
        agg.add_delta(_delta("call_1", "", "{}"))
        agg.add_delta(_delta("call_2", "named", "{}"))
        assert [c.id for c in agg.calls] == ["call_1", "call_2"]
        assert [c.id for c in agg.completed_calls] == ["call_2"]

    def test_clear(self):
        agg = ToolCallAggregator()
        agg.add_delta(_delta("call_1", "f", ""))
        agg.clear()
        assert len(agg) == 0
        assert agg.get("call_1") is None


class TestIsParsableJson:

    def test_complete(self):
        assert is_parsable_json('{"a": 1}') is True

    def test_partial(self):
        assert is_parsable_json('{"a": ') is False

    def test_blank(self):
        assert is_parsable_json("  ") is False


# ============================================================================
# ToolCallStreamState
# ============================================================================

class TestToolCallStreamState:

    def test_id_remembered_for_index(self):
        state = ToolCallStreamState()
        first = state.process_delta({"index": 0, "id": "call_a", "function": {"name": "f", "arguments": ""}})
        second = state.process_delta({"index": 0, "function": {"arguments": '{"x":1}'}})
        assert first.id == "call_a"
        assert second.id == "call_a"
        assert second.name == "f"
        assert state.id_for_index(0) == "call_a"

    def test_missing_function_ignored(self):
        state = ToolCallStreamState()
        assert state.process_delta({"index": 0, "id": "call_a"}) is None

    def test_unknown_index_without_name_dropped(self):
        state = ToolCallStreamState()
        assert state.process_delta({"index": 3, "function": {"arguments": "{}"}}) is None

    def test_synthesized_id_when_first_fragment_has_name_only(self):
        state = ToolCallStreamState()
        delta = state.process_delta({"index": 2, "function": {"name": "lookup"}})
        assert delta.id == "call_2"

    def test_index_reused_with_new_id_starts_new_call(self):
        state = ToolCallStreamState()
        state.process_delta({"index": 0, "id": "call_a", "function": {"name": "f", "arguments": "{}"}})
        delta = state.process_delta({"index": 0, "id": "call_b", "function": {"name": "g", "arguments": ""}})
        assert delta.id == "call_b"
        assert delta.name == "g"

    def test_empty_fragment_returns_none(self):
        state = ToolCallStreamState()
        state.process_delta({"index": 0, "id": "call_a", "function": {"name": "f"}})
        assert state.process_delta({"index": 0, "function": {"arguments": ""}}) is None

    def test_object_arguments_serialized(self):
        state = ToolCallStreamState()
        delta = state.process_delta({"id": "call_a", "function": {"name": "f", "arguments": {"q": "x"}}})
        assert delta.arguments == '{"q": "x"}'

    def test_reset(self):
        state = ToolCallStreamState()
        state.process_delta({"index": 0, "id": "call_a", "function": {"name": "f"}})
        state.reset()
        assert state.id_for_index(0) is None

    def test_unindexed_calls_without_id_get_distinct_ids(self):
        state = ToolCallStreamState()
        first = state.process_delta({"function": {"name": "a", "arguments": '{"x":1}'}})
        second = state.process_delta({"function": {"name": "b", "arguments": '{"y":2}'}})
        assert first.id == "call_0_a"
        assert second.id == "call_1_b"

    def test_unindexed_fragment_without_name_dropped(self):
        state = ToolCallStreamState()
        assert state.process_delta({"function": {"arguments": '{"x":1}'}}) is None

    def test_unindexed_calls_stay_separate_in_aggregator(self):
        state = ToolCallStreamState()
        agg = ToolCallAggregator()
        for raw in (
            {"function": {"name": "a", "arguments": '{"x":1}'}},
            {"function": {"name": "b", "arguments": '{"y":2}'}},
        ):
            agg.add_delta(state.process_delta(raw))

        calls = agg.completed_calls
        assert [c.name for c in calls] == ["a", "b"]
        assert [c.parse_arguments() for c in calls] == [{"x": 1}, {"y": 2}]
