"""Tests for llmbridge.llm.anthropic_client with a mocked HTTP transport"""

import json

import httpx
import pytest
from pydantic import BaseModel

from llmbridge.errors import InvalidRequestError, UnsupportedCapabilityError
from llmbridge.llm.anthropic_client import AnthropicClient, convert_messages
from llmbridge.models import StopReason
from llmbridge.streaming.models import EventType, PartType
from llmbridge.tools.models import ProviderTool, ToolDefinition
from llmbridge.tools.name_mapping import create_tool_name_mapping


class Recorder:

    def __init__(self, response):
        self.response = response
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.response

    @property
    def body(self):
        return json.loads(self.requests[-1].content)


def make_client(response, **kwargs):
    recorder = Recorder(response)
    kwargs.setdefault("model", "claude-sonnet-4-5")
    kwargs.setdefault("api_key", "sk-ant-test")
    return AnthropicClient(http_transport=httpx.MockTransport(recorder), **kwargs), recorder


def sse(*frames):
    return "".join(f"event: {f['type']}\ndata: {json.dumps(f)}\n\n" for f in frames).encode("utf-8")


MESSAGE = {
    "id": "msg_1",
    "type": "message",
    "role": "assistant",
    "model": "claude-sonnet-4-5",
    "content": [{"type": "text", "text": "Bonjour"}],
    "stop_reason": "end_turn",
    "usage": {"input_tokens": 9, "output_tokens": 3},
}


# =========================================================================
# Message conversion
# =========================================================================


class TestConvertMessages:

    def test_system_lifted(self):
        system, messages = convert_messages([
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Hi"},
        ], create_tool_name_mapping([]))
        assert system == "Be brief."
        assert messages == [{"role": "user", "content": "Hi"}]

    def test_tool_round_trip_history(self):
        mapping = create_tool_name_mapping(["web_search"], {"anthropic.web_search": "web_search"})
        _, messages = convert_messages([
            {"role": "user", "content": "Search"},
            {"role": "assistant", "content": "Looking", "tool_calls": [
                {"id": "toolu_1", "function": {"name": "web_search", "arguments": '{"q": "a"}'}},
                {"id": "toolu_2", "function": {"name": "web_search", "arguments": "not json"}},
            ]},
            {"role": "tool", "tool_call_id": "toolu_1", "content": "r1"},
            {"role": "tool", "tool_call_id": "toolu_2", "content": "r2", "is_error": True},
        ], mapping)

        assistant = messages[1]
        assert assistant["content"][0] == {"type": "text", "text": "Looking"}
        assert assistant["content"][1] == {
            "type": "tool_use", "id": "toolu_1", "name": "web_search__1", "input": {"q": "a"},
        }
        assert assistant["content"][2]["input"] == {"raw": "not json"}

        results = messages[2]
        assert results["role"] == "user"
        assert [b["tool_use_id"] for b in results["content"]] == ["toolu_1", "toolu_2"]
        assert results["content"][1]["is_error"] is True


# =========================================================================
# Requests
# =========================================================================


class TestAnthropicRequest:

    @pytest.mark.asyncio
    async def test_basic_request(self):
        client, recorder = make_client(httpx.Response(200, json=MESSAGE))
        response = await client.chat_completion([
            {"role": "system", "content": "You translate."},
            {"role": "user", "content": "Hello"},
        ])
        await client.close()

        request = recorder.requests[0]
        assert str(request.url) == "https://api.anthropic.com/v1/messages"
        assert request.headers["x-api-key"] == "sk-ant-test"
        assert request.headers["anthropic-version"] == "2023-06-01"
        assert recorder.body == {
            "model": "claude-sonnet-4-5",
            "messages": [{"role": "user", "content": "Hello"}],
            "max_tokens": 4096,
            "temperature": 0.7,
            "system": "You translate.",
        }
        assert response.text == "Bonjour"
        assert response.usage.total_tokens == 12
        assert response.raw_response == MESSAGE

    @pytest.mark.asyncio
    async def test_thinking_budget_drops_temperature(self):
        client, recorder = make_client(httpx.Response(200, json=MESSAGE))
        await client.chat_completion([{"role": "user", "content": "Think"}], thinking_budget=2048)
        await client.close()

        assert recorder.body["thinking"] == {"type": "enabled", "budget_tokens": 2048}
        assert "temperature" not in recorder.body

    @pytest.mark.asyncio
    async def test_tools_and_server_tools(self):
        client, recorder = make_client(httpx.Response(200, json=MESSAGE))
        await client.chat_completion(
            [{"role": "user", "content": "Find"}],
            tools=[ToolDefinition(name="lookup", description="Look up")],
            provider_tools=[ProviderTool(
                id="anthropic.web_search",
                request_name="web_search",
                options={"type": "web_search_20250305", "max_uses": 3},
            )],
            tool_choice="required",
            stop="STOP",
        )
        await client.close()

        body = recorder.body
        assert body["tools"][0] == {
            "name": "lookup",
            "description": "Look up",
            "input_schema": {"type": "object", "properties": {}},
        }
        assert body["tools"][1] == {"type": "web_search_20250305", "max_uses": 3, "name": "web_search"}
        assert body["tool_choice"] == {"type": "any"}
        assert body["stop_sequences"] == ["STOP"]

    @pytest.mark.asyncio
    async def test_structured_output_uses_system_instruction(self):
        class City(BaseModel):
            name: str

        message = {**MESSAGE, "content": [{"type": "text", "text": '{"name": "Lyon"}'}]}
        client, recorder = make_client(httpx.Response(200, json=message))
        city = await client.structured_completion(
            [{"role": "system", "content": "Geo bot."}, {"role": "user", "content": "A city"}],
            City,
        )
        await client.close()

        assert city.name == "Lyon"
        assert recorder.body["system"].startswith("Geo bot.\n\nRespond only with a JSON object")


# =========================================================================
# Responses and errors
# =========================================================================


class TestAnthropicResponses:

    @pytest.mark.asyncio
    async def test_tool_use_response(self):
        message = {
            **MESSAGE,
            "content": [
                {"type": "text", "text": "Checking"},
                {"type": "tool_use", "id": "toolu_9", "name": "lookup", "input": {"id": 1}},
            ],
            "stop_reason": "tool_use",
        }
        client, _ = make_client(httpx.Response(200, json=message))
        response = await client.chat_completion([{"role": "user", "content": "?"}], tools=[{"name": "lookup"}])
        await client.close()

        assert response.stop_reason == StopReason.TOOL_USE
        assert response.tool_calls[0].id == "toolu_9"
        assert response.tool_calls[0].parse_arguments() == {"id": 1}

    @pytest.mark.asyncio
    async def test_bad_request(self):
        error = {"type": "error", "error": {"type": "invalid_request_error", "message": "max_tokens too large"}}
        client, _ = make_client(httpx.Response(400, json=error))
        with pytest.raises(InvalidRequestError) as exc_info:
            await client.chat_completion([{"role": "user", "content": "Hi"}])
        await client.close()
        assert exc_info.value.message == "max_tokens too large"

    @pytest.mark.asyncio
    async def test_streaming_parts(self):
        content = sse(
            {"type": "message_start", "message": {"id": "msg_s", "model": "claude-sonnet-4-5",
                                                  "usage": {"input_tokens": 4, "output_tokens": 1}}},
            {"type": "content_block_start", "index": 0, "content_block": {"type": "thinking", "thinking": ""}},
            {"type": "content_block_delta", "index": 0, "delta": {"type": "thinking_delta", "thinking": "Plan"}},
            {"type": "content_block_stop", "index": 0},
            {"type": "content_block_start", "index": 1, "content_block": {"type": "text", "text": ""}},
            {"type": "content_block_delta", "index": 1, "delta": {"type": "text_delta", "text": "Done"}},
            {"type": "content_block_stop", "index": 1},
            {"type": "message_delta", "delta": {"stop_reason": "end_turn"}, "usage": {"output_tokens": 6}},
            {"type": "message_stop"},
        )
        client, recorder = make_client(httpx.Response(200, content=content))
        parts = [part async for part in client.stream_parts([{"role": "user", "content": "Go"}])]
        await client.close()

        assert recorder.body["stream"] is True
        assert [p.type for p in parts] == [
            PartType.REASONING_START,
            PartType.REASONING_DELTA,
            PartType.TEXT_START,
            PartType.TEXT_DELTA,
            PartType.TEXT_END,
            PartType.REASONING_END,
            PartType.PROVIDER_METADATA,
            PartType.FINISH,
        ]
        assert parts[-1].response.usage.completion_tokens == 6

    @pytest.mark.asyncio
    async def test_overloaded_stream_error(self):
        content = sse(
            {"type": "message_start", "message": {"id": "m", "usage": {}}},
            {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}},
        )
        client, _ = make_client(httpx.Response(200, content=content))
        events = [event async for event in client.stream_completion([{"role": "user", "content": "Hi"}])]
        await client.close()

        assert [e.type for e in events] == [EventType.ERROR]
        assert events[0].error.message == "Overloaded"

    @pytest.mark.asyncio
    async def test_no_embeddings(self):
        client, recorder = make_client(httpx.Response(200, json={}))
        with pytest.raises(UnsupportedCapabilityError):
            await client.create_embedding(["a"])
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_list_models(self):
        client, recorder = make_client(httpx.Response(200, json={"data": [{"id": "claude-sonnet-4-5"}]}))
        models = await client.list_models()
        await client.close()
        assert models[0]["id"] == "claude-sonnet-4-5"
        assert recorder.requests[0].url.path == "/v1/models"
