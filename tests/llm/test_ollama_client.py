"""Tests for llmbridge.llm.ollama_client with a mocked HTTP transport"""

import json

import httpx
import pytest

from llmbridge.cancellation import CancellationToken
from llmbridge.errors import CancelledError, ModelNotAvailableError, UnsupportedCapabilityError
from llmbridge.llm.ollama_client import OllamaClient, convert_messages
from llmbridge.models import StopReason
from llmbridge.streaming.models import CompletionEvent, TextDeltaEvent
from llmbridge.tools.models import ProviderTool
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
    kwargs.setdefault("model", "qwen3")
    return OllamaClient(http_transport=httpx.MockTransport(recorder), **kwargs), recorder


CHAT = {
    "model": "qwen3",
    "message": {"role": "assistant", "content": "Hey", "thinking": "greet"},
    "done": True,
    "done_reason": "stop",
    "prompt_eval_count": 6,
    "eval_count": 2,
}


class TestOllamaConfig:

    def test_default_host(self, monkeypatch):
        monkeypatch.delenv("OLLAMA_HOST", raising=False)
        assert OllamaClient(model="llama3.2").config.base_url == "http://localhost:11434"

    def test_host_from_env(self, monkeypatch):
        monkeypatch.setenv("OLLAMA_HOST", "http://gpu-box:11434")
        assert OllamaClient(model="llama3.2").config.base_url == "http://gpu-box:11434"

    def test_explicit_base_url_wins(self, monkeypatch):
        monkeypatch.setenv("OLLAMA_HOST", "http://gpu-box:11434")
        client = OllamaClient(model="llama3.2", base_url="http://other:11434")
        assert client.config.base_url == "http://other:11434"

    def test_no_authorization_header_without_key(self):
        assert "Authorization" not in OllamaClient(model="m")._headers()


class TestConvertMessages:

    def test_arguments_become_objects(self):
        converted = convert_messages([
            {"role": "assistant", "content": "", "tool_calls": [
                {"id": "c1", "function": {"name": "f", "arguments": '{"a": 1}'}},
                {"id": "c2", "function": {"name": "g", "arguments": ""}},
            ]},
            {"role": "tool", "tool_call_id": "c1", "content": "ok"},
        ], create_tool_name_mapping(["f", "g"]))

        calls = converted[0]["tool_calls"]
        assert calls[0] == {"function": {"name": "f", "arguments": {"a": 1}}}
        assert calls[1]["function"]["arguments"] == {}
        assert converted[1] == {"role": "tool", "tool_call_id": "c1", "content": "ok"}


class TestOllamaChat:

    @pytest.mark.asyncio
    async def test_chat_request_and_response(self):
        client, recorder = make_client(httpx.Response(200, json=CHAT), base_url="http://localhost:11434")
        response = await client.chat_completion(
            [{"role": "user", "content": "Hi"}],
            think=True,
            keep_alive="5m",
            max_tokens=100,
        )
        await client.close()

        assert str(recorder.requests[0].url) == "http://localhost:11434/api/chat"
        body = recorder.body
        assert body["stream"] is False
        assert body["think"] is True
        assert body["keep_alive"] == "5m"
        assert body["options"] == {"temperature": 0.7, "top_p": 1.0, "num_predict": 100}

        assert response.text == "Hey"
        assert response.thinking == "greet"
        assert response.usage.total_tokens == 8
        assert response.stop_reason == StopReason.END_TURN
        assert response.raw_response == CHAT

    @pytest.mark.asyncio
    async def test_streaming_jsonl(self):
        lines = "\n".join(json.dumps(line) for line in [
            {"model": "qwen3", "message": {"role": "assistant", "content": "A"}, "done": False},
            {"model": "qwen3", "message": {"role": "assistant", "tool_calls": [
                {"function": {"name": "f", "arguments": {"k": "v"}}},
            ]}, "done": False},
            {"model": "qwen3", "message": {"role": "assistant", "content": ""}, "done": True,
             "done_reason": "stop", "eval_count": 3},
        ]) + "\n"
        client, recorder = make_client(httpx.Response(200, content=lines.encode()))
        events = [event async for event in client.stream_completion(
            [{"role": "user", "content": "Go"}], tools=[{"name": "f"}],
        )]
        await client.close()

        assert recorder.body["stream"] is True
        assert recorder.body["tools"][0]["function"]["name"] == "f"
        assert isinstance(events[0], TextDeltaEvent)
        completion = events[-1]
        assert isinstance(completion, CompletionEvent)
        assert completion.response.tool_calls[0].id == "call_0_f"
        assert completion.response.stop_reason == StopReason.TOOL_USE

    @pytest.mark.asyncio
    async def test_missing_model(self):
        client, _ = make_client(httpx.Response(404, json={"error": "model 'nope' not found"}))
        with pytest.raises(ModelNotAvailableError) as exc_info:
            await client.chat_completion([{"role": "user", "content": "Hi"}])
        await client.close()
        assert exc_info.value.message == "model 'nope' not found"

    @pytest.mark.asyncio
    async def test_pre_cancelled_makes_no_request(self):
        token = CancellationToken()
        token.cancel("skip")
        client, recorder = make_client(httpx.Response(200, json=CHAT))
        with pytest.raises(CancelledError):
            await client.chat_completion([{"role": "user", "content": "Hi"}], cancel_token=token)
        assert recorder.requests == []

    def test_provider_tools_unsupported(self):
        client = OllamaClient(model="m")
        with pytest.raises(UnsupportedCapabilityError):
            client.stream_completion([], provider_tools=[ProviderTool(id="x", request_name="x")])


class TestOllamaEndpoints:

    @pytest.mark.asyncio
    async def test_embed(self):
        client, recorder = make_client(httpx.Response(200, json={"embeddings": [[0.1, 0.2]]}))
        vectors = await client.create_embedding("hello", model="nomic-embed-text")
        await client.close()

        assert vectors == [[0.1, 0.2]]
        assert recorder.requests[0].url.path == "/api/embed"
        assert recorder.body == {"model": "nomic-embed-text", "input": ["hello"]}

    @pytest.mark.asyncio
    async def test_tags(self):
        client, recorder = make_client(httpx.Response(200, json={"models": [{"name": "qwen3:8b"}]}))
        models = await client.list_models()
        await client.close()

        assert models == [{"name": "qwen3:8b"}]
        assert recorder.requests[0].url.path == "/api/tags"
