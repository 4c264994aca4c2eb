"""
llmbridge Ollama Client - Ollama API client for local models

Supports:
- Any model available in Ollama
- Local deployment (default: http://localhost:11434)
- Thinking models (qwen3, deepseek-r1, gpt-oss) via the think flag
- Tool calling, JSON schema output, embeddings and model listing
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

from ..cancellation import CancellationToken
from ..models import ChatResponse
from ..streaming.translators.base import translate_body
from ..streaming.translators.ollama import OllamaTranslator
from ..tools.models import ProviderTool, ToolDefinition
from ..tools.name_mapping import ToolNameMapping
from .base import BaseLLMClient, Capability, LLMConfig, PreparedRequest

logger = logging.getLogger(__name__)


def convert_messages(
    messages: List[Dict[str, Any]],
    mapping: ToolNameMapping,
) -> List[Dict[str, Any]]:
    """Ollama takes chat-format messages, but tool call arguments must be objects"""
    converted = []
    for msg in messages:
        if msg.get("role") != "assistant" or not msg.get("tool_calls"):
            converted.append(msg)
            continue

        tool_calls = []
        for tc in msg["tool_calls"]:
            function = tc.get("function") or {}
            arguments = function.get("arguments") or {}
            if isinstance(arguments, str):
                try:
                    arguments = json.loads(arguments) if arguments.strip() else {}
                except json.JSONDecodeError:
                    logger.debug("Tool call arguments in history are not valid JSON, sending as raw string")
                    arguments = {"raw": arguments}
            tool_calls.append({"function": {
                "name": mapping.request_name_for_function(function.get("name", "")),
                "arguments": arguments,
            }})
        converted.append({**msg, "tool_calls": tool_calls})
    return converted


class OllamaClient(BaseLLMClient):
    """
    Ollama API client for local models.

    Example:
        # Basic usage (default: localhost:11434)
        client = OllamaClient(model="llama3.2")
        response = await client.chat_completion([
            {"role": "user", "content": "Hello!"}
        ])

        # Thinking model
        async for event in client.stream_completion(messages, model="qwen3", think=True):
            ...

        # Custom host
        client = OllamaClient(model="mistral", base_url="http://192.168.1.100:11434")
    """

    provider = "ollama"
    default_base_url = "http://localhost:11434"
    translator_class = OllamaTranslator

    capabilities = frozenset({
        Capability.CHAT,
        Capability.STREAMING,
        Capability.TOOL_CALLING,
        Capability.REASONING,
        Capability.STRUCTURED_OUTPUT,
        Capability.EMBEDDING,
        Capability.MODEL_LISTING,
    })

    def __init__(self, config: Optional[LLMConfig] = None, http_transport=None, **kwargs):
        """
        Initialize Ollama client.

        Args:
            config: LLMConfig instance
            model: Model name (e.g., "llama3.2", "qwen3")
            base_url: Ollama server URL (or set OLLAMA_HOST env var)
            **kwargs: Additional config options
        """
        if config is None and "base_url" not in kwargs:
            kwargs["base_url"] = os.environ.get("OLLAMA_HOST", self.default_base_url)

        super().__init__(config, http_transport=http_transport, **kwargs)

    def _build_request(
        self,
        messages: List[Dict[str, Any]],
        tools: List[ToolDefinition],
        provider_tools: List[ProviderTool],
        mapping: ToolNameMapping,
        stream: bool,
        **kwargs,
    ) -> PreparedRequest:
        """Build /api/chat request body"""
        model = kwargs.get("model", self.config.model)

        options: Dict[str, Any] = {
            "temperature": kwargs.get("temperature", self.config.temperature),
            "top_p": kwargs.get("top_p", self.config.top_p),
            "num_predict": kwargs.get("max_tokens", self.config.max_tokens),
        }
        if "stop" in kwargs:
            stop = kwargs["stop"]
            options["stop"] = [stop] if isinstance(stop, str) else list(stop)

        body: Dict[str, Any] = {
            "model": model,
            "messages": convert_messages(messages, mapping),
            "stream": stream,
            "options": options,
        }

        think = kwargs.get("think", self.config.extra.get("think"))
        if think is not None:
            body["think"] = think

        formatted = self._format_tools(tools, provider_tools, mapping)
        if formatted:
            body["tools"] = formatted

        response_format = kwargs.get("response_format")
        if response_format:
            body["format"] = response_format["schema"]

        if "keep_alive" in kwargs:
            body["keep_alive"] = kwargs["keep_alive"]

        body.update(kwargs.get("extra_body") or {})
        return PreparedRequest(path="/api/chat", body=body)

    def _parse_response(self, body: Dict[str, Any], translator) -> ChatResponse:
        response = translate_body(translator, [{**body, "done": True}])
        response.raw_response = body
        return response

    async def _create_embedding(
        self,
        texts: List[str],
        model: Optional[str],
        cancel_token: Optional[CancellationToken],
    ) -> List[List[float]]:
        body = await self._get_client().post_json(
            "/api/embed",
            {"model": model or self.config.model, "input": texts},
            cancel_token=cancel_token,
        )
        return list(body.get("embeddings") or [])

    async def _list_models(self, cancel_token: Optional[CancellationToken]) -> List[Dict[str, Any]]:
        """List locally available models (GET /api/tags)"""
        body = await self._get_client().get_json("/api/tags", cancel_token=cancel_token)
        return list(body.get("models") or [])
