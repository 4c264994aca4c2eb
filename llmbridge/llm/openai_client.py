"""
llmbridge OpenAI Client - Chat Completions API client

Supports:
- GPT-4o, GPT-4.1, o-series and gpt-5 reasoning models
- Any OpenAI-compatible API (DeepSeek, Groq, xAI, OpenRouter, vLLM, ...)
- Azure OpenAI deployments
"""

import logging
from typing import Any, Dict, List, Optional

from ..cancellation import CancellationToken
from ..models import ChatResponse
from ..streaming.translators.chat_completions import (
    ChatCompletionsTranslator, parse_chat_completion
)
from ..tools.models import ProviderTool, ToolDefinition
from ..tools.name_mapping import ToolNameMapping
from .base import BaseLLMClient, Capability, LLMConfig, PreparedRequest

logger = logging.getLogger(__name__)


def map_history_tool_names(
    messages: List[Dict[str, Any]],
    mapping: ToolNameMapping,
) -> List[Dict[str, Any]]:
    """Rename function tool calls in prior assistant turns to this request's wire names"""
    if not mapping.function_to_request_name:
        return messages

    mapped = []
    for msg in messages:
        tool_calls = msg.get("tool_calls")
        if msg.get("role") != "assistant" or not tool_calls:
            mapped.append(msg)
            continue
        renamed = []
        for tc in tool_calls:
            function = dict(tc.get("function") or {})
            if function.get("name"):
                function["name"] = mapping.request_name_for_function(function["name"])
            renamed.append({**tc, "function": function})
        mapped.append({**msg, "tool_calls": renamed})
    return mapped


class OpenAIEndpointsMixin:
    """Embeddings and model listing shared by the OpenAI clients"""

    # Default embedding model
    embedding_model = "text-embedding-3-small"

    def _request_params(self) -> Optional[Dict[str, str]]:
        return None

    async def _create_embedding(
        self,
        texts: List[str],
        model: Optional[str],
        cancel_token: Optional[CancellationToken],
    ) -> List[List[float]]:
        body = await self._get_client().post_json(
            "/embeddings",
            {"model": model or self.embedding_model, "input": texts},
            cancel_token=cancel_token,
            params=self._request_params(),
        )
        data = sorted(body.get("data") or [], key=lambda item: item.get("index", 0))
        return [item.get("embedding") or [] for item in data]

    async def _list_models(self, cancel_token: Optional[CancellationToken]) -> List[Dict[str, Any]]:
        body = await self._get_client().get_json(
            "/models", cancel_token=cancel_token, params=self._request_params()
        )
        return list(body.get("data") or [])


class OpenAIClient(OpenAIEndpointsMixin, BaseLLMClient):
    """
    OpenAI Chat Completions client.

    Example:
        # Basic usage
        client = OpenAIClient(api_key="sk-xxx", model="gpt-4o")
        response = await client.chat_completion([
            {"role": "user", "content": "Hello!"}
        ])

        # With tools
        response = await client.chat_completion(
            messages=[{"role": "user", "content": "What's the weather?"}],
            tools=[weather_tool]
        )

        # Streaming
        async for event in client.stream_completion(messages):
            if event.type == EventType.TEXT_DELTA:
                print(event.delta, end="")
    """

    provider = "openai"
    default_base_url = "https://api.openai.com/v1"
    api_key_env = "OPENAI_API_KEY"
    translator_class = ChatCompletionsTranslator

    capabilities = frozenset({
        Capability.CHAT,
        Capability.STREAMING,
        Capability.TOOL_CALLING,
        Capability.REASONING,
        Capability.STRUCTURED_OUTPUT,
        Capability.EMBEDDING,
        Capability.MODEL_LISTING,
    })

    chat_path = "/chat/completions"

    def _build_request(
        self,
        messages: List[Dict[str, Any]],
        tools: List[ToolDefinition],
        provider_tools: List[ProviderTool],
        mapping: ToolNameMapping,
        stream: bool,
        **kwargs,
    ) -> PreparedRequest:
        """Build Chat Completions request body"""
        model = kwargs.get("model", self.config.model)
        body: Dict[str, Any] = {
            "model": model,
            "messages": map_history_tool_names(messages, mapping),
            **self._model_params(model, **kwargs),
        }

        # Add tools if provided
        formatted = self._format_tools(tools, provider_tools, mapping)
        if formatted:
            body["tools"] = formatted
            body["tool_choice"] = kwargs.get("tool_choice", "auto")

        # Add stop sequences if provided
        if "stop" in kwargs:
            body["stop"] = kwargs["stop"]

        reasoning_effort = kwargs.get("reasoning_effort", self.config.extra.get("reasoning_effort"))
        if reasoning_effort and self._is_restricted_model(model):
            body["reasoning_effort"] = reasoning_effort

        response_format = kwargs.get("response_format")
        if response_format:
            body["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": response_format["name"],
                    "schema": response_format["schema"],
                    "strict": False,
                },
            }

        if stream:
            body["stream"] = True
            body["stream_options"] = {"include_usage": True}

        body.update(kwargs.get("extra_body") or {})
        return PreparedRequest(path=self.chat_path, body=body, params=self._request_params())

    def _parse_response(self, body: Dict[str, Any], translator) -> ChatResponse:
        return parse_chat_completion(body, translator)


class DeepSeekClient(OpenAIClient):
    """DeepSeek (reasoning arrives in reasoning_content)"""

    provider = "deepseek"
    default_base_url = "https://api.deepseek.com/v1"
    api_key_env = "DEEPSEEK_API_KEY"
    capabilities = OpenAIClient.capabilities - {Capability.EMBEDDING}


class GroqClient(OpenAIClient):
    """Groq (reasoning models stream a reasoning field)"""

    provider = "groq"
    default_base_url = "https://api.groq.com/openai/v1"
    api_key_env = "GROQ_API_KEY"
    capabilities = OpenAIClient.capabilities - {Capability.EMBEDDING}


class XAIClient(OpenAIClient):
    """xAI Grok"""

    provider = "xai"
    default_base_url = "https://api.x.ai/v1"
    api_key_env = "XAI_API_KEY"
    capabilities = OpenAIClient.capabilities - {Capability.EMBEDDING}


class OpenRouterClient(OpenAIClient):
    """OpenRouter (model names are vendor-prefixed, e.g. anthropic/claude-sonnet-4.5)"""

    provider = "openrouter"
    default_base_url = "https://openrouter.ai/api/v1"
    api_key_env = "OPENROUTER_API_KEY"
    capabilities = OpenAIClient.capabilities - {Capability.EMBEDDING}


class AzureOpenAIClient(OpenAIClient):
    """
    Azure OpenAI client.

    Example:
        client = AzureOpenAIClient(
            api_key="xxx",
            base_url="https://xxx.openai.azure.com/openai/deployments/gpt-4o",
            model="gpt-4o",
            extra={"api_version": "2024-12-01-preview"},
        )
    """

    provider = "azure"
    api_key_env = "AZURE_OPENAI_API_KEY"
    capabilities = OpenAIClient.capabilities - {Capability.MODEL_LISTING}

    def __init__(self, config: Optional[LLMConfig] = None, http_transport=None, **kwargs):
        """
        Args:
            config: LLMConfig instance
            api_key: Azure OpenAI API key
            base_url: Deployment URL
            model: Deployment name
            extra: {"api_version": ...} (default: 2024-12-01-preview)
        """
        super().__init__(config, http_transport=http_transport, **kwargs)
        if not self.config.base_url:
            raise ValueError("base_url is required for Azure OpenAI")
        self.api_version = self.config.extra.get("api_version") or "2024-12-01-preview"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["api-key"] = self.config.api_key
        headers.update(self.config.default_headers)
        return headers

    def _request_params(self) -> Optional[Dict[str, str]]:
        return {"api-version": self.api_version}
