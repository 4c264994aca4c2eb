"""
llmbridge Anthropic Client - Messages API client

Supports:
- Claude models, including extended thinking
- Function tools and server tools (web search, web fetch, code execution)
- Structured output through a JSON schema instruction
"""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from ..cancellation import CancellationToken
from ..models import ChatResponse
from ..streaming.translators.base import translate_body
from ..streaming.translators.messages import MessagesTranslator, message_to_frames
from ..tools.models import ProviderTool, ToolDefinition
from ..tools.name_mapping import ToolNameMapping
from .base import BaseLLMClient, Capability, PreparedRequest
from .structured import json_schema_instruction

logger = logging.getLogger(__name__)


ANTHROPIC_VERSION = "2023-06-01"

TOOL_CHOICES = {
    "auto": {"type": "auto"},
    "required": {"type": "any"},
    "any": {"type": "any"},
    "none": {"type": "none"},
}


def _parse_arguments(arguments: Any) -> Dict[str, Any]:
    if isinstance(arguments, dict):
        return arguments
    if not arguments:
        return {}
    try:
        parsed = json.loads(arguments)
    except json.JSONDecodeError:
        logger.debug("Tool call arguments in history are not valid JSON, sending as raw string")
        return {"raw": arguments}
    return parsed if isinstance(parsed, dict) else {"value": parsed}


def convert_messages(
    messages: List[Dict[str, Any]],
    mapping: ToolNameMapping,
) -> Tuple[Optional[str], List[Dict[str, Any]]]:
    """
    Convert chat-format messages to Messages API format.

    System messages are lifted into the system prompt and consecutive tool
    results are grouped into one user turn.

    Returns:
        (system_prompt, anthropic_messages)
    """
    system_parts: List[str] = []
    converted: List[Dict[str, Any]] = []

    for msg in messages:
        role = msg.get("role")
        content = msg.get("content")

        if role == "system":
            system_parts.append(content if isinstance(content, str) else json.dumps(content))
            continue

        if role == "tool":
            block = {
                "type": "tool_result",
                "tool_use_id": msg.get("tool_call_id", ""),
                "content": content if isinstance(content, str) else json.dumps(content),
            }
            if msg.get("is_error"):
                block["is_error"] = True
            previous = converted[-1] if converted else None
            if previous and previous["role"] == "user" and isinstance(previous["content"], list) \
                    and all(b.get("type") == "tool_result" for b in previous["content"]):
                previous["content"].append(block)
            else:
                converted.append({"role": "user", "content": [block]})
            continue

        if role == "assistant":
            blocks: List[Dict[str, Any]] = []
            if isinstance(content, list):
                blocks.extend(content)
            elif content:
                blocks.append({"type": "text", "text": content})
            for tc in msg.get("tool_calls") or []:
                function = tc.get("function") or {}
                blocks.append({
                    "type": "tool_use",
                    "id": tc.get("id", ""),
                    "name": mapping.request_name_for_function(function.get("name", "")),
                    "input": _parse_arguments(function.get("arguments")),
                })
            converted.append({"role": "assistant", "content": blocks or ""})
            continue

        converted.append({"role": "user", "content": content if content is not None else ""})

    return ("\n\n".join(system_parts) or None), converted


class AnthropicClient(BaseLLMClient):
    """
    Anthropic Messages API client.

    Example:
        client = AnthropicClient(api_key="sk-ant-xxx", model="claude-sonnet-4-5")
        response = await client.chat_completion([
            {"role": "system", "content": "You are helpful."},
            {"role": "user", "content": "Hello!"}
        ])

        # Extended thinking
        async for event in client.stream_completion(messages, thinking_budget=2048):
            if event.type == EventType.THINKING_DELTA:
                print(event.delta, end="")
    """

    provider = "anthropic"
    default_base_url = "https://api.anthropic.com"
    api_key_env = "ANTHROPIC_API_KEY"
    translator_class = MessagesTranslator

    capabilities = frozenset({
        Capability.CHAT,
        Capability.STREAMING,
        Capability.TOOL_CALLING,
        Capability.PROVIDER_TOOLS,
        Capability.REASONING,
        Capability.STRUCTURED_OUTPUT,
        Capability.MODEL_LISTING,
    })

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "anthropic-version": self.config.extra.get("anthropic_version", ANTHROPIC_VERSION),
        }
        if self.config.api_key:
            headers["x-api-key"] = self.config.api_key
        headers.update(self.config.default_headers)
        return headers

    def _format_tool(self, tool: ToolDefinition, request_name: str) -> Dict[str, Any]:
        """Format tool to Anthropic format"""
        return {
            "name": request_name,
            "description": tool.description,
            "input_schema": tool.parameters,
        }

    def _format_provider_tool(self, tool: ProviderTool) -> Dict[str, Any]:
        """Server tools carry a versioned type, e.g. web_search_20250305"""
        return {"type": tool.request_name, **tool.options, "name": tool.request_name}

    def _build_request(
        self,
        messages: List[Dict[str, Any]],
        tools: List[ToolDefinition],
        provider_tools: List[ProviderTool],
        mapping: ToolNameMapping,
        stream: bool,
        **kwargs,
    ) -> PreparedRequest:
        """Build Messages API request body"""
        model = kwargs.get("model", self.config.model)
        system, converted = convert_messages(messages, mapping)

        body: Dict[str, Any] = {
            "model": model,
            "messages": converted,
            "max_tokens": kwargs.get("max_tokens", self.config.max_tokens),
        }

        thinking_budget = kwargs.get("thinking_budget", self.config.extra.get("thinking_budget"))
        if thinking_budget:
            # Sampling params must stay at defaults while thinking
            body["thinking"] = {"type": "enabled", "budget_tokens": int(thinking_budget)}
        else:
            body["temperature"] = kwargs.get("temperature", self.config.temperature)
            if "top_p" in kwargs:
                body["top_p"] = kwargs["top_p"]

        response_format = kwargs.get("response_format")
        if response_format:
            instruction = json_schema_instruction(response_format["schema"])
            system = f"{system}\n\n{instruction}" if system else instruction
        if system:
            body["system"] = system

        formatted = self._format_tools(tools, provider_tools, mapping)
        if formatted:
            body["tools"] = formatted
            tool_choice = kwargs.get("tool_choice")
            if isinstance(tool_choice, dict):
                body["tool_choice"] = tool_choice
            elif tool_choice in TOOL_CHOICES:
                body["tool_choice"] = TOOL_CHOICES[tool_choice]

        if "stop" in kwargs:
            stop = kwargs["stop"]
            body["stop_sequences"] = [stop] if isinstance(stop, str) else list(stop)

        if stream:
            body["stream"] = True

        body.update(kwargs.get("extra_body") or {})
        return PreparedRequest(path="/v1/messages", body=body)

    def _parse_response(self, body: Dict[str, Any], translator) -> ChatResponse:
        response = translate_body(translator, message_to_frames(body))
        response.raw_response = body
        return response

    async def _list_models(self, cancel_token: Optional[CancellationToken]) -> List[Dict[str, Any]]:
        body = await self._get_client().get_json("/v1/models", cancel_token=cancel_token)
        return list(body.get("data") or [])
