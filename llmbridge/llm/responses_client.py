"""
llmbridge OpenAI Responses Client - Responses API client

Supports:
- Function tools and provider-native tools (web search, file search, ...)
- Reasoning summaries for o-series and gpt-5 models
- JSON schema structured output
"""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from ..models import ChatResponse
from ..streaming.translators.base import translate_body
from ..streaming.translators.responses import ResponsesTranslator
from ..tools.models import ProviderTool, ToolDefinition
from ..tools.name_mapping import ToolNameMapping
from .base import BaseLLMClient, Capability, PreparedRequest
from .openai_client import OpenAIEndpointsMixin

logger = logging.getLogger(__name__)


def _text_content(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part.get("text", "") for part in content
            if isinstance(part, dict) and part.get("type") in ("text", "input_text", "output_text")
        )
    return "" if content is None else str(content)


def convert_messages(
    messages: List[Dict[str, Any]],
    mapping: ToolNameMapping,
) -> Tuple[Optional[str], List[Dict[str, Any]]]:
    """
    Convert chat-format messages to Responses API input items.

    Returns:
        (instructions, input_items)
    """
    instructions: List[str] = []
    items: List[Dict[str, Any]] = []

    for msg in messages:
        role = msg.get("role")
        content = msg.get("content")

        if role in ("system", "developer"):
            instructions.append(_text_content(content))
        elif role == "tool":
            items.append({
                "type": "function_call_output",
                "call_id": msg.get("tool_call_id", ""),
                "output": content if isinstance(content, str) else json.dumps(content),
            })
        elif role == "assistant":
            text = _text_content(content)
            if text:
                items.append({"role": "assistant", "content": text})
            for tc in msg.get("tool_calls") or []:
                function = tc.get("function") or {}
                arguments = function.get("arguments", "")
                items.append({
                    "type": "function_call",
                    "call_id": tc.get("id", ""),
                    "name": mapping.request_name_for_function(function.get("name", "")),
                    "arguments": arguments if isinstance(arguments, str) else json.dumps(arguments),
                })
        else:
            items.append({"role": "user", "content": content if isinstance(content, list) else _text_content(content)})

    return ("\n\n".join(instructions) or None), items


class OpenAIResponsesClient(OpenAIEndpointsMixin, BaseLLMClient):
    """
    OpenAI Responses API client.

    Example:
        client = OpenAIResponsesClient(model="gpt-5")
        web_search = ProviderTool(id="openai.web_search", request_name="web_search")

        async for part in client.stream_parts(messages, provider_tools=[web_search]):
            if part.type == PartType.TEXT_DELTA:
                print(part.delta, end="")
    """

    provider = "openai"
    default_base_url = "https://api.openai.com/v1"
    api_key_env = "OPENAI_API_KEY"
    translator_class = ResponsesTranslator

    capabilities = frozenset({
        Capability.CHAT,
        Capability.STREAMING,
        Capability.TOOL_CALLING,
        Capability.PROVIDER_TOOLS,
        Capability.REASONING,
        Capability.STRUCTURED_OUTPUT,
        Capability.EMBEDDING,
        Capability.MODEL_LISTING,
    })

    def _format_tool(self, tool: ToolDefinition, request_name: str) -> Dict[str, Any]:
        """Responses API function tools are flat"""
        return {
            "type": "function",
            "name": request_name,
            "description": tool.description,
            "parameters": tool.parameters,
        }

    def _build_request(
        self,
        messages: List[Dict[str, Any]],
        tools: List[ToolDefinition],
        provider_tools: List[ProviderTool],
        mapping: ToolNameMapping,
        stream: bool,
        **kwargs,
    ) -> PreparedRequest:
        """Build Responses API request body"""
        model = kwargs.get("model", self.config.model)
        instructions, items = convert_messages(messages, mapping)

        body: Dict[str, Any] = {
            "model": model,
            "input": items,
            "max_output_tokens": kwargs.get("max_tokens", self.config.max_tokens),
        }
        if instructions:
            body["instructions"] = instructions

        if self._is_restricted_model(model):
            reasoning_effort = kwargs.get("reasoning_effort", self.config.extra.get("reasoning_effort"))
            reasoning: Dict[str, Any] = {"summary": "auto"}
            if reasoning_effort:
                reasoning["effort"] = reasoning_effort
            body["reasoning"] = reasoning
        else:
            body["temperature"] = kwargs.get("temperature", self.config.temperature)
            body["top_p"] = kwargs.get("top_p", self.config.top_p)

        formatted = self._format_tools(tools, provider_tools, mapping)
        if formatted:
            body["tools"] = formatted
            body["tool_choice"] = kwargs.get("tool_choice", "auto")

        response_format = kwargs.get("response_format")
        if response_format:
            body["text"] = {
                "format": {
                    "type": "json_schema",
                    "name": response_format["name"],
                    "schema": response_format["schema"],
                    "strict": False,
                }
            }

        if stream:
            body["stream"] = True

        body.update(kwargs.get("extra_body") or {})
        return PreparedRequest(path="/responses", body=body)

    def _parse_response(self, body: Dict[str, Any], translator) -> ChatResponse:
        """Feed the finished response object through the stream translator"""
        if body.get("status") == "failed":
            frame = {"type": "response.failed", "response": body}
        elif body.get("status") == "incomplete":
            frame = {"type": "response.incomplete", "response": body}
        else:
            frame = {"type": "response.completed", "response": body}
        return translate_body(translator, [frame])
