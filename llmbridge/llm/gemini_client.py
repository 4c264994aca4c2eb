"""
llmbridge Gemini Client - Google Generative Language API client

Supports:
- Gemini 2.x models, including thought summaries
- Function calling and built-in tools (google_search, code_execution, url_context)
- JSON schema structured output
- Embeddings via batchEmbedContents
"""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from ..cancellation import CancellationToken
from ..models import ChatResponse
from ..streaming.translators.base import translate_body
from ..streaming.translators.gemini import GeminiTranslator
from ..tools.models import ProviderTool, ToolDefinition
from ..tools.name_mapping import ToolNameMapping
from .base import BaseLLMClient, Capability, PreparedRequest

logger = logging.getLogger(__name__)


def _text_parts(content: Any) -> List[Dict[str, Any]]:
    if isinstance(content, str):
        return [{"text": content}] if content else []
    if isinstance(content, list):
        return [
            {"text": part.get("text", "")} for part in content
            if isinstance(part, dict) and part.get("type") == "text"
        ]
    return []


def _function_response(content: Any) -> Dict[str, Any]:
    if isinstance(content, str):
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError:
            return {"content": content}
        return parsed if isinstance(parsed, dict) else {"content": parsed}
    return content if isinstance(content, dict) else {"content": content}


def convert_messages(
    messages: List[Dict[str, Any]],
    mapping: ToolNameMapping,
) -> Tuple[Optional[Dict[str, Any]], List[Dict[str, Any]]]:
    """
    Convert chat-format messages to Gemini contents, extracting the system prompt.

    Returns:
        (system_instruction, contents)
    """
    system_parts: List[Dict[str, Any]] = []
    contents: List[Dict[str, Any]] = []
    names_by_call_id: Dict[str, str] = {}

    for msg in messages:
        role = msg.get("role")
        content = msg.get("content")

        if role == "system":
            system_parts.extend(_text_parts(content))
        elif role == "assistant":
            parts = _text_parts(content)
            for tc in msg.get("tool_calls") or []:
                function = tc.get("function") or {}
                name = mapping.request_name_for_function(function.get("name", ""))
                names_by_call_id[tc.get("id", "")] = name
                args = _function_response(function.get("arguments") or "{}")
                parts.append({"functionCall": {"name": name, "args": args}})
            contents.append({"role": "model", "parts": parts})
        elif role == "tool":
            call_id = msg.get("tool_call_id", "")
            name = msg.get("name") or names_by_call_id.get(call_id, "")
            part = {"functionResponse": {"name": name, "response": _function_response(content)}}
            previous = contents[-1] if contents else None
            if previous and previous["role"] == "user" and all("functionResponse" in p for p in previous["parts"]):
                previous["parts"].append(part)
            else:
                contents.append({"role": "user", "parts": [part]})
        else:
            contents.append({"role": "user", "parts": _text_parts(content)})

    system_instruction = {"parts": system_parts} if system_parts else None
    return system_instruction, contents


class GeminiClient(BaseLLMClient):
    """
    Google Gemini API client.

    Example:
        client = GeminiClient(api_key="xxx", model="gemini-2.5-flash")
        response = await client.chat_completion([
            {"role": "user", "content": "Hello!"}
        ])

        # Grounded answers with Google Search
        search = ProviderTool(id="google.google_search", request_name="google_search")
        response = await client.chat_completion(messages, provider_tools=[search])
    """

    provider = "google"
    default_base_url = "https://generativelanguage.googleapis.com/v1beta"
    api_key_env = "GOOGLE_API_KEY"
    translator_class = GeminiTranslator

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

    # Default embedding model
    embedding_model = "gemini-embedding-001"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["x-goog-api-key"] = self.config.api_key
        headers.update(self.config.default_headers)
        return headers

    def _format_tool(self, tool: ToolDefinition, request_name: str) -> Dict[str, Any]:
        """Format tool to Gemini function declaration"""
        return {
            "name": request_name,
            "description": tool.description,
            "parameters": tool.parameters,
        }

    def _format_tools(
        self,
        tools: List[ToolDefinition],
        provider_tools: List[ProviderTool],
        mapping: ToolNameMapping,
    ) -> List[Dict[str, Any]]:
        """Function declarations share one tool entry; built-in tools get their own"""
        formatted: List[Dict[str, Any]] = []
        if tools:
            formatted.append({"functionDeclarations": [
                self._format_tool(tool, mapping.request_name_for_function(tool.name))
                for tool in tools
            ]})
        formatted.extend({tool.request_name: dict(tool.options)} for tool in provider_tools)
        return formatted

    def _build_request(
        self,
        messages: List[Dict[str, Any]],
        tools: List[ToolDefinition],
        provider_tools: List[ProviderTool],
        mapping: ToolNameMapping,
        stream: bool,
        **kwargs,
    ) -> PreparedRequest:
        """Build generateContent request body"""
        model = kwargs.get("model", self.config.model)
        system_instruction, contents = convert_messages(messages, mapping)

        generation_config: Dict[str, Any] = {
            "temperature": kwargs.get("temperature", self.config.temperature),
            "maxOutputTokens": kwargs.get("max_tokens", self.config.max_tokens),
            "topP": kwargs.get("top_p", self.config.top_p),
        }
        if "stop" in kwargs:
            stop = kwargs["stop"]
            generation_config["stopSequences"] = [stop] if isinstance(stop, str) else list(stop)

        thinking_budget = kwargs.get("thinking_budget", self.config.extra.get("thinking_budget"))
        if thinking_budget is not None:
            generation_config["thinkingConfig"] = {
                "includeThoughts": True,
                "thinkingBudget": int(thinking_budget),
            }

        response_format = kwargs.get("response_format")
        if response_format:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseJsonSchema"] = response_format["schema"]

        body: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": generation_config,
        }
        if system_instruction:
            body["systemInstruction"] = system_instruction

        formatted = self._format_tools(tools, provider_tools, mapping)
        if formatted:
            body["tools"] = formatted

        body.update(kwargs.get("extra_body") or {})

        if stream:
            return PreparedRequest(
                path=f"/models/{model}:streamGenerateContent",
                body=body,
                params={"alt": "sse"},
            )
        return PreparedRequest(path=f"/models/{model}:generateContent", body=body)

    def _parse_response(self, body: Dict[str, Any], translator) -> ChatResponse:
        response = translate_body(translator, [body])
        response.raw_response = body
        return response

    async def _create_embedding(
        self,
        texts: List[str],
        model: Optional[str],
        cancel_token: Optional[CancellationToken],
    ) -> List[List[float]]:
        model = model or self.embedding_model
        body = await self._get_client().post_json(
            f"/models/{model}:batchEmbedContents",
            {"requests": [
                {"model": f"models/{model}", "content": {"parts": [{"text": text}]}}
                for text in texts
            ]},
            cancel_token=cancel_token,
        )
        return [item.get("values") or [] for item in body.get("embeddings") or []]

    async def _list_models(self, cancel_token: Optional[CancellationToken]) -> List[Dict[str, Any]]:
        body = await self._get_client().get_json("/models", cancel_token=cancel_token)
        return list(body.get("models") or [])
