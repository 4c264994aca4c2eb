"""
llmbridge LLM Client Base - Base class and common types for LLM clients

This module provides:
- BaseLLMClient: Abstract base class for all provider clients
- LLMConfig: Configuration dataclass
- Capability: Operations a provider may implement

Every client speaks raw HTTP through HttpTransport and hands streaming
bodies to the provider's StreamTranslator, so the streaming and the
non-streaming paths share one parser per wire format.
"""

import logging
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any, AsyncIterator, Dict, FrozenSet, List, Optional, Tuple, Type, TypeVar, Union
)

import httpx
from pydantic import BaseModel

from ..cancellation import CancellationToken
from ..errors import UnsupportedCapabilityError
from ..models import ChatResponse
from ..streaming.adapter import adapt_stream_parts
from ..streaming.engine import translate_stream
from ..streaming.models import StreamEvent, StreamPart
from ..streaming.translators.base import StreamTranslator
from ..tools.models import ProviderTool, ToolDefinition
from ..tools.name_mapping import ToolNameMapping, create_tool_name_mapping
from .structured import parse_structured_output
from .transport import HttpTransport

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

ToolInput = Union[Dict[str, Any], ToolDefinition]

# Models that reject sampling params and use max_completion_tokens
_RESTRICTED_MODEL_PATTERN = re.compile(r"^(o\d|gpt-5)", re.IGNORECASE)


class Capability(str, Enum):
    """Operations a provider client may implement"""
    CHAT = "chat"
    STREAMING = "streaming"
    TOOL_CALLING = "tool_calling"
    PROVIDER_TOOLS = "provider_tools"
    REASONING = "reasoning"
    STRUCTURED_OUTPUT = "structured_output"
    EMBEDDING = "embedding"
    MODEL_LISTING = "model_listing"


@dataclass
class LLMConfig:
    """
    Configuration for LLM clients.

    Attributes:
        api_key: API key for the provider
        model: Model name (e.g., "gpt-4o", "claude-sonnet-4-5")
        base_url: Optional base URL override for API
        temperature: Sampling temperature (0.0 - 2.0)
        max_tokens: Maximum tokens in response
        top_p: Nucleus sampling parameter
        timeout: Request timeout in seconds
        default_headers: Additional headers to send with requests
        provider_id: Id used in metadata and errors (defaults to the client's provider)
    """
    api_key: Optional[str] = None
    model: str = "gpt-4o"
    base_url: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 4096
    top_p: float = 1.0
    timeout: int = 60
    default_headers: Dict[str, str] = field(default_factory=dict)
    provider_id: Optional[str] = None

    # Streaming config
    stream_timeout: int = 120

    # Extra provider-specific config (e.g., api_version, reasoning_effort)
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary"""
        return {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "top_p": self.top_p,
        }


@dataclass
class PreparedRequest:
    """Provider request ready to send"""
    path: str
    body: Dict[str, Any]
    params: Optional[Dict[str, str]] = None


class BaseLLMClient(ABC):
    """
    Abstract base class for LLM clients.

    Subclasses declare their capabilities and translator class, and
    implement _build_request() for their wire format.

    Example:
        async with OpenAIClient(model="gpt-4o") as client:
            response = await client.chat_completion([
                {"role": "user", "content": "Hello!"}
            ])

            async for event in client.stream_completion(messages):
                if event.type == EventType.TEXT_DELTA:
                    print(event.delta, end="")
    """

    # Provider name (override in subclasses)
    provider: str = "unknown"

    # Defaults (override in subclasses)
    default_base_url: str = ""
    api_key_env: Optional[str] = None
    translator_class: Type[StreamTranslator] = StreamTranslator

    # Operations this provider implements, fixed per client class
    capabilities: FrozenSet[Capability] = frozenset({Capability.CHAT, Capability.STREAMING})

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs,
    ):
        """
        Initialize the client.

        Args:
            config: LLMConfig instance
            http_transport: Optional httpx transport (tests use httpx.MockTransport)
            **kwargs: Override config values
        """
        if config is None:
            if "model" not in kwargs:
                raise ValueError("model is required")
            if "api_key" not in kwargs and self.api_key_env:
                kwargs["api_key"] = os.environ.get(self.api_key_env)
            config = LLMConfig(**kwargs)
        else:
            # Apply kwargs overrides
            for key, value in kwargs.items():
                if hasattr(config, key):
                    setattr(config, key, value)

        self.config = config
        self.provider_id = config.provider_id or self.provider
        self._http_transport = http_transport
        self._client: Optional[HttpTransport] = None  # Lazy-initialized transport

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def require(self, capability: Capability) -> None:
        """Raise UnsupportedCapabilityError before any network call"""
        if capability not in self.capabilities:
            raise UnsupportedCapabilityError(capability.value, provider=self.provider_id)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _headers(self) -> Dict[str, str]:
        """Request headers (default: bearer token)"""
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        headers.update(self.config.default_headers)
        return headers

    def _get_client(self) -> HttpTransport:
        """Get or create the HTTP transport"""
        if self._client is None:
            self._client = HttpTransport(
                base_url=self.config.base_url or self.default_base_url,
                headers=self._headers(),
                timeout=self.config.timeout,
                stream_timeout=self.config.stream_timeout,
                provider=self.provider_id,
                transport=self._http_transport,
            )
        return self._client

    # ------------------------------------------------------------------
    # Provider hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _build_request(
        self,
        messages: List[Dict[str, Any]],
        tools: List[ToolDefinition],
        provider_tools: List[ProviderTool],
        mapping: ToolNameMapping,
        stream: bool,
        **kwargs,
    ) -> PreparedRequest:
        """
        Build the provider request (provider-specific).

        Args:
            messages: List of message dicts (OpenAI chat format)
            tools: Function tools, to be sent under their mapped request names
            provider_tools: Provider-native tools
            mapping: Tool name mapping for this request
            stream: Whether to request a streaming response
            **kwargs: Per-call overrides (model, temperature, response_format, ...)
        """
        pass

    def _create_translator(self, mapping: ToolNameMapping, model: str) -> StreamTranslator:
        return self.translator_class(
            provider_id=self.provider_id,
            model=model,
            tool_name_mapping=mapping,
        )

    @abstractmethod
    def _parse_response(self, body: Dict[str, Any], translator: StreamTranslator) -> ChatResponse:
        """Parse a non-streaming response body (provider-specific)"""
        pass

    def _format_tool(self, tool: ToolDefinition, request_name: str) -> Dict[str, Any]:
        """
        Format ToolDefinition to provider-specific schema.

        Default implementation uses OpenAI Chat-Completions format.
        Override in subclasses for other formats.
        """
        return {
            "type": "function",
            "function": {
                "name": request_name,
                "description": tool.description,
                "parameters": tool.parameters,
            }
        }

    def _format_provider_tool(self, tool: ProviderTool) -> Dict[str, Any]:
        return {"type": tool.request_name, **tool.options}

    # ------------------------------------------------------------------
    # Request helpers
    # ------------------------------------------------------------------

    def _prepare_tools(
        self,
        tools: Optional[List[ToolInput]],
        provider_tools: Optional[List[ProviderTool]],
    ) -> Tuple[List[ToolDefinition], List[ProviderTool], ToolNameMapping]:
        if tools:
            self.require(Capability.TOOL_CALLING)
        if provider_tools:
            self.require(Capability.PROVIDER_TOOLS)

        definitions = [_coerce_tool(tool) for tool in tools or []]
        provider_list = list(provider_tools or [])
        mapping = create_tool_name_mapping(
            [tool.name for tool in definitions],
            {tool.id: tool.request_name for tool in provider_list},
        )
        return definitions, provider_list, mapping

    def _format_tools(
        self,
        tools: List[ToolDefinition],
        provider_tools: List[ProviderTool],
        mapping: ToolNameMapping,
    ) -> List[Dict[str, Any]]:
        formatted = [
            self._format_tool(tool, mapping.request_name_for_function(tool.name))
            for tool in tools
        ]
        formatted.extend(self._format_provider_tool(tool) for tool in provider_tools)
        return formatted

    def _is_restricted_model(self, model: Optional[str] = None) -> bool:
        """Check if a model rejects sampling params (o-series and gpt-5 reasoning models)"""
        model = model or self.config.model
        return bool(_RESTRICTED_MODEL_PATTERN.match(model.strip()))

    def _model_params(self, model: str, **kwargs) -> Dict[str, Any]:
        """Sampling / length params appropriate for the model"""
        max_tokens = kwargs.get("max_tokens", self.config.max_tokens)
        if self._is_restricted_model(model):
            return {"max_completion_tokens": max_tokens}
        return {
            "temperature": kwargs.get("temperature", self.config.temperature),
            "max_tokens": max_tokens,
            "top_p": kwargs.get("top_p", self.config.top_p),
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def chat_completion(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[ToolInput]] = None,
        provider_tools: Optional[List[ProviderTool]] = None,
        config: Optional[Dict[str, Any]] = None,
        cancel_token: Optional[CancellationToken] = None,
        **kwargs
    ) -> ChatResponse:
        """
        Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'
            tools: Optional list of tools (dict or ToolDefinition)
            provider_tools: Optional provider-native tools
            config: Optional config overrides
            cancel_token: Optional cancellation token
            **kwargs: Additional parameters

        Returns:
            ChatResponse with text, thinking, tool_calls, usage, etc.

        Raises:
            UnsupportedCapabilityError: Operation not supported (before any network call)
            CancelledError: Token cancelled before or during the request
            TransportError: Connection failure or HTTP error

        Example:
            response = await client.chat_completion([
                {"role": "system", "content": "You are helpful."},
                {"role": "user", "content": "Hello!"}
            ])
            print(response.text)
        """
        self.require(Capability.CHAT)
        definitions, provider_list, mapping = self._prepare_tools(tools, provider_tools)

        merged_kwargs = {**kwargs}
        if config:
            merged_kwargs.update(config)

        if cancel_token is not None:
            cancel_token.raise_if_cancelled(self.provider_id)

        request = self._build_request(
            messages, definitions, provider_list, mapping, stream=False, **merged_kwargs
        )
        model = merged_kwargs.get("model", self.config.model)

        logger.debug(f"{self.provider_id} chat completion: model={model}, tools={len(definitions)}")
        body = await self._get_client().post_json(
            request.path, request.body, cancel_token=cancel_token, params=request.params
        )
        return self._parse_response(body, self._create_translator(mapping, model))

    def stream_completion(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[ToolInput]] = None,
        provider_tools: Optional[List[ProviderTool]] = None,
        config: Optional[Dict[str, Any]] = None,
        cancel_token: Optional[CancellationToken] = None,
        **kwargs
    ) -> AsyncIterator[StreamEvent]:
        """
        Send a streaming chat completion request.

        Capabilities are checked immediately; once iteration starts the stream
        never raises: failures and cancellation arrive as a final ErrorEvent.

        Yields:
            StreamEvents ending with exactly one CompletionEvent or ErrorEvent

        Example:
            async for event in client.stream_completion(messages):
                if event.type == EventType.TEXT_DELTA:
                    print(event.delta, end="", flush=True)
                elif event.type == EventType.COMPLETION:
                    print(f"\\nUsed {event.response.usage.total_tokens} tokens")
        """
        self.require(Capability.STREAMING)
        definitions, provider_list, mapping = self._prepare_tools(tools, provider_tools)

        merged_kwargs = {**kwargs}
        if config:
            merged_kwargs.update(config)

        request = self._build_request(
            messages, definitions, provider_list, mapping, stream=True, **merged_kwargs
        )
        model = merged_kwargs.get("model", self.config.model)
        translator = self._create_translator(mapping, model)

        logger.debug(f"{self.provider_id} stream: model={model}, tools={len(definitions)}")
        return self._stream_events(request, translator, cancel_token)

    async def _stream_events(
        self,
        request: PreparedRequest,
        translator: StreamTranslator,
        cancel_token: Optional[CancellationToken],
    ) -> AsyncIterator[StreamEvent]:
        if cancel_token is not None and cancel_token.is_cancelled:
            # Fail fast without opening a connection
            async for event in translate_stream(_no_chunks(), translator, cancel_token):
                yield event
            return

        chunks = self._get_client().stream_bytes(request.path, request.body, params=request.params)
        async for event in translate_stream(chunks, translator, cancel_token):
            yield event

    def stream_parts(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[ToolInput]] = None,
        provider_tools: Optional[List[ProviderTool]] = None,
        config: Optional[Dict[str, Any]] = None,
        cancel_token: Optional[CancellationToken] = None,
        **kwargs
    ) -> AsyncIterator[StreamPart]:
        """
        Stream with explicit start / delta / end boundaries.

        Yields:
            StreamParts ending with FinishPart or ErrorPart
        """
        events = self.stream_completion(
            messages,
            tools=tools,
            provider_tools=provider_tools,
            config=config,
            cancel_token=cancel_token,
            **kwargs,
        )
        return adapt_stream_parts(events)

    async def structured_completion(
        self,
        messages: List[Dict[str, Any]],
        response_model: Type[ModelT],
        config: Optional[Dict[str, Any]] = None,
        cancel_token: Optional[CancellationToken] = None,
        **kwargs
    ) -> ModelT:
        """
        Request JSON output matching a pydantic model.

        Raises:
            ResponseFormatError: Output is not valid JSON or fails validation

        Example:
            class Weather(BaseModel):
                city: str
                temperature: float

            weather = await client.structured_completion(messages, Weather)
        """
        self.require(Capability.STRUCTURED_OUTPUT)
        kwargs["response_format"] = {
            "name": response_model.__name__,
            "schema": response_model.model_json_schema(),
        }
        response = await self.chat_completion(
            messages, config=config, cancel_token=cancel_token, **kwargs
        )
        return parse_structured_output(response.text or "", response_model, self.provider_id)

    async def create_embedding(
        self,
        texts: Union[str, List[str]],
        model: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[List[float]]:
        """
        Create embeddings for one or more texts.

        Raises:
            UnsupportedCapabilityError: Provider has no embeddings endpoint
        """
        self.require(Capability.EMBEDDING)
        return await self._create_embedding([texts] if isinstance(texts, str) else list(texts), model, cancel_token)

    async def _create_embedding(
        self,
        texts: List[str],
        model: Optional[str],
        cancel_token: Optional[CancellationToken],
    ) -> List[List[float]]:
        raise UnsupportedCapabilityError(Capability.EMBEDDING.value, provider=self.provider_id)

    async def list_models(self, cancel_token: Optional[CancellationToken] = None) -> List[Dict[str, Any]]:
        """
        List models available to this client.

        Raises:
            UnsupportedCapabilityError: Provider has no model listing endpoint
        """
        self.require(Capability.MODEL_LISTING)
        return await self._list_models(cancel_token)

    async def _list_models(self, cancel_token: Optional[CancellationToken]) -> List[Dict[str, Any]]:
        raise UnsupportedCapabilityError(Capability.MODEL_LISTING.value, provider=self.provider_id)

    async def close(self) -> None:
        """Close the client and release resources"""
        if self._client is not None:
            await self._client.close()
        self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def _coerce_tool(tool: ToolInput) -> ToolDefinition:
    """Accept ToolDefinition or an OpenAI / Anthropic style tool dict"""
    if isinstance(tool, ToolDefinition):
        return tool
    function = tool.get("function", tool)
    return ToolDefinition(
        name=function.get("name", ""),
        description=function.get("description", ""),
        parameters=function.get("parameters") or function.get("input_schema") or {"type": "object", "properties": {}},
    )


async def _no_chunks() -> AsyncIterator[bytes]:
    return
    yield b""
