"""
llmbridge - One client interface over many LLM providers

llmbridge talks to OpenAI (Chat Completions and Responses), Anthropic, Gemini,
Ollama and OpenAI-compatible vendors over raw HTTP, and normalizes their
streaming wire formats into one typed event stream.

Key Features:
- Incremental UTF-8 and SSE / JSONL decoding
- Tool call fragment aggregation and tool name collision mapping
- Reasoning ("thinking") separated from answer text, including inline <think> tags
- StreamPart view with explicit start / delta / end boundaries
- Cooperative cancellation with CancellationToken
- Structured output validated with pydantic

Quick Start:
    from llmbridge import OpenAIClient, EventType

    async with OpenAIClient(model="gpt-4o") as client:
        response = await client.chat_completion([
            {"role": "user", "content": "Hello!"}
        ])
        print(response.text)

        async for event in client.stream_completion(messages):
            if event.type == EventType.TEXT_DELTA:
                print(event.delta, end="")

Cancellation:
    token = CancellationToken()
    stream = client.stream_completion(messages, cancel_token=token)
    ...
    token.cancel("user pressed stop")  # stream ends with an ErrorEvent
"""

__version__ = "0.1.0"

# Errors
from .errors import (
    LLMError,
    MalformedFrameError,
    TransportError,
    AuthenticationError,
    InvalidRequestError,
    QuotaExceededError,
    ModelNotAvailableError,
    RateLimitError,
    RequestTimeoutError,
    ProviderError,
    CancelledError,
    UnsupportedCapabilityError,
    ResponseFormatError,
)

# Cancellation
from .cancellation import CancellationToken

# Tools
from .tools import (
    ToolDefinition,
    ProviderTool,
    FunctionCall,
    ToolCall,
    ToolResult,
    ToolNameMapping,
    create_tool_name_mapping,
)

# Responses
from .models import ChatResponse, StopReason, Usage

# Streaming
from .streaming import (
    EventType,
    PartType,
    StreamEvent,
    StreamPart,
    translate_stream,
    adapt_stream_parts,
)

# LLM Clients
from .llm import (
    BaseLLMClient,
    Capability,
    LLMConfig,
    OpenAIClient,
    OpenAIResponsesClient,
    AnthropicClient,
    GeminiClient,
    OllamaClient,
    LLMRegistry,
    create_client,
    run_tool_loop,
    stream_tool_loop,
)

# Config
from .config import LLMProviderConfig, load_config

__all__ = [
    "__version__",
    # Errors
    "LLMError", "MalformedFrameError", "TransportError", "AuthenticationError",
    "InvalidRequestError", "QuotaExceededError", "ModelNotAvailableError",
    "RateLimitError", "RequestTimeoutError", "ProviderError", "CancelledError",
    "UnsupportedCapabilityError", "ResponseFormatError",
    # Cancellation
    "CancellationToken",
    # Tools
    "ToolDefinition", "ProviderTool", "FunctionCall", "ToolCall", "ToolResult",
    "ToolNameMapping", "create_tool_name_mapping",
    # Responses
    "ChatResponse", "StopReason", "Usage",
    # Streaming
    "EventType", "PartType", "StreamEvent", "StreamPart",
    "translate_stream", "adapt_stream_parts",
    # LLM
    "BaseLLMClient", "Capability", "LLMConfig",
    "OpenAIClient", "OpenAIResponsesClient", "AnthropicClient", "GeminiClient", "OllamaClient",
    "LLMRegistry", "create_client", "run_tool_loop", "stream_tool_loop",
    # Config
    "LLMProviderConfig", "load_config",
]
