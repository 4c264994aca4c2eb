"""
llmbridge LLM Clients - Provider clients over raw HTTP

Provides:
- OpenAIClient: Chat Completions (plus DeepSeek, Groq, xAI, OpenRouter, Azure)
- OpenAIResponsesClient: Responses API with provider-native tools
- AnthropicClient: Messages API
- GeminiClient: Google Generative Language API
- OllamaClient: Local models
- LLMRegistry / create_client: Named clients built from config
- stream_tool_loop / run_tool_loop: Execute tool calls and re-issue the request

Usage:
    from llmbridge.llm import OpenAIClient, LLMConfig

    config = LLMConfig(model="gpt-4o", api_key="sk-xxx")
    async with OpenAIClient(config) as client:
        response = await client.chat_completion(messages=[...])

        async for part in client.stream_parts(messages=[...]):
            ...
"""

from .base import BaseLLMClient, Capability, LLMConfig, PreparedRequest
from .transport import HttpTransport
from .structured import parse_structured_output
from .openai_client import (
    OpenAIClient,
    DeepSeekClient,
    GroqClient,
    XAIClient,
    OpenRouterClient,
    AzureOpenAIClient,
)
from .responses_client import OpenAIResponsesClient
from .anthropic_client import AnthropicClient
from .gemini_client import GeminiClient
from .ollama_client import OllamaClient
from .registry import LLMRegistry, PROVIDER_CLIENTS, create_client
from .tool_loop import ToolLoopResult, ToolLoopStep, execute_tool_calls, run_tool_loop, stream_tool_loop

__all__ = [
    "BaseLLMClient",
    "Capability",
    "LLMConfig",
    "PreparedRequest",
    "HttpTransport",
    "parse_structured_output",
    "OpenAIClient",
    "DeepSeekClient",
    "GroqClient",
    "XAIClient",
    "OpenRouterClient",
    "AzureOpenAIClient",
    "OpenAIResponsesClient",
    "AnthropicClient",
    "GeminiClient",
    "OllamaClient",
    "LLMRegistry",
    "PROVIDER_CLIENTS",
    "create_client",
    "ToolLoopResult",
    "ToolLoopStep",
    "execute_tool_calls",
    "run_tool_loop",
    "stream_tool_loop",
]
