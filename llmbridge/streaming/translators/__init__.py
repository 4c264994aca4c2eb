"""
llmbridge Stream Translators - One stateful translator per vendor wire format

- ChatCompletionsTranslator: OpenAI Chat Completions and compatible vendors
- ResponsesTranslator: OpenAI Responses API
- MessagesTranslator: Anthropic Messages API
- GeminiTranslator: Google Gemini streamGenerateContent
- OllamaTranslator: Ollama /api/chat JSONL
"""

from .base import StreamState, StreamTranslator, translate_body
from .chat_completions import ChatCompletionsTranslator
from .responses import ResponsesTranslator
from .messages import MessagesTranslator
from .gemini import GeminiTranslator
from .ollama import OllamaTranslator

__all__ = [
    "StreamState",
    "StreamTranslator",
    "translate_body",
    "ChatCompletionsTranslator",
    "ResponsesTranslator",
    "MessagesTranslator",
    "GeminiTranslator",
    "OllamaTranslator",
]
