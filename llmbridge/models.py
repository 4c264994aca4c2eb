"""
llmbridge Models - Response dataclasses shared by every provider

This module contains the provider-agnostic result of a chat call so that the
streaming layer and the clients can import it without pulling in a client.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .tools.models import ToolCall


class StopReason(str, Enum):
    """Reason why the LLM stopped generating"""
    END_TURN = "end_turn"               # Natural completion
    MAX_TOKENS = "max_tokens"           # Hit token limit
    STOP_SEQUENCE = "stop_sequence"     # Hit stop sequence
    TOOL_USE = "tool_use"               # Model wants to use a tool
    CONTENT_FILTER = "content_filter"   # Blocked by the provider's filter
    PAUSE_TURN = "pause_turn"           # Long-running server tool paused the turn
    ERROR = "error"                     # Error occurred


# ===== Usage =====

@dataclass
class Usage:
    """Token usage information"""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    reasoning_tokens: Optional[int] = None
    cached_tokens: Optional[int] = None

    def __post_init__(self):
        if not self.total_tokens and (self.prompt_tokens or self.completion_tokens):
            self.total_tokens = self.prompt_tokens + self.completion_tokens

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }
        if self.reasoning_tokens is not None:
            data["reasoning_tokens"] = self.reasoning_tokens
        if self.cached_tokens is not None:
            data["cached_tokens"] = self.cached_tokens
        return data


# ===== Chat Response =====

@dataclass
class ChatResponse:
    """
    Standardized LLM response format.

    All provider clients return this for non-streaming calls, and streams
    carry one inside their final Completion event.

    Attributes:
        text: Answer text (None when the model only called tools)
        thinking: Reasoning text, if the provider exposed any
        tool_calls: Completed function tool calls
        usage: Token counters
        stop_reason: Normalized stop reason
        finish_reason: Raw provider stop/finish reason
        model: Model that produced the response
        response_id: Provider response id
        provider_metadata: Provider-specific extras keyed by provider id
        raw_response: Raw provider payload for debugging
    """
    text: Optional[str] = None
    thinking: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None
    usage: Optional[Usage] = None
    stop_reason: StopReason = StopReason.END_TURN
    finish_reason: Optional[str] = None
    model: Optional[str] = None
    response_id: Optional[str] = None
    provider_metadata: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    # Raw response for debugging
    raw_response: Optional[Any] = None

    @property
    def content(self) -> str:
        """Answer text, empty string when absent"""
        return self.text or ""

    @property
    def has_tool_calls(self) -> bool:
        """Check if response contains tool calls"""
        return self.tool_calls is not None and len(self.tool_calls) > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "thinking": self.thinking,
            "tool_calls": [tc.to_dict() for tc in self.tool_calls] if self.tool_calls else None,
            "stop_reason": self.stop_reason.value,
            "finish_reason": self.finish_reason,
            "usage": self.usage.to_dict() if self.usage else None,
            "model": self.model,
            "response_id": self.response_id,
            "provider_metadata": self.provider_metadata,
        }
