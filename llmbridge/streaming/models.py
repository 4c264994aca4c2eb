"""
llmbridge Streaming Models - Normalized stream events and parts

Two layers of stream items:

- StreamEvent: the low-level normalized stream produced by the per-provider
  translators (text / thinking / tool call deltas, then one Completion or
  Error as the terminal item).
- StreamPart: the richer stream produced by the adapter, with explicit
  start / delta / end boundaries, provider metadata and a typed finish.

Every variant carries a `type` discriminator so callers can dispatch on it:

    for event in events:
        if event.type == EventType.TEXT_DELTA:
            ...
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Union

from ..errors import LLMError
from ..models import ChatResponse
from ..tools.models import ToolCall, ToolResult


class EventType(str, Enum):
    """Types of low-level stream events"""
    TEXT_DELTA = "text_delta"
    THINKING_DELTA = "thinking_delta"
    TOOL_CALL_DELTA = "tool_call_delta"
    COMPLETION = "completion"
    ERROR = "error"


class PartType(str, Enum):
    """Types of stream parts"""
    # Text block
    TEXT_START = "text_start"
    TEXT_DELTA = "text_delta"
    TEXT_END = "text_end"

    # Reasoning block
    REASONING_START = "reasoning_start"
    REASONING_DELTA = "reasoning_delta"
    REASONING_END = "reasoning_end"

    # Tool calls
    TOOL_CALL_START = "tool_call_start"
    TOOL_CALL_DELTA = "tool_call_delta"
    TOOL_CALL_END = "tool_call_end"
    TOOL_RESULT = "tool_result"

    # Terminal / metadata
    PROVIDER_METADATA = "provider_metadata"
    FINISH = "finish"
    ERROR = "error"


# =============================================================================
# Stream events
# =============================================================================

@dataclass
class TextDeltaEvent:
    delta: str
    type: EventType = field(default=EventType.TEXT_DELTA, init=False)


@dataclass
class ThinkingDeltaEvent:
    delta: str
    type: EventType = field(default=EventType.THINKING_DELTA, init=False)


@dataclass
class ToolCallDeltaEvent:
    """A tool call fragment; `tool_call.id` is stable for the whole call"""
    tool_call: ToolCall
    type: EventType = field(default=EventType.TOOL_CALL_DELTA, init=False)


@dataclass
class CompletionEvent:
    """Terminal event carrying the final response"""
    response: ChatResponse
    type: EventType = field(default=EventType.COMPLETION, init=False)


@dataclass
class ErrorEvent:
    """Terminal event carrying the failure"""
    error: LLMError
    type: EventType = field(default=EventType.ERROR, init=False)


StreamEvent = Union[
    TextDeltaEvent,
    ThinkingDeltaEvent,
    ToolCallDeltaEvent,
    CompletionEvent,
    ErrorEvent,
]


def is_terminal_event(event: StreamEvent) -> bool:
    return event.type in (EventType.COMPLETION, EventType.ERROR)


# =============================================================================
# Stream parts
# =============================================================================

@dataclass
class TextStartPart:
    type: PartType = field(default=PartType.TEXT_START, init=False)


@dataclass
class TextDeltaPart:
    delta: str
    type: PartType = field(default=PartType.TEXT_DELTA, init=False)


@dataclass
class TextEndPart:
    full_text: str
    type: PartType = field(default=PartType.TEXT_END, init=False)


@dataclass
class ReasoningStartPart:
    type: PartType = field(default=PartType.REASONING_START, init=False)


@dataclass
class ReasoningDeltaPart:
    delta: str
    type: PartType = field(default=PartType.REASONING_DELTA, init=False)


@dataclass
class ReasoningEndPart:
    full_text: str
    type: PartType = field(default=PartType.REASONING_END, init=False)


@dataclass
class ToolCallStartPart:
    tool_call: ToolCall
    type: PartType = field(default=PartType.TOOL_CALL_START, init=False)


@dataclass
class ToolCallDeltaPart:
    tool_call: ToolCall
    type: PartType = field(default=PartType.TOOL_CALL_DELTA, init=False)


@dataclass
class ToolCallEndPart:
    tool_call_id: str
    type: PartType = field(default=PartType.TOOL_CALL_END, init=False)


@dataclass
class ToolResultPart:
    result: ToolResult
    type: PartType = field(default=PartType.TOOL_RESULT, init=False)


@dataclass
class ProviderMetadataPart:
    metadata: Dict[str, Dict[str, Any]]
    type: PartType = field(default=PartType.PROVIDER_METADATA, init=False)


@dataclass
class FinishPart:
    response: ChatResponse
    type: PartType = field(default=PartType.FINISH, init=False)


@dataclass
class ErrorPart:
    error: LLMError
    type: PartType = field(default=PartType.ERROR, init=False)


StreamPart = Union[
    TextStartPart,
    TextDeltaPart,
    TextEndPart,
    ReasoningStartPart,
    ReasoningDeltaPart,
    ReasoningEndPart,
    ToolCallStartPart,
    ToolCallDeltaPart,
    ToolCallEndPart,
    ToolResultPart,
    ProviderMetadataPart,
    FinishPart,
    ErrorPart,
]


def is_terminal_part(part: StreamPart) -> bool:
    return part.type in (PartType.FINISH, PartType.ERROR)
