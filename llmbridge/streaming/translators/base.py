"""
llmbridge Stream Translator Base - Per-stream state machine shared by all vendors

A translator consumes parsed frames (SseLine) of one stream and emits
normalized StreamEvents:

    Idle -> Streaming -> Completed
                      -> Errored

- feed(): one frame in, zero or more events out
- finish(): upstream closed; synthesizes a best-effort Completion when no
  terminal frame was seen
- fail(): transport failure or cancellation; emits one Error

Exactly one CompletionEvent or ErrorEvent is ever emitted; frames after it
are ignored. Per-stream state lives in a StreamState created fresh for every
translator and reset after the terminal event.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type

from ...errors import LLMError
from ...models import ChatResponse, Usage
from ...tools.models import ToolCall
from ...tools.name_mapping import ToolNameMapping
from ..models import (
    CompletionEvent,
    ErrorEvent,
    StreamEvent,
    TextDeltaEvent,
    ThinkingDeltaEvent,
    ToolCallDeltaEvent,
)
from ..reasoning import ThinkTagParser, check_reasoning_status
from ..sse import SseLine
from ..tool_calls import ToolCallAggregator

logger = logging.getLogger(__name__)


@dataclass
class StreamState:
    """
    Mutable state of one stream.

    Attributes:
        has_reasoning_content: Reasoning deltas seen and not yet closed
        last_chunk: Previous content delta (reasoning boundary heuristic)
        text_parts: Answer text deltas
        thinking_parts: Reasoning text deltas
        aggregator: Tool call accumulation
        think_parser: Inline <think> tag splitter
        usage: Token usage once reported
        response_id: Provider response id
        model: Model reported by the provider
        finish_reason: Raw provider finish/stop reason
    """
    has_reasoning_content: bool = False
    last_chunk: str = ""
    text_parts: List[str] = field(default_factory=list)
    thinking_parts: List[str] = field(default_factory=list)
    aggregator: ToolCallAggregator = field(default_factory=ToolCallAggregator)
    think_parser: ThinkTagParser = field(default_factory=ThinkTagParser)
    usage: Optional[Usage] = None
    response_id: Optional[str] = None
    model: Optional[str] = None
    finish_reason: Optional[str] = None

    @property
    def text(self) -> str:
        return "".join(self.text_parts)

    @property
    def thinking(self) -> str:
        return "".join(self.thinking_parts)


class StreamTranslator(ABC):
    """
    Abstract per-stream translator.

    Subclasses implement _translate() for their wire format and
    _build_response() to assemble the final ChatResponse.
    """

    # Provider name (override in subclasses)
    provider: str = "unknown"

    # State class created fresh for every stream
    state_class: Type[StreamState] = StreamState

    def __init__(
        self,
        provider_id: Optional[str] = None,
        model: Optional[str] = None,
        tool_name_mapping: Optional[ToolNameMapping] = None,
    ):
        """
        Args:
            provider_id: Provider id used for metadata and errors
            model: Requested model (used when the stream does not report one)
            tool_name_mapping: Mapping built for this request's tools
        """
        self.provider_id = provider_id or self.provider
        self.model = model
        self.tool_name_mapping = tool_name_mapping or ToolNameMapping.empty()
        self.state = self.state_class()
        self._finished = False

    @property
    def is_finished(self) -> bool:
        """True once a Completion or Error has been emitted"""
        return self._finished

    def feed(self, line: SseLine) -> List[StreamEvent]:
        """Translate one parsed frame"""
        if self._finished:
            logger.debug(f"Ignoring {self.provider_id} frame after terminal event")
            return []
        if line.done:
            return self._on_done_marker()
        return self._translate(line.data, line.event)

    def finish(self) -> List[StreamEvent]:
        """Upstream closed: complete with whatever was accumulated"""
        if self._finished:
            return []
        logger.debug(f"{self.provider_id} stream closed without a terminal frame, completing best-effort")
        return self._complete()

    def fail(self, error: LLMError) -> List[StreamEvent]:
        """Terminate the stream with an error (no-op once terminal)"""
        if self._finished:
            return []
        self._finished = True
        self.state = self.state_class()
        logger.warning(f"{self.provider_id} stream failed: {type(error).__name__}: {error}")
        return [ErrorEvent(error)]

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _translate(self, data: Dict[str, Any], event_name: Optional[str]) -> List[StreamEvent]:
        """Translate one decoded JSON frame"""
        pass

    @abstractmethod
    def _build_response(self) -> ChatResponse:
        """Build the final response from the accumulated state"""
        pass

    def _on_done_marker(self) -> List[StreamEvent]:
        return self._complete()

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def _complete(self) -> List[StreamEvent]:
        events = self._flush_content()
        response = self._build_response()
        self._finished = True
        self.state = self.state_class()
        return events + [CompletionEvent(response)]

    def _maybe_complete(self) -> List[StreamEvent]:
        """Complete once both the finish reason and the usage are known"""
        if self.state.finish_reason is not None and self.state.usage is not None:
            return self._complete()
        return []

    def _track_reasoning(self, delta: Dict[str, Any]) -> None:
        state = self.state
        just_done, state.has_reasoning_content, state.last_chunk = check_reasoning_status(
            delta, state.has_reasoning_content, state.last_chunk
        )
        if just_done:
            logger.debug(f"{self.provider_id} reasoning finished, answer started")

    def _emit_content(self, content: str) -> List[StreamEvent]:
        """Emit content, routing inline <think> sections to thinking"""
        events: List[StreamEvent] = []
        for is_thinking, text in self.state.think_parser.feed(content):
            if is_thinking:
                events.extend(self._emit_thinking(text))
            else:
                events.extend(self._emit_text(text))
        return events

    def _emit_text(self, text: str) -> List[StreamEvent]:
        if not text:
            return []
        self.state.text_parts.append(text)
        return [TextDeltaEvent(text)]

    def _emit_thinking(self, text: str) -> List[StreamEvent]:
        if not text:
            return []
        self.state.thinking_parts.append(text)
        return [ThinkingDeltaEvent(text)]

    def _emit_tool_call(self, call: ToolCall) -> List[StreamEvent]:
        """Aggregate a tool call fragment and emit it if it contributes anything"""
        if not call.function.name and not call.function.arguments:
            return []
        if call.function.name:
            call.function.name = self.tool_name_mapping.resolve_function_name(call.function.name)
        self.state.aggregator.add_delta(call)
        return [ToolCallDeltaEvent(call)]

    def _flush_content(self) -> List[StreamEvent]:
        events: List[StreamEvent] = []
        for is_thinking, text in self.state.think_parser.flush():
            if is_thinking:
                events.extend(self._emit_thinking(text))
            else:
                events.extend(self._emit_text(text))
        return events

    def _completed_tool_calls(self) -> Optional[List[ToolCall]]:
        calls = self.state.aggregator.completed_calls
        return calls or None

    def _metadata(self, **fields: Any) -> Dict[str, Dict[str, Any]]:
        """Provider metadata keyed by provider id, dropping empty values"""
        values = {key: value for key, value in fields.items() if value not in (None, "", [], {})}
        return {self.provider_id: values} if values else {}


def translate_body(translator: StreamTranslator, frames: List[Dict[str, Any]]) -> ChatResponse:
    """
    Run already-complete frames through a translator and return the response.

    Used for non-streaming calls so both paths share one parser.

    Raises:
        LLMError: The body carried an error
    """
    events: List[StreamEvent] = []
    for frame in frames:
        events.extend(translator.feed(SseLine(data=frame)))
    events.extend(translator.finish())

    for event in events:
        if isinstance(event, CompletionEvent):
            return event.response
        if isinstance(event, ErrorEvent):
            raise event.error
    raise RuntimeError(f"{translator.provider_id} translator produced no terminal event")
