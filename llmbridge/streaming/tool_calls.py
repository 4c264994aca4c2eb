"""
llmbridge Tool Call Aggregation - Merge streamed tool-call fragments

Tool calls arrive in pieces: the first fragment usually carries the id and
function name, later fragments only carry slices of the JSON arguments
string, sometimes referenced by position only:

    {"index": 0, "id": "call_1", "function": {"name": "get_weather", "arguments": ""}}
    {"index": 0, "function": {"arguments": "{\\"location\\":\\""}}
    {"index": 0, "function": {"arguments": "Paris\\"}"}}

- ToolCallStreamState turns raw positional fragments into ToolCall deltas
  with a stable id.
- ToolCallAggregator accumulates deltas into complete calls.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Union

from ..tools.models import FunctionCall, ToolCall

logger = logging.getLogger(__name__)

AggregatorKey = Union[int, str]


class ToolCallAggregator:
    """
    Accumulates ToolCall deltas for one stream.

    Merge policy:
    - the first delta for a key establishes the call (and its id)
    - arguments are always concatenated, never overwritten
    - the name is only overwritten by a non-empty name
    """

    def __init__(self):
        self._calls: Dict[AggregatorKey, ToolCall] = {}

    def add_delta(self, delta: ToolCall, index: Optional[int] = None) -> ToolCall:
        """
        Merge a delta into the accumulated state.

        Args:
            delta: Fragment carrying an id and/or partial name and arguments
            index: Positional key for providers that reference calls by index

        Returns:
            Snapshot of the accumulated call for this key
        """
        key: AggregatorKey = index if index is not None else delta.id
        existing = self._calls.get(key)

        if existing is None:
            existing = delta.copy()
            self._calls[key] = existing
            return existing.copy()

        if not existing.id and delta.id:
            existing.id = delta.id
        if delta.function.name:
            existing.function.name = delta.function.name
        if delta.function.arguments:
            existing.function.arguments += delta.function.arguments

        return existing.copy()

    def get(self, key: AggregatorKey) -> Optional[ToolCall]:
        call = self._calls.get(key)
        return call.copy() if call else None

    @property
    def calls(self) -> List[ToolCall]:
        """All accumulated calls in arrival order, including unnamed ones"""
        return [call.copy() for call in self._calls.values()]

    @property
    def completed_calls(self) -> List[ToolCall]:
        """Accumulated calls that have a function name"""
        return [call.copy() for call in self._calls.values() if call.function.name]

    def clear(self) -> None:
        self._calls.clear()

    def __len__(self) -> int:
        return len(self._calls)


def is_parsable_json(text: str) -> bool:
    """Check if a (possibly partial) arguments string is complete JSON"""
    if not text or not text.strip():
        return False
    try:
        json.loads(text)
    except json.JSONDecodeError:
        return False
    return True


class ToolCallStreamState:
    """
    Per-stream cache of index -> id and index -> name for positional tool
    call fragments (Chat-Completions style).
    """

    def __init__(self):
        self._ids: Dict[int, str] = {}
        self._names: Dict[int, str] = {}
        self._unindexed = 0

    def process_delta(self, raw: Dict[str, Any]) -> Optional[ToolCall]:
        """
        Convert one raw tool-call fragment into a ToolCall delta.

        Returns:
            ToolCall with a stable id, or None when the fragment has no
            function object, cannot be tied to a call, or contributes
            neither a name nor arguments
        """
        function = raw.get("function")
        if not isinstance(function, dict):
            return None

        name = function.get("name") or ""
        arguments = function.get("arguments")
        if arguments is None:
            arguments = ""
        elif not isinstance(arguments, str):
            arguments = json.dumps(arguments)

        call_id = raw.get("id") or ""
        index = raw.get("index")

        if index is None:
            # No position: the fragment is a whole call
            if not name:
                logger.debug("Dropping unindexed tool call fragment without a name")
                return None
            if not call_id:
                call_id = f"call_{self._unindexed}_{name}"
            self._unindexed += 1
            return ToolCall(id=call_id, function=FunctionCall(name=name, arguments=arguments))

        known_id = self._ids.get(index)
        if call_id and call_id != known_id:
            if known_id is not None:
                logger.debug(f"Tool call index {index} reused for new call {call_id}")
                self._names.pop(index, None)
            self._ids[index] = call_id
        elif known_id is None:
            if not name:
                logger.debug(f"Dropping tool call fragment for unknown index {index}")
                return None
            self._ids[index] = f"call_{index}"

        if name:
            self._names[index] = name

        if not name and not arguments:
            return None

        return ToolCall(
            id=self._ids[index],
            function=FunctionCall(name=name or self._names.get(index, ""), arguments=arguments),
        )

    def id_for_index(self, index: int) -> Optional[str]:
        return self._ids.get(index)

    def reset(self) -> None:
        self._ids.clear()
        self._names.clear()
        self._unindexed = 0
