"""
llmbridge SSE / JSONL Chunk Parser - Split decoded text into JSON frames

Handles both Server-Sent Events bodies (OpenAI, Anthropic, Gemini) and
newline-delimited JSON bodies (Ollama):

    event: content_block_delta
    data: {"type": "content_block_delta", ...}

    data: [DONE]

    {"message": {"content": "Hi"}, "done": false}

Partial lines are buffered across parse() calls. Malformed frames are
logged and skipped so a single bad frame never kills a healthy stream.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..errors import MalformedFrameError

logger = logging.getLogger(__name__)


DONE_MARKER = "[DONE]"

# SSE fields that carry no payload for us
_IGNORED_FIELDS = ("id", "retry")


@dataclass
class SseLine:
    """
    One parsed frame.

    Attributes:
        data: Decoded JSON object (empty for the [DONE] marker)
        event: SSE event name from a preceding "event:" line, if any
        done: True for the "data: [DONE]" terminator
    """
    data: Dict[str, Any] = field(default_factory=dict)
    event: Optional[str] = None
    done: bool = False


class SseChunkParser:
    """
    Incremental line parser for SSE and JSONL stream bodies.

    Example:
        parser = SseChunkParser()
        parser.parse('{"a":1')     # []
        parser.parse('}\\n')        # [SseLine(data={"a": 1})]
    """

    def __init__(self, strict: bool = False, provider: Optional[str] = None):
        """
        Args:
            strict: Raise MalformedFrameError instead of skipping bad frames
            provider: Provider id used in log and error messages
        """
        self.strict = strict
        self.provider = provider
        self.malformed_count = 0
        self._buffer = ""
        self._event: Optional[str] = None

    def parse(self, chunk: str) -> List[SseLine]:
        """
        Feed a decoded text chunk and return the frames it completes.

        Args:
            chunk: Text from the UTF-8 decoder

        Returns:
            Parsed frames in arrival order
        """
        if not chunk:
            return []

        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")

        results = []
        for raw in lines:
            line = self._parse_line(raw)
            if line is not None:
                results.append(line)
        return results

    def flush(self) -> List[SseLine]:
        """Parse a trailing line that never received its newline"""
        raw, self._buffer = self._buffer, ""
        line = self._parse_line(raw)
        self._event = None
        return [line] if line is not None else []

    def reset(self) -> None:
        self._buffer = ""
        self._event = None
        self.malformed_count = 0

    @property
    def has_pending(self) -> bool:
        return bool(self._buffer.strip())

    def _parse_line(self, raw: str) -> Optional[SseLine]:
        line = raw.rstrip("\r")

        if not line.strip():
            # Blank line dispatches the current SSE event
            self._event = None
            return None

        if line.startswith(":"):
            return None

        name, sep, value = line.partition(":")
        if sep and name in ("event", "data") + _IGNORED_FIELDS:
            if value.startswith(" "):
                value = value[1:]
            if name == "event":
                self._event = value.strip() or None
                return None
            if name in _IGNORED_FIELDS:
                return None
            payload = value.strip()
        else:
            # Bare JSONL line
            payload = line.strip()

        if not payload:
            return None

        event, self._event = self._event, None

        if payload == DONE_MARKER:
            return SseLine(event=event, done=True)

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            return self._malformed(payload, f"invalid JSON ({e.msg})")

        if not isinstance(data, dict):
            return self._malformed(payload, "frame is not a JSON object")

        return SseLine(data=data, event=event)

    def _malformed(self, payload: str, reason: str) -> None:
        self.malformed_count += 1
        if self.strict:
            raise MalformedFrameError(
                f"Malformed stream frame: {reason}",
                line=payload,
                provider=self.provider,
            )
        preview = payload if len(payload) <= 200 else payload[:200] + "..."
        logger.debug(f"Skipping malformed frame from {self.provider or 'stream'}: {reason}: {preview}")
        return None
