"""
llmbridge Reasoning - Detect reasoning/thinking content across vendors

Vendors expose reasoning in different ways:
- a dedicated delta field: "reasoning_content" (DeepSeek), "reasoning"
  (OpenRouter, Groq), "thinking" (Ollama and others)
- inline <think>...</think> tags inside ordinary content (self-hosted
  open models such as DeepSeek-R1 or Qwen QwQ)
- an implicit switch: reasoning deltas stop and content deltas start

The boundary detection is a best-effort heuristic; it is covered by
fixture tests per vendor rather than assumed universal.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

THINK_OPEN_TAG = "<think>"
THINK_CLOSE_TAG = "</think>"

_THINK_BLOCK = re.compile(r"<think>(.*?)</think>", re.DOTALL)
_THINK_TAG = re.compile(r"</?think>")

# Delta fields carrying reasoning text, in priority order
REASONING_FIELDS = ("reasoning_content", "reasoning", "thinking")

# Explicit answer marker used by some fine-tuned reasoning models
RESPONSE_MARKER = "###Response"


def extract_reasoning_content(delta: Optional[Dict[str, Any]]) -> Optional[str]:
    """Return the first non-empty reasoning field of a delta, if any"""
    if not delta:
        return None
    for key in REASONING_FIELDS:
        value = delta.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def has_reasoning_content(delta: Optional[Dict[str, Any]]) -> bool:
    return extract_reasoning_content(delta) is not None


def contains_thinking_tags(content: str) -> bool:
    return THINK_OPEN_TAG in content or THINK_CLOSE_TAG in content


def extract_thinking_content(content: str) -> Optional[str]:
    """Join the bodies of all complete <think> blocks, None if there are none"""
    bodies = [match.strip() for match in _THINK_BLOCK.findall(content)]
    bodies = [body for body in bodies if body]
    return "\n\n".join(bodies) if bodies else None


def filter_thinking_content(content: str) -> str:
    """Remove complete <think> blocks from content"""
    return _THINK_BLOCK.sub("", content).strip()


def check_reasoning_status(
    delta: Optional[Dict[str, Any]],
    has_reasoning: bool,
    last_chunk: str,
) -> Tuple[bool, bool, str]:
    """
    Track the reasoning -> answer transition across consecutive deltas.

    Reasoning is considered done when:
    - the previous and current content together contain "###Response"
    - the content is a lone closing </think> tag
    - reasoning was seen before and non-empty content arrives

    Args:
        delta: Raw delta object of the current chunk
        has_reasoning: Whether reasoning content was seen so far
        last_chunk: Content of the previous chunk

    Returns:
        (is_reasoning_just_done, updated has_reasoning, updated last_chunk)
    """
    content = ""
    if delta:
        value = delta.get("content")
        if isinstance(value, str):
            content = value

    just_done = False
    if RESPONSE_MARKER in last_chunk + content:
        just_done = True
    elif content.strip() == THINK_CLOSE_TAG:
        just_done = True
    elif has_reasoning and content:
        just_done = True

    if just_done:
        has_reasoning = False
    elif has_reasoning_content(delta):
        has_reasoning = True

    return just_done, has_reasoning, content or last_chunk


def _partial_tag_length(text: str) -> int:
    """Length of a trailing prefix of a think tag (e.g. "<thi") at the end of text"""
    longest = 0
    for tag in (THINK_OPEN_TAG, THINK_CLOSE_TAG):
        for size in range(min(len(tag) - 1, len(text)), 0, -1):
            if text.endswith(tag[:size]):
                longest = max(longest, size)
                break
    return longest


class ThinkTagParser:
    """
    Split streamed content into thinking and answer segments.

    Tags may be split across chunks ("<thi" + "nk>"), so a trailing partial
    tag is held back until the next chunk decides it. Tag text itself is
    never emitted.

    Example:
        parser = ThinkTagParser()
        parser.feed("<think>plan")     # [(True, "plan")]
        parser.feed("</think>Hi")      # [(False, "Hi")]
    """

    def __init__(self):
        self.inside = False
        self.seen_tags = False
        self._pending = ""

    def feed(self, text: str) -> List[Tuple[bool, str]]:
        """
        Args:
            text: Content delta

        Returns:
            List of (is_thinking, text) segments in order
        """
        buffer = self._pending + text
        self._pending = ""
        segments: List[Tuple[bool, str]] = []

        while buffer:
            match = _THINK_TAG.search(buffer)
            if match is None:
                keep = _partial_tag_length(buffer)
                emit = buffer[:len(buffer) - keep]
                if emit:
                    segments.append((self.inside, emit))
                self._pending = buffer[len(buffer) - keep:]
                break

            if match.start():
                segments.append((self.inside, buffer[:match.start()]))
            self.inside = match.group() == THINK_OPEN_TAG
            self.seen_tags = True
            buffer = buffer[match.end():]

        return _merge_segments(segments)

    def flush(self) -> List[Tuple[bool, str]]:
        """Release text held back as a possible partial tag"""
        pending, self._pending = self._pending, ""
        return [(self.inside, pending)] if pending else []


def _merge_segments(segments: List[Tuple[bool, str]]) -> List[Tuple[bool, str]]:
    merged: List[Tuple[bool, str]] = []
    for is_thinking, text in segments:
        if merged and merged[-1][0] == is_thinking:
            merged[-1] = (is_thinking, merged[-1][1] + text)
        else:
            merged.append((is_thinking, text))
    return merged
