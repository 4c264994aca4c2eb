"""
llmbridge Tool Name Mapping - Resolve name collisions between function tools
and provider-native tools

Providers identify tools by a single flat name on the wire. A caller tool
literally named "web_search_preview" would collide with OpenAI's built-in
web search tool, so function tools that collide are rewritten with a
numeric suffix and mapped back when the model calls them:

    mapping = create_tool_name_mapping(
        ["web_search_preview", "web_search_preview__1"],
        {"openai.web_search_preview": "web_search_preview"},
    )
    mapping.request_name_for_function("web_search_preview")   # "web_search_preview__2"
    mapping.original_function_name("web_search_preview__2")   # "web_search_preview"

A mapping lives for exactly one request and is never cached.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional

logger = logging.getLogger(__name__)


DEFAULT_COLLISION_SEPARATOR = "__"


@dataclass(frozen=True)
class ToolNameMapping:
    """Bidirectional lookup between caller tool names and wire names"""
    function_to_request_name: Dict[str, str] = field(default_factory=dict)
    request_name_to_function: Dict[str, str] = field(default_factory=dict)
    provider_tool_id_to_request_name: Dict[str, str] = field(default_factory=dict)
    request_name_to_provider_tool_id: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "ToolNameMapping":
        return cls()

    def request_name_for_function(self, function_name: str) -> str:
        """Wire name for a function tool (the name itself when not rewritten)"""
        return self.function_to_request_name.get(function_name, function_name)

    def original_function_name(self, request_name: str) -> Optional[str]:
        """Caller's function name for a wire name, None if unknown"""
        return self.request_name_to_function.get(request_name)

    def request_name_for_provider_tool(self, provider_tool_id: str) -> Optional[str]:
        return self.provider_tool_id_to_request_name.get(provider_tool_id)

    def provider_tool_id_for_request_name(self, request_name: str) -> Optional[str]:
        return self.request_name_to_provider_tool_id.get(request_name)

    def is_provider_tool_request_name(self, request_name: str) -> bool:
        return request_name in self.request_name_to_provider_tool_id

    def resolve_function_name(self, request_name: str) -> str:
        """Map a wire name from a response back to the caller's function name"""
        return self.request_name_to_function.get(request_name, request_name)


def create_tool_name_mapping(
    function_tool_names: Iterable[str],
    provider_tool_request_names_by_id: Optional[Mapping[str, str]] = None,
    collision_separator: str = DEFAULT_COLLISION_SEPARATOR,
) -> ToolNameMapping:
    """
    Build the per-request tool name mapping.

    Provider tool request names are reserved first and always win. Each
    function name is kept as-is unless it collides with a provider name, is
    empty, or was already assigned; then "<name>__1", "<name>__2", ... are
    tried, skipping anything reserved by a provider, already assigned, or
    equal to another function tool's own name.

    Args:
        function_tool_names: Function tool names in request order
        provider_tool_request_names_by_id: provider tool id -> wire name
        collision_separator: Separator between name and suffix

    Returns:
        ToolNameMapping for this request
    """
    function_names = list(function_tool_names)
    provider_names = dict(provider_tool_request_names_by_id or {})

    provider_reserved = set(provider_names.values())
    original_names = set(function_names)
    assigned = set(provider_reserved)

    function_to_request: Dict[str, str] = {}
    request_to_function: Dict[str, str] = {}

    for original in function_names:
        if original in function_to_request:
            # Duplicate function name; the first definition owns it
            continue

        needs_rewrite = (
            not original
            or original in provider_reserved
            or original in assigned
        )

        request_name = original
        if needs_rewrite:
            suffix = 1
            while True:
                candidate = f"{original}{collision_separator}{suffix}"
                if (
                    candidate not in provider_reserved
                    and candidate not in assigned
                    and (candidate == original or candidate not in original_names)
                ):
                    request_name = candidate
                    break
                suffix += 1
            logger.debug(f"Renamed function tool '{original}' to '{request_name}' to avoid a collision")

        assigned.add(request_name)
        function_to_request[original] = request_name
        request_to_function[request_name] = original

    return ToolNameMapping(
        function_to_request_name=function_to_request,
        request_name_to_function=request_to_function,
        provider_tool_id_to_request_name=dict(provider_names),
        request_name_to_provider_tool_id={name: tool_id for tool_id, name in provider_names.items()},
    )
