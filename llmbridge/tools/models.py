"""
llmbridge Tool Models - Data structures for LLM tool calling

- ToolDefinition: A caller-defined function tool (JSON schema parameters)
- ProviderTool: A provider-native tool executed server side (e.g. web search)
- FunctionCall / ToolCall: A tool call requested by the model
- ToolResult: Result of executing a tool call
"""

import json
from dataclasses import dataclass, field
from typing import Dict, Any, Optional

from ..errors import ResponseFormatError


@dataclass
class ToolDefinition:
    """
    A function tool the model may call.

    Attributes:
        name: Tool name as the caller knows it
        description: What the tool does
        parameters: JSON schema for the arguments object
    """
    name: str
    description: str = ""
    parameters: Dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


@dataclass
class ProviderTool:
    """
    A built-in tool executed by the provider.

    Attributes:
        id: Stable identifier, e.g. "openai.web_search_preview"
        request_name: Name (and type) the provider expects on the wire
        options: Extra provider-specific fields sent with the tool
    """
    id: str
    request_name: str
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class FunctionCall:
    """Function name and JSON-encoded arguments of a tool call"""
    name: str = ""
    arguments: str = ""


@dataclass
class ToolCall:
    """
    Represents a tool call from an LLM response.

    While streaming, `function.arguments` is a partial JSON string; it is only
    guaranteed to parse once the call is complete.

    Attributes:
        id: Unique call ID from the provider
        function: Function name and arguments
        call_type: Always "function"
    """
    id: str
    function: FunctionCall = field(default_factory=FunctionCall)
    call_type: str = "function"

    @property
    def name(self) -> str:
        return self.function.name

    @property
    def arguments(self) -> str:
        return self.function.arguments

    def parse_arguments(self) -> Dict[str, Any]:
        """
        Decode the arguments string.

        Returns:
            Arguments dict ({} when the model sent no arguments)

        Raises:
            ResponseFormatError: Arguments are not a JSON object
        """
        if not self.function.arguments.strip():
            return {}
        try:
            value = json.loads(self.function.arguments)
        except json.JSONDecodeError as e:
            raise ResponseFormatError(
                f"Tool call '{self.function.name}' has invalid JSON arguments: {e.msg}",
                raw_text=self.function.arguments,
            ) from e
        if not isinstance(value, dict):
            raise ResponseFormatError(
                f"Tool call '{self.function.name}' arguments are not a JSON object",
                raw_text=self.function.arguments,
            )
        return value

    def copy(self) -> "ToolCall":
        return ToolCall(
            id=self.id,
            function=FunctionCall(name=self.function.name, arguments=self.function.arguments),
            call_type=self.call_type,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Chat-Completions wire shape"""
        return {
            "id": self.id,
            "type": self.call_type,
            "function": {
                "name": self.function.name,
                "arguments": self.function.arguments,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolCall":
        function = data.get("function") or {}
        arguments = function.get("arguments", "")
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        return cls(
            id=data.get("id") or "",
            function=FunctionCall(name=function.get("name") or "", arguments=arguments),
            call_type=data.get("type") or "function",
        )


@dataclass
class ToolResult:
    """
    Result of a tool execution

    Attributes:
        tool_call_id: ID of the tool call this result is for
        content: String result content
        is_error: Whether execution failed
        data: Optional structured data for further processing
    """
    tool_call_id: str
    content: str
    is_error: bool = False
    data: Optional[Dict[str, Any]] = None

    def to_message(self) -> Dict[str, Any]:
        """Chat-Completions "tool" role message"""
        return {
            "role": "tool",
            "tool_call_id": self.tool_call_id,
            "content": self.content,
        }
