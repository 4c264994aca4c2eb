"""
llmbridge Tools - Tool calling data structures and name mapping

Provides:
- ToolDefinition: Caller-defined function tools
- ProviderTool: Provider-native tools (web search, ...)
- ToolCall / FunctionCall / ToolResult: Calls requested by the model
- create_tool_name_mapping: Per-request collision-free wire names
"""

from .models import (
    ToolDefinition,
    ProviderTool,
    FunctionCall,
    ToolCall,
    ToolResult,
)
from .name_mapping import ToolNameMapping, create_tool_name_mapping

__all__ = [
    "ToolDefinition",
    "ProviderTool",
    "FunctionCall",
    "ToolCall",
    "ToolResult",
    "ToolNameMapping",
    "create_tool_name_mapping",
]
