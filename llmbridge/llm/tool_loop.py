"""
llmbridge Tool Loop - Run caller tool handlers and re-issue the request

The loop streams one model turn, executes the completed function calls with
the caller's handlers, appends the assistant turn and one "tool" message per
result to the conversation, then asks the model again until it answers
without calling tools.

Usage:
    async def get_weather(city: str) -> dict:
        return {"city": city, "temp_c": 21}

    async for part in stream_tool_loop(client, messages, {"get_weather": get_weather}, tools=[WEATHER]):
        if part.type == PartType.TOOL_RESULT:
            print(part.result.content)
"""

import inspect
import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from ..cancellation import CancellationToken
from ..errors import InvalidRequestError, ResponseFormatError
from ..models import ChatResponse
from ..streaming.models import ErrorPart, FinishPart, PartType, StreamPart, ToolResultPart
from ..tools.models import ToolCall, ToolResult

logger = logging.getLogger(__name__)

# Called with the decoded arguments as keyword arguments; may be sync or async
ToolHandler = Callable[..., Any]


@dataclass
class ToolLoopStep:
    """One model turn of a tool loop"""
    index: int
    response: ChatResponse
    tool_results: List[ToolResult] = field(default_factory=list)

    @property
    def tool_calls(self) -> List[ToolCall]:
        return self.response.tool_calls or []


@dataclass
class ToolLoopResult:
    """
    Outcome of run_tool_loop

    Attributes:
        response: Final answer (the turn without tool calls)
        steps: Every model turn, in order
        messages: Conversation including assistant and tool messages
    """
    response: ChatResponse
    steps: List[ToolLoopStep]
    messages: List[Dict[str, Any]]


def stringify_tool_output(output: Any) -> str:
    if output is None:
        return "null"
    if isinstance(output, str):
        return output
    return json.dumps(output, ensure_ascii=False, default=str)


async def execute_tool_calls(
    tool_calls: List[ToolCall],
    handlers: Dict[str, ToolHandler],
    continue_on_tool_error: bool = True,
) -> List[ToolResult]:
    """
    Execute completed tool calls in order.

    Handler failures become error results instead of exceptions. With
    continue_on_tool_error=False execution stops after the first error and
    the remaining calls get no result.
    """
    results = []
    for tool_call in tool_calls:
        result = await _execute_one(tool_call, handlers)
        results.append(result)
        if result.is_error and not continue_on_tool_error:
            logger.warning(f"Stopping tool execution after '{tool_call.name}' failed")
            break
    return results


async def _execute_one(tool_call: ToolCall, handlers: Dict[str, ToolHandler]) -> ToolResult:
    handler = handlers.get(tool_call.name)
    if handler is None:
        return ToolResult(
            tool_call_id=tool_call.id,
            content=f'No tool handler registered for "{tool_call.name}"',
            is_error=True,
        )

    try:
        arguments = tool_call.parse_arguments()
    except ResponseFormatError as e:
        return ToolResult(tool_call_id=tool_call.id, content=e.message, is_error=True)

    try:
        output = handler(**arguments)
        if inspect.isawaitable(output):
            output = await output
    except Exception as e:
        logger.error(f"Tool '{tool_call.name}' execution failed: {e}", exc_info=True)
        return ToolResult(
            tool_call_id=tool_call.id,
            content=f"Tool execution failed: {e}",
            is_error=True,
        )

    logger.info(f"Tool '{tool_call.name}' executed")
    return ToolResult(
        tool_call_id=tool_call.id,
        content=stringify_tool_output(output),
        data=output if isinstance(output, dict) else None,
    )


def _assistant_message(response: ChatResponse, results: List[ToolResult]) -> Dict[str, Any]:
    # Calls skipped after a tool error are left out so every call has an answer
    answered = {result.tool_call_id for result in results}
    return {
        "role": "assistant",
        "content": response.text,
        "tool_calls": [tc.to_dict() for tc in response.tool_calls or [] if tc.id in answered],
    }


def _tool_message(result: ToolResult) -> Dict[str, Any]:
    message = result.to_message()
    if result.is_error:
        message["content"] = json.dumps({"error": result.content}, ensure_ascii=False)
    return message


def _append_turn(messages: List[Dict[str, Any]], response: ChatResponse, results: List[ToolResult]) -> None:
    messages.append(_assistant_message(response, results))
    messages.extend(_tool_message(result) for result in results)


async def stream_tool_loop(
    client,
    messages: List[Dict[str, Any]],
    handlers: Dict[str, ToolHandler],
    tools: Optional[List[Any]] = None,
    max_steps: int = 10,
    continue_on_tool_error: bool = True,
    cancel_token: Optional[CancellationToken] = None,
    **kwargs
) -> AsyncIterator[StreamPart]:
    """
    Stream a multi-step tool conversation.

    Every step's parts pass through except the intermediate FinishParts; one
    ToolResultPart follows per executed call. The stream ends with the final
    turn's FinishPart or a single ErrorPart.

    Args:
        client: BaseLLMClient to call
        messages: Conversation so far (not modified)
        handlers: Function name -> handler
        tools: Tool definitions sent with every step
        max_steps: Maximum number of model turns
        continue_on_tool_error: Keep executing after a failed call
        cancel_token: Optional cancellation token
        **kwargs: Passed through to stream_parts
    """
    if max_steps < 1:
        yield ErrorPart(InvalidRequestError("max_steps must be at least 1", provider=client.provider_id))
        return

    history = list(messages)
    for step in range(max_steps):
        logger.debug(f"Tool loop step {step + 1}/{max_steps}")
        finish: Optional[FinishPart] = None

        async for part in client.stream_parts(history, tools=tools, cancel_token=cancel_token, **kwargs):
            if part.type == PartType.FINISH:
                finish = part
                continue
            yield part
            if part.type == PartType.ERROR:
                return

        if finish is None:
            return

        response = finish.response
        if not response.tool_calls:
            yield finish
            return

        results = await execute_tool_calls(response.tool_calls, handlers, continue_on_tool_error)
        for result in results:
            yield ToolResultPart(result)
        _append_turn(history, response, results)

    logger.error(f"Tool loop exceeded {max_steps} steps")
    yield ErrorPart(InvalidRequestError(f"Tool loop exceeded max_steps ({max_steps})", provider=client.provider_id))


async def run_tool_loop(
    client,
    messages: List[Dict[str, Any]],
    handlers: Dict[str, ToolHandler],
    tools: Optional[List[Any]] = None,
    max_steps: int = 10,
    continue_on_tool_error: bool = True,
    cancel_token: Optional[CancellationToken] = None,
    **kwargs
) -> ToolLoopResult:
    """
    Non-streaming tool loop over chat_completion.

    Raises:
        InvalidRequestError: max_steps < 1 or the model still calls tools after max_steps
        LLMError: Any error from chat_completion
    """
    if max_steps < 1:
        raise InvalidRequestError("max_steps must be at least 1", provider=client.provider_id)

    history = list(messages)
    steps: List[ToolLoopStep] = []
    for step in range(max_steps):
        logger.debug(f"Tool loop step {step + 1}/{max_steps}")
        response = await client.chat_completion(history, tools=tools, cancel_token=cancel_token, **kwargs)

        if not response.tool_calls:
            steps.append(ToolLoopStep(index=step, response=response))
            if response.text:
                history.append({"role": "assistant", "content": response.text})
            return ToolLoopResult(response=response, steps=steps, messages=history)

        results = await execute_tool_calls(response.tool_calls, handlers, continue_on_tool_error)
        steps.append(ToolLoopStep(index=step, response=response, tool_results=results))
        _append_turn(history, response, results)

    logger.error(f"Tool loop exceeded {max_steps} steps")
    raise InvalidRequestError(f"Tool loop exceeded max_steps ({max_steps})", provider=client.provider_id)
