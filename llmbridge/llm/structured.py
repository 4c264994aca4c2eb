"""
llmbridge Structured Output - Parse model text into pydantic models
"""

import json
import logging
import re
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..errors import ResponseFormatError
from ..streaming.reasoning import contains_thinking_tags, filter_thinking_content

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ```json fence if the model added one"""
    text = text.strip()
    match = _FENCE_PATTERN.match(text)
    return match.group(1) if match else text


def parse_structured_output(
    text: str,
    response_model: Type[ModelT],
    provider: Optional[str] = None,
) -> ModelT:
    """
    Validate model output against a pydantic model.

    Inline <think> blocks and a surrounding code fence are removed first.

    Raises:
        ResponseFormatError: Text is not a JSON object or fails validation
    """
    candidate = filter_thinking_content(text) if contains_thinking_tags(text) else text
    candidate = strip_code_fence(candidate)
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ResponseFormatError(
            f"Structured output is not valid JSON: {e}",
            raw_text=text,
            provider=provider,
        ) from e

    try:
        return response_model.model_validate(data)
    except ValidationError as e:
        logger.debug(f"Structured output failed validation for {response_model.__name__}: {e}")
        raise ResponseFormatError(
            f"Structured output does not match {response_model.__name__}: {e.error_count()} error(s)",
            raw_text=text,
            provider=provider,
        ) from e


def json_schema_instruction(schema: Dict[str, Any]) -> str:
    """System prompt addendum for providers without a native JSON schema mode"""
    return (
        "Respond only with a JSON object that conforms to this JSON schema. "
        "Do not wrap it in markdown.\n"
        f"{json.dumps(schema)}"
    )
