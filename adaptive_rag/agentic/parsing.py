"""Structured-output parsing for language model responses.

Models are asked for a single JSON object but often wrap it in prose or
markdown fences. Every component decodes through :func:`decode`, so tolerance
for malformed output lives here and nowhere else. Decoding never raises; each
caller decides its own fallback when it gets ``None``.
"""

import json
import logging
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def extract_json(content: str) -> Optional[str]:
    """
    Return the first balanced top-level ``{...}`` substring of ``content``.

    Braces inside JSON string literals are ignored. Returns None when no
    balanced object is present.
    """
    if not content:
        return None

    start = content.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False

        for pos in range(start, len(content)):
            char = content[pos]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
            elif char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return content[start:pos + 1]

        # Unbalanced from this brace; try the next opening brace
        start = content.find("{", start + 1)

    return None


def decode(content: str, model: Type[ModelT]) -> Optional[ModelT]:
    """
    Decode the first JSON object in ``content`` into ``model``.

    Args:
        content: Raw model response
        model: Pydantic model describing the expected shape; its field
            defaults fill in anything the response leaves out

    Returns:
        Model instance, or None when nothing decodable was found
    """
    json_str = extract_json(content or "")
    if json_str is None:
        logger.debug(f"No JSON object found for {model.__name__}")
        return None

    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        logger.debug(f"Invalid JSON for {model.__name__}: {e}")
        return None

    if not isinstance(data, dict):
        return None

    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.debug(f"Response did not match {model.__name__}: {e.error_count()} errors")
        return None
