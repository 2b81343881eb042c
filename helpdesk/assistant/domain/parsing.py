"""
Model Output Parsing
====================

Best-effort JSON recovery from free-text model output.

Generative models wrap JSON in markdown fences, add prose around it, or
ignore the requested format entirely. Callers get either a value of the
expected shape or None; they never see a parse exception.
"""

import json
import re
from typing import Any, Optional, Tuple, Type, Union

from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)
_STRAY_FENCE = re.compile(r"```(?:json|JSON)?")


def strip_code_fences(text: str) -> str:
    """
    Unwrap markdown code fences.

    Returns the body of the first fenced block when one exists, otherwise
    the text with any stray fence markers removed.
    """
    match = _FENCED_BLOCK.search(text)
    if match:
        return match.group(1).strip()
    return _STRAY_FENCE.sub("", text).strip()


def parse_json_payload(
    text: Optional[str],
    expected_type: Union[Type, Tuple[Type, ...]],
    operation: str = "parse",
) -> Optional[Any]:
    """
    Strip fences, parse JSON and check the top-level shape.

    Args:
        text: Raw model output
        expected_type: Type (or tuple of types) the decoded value must be
        operation: Label used in log records

    Returns:
        The decoded value, or None when the text is empty, not JSON, or the wrong shape
    """
    if not text or not text.strip():
        logger.warning("Model returned empty output", extra={"operation": operation})
        return None

    cleaned = strip_code_fences(text)

    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning(
            "Model output is not valid JSON",
            extra={"operation": operation, "error": str(e), "output_preview": cleaned[:200]}
        )
        return None

    if not isinstance(payload, expected_type):
        logger.warning(
            "Model output has unexpected shape",
            extra={"operation": operation, "payload_type": type(payload).__name__}
        )
        return None

    return payload
