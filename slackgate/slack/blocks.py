"""Block Kit input checks for outbound Slack messages.

Blocks arrive from the runtime as plain JSON. They are checked for shape
before being sent, and a plain-text fallback is derived for the ``text``
field when the caller sent blocks without text.

Block Kit Reference: https://api.slack.com/block-kit
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

MAX_BLOCKS = 50

DEFAULT_FALLBACK_TEXT = "Shared a Block Kit message"


def validate_blocks(raw: Any) -> list[dict[str, Any]]:
    """Validate a Block Kit array.

    Args:
        raw: The caller-supplied blocks.

    Returns:
        The blocks as a list of dicts.

    Raises:
        ValueError: If ``raw`` is not a non-empty list of at most 50 block
            objects that each carry a string ``type``.
    """
    if not isinstance(raw, list):
        raise ValueError("blocks must be an array")
    if not raw:
        raise ValueError("blocks must contain at least one block")
    if len(raw) > MAX_BLOCKS:
        raise ValueError(f"blocks cannot exceed {MAX_BLOCKS} items")

    blocks: list[dict[str, Any]] = []
    for index, block in enumerate(raw):
        if not isinstance(block, Mapping):
            raise ValueError(f"blocks[{index}] must be an object")
        block_type = block.get("type")
        if not isinstance(block_type, str) or not block_type.strip():
            raise ValueError(f"blocks[{index}].type must be a non-empty string")
        blocks.append(dict(block))
    return blocks


def _text_of(obj: Any) -> str:
    if isinstance(obj, Mapping):
        text = obj.get("text")
        if isinstance(text, str):
            return text.strip()
    return ""


def _block_text(block: Mapping[str, Any]) -> list[str]:
    block_type = block.get("type")

    if block_type in ("header", "section"):
        parts = [_text_of(block.get("text"))]
        fields = block.get("fields")
        if isinstance(fields, list):
            parts.extend(_text_of(f) for f in fields)
        return parts

    if block_type == "context":
        elements = block.get("elements")
        if isinstance(elements, list):
            return [_text_of(e) for e in elements]
        return []

    if block_type == "image":
        alt_text = block.get("alt_text")
        if isinstance(alt_text, str) and alt_text.strip():
            return [alt_text.strip()]
        return ["[image]"]

    return []


def build_blocks_fallback_text(blocks: list[dict[str, Any]]) -> str:
    """Derive plain text from header, section, context and image blocks."""
    lines = [text for block in blocks for text in _block_text(block) if text]
    if not lines:
        return DEFAULT_FALLBACK_TEXT
    return "\n".join(lines)
