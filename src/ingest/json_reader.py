"""JSON payload readers for point ingestion.

This module decodes UTF-8 JSON buffers into immutable value trees.
It validates the root shape expected by single-row and multi-row inserts.
"""

from __future__ import annotations

import json
import math

from core.errors import InvalidInputError
from core.json_tree import JsonArray, JsonObject, JsonValue, from_python


def decode_json(payload: bytes | str) -> JsonValue:
    """Decode a JSON buffer into a value tree.

    Args:
        payload: UTF-8 encoded JSON bytes or already-decoded text.

    Returns:
        Root node of the decoded tree.

    Raises:
        InvalidInputError: If payload is not valid standard JSON.
    """
    try:
        text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        decoded = json.loads(
            text, parse_constant=_reject_constant, parse_float=_parse_finite_float
        )
    except UnicodeDecodeError as error:
        raise InvalidInputError(f"Failed to decode JSON payload as UTF-8: {error}.") from error
    except json.JSONDecodeError as error:
        raise InvalidInputError(
            f"Failed to parse JSON payload at line {error.lineno} column {error.colno}: "
            f"{error.msg}."
        ) from error
    return from_python(decoded)


def decode_json_object(payload: bytes | str) -> JsonObject:
    """Decode a buffer that must hold one JSON object.

    Raises:
        InvalidInputError: If payload is invalid or its root is not an object.
    """
    root = decode_json(payload)
    if not isinstance(root, JsonObject):
        raise InvalidInputError(
            f"Invalid JSON row: expected an object at top level, got {_describe(root)}."
        )
    return root


def decode_json_rows(payload: bytes | str) -> tuple[JsonObject, ...]:
    """Decode a buffer that must hold a JSON array of objects.

    Args:
        payload: UTF-8 encoded JSON array.

    Returns:
        Decoded rows in array order; empty for ``[]``.

    Raises:
        InvalidInputError: If the root is not an array or an element is not an object.
    """
    root = decode_json(payload)
    if not isinstance(root, JsonArray):
        raise InvalidInputError(
            f"Invalid JSON rows: expected an array at top level, got {_describe(root)}."
        )
    rows: list[JsonObject] = []
    for index, item in enumerate(root.items):
        if not isinstance(item, JsonObject):
            raise InvalidInputError(
                f"Invalid JSON rows: element {index} must be an object, got {_describe(item)}."
            )
        rows.append(item)
    return tuple(rows)


def _reject_constant(name: str) -> None:
    raise InvalidInputError(f"Unsupported JSON constant '{name}': payload must be standard JSON.")


def _parse_finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise InvalidInputError(
            f"Unsupported JSON number '{text}': value is outside the float range."
        )
    return value


def _describe(node: JsonValue) -> str:
    if isinstance(node, JsonObject):
        return "object"
    if isinstance(node, JsonArray):
        return "array"
    return "null" if node.value is None else node.kind
