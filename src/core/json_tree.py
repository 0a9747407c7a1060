"""Immutable JSON value tree.

This module fixes the kind of every JSON value once, when the tree is
built, so downstream stages match on ``kind`` instead of probing types.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Literal, Mapping, Union

from core.errors import InvalidInputError, SerializationError

FieldKind = Literal["bool", "int", "float", "string", "other"]
SUPPORTED_FIELD_KINDS: tuple[FieldKind, ...] = ("bool", "int", "float", "string")
ScalarValue = Union[bool, int, float, str, None]


@dataclass(frozen=True)
class JsonScalar:
    """Leaf value with its kind resolved at build time.

    Attributes:
        kind: Field kind; ``null`` is represented as ``"other"``.
        value: Python scalar value.
    """

    kind: FieldKind
    value: ScalarValue


@dataclass(frozen=True)
class JsonObject:
    """JSON object node."""

    members: Mapping[str, "JsonValue"]

    @property
    def kind(self) -> FieldKind:
        return "other"


@dataclass(frozen=True)
class JsonArray:
    """JSON array node."""

    items: tuple["JsonValue", ...]

    @property
    def kind(self) -> FieldKind:
        return "other"


JsonValue = Union[JsonScalar, JsonObject, JsonArray]

NULL = JsonScalar(kind="other", value=None)


def scalar(value: ScalarValue) -> JsonScalar:
    """Build a leaf node for a Python scalar.

    Args:
        value: ``bool``, ``int``, ``float``, ``str`` or ``None``.

    Returns:
        Leaf node carrying the resolved kind.

    Raises:
        InvalidInputError: If value is not a JSON scalar.
    """
    return JsonScalar(kind=scalar_kind(value), value=value)


def scalar_kind(value: object) -> FieldKind:
    """Resolve the field kind of a Python scalar.

    Raises:
        InvalidInputError: If value is not a JSON scalar.
    """
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    if value is None:
        return "other"
    raise InvalidInputError(
        f"Unsupported JSON scalar of type {type(value).__name__}: "
        "expected bool, int, float, str or None."
    )


def from_python(value: object) -> JsonValue:
    """Convert decoded Python JSON data into a tree.

    Args:
        value: Output of ``json.loads`` or an equivalent structure.

    Returns:
        Root node of the tree.

    Raises:
        InvalidInputError: If value holds non-JSON types or non-string keys.
    """
    if isinstance(value, dict):
        members: dict[str, JsonValue] = {}
        for key, member in value.items():
            if not isinstance(key, str):
                raise InvalidInputError(
                    f"Unsupported JSON object key {key!r}: object keys must be strings."
                )
            members[key] = from_python(member)
        return JsonObject(members=members)
    if isinstance(value, (list, tuple)):
        return JsonArray(items=tuple(from_python(item) for item in value))
    return scalar(value)  # type: ignore[arg-type]


def to_python(node: JsonValue) -> object:
    """Convert a tree back into plain Python JSON data."""
    if isinstance(node, JsonObject):
        return {key: to_python(member) for key, member in node.members.items()}
    if isinstance(node, JsonArray):
        return [to_python(item) for item in node.items]
    return node.value


def canonical_text(node: JsonValue) -> str:
    """Render a node as compact JSON text with sorted keys.

    Args:
        node: Tree node to serialize.

    Returns:
        Compact JSON text.

    Raises:
        SerializationError: If the node holds non-finite floats.
    """
    try:
        return json.dumps(
            to_python(node),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except ValueError as error:
        raise SerializationError(f"Failed to serialize JSON subtree: {error}.") from error
