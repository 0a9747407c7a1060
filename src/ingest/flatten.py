"""Nested JSON flattening.

This module turns a JSON value tree into a single-level mapping keyed by
dot-joined paths. Keys listed in the ignore set are not expanded: their
subtrees are kept as one opaque value (compact JSON text for containers).
"""

from __future__ import annotations

from typing import Iterable

from core.constants import PATH_SEPARATOR
from core.errors import InvalidInputError
from core.json_tree import JsonArray, JsonObject, JsonValue, canonical_text, scalar
from core.types import ArrayExemptionMode, FlatRow


def flatten(
    value: JsonValue,
    prefix: str = "",
    ignore_keys: Iterable[str] = (),
    array_exemption: ArrayExemptionMode = "legacy",
) -> FlatRow:
    """Flatten an object or array tree into dotted-path entries.

    Args:
        value: Root node; must be an object or an array.
        prefix: Text prepended to every top-level key.
        ignore_keys: Bare key names exempted from expansion at any depth.
        array_exemption: ``"legacy"`` keeps the historical array handling, where
            an object element holding an ignored key is stored whole under its
            index for every other key; ``"recursive"`` expands such elements
            like any other container.

    Returns:
        Fresh mapping of path to leaf node.

    Raises:
        InvalidInputError: If the root is neither an object nor an array.
        SerializationError: If an ignored subtree cannot be serialized.
    """
    if not isinstance(value, (JsonObject, JsonArray)):
        raise InvalidInputError(
            "Not a valid flatten input: root must be a JSON object or array, "
            f"got {value.kind}."
        )
    flattener = _Flattener(frozenset(ignore_keys), array_exemption)
    flattener.walk(value, prefix, top=True)
    return flattener.flat_row


def create_key(top: bool, prefix: str, subkey: str) -> str:
    """Join a prefix and subkey; top-level keys take no separator."""
    if top:
        return prefix + subkey
    return prefix + PATH_SEPARATOR + subkey


class _Flattener:
    """Depth-first walker that accumulates one flat row."""

    def __init__(self, ignore_keys: frozenset[str], array_exemption: ArrayExemptionMode) -> None:
        self._ignore_keys = ignore_keys
        self._array_exemption = array_exemption
        self.flat_row: FlatRow = {}

    def walk(self, node: JsonObject | JsonArray, prefix: str, top: bool) -> None:
        if isinstance(node, JsonObject):
            self._walk_object(node, prefix, top)
        else:
            self._walk_array(node, prefix, top)

    def _walk_object(self, node: JsonObject, prefix: str, top: bool) -> None:
        for key, member in node.members.items():
            if key in self._ignore_keys:
                new_key = key if prefix == "" else create_key(top, prefix, key)
                self._assign_opaque(new_key, member)
            else:
                self._assign(create_key(top, prefix, key), member)

    def _walk_array(self, node: JsonArray, prefix: str, top: bool) -> None:
        for index, item in enumerate(node.items):
            index_key = str(index)
            if (
                self._array_exemption == "legacy"
                and isinstance(item, JsonObject)
                and self._holds_ignored_key(item)
            ):
                self._assign_legacy_element(item, prefix, index_key, top)
            else:
                self._assign(create_key(top, prefix, index_key), item)

    def _assign_legacy_element(
        self,
        item: JsonObject,
        prefix: str,
        index_key: str,
        top: bool,
    ) -> None:
        for tag, member in item.members.items():
            if tag in self._ignore_keys:
                subkey = index_key + PATH_SEPARATOR + tag
                self._assign_opaque(create_key(top, prefix, subkey), member)
            else:
                self.flat_row[create_key(top, prefix, index_key)] = item

    def _assign(self, new_key: str, node: JsonValue) -> None:
        if isinstance(node, (JsonObject, JsonArray)):
            self.walk(node, new_key, top=False)
        else:
            self.flat_row[new_key] = node

    def _assign_opaque(self, new_key: str, node: JsonValue) -> None:
        if isinstance(node, (JsonObject, JsonArray)):
            self.flat_row[new_key] = scalar(canonical_text(node))
        else:
            self.flat_row[new_key] = node

    def _holds_ignored_key(self, item: JsonObject) -> bool:
        return any(tag in self._ignore_keys for tag in item.members)
