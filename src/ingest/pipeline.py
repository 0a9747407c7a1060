"""Row preparation for JSON point ingestion.

This module chains flattening and field selection for one decoded row.
The SDK turns each prepared row into exactly one point write.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from core.json_tree import JsonObject
from core.types import ArrayExemptionMode, FieldValue
from ingest.flatten import flatten
from ingest.row_builder import build_fields, dropped_keys


@dataclass(frozen=True)
class PreparedRow:
    """Field set derived from one JSON row.

    Attributes:
        fields: Scalar fields to write.
        dropped: Flat keys left out because of their kind.
    """

    fields: dict[str, FieldValue]
    dropped: tuple[str, ...]


def prepare_row(
    row: JsonObject,
    ignore_keys: Iterable[str],
    array_exemption: ArrayExemptionMode = "legacy",
) -> PreparedRow:
    """Flatten one row and select its writable fields.

    Args:
        row: Decoded JSON object.
        ignore_keys: Keys whose subtrees stay opaque.
        array_exemption: Flatten compatibility mode.

    Returns:
        Prepared field set.

    Raises:
        InvalidInputError: If the row cannot be flattened.
        SerializationError: If an ignored subtree cannot be serialized.
    """
    flat_row = flatten(row, "", ignore_keys, array_exemption)
    fields = build_fields(flat_row)
    return PreparedRow(fields=fields, dropped=tuple(dropped_keys(flat_row, fields)))


def prepare_rows(
    rows: Sequence[JsonObject],
    ignore_keys: Iterable[str],
    array_exemption: ArrayExemptionMode = "legacy",
) -> list[PreparedRow]:
    """Prepare every row, failing before any result is returned."""
    ignore_set = frozenset(ignore_keys)
    return [prepare_row(row, ignore_set, array_exemption) for row in rows]
