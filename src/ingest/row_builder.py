"""Field set construction for time-series points.

This module keeps the flat row entries a point can store as fields.
Entries of any other kind are dropped without raising.
"""

from __future__ import annotations

from core.json_tree import SUPPORTED_FIELD_KINDS, JsonScalar
from core.types import FieldValue, FlatRow


def build_fields(flat_row: FlatRow) -> dict[str, FieldValue]:
    """Select bool, int, float and string entries from a flat row.

    Args:
        flat_row: Output of ``flatten``.

    Returns:
        Field mapping; nulls and container values are left out.
    """
    fields: dict[str, FieldValue] = {}
    for key, node in flat_row.items():
        if isinstance(node, JsonScalar) and node.kind in SUPPORTED_FIELD_KINDS:
            fields[key] = node.value  # type: ignore[assignment]
    return fields


def dropped_keys(flat_row: FlatRow, fields: dict[str, FieldValue]) -> list[str]:
    """Return flat row keys that did not make it into the field set."""
    return sorted(key for key in flat_row if key not in fields)
