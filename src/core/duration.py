"""Compound duration text codec.

This module converts between integer seconds and duration strings
such as ``3w4d12m30s``. Empty text and zero both mean infinite retention.
"""

from __future__ import annotations

from core.constants import (
    DURATION_UNITS,
    INFINITE_RETENTION_SECONDS,
    LONG_RETENTION_THRESHOLD_SECONDS,
    MEDIUM_RETENTION_THRESHOLD_SECONDS,
    SECONDS_PER_DAY,
    SECONDS_PER_HOUR,
    SECONDS_PER_WEEK,
)
from core.errors import InvalidInputError, InvalidUnitError

_UNIT_SECONDS = dict(DURATION_UNITS)


def parse_duration(text: str) -> int:
    """Convert compound duration text into seconds.

    Each run of digits must be followed by one of ``w d h m s``.
    Repeated units are additive, so ``5s10s`` is fifteen seconds.

    Args:
        text: Duration text, possibly empty.

    Returns:
        Total seconds; ``0`` for empty text.

    Raises:
        InvalidUnitError: If a unit letter is unknown or a count is missing.
    """
    total_seconds = 0
    digits = ""
    for position, character in enumerate(text):
        if character.isascii() and character.isdigit():
            digits += character
            continue
        unit_seconds = _UNIT_SECONDS.get(character)
        if unit_seconds is None:
            raise InvalidUnitError(
                f"Invalid duration '{text}': unknown unit '{character}' at position {position}. "
                "Use w, d, h, m or s."
            )
        if not digits:
            raise InvalidUnitError(
                f"Invalid duration '{text}': unit '{character}' at position {position} "
                "has no count before it."
            )
        total_seconds += int(digits) * unit_seconds
        digits = ""
    if digits:
        raise InvalidUnitError(
            f"Invalid duration '{text}': trailing count '{digits}' has no unit."
        )
    return total_seconds


def format_duration(seconds: int) -> str:
    """Render seconds as canonical compound duration text.

    Args:
        seconds: Non-negative number of seconds.

    Returns:
        Text such as ``2m`` or ``1w1s``; empty for zero.

    Raises:
        InvalidInputError: If seconds is negative.
    """
    if seconds < 0:
        raise InvalidInputError(f"Duration must be non-negative, got {seconds} seconds.")
    remaining = seconds
    parts: list[str] = []
    for unit, unit_seconds in DURATION_UNITS:
        count, remaining = divmod(remaining, unit_seconds)
        if count:
            parts.append(f"{count}{unit}")
    return "".join(parts)


def shard_group_duration(retention_seconds: int) -> int:
    """Pick the shard group duration tier for a retention period.

    Infinite and long retention use one week, medium uses one day,
    everything shorter uses one hour.
    """
    if (
        retention_seconds == INFINITE_RETENTION_SECONDS
        or retention_seconds >= LONG_RETENTION_THRESHOLD_SECONDS
    ):
        return SECONDS_PER_WEEK
    if retention_seconds >= MEDIUM_RETENTION_THRESHOLD_SECONDS:
        return SECONDS_PER_DAY
    return SECONDS_PER_HOUR
