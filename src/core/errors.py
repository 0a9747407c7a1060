"""Stsl exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations


class StslError(Exception):
    """Base exception for all stsl failures."""


class StslConfigError(StslError):
    """Raised for invalid runtime configuration."""


class InvalidInputError(StslError):
    """Raised for JSON payloads, points, or values of the wrong shape."""


class SerializationError(StslError):
    """Raised when an exempted JSON subtree cannot be re-serialized."""


class InvalidUnitError(StslError):
    """Raised for malformed compound duration text."""


class StoreError(StslError):
    """Raised for time-series store transport and lifecycle failures."""
