"""Exception types raised by the gesture engine.

Expected incompleteness (a hand or landmark not visible this frame) is never
an exception. These are raised for contract violations, degenerate numeric
input and bad configuration.
"""

from __future__ import annotations


class GestureEngineError(Exception):
    """Base class for all storygesture errors."""


class UndefinedCoordinateError(GestureEngineError, ValueError):
    """A geometry function received a point with a missing coordinate."""


class LandmarkContractError(GestureEngineError, RuntimeError):
    """A landmark that upstream code guaranteed to be present is missing."""

    def __init__(self, computation: str, detail: str):
        self.computation = computation
        super().__init__(f"{computation} - {detail}")


class DegenerateStrokeError(GestureEngineError, ValueError):
    """A stroke is too short (in points or path length) to normalize."""


class ConfigError(GestureEngineError, ValueError):
    """A listener or engine configuration failed validation."""
