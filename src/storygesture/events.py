"""Typed events emitted by the listeners.

Every event knows how to serialize itself with ``to_dict()`` so the server
can push it over the websocket and the CLI can print it:

    {"type": "selection", "listener": "select-a", "timestamp": 1200.0, "keys": ["a"]}
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, ClassVar, Optional, Union

from storygesture.geometry import Circle, Rect


class Affect(str, Enum):
    """Intensity conveyed by the size of a circular stroke."""
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    POSITIVE = "positive"


class DrawingMode(str, Enum):
    """Chart animation style selected by the emphasis level."""
    SEQUENTIAL = "sequential"
    CONCURRENT = "concurrent"
    DROP = "drop"


class ForeshadowShape(str, Enum):
    RECTANGLE = "rectangle"
    CIRCLE = "circle"
    RANGE = "range"


def _jsonable(value: Any) -> Any:
    if isinstance(value, (Rect, Circle)):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (tuple, list)):
        return [_jsonable(v) for v in value]
    return value


class GestureEvent:
    """Base for all emitted events."""

    event_type: ClassVar[str] = "gesture"

    def to_dict(self) -> dict:
        data = {"type": self.event_type}
        for f in fields(self):
            data[f.name] = _jsonable(getattr(self, f.name))
        return data


@dataclass(frozen=True)
class SelectionEvent(GestureEvent):
    """Selection confirmed. ``keys`` is None when the selection was cleared."""
    keys: Optional[tuple[str, ...]] = None
    listener: str = ""
    timestamp: float = 0.0

    event_type: ClassVar[str] = "selection"

    @property
    def cleared(self) -> bool:
        return self.keys is None


@dataclass(frozen=True)
class ForeshadowEvent(GestureEvent):
    shape: ForeshadowShape = ForeshadowShape.RECTANGLE
    area: Optional[Union[Rect, Circle]] = None  # None when cleared
    count: int = 1
    mode: str = "trajectory"
    listener: str = ""
    timestamp: float = 0.0

    event_type: ClassVar[str] = "foreshadow"


@dataclass(frozen=True)
class PlaybackEvent(GestureEvent):
    """``kind="discrete"`` carries a 0..1 ratio, ``kind="continuous"`` a True pulse."""
    kind: str = "discrete"
    value: Union[float, bool, None] = None
    listener: str = ""
    timestamp: float = 0.0

    event_type: ClassVar[str] = "playback"


@dataclass(frozen=True)
class EmphasisEvent(GestureEvent):
    level: int = 0
    delta: int = 0
    drawing_mode: DrawingMode = DrawingMode.SEQUENTIAL
    listener: str = ""
    timestamp: float = 0.0

    event_type: ClassVar[str] = "emphasis"


@dataclass(frozen=True)
class StrokeEvent(GestureEvent):
    name: str = ""
    score: float = 0.0
    affect: Optional[Affect] = None
    enrolled: bool = False
    listener: str = ""
    timestamp: float = 0.0

    event_type: ClassVar[str] = "stroke"


@dataclass(frozen=True)
class HighlightEvent(GestureEvent):
    position: tuple[float, float] = (0.0, 0.0)
    listener: str = ""
    timestamp: float = 0.0

    event_type: ClassVar[str] = "highlight"


EVENT_TYPES: dict[str, type] = {
    cls.event_type: cls
    for cls in (SelectionEvent, ForeshadowEvent, PlaybackEvent, EmphasisEvent, StrokeEvent, HighlightEvent)
}
