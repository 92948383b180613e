"""Per-frame landmark data handed to the listeners.

A ``LandmarkFrame`` is produced once per video frame by the external hand
tracker / gesture classifier. It carries, for each visible hand, the 2D canvas
position of every landmark and the discrete gesture labels the classifier
matched for that hand.

Frames travel as JSON between the browser front end and the server, and are
written to disk by the recorder, so they round-trip through ``to_dict`` /
``from_dict``:

    {
        "timestamp": 1532.0,
        "hands": {
            "right": {
                "landmarks": {"8": [412.0, 230.5], "4": [398.1, 260.0]},
                "gestures": ["pointing"]
            }
        }
    }

``landmarks`` may also be a list indexed by landmark id, with ``null`` for
landmarks the tracker could not place.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Iterable, Mapping, Optional


class Hand(str, Enum):
    LEFT = "left"
    RIGHT = "right"

    @property
    def other(self) -> Hand:
        return Hand.RIGHT if self is Hand.LEFT else Hand.LEFT


class HandLandmark(IntEnum):
    """MediaPipe hand landmark ids."""
    WRIST = 0
    THUMB_CMC = 1
    THUMB_MCP = 2
    THUMB_IP = 3
    THUMB_TIP = 4
    INDEX_FINGER_MCP = 5
    INDEX_FINGER_PIP = 6
    INDEX_FINGER_DIP = 7
    INDEX_FINGER_TIP = 8
    MIDDLE_FINGER_MCP = 9
    MIDDLE_FINGER_PIP = 10
    MIDDLE_FINGER_DIP = 11
    MIDDLE_FINGER_TIP = 12
    RING_FINGER_MCP = 13
    RING_FINGER_PIP = 14
    RING_FINGER_DIP = 15
    RING_FINGER_TIP = 16
    PINKY_MCP = 17
    PINKY_PIP = 18
    PINKY_DIP = 19
    PINKY_TIP = 20


class SupportedGesture(str, Enum):
    """Labels produced by the external pose classifier."""
    POINTING = "pointing"
    OPEN_HAND = "open-hand"
    FORESHADOWING_LEFT_L = "foreshadowing-left-l"
    FORESHADOWING_RIGHT_L = "foreshadowing-right-l"
    FORESHADOWING_LEFT_C = "foreshadowing-left-c"
    FORESHADOWING_RIGHT_C = "foreshadowing-right-c"


def _finite(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value)


@dataclass(frozen=True)
class TrackedPoint:
    """A 2D canvas position whose components may be missing.

    ``None`` means "not visible this frame" and is never treated as zero.
    """
    x: Optional[float] = None
    y: Optional[float] = None

    @property
    def is_visible(self) -> bool:
        return _finite(self.x) and _finite(self.y)

    def to_list(self) -> Optional[list[float]]:
        if not self.is_visible:
            return None
        return [self.x, self.y]

    @classmethod
    def from_value(cls, value: Any) -> TrackedPoint:
        """Accept ``[x, y]``, ``{"x": .., "y": ..}``, a TrackedPoint or None."""
        if value is None:
            return cls()
        if isinstance(value, TrackedPoint):
            return value
        if isinstance(value, Mapping):
            x, y = value.get("x"), value.get("y")
        else:
            x, y = (list(value) + [None, None])[:2]
        x = float(x) if x is not None else None
        y = float(y) if y is not None else None
        # NaN is how recordings mark a landmark the tracker lost.
        return cls(
            x=x if _finite(x) else None,
            y=y if _finite(y) else None,
        )


UNSEEN = TrackedPoint()


@dataclass(frozen=True)
class HandData:
    """Landmarks and classifier labels for one hand in one frame."""
    landmarks: Mapping[int, TrackedPoint] = field(default_factory=dict)
    gestures: frozenset[str] = frozenset()

    def landmark(self, landmark_id: int) -> TrackedPoint:
        return self.landmarks.get(int(landmark_id), UNSEEN)

    def has_gesture(self, label: str) -> bool:
        return str(label) in self.gestures

    @classmethod
    def from_points(
        cls,
        points: Mapping[int, Any],
        gestures: Iterable[str] = (),
    ) -> HandData:
        return cls(
            landmarks={int(k): TrackedPoint.from_value(v) for k, v in points.items()},
            gestures=frozenset(str(getattr(g, "value", g)) for g in gestures),
        )

    def to_dict(self) -> dict:
        return {
            "landmarks": {str(k): p.to_list() for k, p in sorted(self.landmarks.items())},
            "gestures": sorted(self.gestures),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> HandData:
        raw = data.get("landmarks") or {}
        if isinstance(raw, Mapping):
            points = {int(k): v for k, v in raw.items()}
        else:
            points = {i: v for i, v in enumerate(raw)}
        return cls.from_points(points, data.get("gestures") or [])


@dataclass(frozen=True)
class LandmarkFrame:
    """Everything the listeners see for one video frame."""
    hands: Mapping[Hand, HandData] = field(default_factory=dict)
    timestamp: float = 0.0  # milliseconds

    def hand(self, hand: Hand) -> Optional[HandData]:
        return self.hands.get(hand)

    @property
    def hand_count(self) -> int:
        return sum(1 for data in self.hands.values() if data.landmarks)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "hands": {h.value: d.to_dict() for h, d in self.hands.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LandmarkFrame:
        hands = {
            Hand(name): HandData.from_dict(hand_data)
            for name, hand_data in (data.get("hands") or {}).items()
            if hand_data is not None
        }
        return cls(hands=hands, timestamp=float(data.get("timestamp", 0.0)))
