"""2D geometry helpers shared by the recognizers and listeners.

Point sets are handled as ``(N, 2)`` float64 numpy arrays. Every entry point
converts its input with ``to_array``, which refuses points with a missing or
non-finite coordinate instead of defaulting them. Callers are expected to
check ``TrackedPoint.is_visible`` first.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Union

import numpy as np

from storygesture.errors import UndefinedCoordinateError
from storygesture.frames import TrackedPoint


def _xy(point: Any) -> tuple[float, float]:
    if isinstance(point, TrackedPoint):
        x, y = point.x, point.y
    elif isinstance(point, dict):
        x, y = point.get("x"), point.get("y")
    else:
        x, y = point[0], point[1]
    if x is None or y is None:
        raise UndefinedCoordinateError(f"point {point!r} has an undefined coordinate")
    x, y = float(x), float(y)
    if not (math.isfinite(x) and math.isfinite(y)):
        raise UndefinedCoordinateError(f"point {point!r} has a non-finite coordinate")
    return x, y


def to_array(points: Iterable[Any]) -> np.ndarray:
    """Convert points (TrackedPoint, (x, y), {"x", "y"} or ndarray) to (N, 2)."""
    if isinstance(points, np.ndarray):
        arr = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        if not np.all(np.isfinite(arr)):
            raise UndefinedCoordinateError("point array contains undefined coordinates")
        return arr
    rows = [_xy(p) for p in points]
    return np.array(rows, dtype=np.float64).reshape(-1, 2)


def distance(a: Any, b: Any) -> float:
    """Euclidean distance between two points."""
    ax, ay = _xy(a)
    bx, by = _xy(b)
    return math.hypot(bx - ax, by - ay)


def path_length(points: Iterable[Any]) -> float:
    pts = to_array(points)
    if len(pts) < 2:
        return 0.0
    return float(np.sum(np.linalg.norm(np.diff(pts, axis=0), axis=1)))


def path_distance(a: np.ndarray, b: np.ndarray) -> float:
    """Mean point-to-point distance between two equally sized point sets."""
    if len(a) != len(b):
        raise ValueError(f"path_distance needs equal lengths, got {len(a)} and {len(b)}")
    return float(np.mean(np.linalg.norm(a - b, axis=1)))


def centroid(points: Iterable[Any]) -> np.ndarray:
    pts = to_array(points)
    if len(pts) == 0:
        raise ValueError("centroid of an empty point set")
    return pts.mean(axis=0)


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle: top-left position plus size (canvas pixels)."""
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    def contains(self, point: Any) -> bool:
        """Strict interior test; points on the border are outside."""
        px, py = _xy(point)
        return self.x < px < self.x + self.width and self.y < py < self.y + self.height

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: dict) -> Rect:
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
        )


@dataclass(frozen=True)
class Circle:
    """Circle region: center position plus radius."""
    x: float
    y: float
    radius: float

    @property
    def center(self) -> tuple[float, float]:
        return (self.x, self.y)

    def contains(self, point: Any) -> bool:
        px, py = _xy(point)
        return math.hypot(px - self.x, py - self.y) < self.radius

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "radius": self.radius}

    @classmethod
    def from_dict(cls, data: dict) -> Circle:
        return cls(x=float(data["x"]), y=float(data["y"]), radius=float(data["radius"]))


Region = Union[Rect, Circle]


def region_from_dict(data: dict) -> Region:
    """Build a Rect from ``{x, y, width, height}`` or a Circle from ``{x, y, radius}``."""
    if "radius" in data:
        return Circle.from_dict(data)
    return Rect.from_dict(data)


def bounding_box(points: Iterable[Any]) -> Rect:
    pts = to_array(points)
    if len(pts) == 0:
        raise ValueError("bounding box of an empty point set")
    lo = pts.min(axis=0)
    hi = pts.max(axis=0)
    return Rect(x=float(lo[0]), y=float(lo[1]), width=float(hi[0] - lo[0]), height=float(hi[1] - lo[1]))


def rotate_by(points: Iterable[Any], radians: float) -> np.ndarray:
    """Rotate a point set about its centroid."""
    pts = to_array(points)
    c = pts.mean(axis=0)
    cos, sin = math.cos(radians), math.sin(radians)
    rot = np.array([[cos, -sin], [sin, cos]])
    return (pts - c) @ rot.T + c


def scale_to(points: Iterable[Any], size: float) -> np.ndarray:
    """Non-uniformly scale a point set so its bounding box is ``size`` square.

    An axis with zero extent (a perfectly straight stroke) is left unscaled.
    """
    pts = to_array(points)
    box = bounding_box(pts)
    extent = np.array([box.width, box.height])
    factors = np.where(extent > 1e-8, size / np.where(extent > 1e-8, extent, 1.0), 1.0)
    return pts * factors


def translate_to(points: Iterable[Any], target: tuple[float, float] = (0.0, 0.0)) -> np.ndarray:
    """Translate a point set so its centroid sits on ``target``."""
    pts = to_array(points)
    return pts + (np.asarray(target, dtype=np.float64) - pts.mean(axis=0))
