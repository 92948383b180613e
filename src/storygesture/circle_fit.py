"""Least-squares algebraic (Kasa) circle fit.

Used by the stroke listener to turn a recognized circular stroke into a
continuous value: the fitted radius is mapped onto affect bands.

The fit centers the points on their mean ``m``, builds the 2x2 system

    | Suu  Suv | |uc|   1 | sum(u^3 + u v^2) |
    | Suv  Svv | |vc| = - | sum(v^3 + v u^2) |
                        2

and recovers the center ``m + (uc, vc)`` and radius
``sqrt(uc^2 + vc^2 + (Suu + Svv) / N)``.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Iterable

import numpy as np

from storygesture.geometry import to_array

logger = logging.getLogger("storygesture.circle_fit")

DET_EPSILON = 1e-8


@dataclass
class CircleFitResult:
    """Outcome of a circle fit. Check ``success`` before using the geometry."""
    success: bool = False
    center: tuple[float, float] = (0.0, 0.0)
    radius: float = 0.0
    points: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))
    distances: np.ndarray = field(default_factory=lambda: np.zeros(0))  # signed, per point
    projections: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))
    residue: float = 0.0  # sum of squared signed distances
    elapsed_ms: float = 0.0

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "center": list(self.center),
            "radius": self.radius,
            "residue": self.residue,
            "elapsed_ms": self.elapsed_ms,
        }


def _solve_2x2(matrix: np.ndarray, vector: np.ndarray) -> np.ndarray | None:
    det = matrix[0, 0] * matrix[1, 1] - matrix[0, 1] * matrix[1, 0]
    # Scale the threshold with the moments so large pixel coordinates do not
    # hide colinear input behind rounding error.
    scale = max(1.0, float(matrix[0, 0] + matrix[1, 1]) ** 2)
    if det < DET_EPSILON * scale:
        return None
    y = (matrix[0, 0] * vector[1] - matrix[1, 0] * vector[0]) / det
    x = (vector[0] - matrix[0, 1] * y) / matrix[0, 0]
    return np.array([x, y])


def fit_circle(points: Iterable[Any]) -> CircleFitResult:
    """Fit a circle to ``points``. Degenerate input yields ``success=False``."""
    t0 = time.perf_counter()
    pts = to_array(points)
    result = CircleFitResult(points=pts)

    if len(pts) < 3:
        logger.debug("circle fit skipped: %d points", len(pts))
        result.elapsed_ms = (time.perf_counter() - t0) * 1000.0
        return result

    mean = pts.mean(axis=0)
    u = pts[:, 0] - mean[0]
    v = pts[:, 1] - mean[1]

    suu = float(np.sum(u * u))
    suv = float(np.sum(u * v))
    svv = float(np.sum(v * v))
    v1 = float(np.sum(0.5 * (u ** 3 + u * v * v)))
    v2 = float(np.sum(0.5 * (v ** 3 + u * u * v)))

    sol = _solve_2x2(np.array([[suu, suv], [suv, svv]]), np.array([v1, v2]))
    if sol is None:
        logger.debug("circle fit failed: points are colinear or coincident")
        result.elapsed_ms = (time.perf_counter() - t0) * 1000.0
        return result

    radius_sq = float(sol[0] ** 2 + sol[1] ** 2 + (suu + svv) / len(pts))
    radius = math.sqrt(radius_sq)
    center = mean + sol

    offsets = pts - center
    lengths = np.linalg.norm(offsets, axis=1)
    distances = lengths - radius
    safe = np.where(lengths > 0, lengths, 1.0)
    projections = center + offsets * (radius / safe)[:, None]

    result.success = True
    result.center = (float(center[0]), float(center[1]))
    result.radius = radius
    result.distances = distances
    result.projections = projections
    result.residue = float(np.sum(distances ** 2))
    result.elapsed_ms = (time.perf_counter() - t0) * 1000.0
    return result


class CircleFitter:
    """Accumulates points and fits a circle through them on demand."""

    def __init__(self):
        self._points: list[tuple[float, float]] = []

    def add_point(self, x: float, y: float):
        self._points.append((float(x), float(y)))

    def add_points(self, points: Iterable[Any]):
        for x, y in to_array(points):
            self.add_point(x, y)

    def reset(self):
        self._points = []

    @property
    def point_count(self) -> int:
        return len(self._points)

    def compute(self) -> CircleFitResult:
        return fit_circle(self._points)
