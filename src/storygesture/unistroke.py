"""Single-stroke shape recognition with the $1 unistroke algorithm.

Both templates and query strokes go through the same normalization:

1. resample to ``NUM_POINTS`` evenly spaced points along the path
2. rotate by minus the indicative angle (first point -> centroid)
3. scale non-uniformly to a ``SQUARE_SIZE`` square
4. translate the centroid to the origin
5. (Protractor) flatten into a unit-length vector

A query is scored against every template either with a golden-section search
over rotations in [-45, +45] degrees (geometric mode, the default) or with
Protractor's closed-form optimal cosine distance. Ships with the sixteen
classic $1 shapes.

Usage:
    recognizer = UnistrokeRecognizer.with_defaults()
    result = recognizer.recognize(points)
    print(f"{result.name} (score={result.score:.2f})")

    # Enroll a user stroke at runtime:
    recognizer.add_template("spiral", points)
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

import numpy as np

from storygesture.errors import DegenerateStrokeError
from storygesture.geometry import (
    centroid,
    path_distance,
    path_length,
    rotate_by,
    scale_to,
    to_array,
    translate_to,
)

logger = logging.getLogger("storygesture.unistroke")

NUM_POINTS = 64
SQUARE_SIZE = 250.0
ORIGIN = (0.0, 0.0)
DIAGONAL = math.sqrt(SQUARE_SIZE ** 2 + SQUARE_SIZE ** 2)
HALF_DIAGONAL = 0.5 * DIAGONAL
ANGLE_RANGE = math.radians(45.0)
ANGLE_PRECISION = math.radians(2.0)
PHI = 0.5 * (-1.0 + math.sqrt(5.0))  # golden ratio

MIN_PATH_LENGTH = 1e-6
NO_MATCH = "No match."


def resample(points: Iterable[Any], n: int = NUM_POINTS) -> np.ndarray:
    """Resample a path to exactly ``n`` points spaced evenly by arc length."""
    if n < 2:
        raise ValueError(f"resample needs n >= 2, got {n}")
    pts = [tuple(p) for p in to_array(points)]
    if len(pts) < 2:
        raise DegenerateStrokeError(f"cannot resample a path of {len(pts)} point(s)")

    total = path_length(pts)
    if total < MIN_PATH_LENGTH:
        raise DegenerateStrokeError(f"path length {total:.3g} is too short to resample")

    interval = total / (n - 1)
    travelled = 0.0
    out = [pts[0]]
    i = 1
    while i < len(pts):
        (px, py), (cx, cy) = pts[i - 1], pts[i]
        d = math.hypot(cx - px, cy - py)
        if d > 0 and travelled + d >= interval:
            t = (interval - travelled) / d
            q = (px + t * (cx - px), py + t * (cy - py))
            out.append(q)
            # q becomes the start of the next segment
            pts.insert(i, q)
            travelled = 0.0
        else:
            travelled += d
        i += 1

    # Rounding can leave the walk a point short of the end.
    while len(out) < n:
        out.append(pts[-1])
    return np.array(out[:n], dtype=np.float64)


def indicative_angle(points: np.ndarray) -> float:
    c = centroid(points)
    return math.atan2(c[1] - points[0][1], c[0] - points[0][0])


def vectorize(points: np.ndarray) -> np.ndarray:
    """Flatten to (x0, y0, x1, y1, ...) with unit magnitude, for Protractor."""
    vector = np.asarray(points, dtype=np.float64).reshape(-1)
    magnitude = float(np.linalg.norm(vector))
    if magnitude < 1e-12:
        raise DegenerateStrokeError("cannot vectorize a stroke with zero magnitude")
    return vector / magnitude


def normalize(points: Iterable[Any], n: int = NUM_POINTS) -> np.ndarray:
    """Run steps 1-4 of the pipeline and return the canonical point set."""
    pts = resample(points, n)
    pts = rotate_by(pts, -indicative_angle(pts))
    pts = scale_to(pts, SQUARE_SIZE)
    return translate_to(pts, ORIGIN)


def optimal_cosine_distance(v1: np.ndarray, v2: np.ndarray) -> float:
    """Protractor: angle between two vectors after the best in-plane rotation."""
    x1, y1 = v1[0::2], v1[1::2]
    x2, y2 = v2[0::2], v2[1::2]
    a = float(np.sum(x1 * x2 + y1 * y2))
    b = float(np.sum(x1 * y2 - y1 * x2))
    if a == 0.0:
        angle = math.copysign(math.pi / 2, b)
    else:
        angle = math.atan(b / a)
    cos_sim = a * math.cos(angle) + b * math.sin(angle)
    return math.acos(max(-1.0, min(1.0, cos_sim)))


def distance_at_angle(points: np.ndarray, template_points: np.ndarray, radians: float) -> float:
    return path_distance(rotate_by(points, radians), template_points)


def distance_at_best_angle(
    points: np.ndarray,
    template_points: np.ndarray,
    a: float = -ANGLE_RANGE,
    b: float = ANGLE_RANGE,
    threshold: float = ANGLE_PRECISION,
) -> float:
    """Golden-section search for the rotation that minimizes path distance."""
    x1 = PHI * a + (1.0 - PHI) * b
    f1 = distance_at_angle(points, template_points, x1)
    x2 = (1.0 - PHI) * a + PHI * b
    f2 = distance_at_angle(points, template_points, x2)
    while abs(b - a) > threshold:
        if f1 < f2:
            b, x2, f2 = x2, x1, f1
            x1 = PHI * a + (1.0 - PHI) * b
            f1 = distance_at_angle(points, template_points, x1)
        else:
            a, x1, f1 = x1, x2, f2
            x2 = (1.0 - PHI) * a + PHI * b
            f2 = distance_at_angle(points, template_points, x2)
    return min(f1, f2)


@dataclass(frozen=True)
class Unistroke:
    """A named, normalized stroke template. Immutable once built."""
    name: str
    points: np.ndarray  # (NUM_POINTS, 2), canonical
    vector: np.ndarray  # (2 * NUM_POINTS,), unit length
    builtin: bool = False

    @classmethod
    def from_stroke(cls, name: str, points: Iterable[Any], builtin: bool = False) -> Unistroke:
        canonical = normalize(points)
        vector = vectorize(canonical)
        canonical.setflags(write=False)
        vector.setflags(write=False)
        return cls(name=name, points=canonical, vector=vector, builtin=builtin)


@dataclass(frozen=True)
class RecognitionResult:
    """Best template match for a stroke."""
    name: str
    score: float  # 0-1, higher = better match
    elapsed_ms: float

    @property
    def matched(self) -> bool:
        return self.name != NO_MATCH

    def to_dict(self) -> dict:
        return {"name": self.name, "score": self.score, "elapsed_ms": self.elapsed_ms}


class UnistrokeRecognizer:
    """Matches strokes against an append-only list of templates.

    Recognition never mutates the template list; ``add_template`` and
    ``delete_user_templates`` are the only writers.
    """

    def __init__(self, templates: Optional[Sequence[Unistroke]] = None):
        self._templates: list[Unistroke] = list(templates or [])

    @property
    def templates(self) -> list[Unistroke]:
        return list(self._templates)

    @property
    def template_names(self) -> list[str]:
        return [t.name for t in self._templates]

    def register_template(self, template: Unistroke):
        self._templates.append(template)

    def add_template(self, name: str, points: Iterable[Any]) -> int:
        """Normalize a user stroke into a new template.

        Returns the number of templates now registered under ``name``.
        Raises DegenerateStrokeError if the stroke cannot be normalized.
        """
        self._templates.append(Unistroke.from_stroke(name, points))
        count = sum(1 for t in self._templates if t.name == name)
        logger.debug("enrolled template %r (%d with this name)", name, count)
        return count

    def delete_user_templates(self) -> int:
        """Drop every runtime template. Returns the number of templates left."""
        self._templates = [t for t in self._templates if t.builtin]
        return len(self._templates)

    def recognize(self, points: Iterable[Any], use_protractor: bool = False) -> RecognitionResult:
        t0 = time.perf_counter()

        if not self._templates:
            return RecognitionResult(NO_MATCH, 0.0, (time.perf_counter() - t0) * 1000.0)

        try:
            candidate = Unistroke.from_stroke("", points)
        except DegenerateStrokeError as e:
            logger.debug("stroke not recognizable: %s", e)
            return RecognitionResult(NO_MATCH, 0.0, (time.perf_counter() - t0) * 1000.0)

        best_index = -1
        best_distance = math.inf
        for i, template in enumerate(self._templates):
            if use_protractor:
                d = optimal_cosine_distance(template.vector, candidate.vector)
            else:
                d = distance_at_best_angle(candidate.points, template.points)
            if d < best_distance:
                best_distance = d
                best_index = i

        elapsed_ms = (time.perf_counter() - t0) * 1000.0
        if best_index < 0:
            return RecognitionResult(NO_MATCH, 0.0, elapsed_ms)

        if use_protractor:
            score = max(0.0, 1.0 - best_distance / (math.pi / 2))
        else:
            score = 1.0 - best_distance / HALF_DIAGONAL
        return RecognitionResult(self._templates[best_index].name, score, elapsed_ms)

    @classmethod
    def with_defaults(cls, names: Optional[Iterable[str]] = None) -> UnistrokeRecognizer:
        """Create a recognizer with the built-in $1 shapes.

        ``names`` restricts the built-ins to a subset.
        """
        wanted = set(names) if names is not None else None
        recognizer = cls()
        for name, points in builtin_strokes().items():
            if wanted is None or name in wanted:
                recognizer.register_template(Unistroke.from_stroke(name, points, builtin=True))
        if wanted is not None:
            unknown = wanted - set(recognizer.template_names)
            if unknown:
                raise ValueError(f"unknown built-in templates: {sorted(unknown)}")
        return recognizer


def _circle_stroke(
    cx: float = 127.0, cy: float = 190.0, radius: float = 50.0, samples: int = 64
) -> list[tuple[float, float]]:
    # Starts at the top and runs counter-clockwise on screen (y grows down).
    t = np.linspace(0.0, 2.0 * math.pi, samples)
    angles = -math.pi / 2 - t
    return [(cx + radius * math.cos(a), cy + radius * math.sin(a)) for a in angles]


def _pigtail_stroke(samples: int = 64) -> list[tuple[float, float]]:
    # Prolate trochoid: a rising curve with a single loop.
    t = np.linspace(0.15 * math.pi, 1.85 * math.pi, samples)
    r, d = 30.0, 60.0
    return [(80 + r * ti - d * math.sin(ti), 220 - (r - d * math.cos(ti))) for ti in t]


def builtin_strokes() -> dict[str, list[tuple[float, float]]]:
    """Control paths for the built-in templates, in canvas coordinates (y down)."""
    return {
        "triangle": [(137, 139), (65, 239), (208, 239), (137, 139)],
        "x": [(87, 142), (152, 236), (152, 142), (87, 236)],
        "rectangle": [(78, 149), (78, 240), (200, 240), (200, 149), (78, 149)],
        "circle": _circle_stroke(),
        "check": [(91, 185), (123, 218), (190, 130)],
        "caret": [(79, 245), (136, 150), (193, 245)],
        "zig-zag": [(307, 216), (333, 186), (356, 215), (375, 186), (399, 216), (418, 186)],
        "arrow": [(68, 222), (170, 130), (128, 136), (170, 130), (160, 172)],
        "left square bracket": [(140, 124), (95, 124), (95, 240), (140, 240)],
        "right square bracket": [(112, 138), (155, 138), (155, 250), (112, 250)],
        "v": [(89, 164), (132, 248), (176, 164)],
        "delete": [(123, 129), (188, 228), (123, 228), (188, 129)],
        "left curly brace": [
            (150, 116), (128, 122), (124, 150), (124, 170), (104, 180),
            (124, 190), (124, 215), (128, 240), (150, 245),
        ],
        "right curly brace": [
            (117, 132), (140, 138), (144, 165), (144, 185), (164, 195),
            (144, 205), (144, 230), (140, 255), (117, 260),
        ],
        "star": [(75, 250), (125, 90), (175, 250), (45, 150), (205, 150), (75, 250)],
        "pigtail": _pigtail_stroke(),
    }
