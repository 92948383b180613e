"""Listener and engine configuration.

Each listener kind has its own config dataclass, validated on construction.
A whole engine is described in YAML:

    canvas:
      width: 1280
      height: 720
    listeners:
      - kind: point_pose
        name: select-a
        region: {x: 40, y: 40, width: 200, height: 200}
        selection_keys: [a]
        pose_duration: 1000
      - kind: stroke
        region: {x: 600, y: 100, width: 300, height: 300}
        stroke_trigger_name: circle

Load it with ``load_engine_config("engine.yml")`` and hand the result to
``GestureEngine.from_config``. All durations are milliseconds, all distances
canvas pixels.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, ClassVar, Optional

import yaml

from storygesture.errors import ConfigError
from storygesture.frames import Hand, HandLandmark, SupportedGesture
from storygesture.geometry import Circle, Rect, Region, region_from_dict
from storygesture.unistroke import builtin_strokes

logger = logging.getLogger("storygesture.config")

DEFAULT_POSE_DURATION = 1000.0
DEFAULT_RESET_PAUSE_DURATION = 2000.0
DEFAULT_TRIGGER_DURATION = 3000.0
DEFAULT_TOLERANCE = 30.0
DEFAULT_TOUCH_DISTANCE = 30.0
DEFAULT_SHAPE_TOLERANCE = 20.0
DEFAULT_IDLE_TIMEOUT = 3000.0
DEFAULT_CANVAS = (1280.0, 720.0)


@dataclass(frozen=True)
class GesturePair:
    """Classifier labels a listener accepts for the right and left hand."""
    right: str
    left: str

    @classmethod
    def from_value(cls, value: Any) -> GesturePair:
        if isinstance(value, GesturePair):
            return value
        if isinstance(value, (str, SupportedGesture)):
            label = str(getattr(value, "value", value))
            return cls(right=label, left=label)
        if isinstance(value, dict):
            try:
                return cls(right=str(value["right"]), left=str(value["left"]))
            except KeyError as e:
                raise ConfigError(f"gesture pair needs 'right' and 'left': {value!r}") from e
        right, left = value
        return cls(right=str(getattr(right, "value", right)), left=str(getattr(left, "value", left)))

    def for_hand(self, hand: Hand) -> str:
        return self.right if hand is Hand.RIGHT else self.left

    def to_dict(self) -> dict:
        return {"right": self.right, "left": self.left}


def _pair(label: SupportedGesture) -> tuple[GesturePair, ...]:
    return (GesturePair(label.value, label.value),)


def _check_duration(kind: str, name: str, value: float):
    if value < 0:
        raise ConfigError(f"{kind}: {name} must be >= 0, got {value}")


def _check_positive(kind: str, name: str, value: float):
    if value <= 0:
        raise ConfigError(f"{kind}: {name} must be > 0, got {value}")


def _check_choice(kind: str, name: str, value: str, choices: tuple[str, ...]):
    if value not in choices:
        raise ConfigError(f"{kind}: {name} must be one of {list(choices)}, got {value!r}")


@dataclass
class ListenerConfig:
    """Options shared by every listener kind."""

    kind: ClassVar[str] = "listener"
    default_gestures: ClassVar[tuple[GesturePair, ...]] = _pair(SupportedGesture.POINTING)

    name: str = ""
    region: Optional[Region] = None
    dominant_hand: Hand = Hand.RIGHT
    gesture_types: tuple[GesturePair, ...] = ()
    tracked_landmarks: tuple[int, ...] = ()
    touch_distance: float = DEFAULT_TOUCH_DISTANCE
    enabled: bool = True

    def __post_init__(self):
        if isinstance(self.region, dict):
            self.region = region_from_dict(self.region)
        if self.region is None:
            raise ConfigError(f"{self.kind}: region is required")
        if isinstance(self.region, Rect) and (self.region.width <= 0 or self.region.height <= 0):
            raise ConfigError(f"{self.kind}: region width and height must be > 0, got {self.region}")
        if isinstance(self.region, Circle) and self.region.radius <= 0:
            raise ConfigError(f"{self.kind}: region radius must be > 0, got {self.region}")

        try:
            self.dominant_hand = Hand(str(getattr(self.dominant_hand, "value", self.dominant_hand)).lower())
        except ValueError as e:
            raise ConfigError(f"{self.kind}: unknown hand {self.dominant_hand!r}") from e

        self.gesture_types = tuple(GesturePair.from_value(g) for g in self.gesture_types) or self.default_gestures

        try:
            self.tracked_landmarks = tuple(HandLandmark(int(i)) for i in self.tracked_landmarks)
        except ValueError as e:
            raise ConfigError(f"{self.kind}: unknown landmark in {self.tracked_landmarks!r}") from e

        _check_positive(self.kind, "touch_distance", self.touch_distance)
        if not self.name:
            self.name = self.kind

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"kind": self.kind}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "region":
                value = value.to_dict()
            elif f.name == "dominant_hand":
                value = value.value
            elif f.name == "gesture_types":
                value = [g.to_dict() for g in value]
            elif f.name == "tracked_landmarks":
                value = [int(i) for i in value]
            elif isinstance(value, tuple):
                value = list(value)
            data[f.name] = value
        return data


@dataclass
class PoseHoldOptions:
    pose_duration: float = DEFAULT_POSE_DURATION
    reset_pause_duration: float = DEFAULT_RESET_PAUSE_DURATION
    tolerance: float = DEFAULT_TOLERANCE

    def _check_hold(self, kind: str):
        _check_duration(kind, "pose_duration", self.pose_duration)
        _check_duration(kind, "reset_pause_duration", self.reset_pause_duration)
        _check_positive(kind, "tolerance", self.tolerance)


@dataclass
class StrokeOptions:
    trigger_duration: float = DEFAULT_TRIGGER_DURATION
    stroke_trigger_name: str = "circle"
    min_points: int = 5
    templates: Optional[tuple[str, ...]] = None  # subset of built-ins, None = all
    use_protractor: bool = False
    min_score: float = 0.0

    def _check_stroke(self, kind: str):
        _check_duration(kind, "trigger_duration", self.trigger_duration)
        if self.min_points < 2:
            raise ConfigError(f"{kind}: min_points must be >= 2, got {self.min_points}")
        if not 0.0 <= self.min_score <= 1.0:
            raise ConfigError(f"{kind}: min_score must be within [0, 1], got {self.min_score}")
        if self.templates is not None:
            self.templates = tuple(str(t) for t in self.templates)
            unknown = set(self.templates) - set(builtin_strokes())
            if unknown:
                raise ConfigError(f"{kind}: unknown templates {sorted(unknown)}")


@dataclass
class PointPoseConfig(ListenerConfig, PoseHoldOptions, StrokeOptions):
    """Single-hand pointing hold that confirms a selection.

    ``listener_mode="stroke"`` selects by drawing ``stroke_trigger_name``
    between two thumbs-touch triggers instead of holding still.
    """
    kind: ClassVar[str] = "point_pose"

    selection_keys: tuple[str, ...] = ()
    listener_mode: str = "pose"

    def __post_init__(self):
        super().__post_init__()
        self.selection_keys = tuple(str(k) for k in self.selection_keys)
        _check_choice(self.kind, "listener_mode", self.listener_mode, ("pose", "stroke"))
        self._check_hold(self.kind)
        self._check_stroke(self.kind)


@dataclass
class RectPoseConfig(ListenerConfig, PoseHoldOptions):
    """Two-hand index/thumb frame that foreshadows a rectangle or circle."""
    kind: ClassVar[str] = "rect_pose"
    default_gestures: ClassVar[tuple[GesturePair, ...]] = (
        GesturePair(SupportedGesture.FORESHADOWING_RIGHT_L.value, SupportedGesture.FORESHADOWING_LEFT_L.value),
        GesturePair(SupportedGesture.FORESHADOWING_RIGHT_C.value, SupportedGesture.FORESHADOWING_LEFT_C.value),
    )

    shape: str = "rectangle"
    shape_tolerance: float = DEFAULT_SHAPE_TOLERANCE
    states_count: int = 1
    states_mode: str = "trajectory"

    def __post_init__(self):
        super().__post_init__()
        _check_choice(self.kind, "shape", self.shape, ("rectangle", "circle"))
        _check_choice(self.kind, "states_mode", self.states_mode, ("trajectory", "point"))
        _check_positive(self.kind, "shape_tolerance", self.shape_tolerance)
        if self.states_count < 1:
            raise ConfigError(f"{self.kind}: states_count must be >= 1, got {self.states_count}")
        self._check_hold(self.kind)


@dataclass
class RangePoseConfig(ListenerConfig, PoseHoldOptions):
    """Two open hands that foreshadow a horizontal range."""
    kind: ClassVar[str] = "range_pose"
    default_gestures: ClassVar[tuple[GesturePair, ...]] = _pair(SupportedGesture.OPEN_HAND)

    canvas_height: Optional[float] = None  # defaults to the bottom of the region
    states_count: int = 1
    states_mode: str = "trajectory"

    def __post_init__(self):
        super().__post_init__()
        if self.canvas_height is not None:
            _check_positive(self.kind, "canvas_height", self.canvas_height)
        _check_choice(self.kind, "states_mode", self.states_mode, ("trajectory", "point"))
        self._check_hold(self.kind)


@dataclass
class StrokeConfig(ListenerConfig, StrokeOptions):
    """Thumbs-touch delimited stroke, recognized or enrolled."""
    kind: ClassVar[str] = "stroke"

    add_gesture: bool = False
    gesture_name: Optional[str] = None

    def __post_init__(self):
        super().__post_init__()
        self._check_stroke(self.kind)


@dataclass
class RadialConfig(ListenerConfig):
    """Rotations of the index tip around the region center."""
    kind: ClassVar[str] = "radial"

    mode: str = "normal"  # "normal" pulses per rotation, "tracking" scrubs
    idle_timeout: float = DEFAULT_IDLE_TIMEOUT

    def __post_init__(self):
        super().__post_init__()
        _check_choice(self.kind, "mode", self.mode, ("normal", "tracking"))
        _check_duration(self.kind, "idle_timeout", self.idle_timeout)


@dataclass
class LinearPlaybackConfig(ListenerConfig):
    """Horizontal scrubbing with the index tip."""
    kind: ClassVar[str] = "linear_playback"

    emit_range: Optional[tuple[float, float]] = None  # (start x, end x)

    def __post_init__(self):
        super().__post_init__()
        if self.emit_range is not None:
            start, end = (float(v) for v in self.emit_range)
            if end < start:
                raise ConfigError(f"{self.kind}: emit_range end {end} is before start {start}")
            self.emit_range = (start, end)


@dataclass
class EmphasisConfig(ListenerConfig):
    """Open hand tapping into the region raises an emphasis level."""
    kind: ClassVar[str] = "emphasis"
    default_gestures: ClassVar[tuple[GesturePair, ...]] = _pair(SupportedGesture.OPEN_HAND)

    step: int = 25
    max_level: int = 150
    duration: float = 20000.0
    decay_interval: float = 1000.0 / 60

    def __post_init__(self):
        super().__post_init__()
        _check_positive(self.kind, "step", self.step)
        _check_positive(self.kind, "max_level", self.max_level)
        _check_duration(self.kind, "duration", self.duration)
        _check_positive(self.kind, "decay_interval", self.decay_interval)


@dataclass
class HighlightConfig(ListenerConfig):
    """Streams the pointing position while a single hand is inside."""
    kind: ClassVar[str] = "highlight"


@dataclass
class ThumbPoseConfig(ListenerConfig):
    """Touching thumbs inside the region confirms a selection."""
    kind: ClassVar[str] = "thumb_pose"

    selection_keys: tuple[str, ...] = ()
    reset_pause_duration: float = DEFAULT_RESET_PAUSE_DURATION

    def __post_init__(self):
        super().__post_init__()
        self.selection_keys = tuple(str(k) for k in self.selection_keys)
        _check_duration(self.kind, "reset_pause_duration", self.reset_pause_duration)


CONFIG_TYPES: dict[str, type[ListenerConfig]] = {
    cls.kind: cls
    for cls in (
        PointPoseConfig,
        RectPoseConfig,
        RangePoseConfig,
        StrokeConfig,
        RadialConfig,
        LinearPlaybackConfig,
        EmphasisConfig,
        HighlightConfig,
        ThumbPoseConfig,
    )
}


def listener_config_from_dict(data: dict) -> ListenerConfig:
    """Build the config dataclass named by ``data["kind"]``."""
    data = dict(data)
    kind = data.pop("kind", None)
    if kind not in CONFIG_TYPES:
        raise ConfigError(f"unknown listener kind {kind!r}, expected one of {sorted(CONFIG_TYPES)}")
    cls = CONFIG_TYPES[kind]

    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"{kind}: unknown options {sorted(unknown)}")

    for key in ("selection_keys", "gesture_types", "tracked_landmarks", "templates", "emit_range"):
        if isinstance(data.get(key), list):
            data[key] = tuple(data[key])
    return cls(**data)


@dataclass
class EngineConfig:
    """Canvas size plus the listeners to build."""
    listeners: list[ListenerConfig] = field(default_factory=list)
    canvas_width: float = DEFAULT_CANVAS[0]
    canvas_height: float = DEFAULT_CANVAS[1]

    def __post_init__(self):
        _check_positive("canvas", "width", self.canvas_width)
        _check_positive("canvas", "height", self.canvas_height)
        names = [c.name for c in self.listeners]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigError(f"duplicate listener names: {duplicates}")

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> EngineConfig:
        data = data or {}
        canvas = data.get("canvas") or {}
        width = float(canvas.get("width", DEFAULT_CANVAS[0]))
        height = float(canvas.get("height", DEFAULT_CANVAS[1]))

        listeners = []
        for entry in data.get("listeners") or []:
            if not isinstance(entry, dict):
                raise ConfigError(f"listener entry must be a mapping, got {entry!r}")
            if entry.get("kind") == RangePoseConfig.kind and "canvas_height" not in entry:
                entry = {**entry, "canvas_height": height}
            listeners.append(listener_config_from_dict(entry))

        return cls(listeners=listeners, canvas_width=width, canvas_height=height)

    def to_dict(self) -> dict:
        return {
            "canvas": {"width": self.canvas_width, "height": self.canvas_height},
            "listeners": [c.to_dict() for c in self.listeners],
        }

    def to_yaml(self, path: str | Path):
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)


def load_engine_config(path: str | Path) -> EngineConfig:
    """Load an engine description from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {path}: {e}") from e
    if data is not None and not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    config = EngineConfig.from_dict(data)
    logger.info("Loaded %d listener config(s) from %s", len(config.listeners), path)
    return config
