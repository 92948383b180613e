"""Landmark frame recording and replay.

Recorded sessions let the listeners be exercised without a camera: in tests,
in CI, and from ``storygesture replay``. Two formats:

- JSON: ``{"version": 1, "frame_count": N, "duration": ms, "frames": [...]}``
  where each frame is ``LandmarkFrame.to_dict()``.
- compact ``.npz``: a ``(frames, 2, 21, 2)`` float32 landmark array with NaN
  for landmarks the tracker could not place, plus timestamps and the gesture
  labels as a JSON string.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Iterator, Optional

import numpy as np

from storygesture.frames import Hand, HandData, HandLandmark, LandmarkFrame
from storygesture.timers import monotonic_ms

logger = logging.getLogger("storygesture.recorder")

FORMAT_VERSION = 1
HAND_ORDER = (Hand.LEFT, Hand.RIGHT)
NUM_LANDMARKS = len(HandLandmark)


class FrameRecorder:
    """Collects frames while recording is on.

    Usage:
        recorder = FrameRecorder()
        recorder.start()
        recorder.add_frame(frame)
        recorder.stop()
        recorder.save("session.json")
    """

    def __init__(self):
        self._frames: list[LandmarkFrame] = []
        self._recording = False

    def start(self):
        self._frames = []
        self._recording = True

    def stop(self) -> int:
        self._recording = False
        return len(self._frames)

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def frames(self) -> list[LandmarkFrame]:
        return list(self._frames)

    @property
    def duration(self) -> float:
        """Milliseconds between the first and last frame."""
        if len(self._frames) < 2:
            return 0.0
        return self._frames[-1].timestamp - self._frames[0].timestamp

    def add_frame(self, frame: LandmarkFrame, now: Optional[float] = None):
        """Append a frame; ``now`` overrides its timestamp."""
        if not self._recording:
            return
        if now is not None:
            frame = LandmarkFrame(hands=frame.hands, timestamp=now)
        self._frames.append(frame)

    def save(self, path: str | Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "version": FORMAT_VERSION,
            "frame_count": len(self._frames),
            "duration": self.duration,
            "frames": [f.to_dict() for f in self._frames],
        }
        with open(path, "w") as f:
            json.dump(data, f)
        logger.info("Saved %d frames to %s", len(self._frames), path)
        return path

    def save_compact(self, path: str | Path) -> Path:
        path = Path(path).with_suffix(".npz")
        path.parent.mkdir(parents=True, exist_ok=True)

        n = len(self._frames)
        landmarks = np.full((n, len(HAND_ORDER), NUM_LANDMARKS, 2), np.nan, dtype=np.float32)
        present = np.zeros((n, len(HAND_ORDER)), dtype=bool)
        gestures = []
        for i, frame in enumerate(self._frames):
            labels = {}
            for j, hand in enumerate(HAND_ORDER):
                data = frame.hand(hand)
                if data is None:
                    continue
                present[i, j] = True
                labels[hand.value] = sorted(data.gestures)
                for lid, point in data.landmarks.items():
                    if point.is_visible and 0 <= lid < NUM_LANDMARKS:
                        landmarks[i, j, lid] = (point.x, point.y)
            gestures.append(labels)

        np.savez_compressed(
            path,
            timestamps=np.array([f.timestamp for f in self._frames], dtype=np.float64),
            landmarks=landmarks,
            present=present,
            gesture_data=np.array([json.dumps(gestures)]),
        )
        logger.info("Saved %d frames to %s", n, path)
        return path


class FramePlayer:
    """Replays a recorded session as ``LandmarkFrame`` objects.

    Usage:
        player = FramePlayer.load("session.json")
        for frame in player.play():
            engine.process_frame(frame)
    """

    def __init__(self, frames: list[LandmarkFrame]):
        self._frames = list(frames)

    @classmethod
    def load(cls, path: str | Path) -> FramePlayer:
        path = Path(path)
        if path.suffix == ".npz":
            return cls._load_compact(path)
        with open(path) as f:
            data = json.load(f)
        return cls([LandmarkFrame.from_dict(frame) for frame in data["frames"]])

    @classmethod
    def _load_compact(cls, path: Path) -> FramePlayer:
        data = np.load(path, allow_pickle=False)
        timestamps = data["timestamps"]
        landmarks = data["landmarks"]
        present = data["present"]
        gestures = json.loads(str(data["gesture_data"][0]))

        frames = []
        for i in range(len(timestamps)):
            hands = {}
            for j, hand in enumerate(HAND_ORDER):
                if not present[i, j]:
                    continue
                points = {
                    lid: None if np.isnan(xy).any() else [float(xy[0]), float(xy[1])]
                    for lid, xy in enumerate(landmarks[i, j])
                }
                hands[hand] = HandData.from_points(points, gestures[i].get(hand.value, []))
            frames.append(LandmarkFrame(hands=hands, timestamp=float(timestamps[i])))
        return cls(frames)

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def duration(self) -> float:
        if len(self._frames) < 2:
            return 0.0
        return self._frames[-1].timestamp - self._frames[0].timestamp

    def play(self) -> Iterator[LandmarkFrame]:
        """All frames, as fast as the caller consumes them."""
        yield from self._frames

    def play_realtime(self, speed: float = 1.0) -> Iterator[LandmarkFrame]:
        """Frames paced by their recorded timestamps, scaled by ``speed``."""
        if not self._frames:
            return
        origin = self._frames[0].timestamp
        start = monotonic_ms()
        for frame in self._frames:
            target = (frame.timestamp - origin) / speed
            elapsed = monotonic_ms() - start
            if target > elapsed:
                time.sleep((target - elapsed) / 1000.0)
            yield frame

    def get_frame(self, index: int) -> Optional[LandmarkFrame]:
        if 0 <= index < len(self._frames):
            return self._frames[index]
        return None
