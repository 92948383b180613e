#!/usr/bin/env python3
"""Write a scripted landmark recording that exercises examples/story.yaml.

No camera required. The session holds a legend entry, scrubs the timeline,
spins the replay dial twice and draws a circle between two thumb touches.

Usage:
    python examples/synthetic_session.py --output session.json
    storygesture replay session.json -c examples/story.yaml
"""

from __future__ import annotations

import argparse
import math

import numpy as np

from storygesture.frames import Hand, HandData, HandLandmark, LandmarkFrame, SupportedGesture
from storygesture.recorder import FrameRecorder

FRAME_MS = 33.0
INDEX = HandLandmark.INDEX_FINGER_TIP
THUMB = HandLandmark.THUMB_TIP


def pointing(x: float, y: float, rng: np.random.Generator, jitter: float) -> HandData:
    dx, dy = rng.normal(0, jitter, 2)
    return HandData.from_points({INDEX: (x + dx, y + dy)}, [SupportedGesture.POINTING])


def hold(x, y, ms, rng, jitter):
    for _ in range(int(ms / FRAME_MS)):
        yield {Hand.RIGHT: pointing(x, y, rng, jitter)}


def scrub(y, x0, x1, ms, rng, jitter):
    for x in np.linspace(x0, x1, int(ms / FRAME_MS)):
        yield {Hand.RIGHT: pointing(x, y, rng, jitter)}


def spin(cx, cy, radius, turns, ms, rng, jitter):
    # Clockwise on screen, starting at the top-left quadrant boundary.
    for a in np.linspace(0, 2 * math.pi * turns, int(ms / FRAME_MS)):
        yield {Hand.RIGHT: pointing(cx - radius * math.cos(a), cy - radius * math.sin(a), rng, jitter)}


def thumbs(index_xy, touching: bool):
    gap = 0 if touching else 120
    right = HandData.from_points({INDEX: index_xy, THUMB: (640 + gap, 620)}, [SupportedGesture.POINTING])
    left = HandData.from_points({INDEX: (500, 500), THUMB: (640, 620)}, [SupportedGesture.POINTING])
    return {Hand.RIGHT: right, Hand.LEFT: left}


def circle_stroke(cx, cy, radius, rng, jitter):
    yield thumbs((cx, cy), touching=True)
    yield thumbs((cx, cy), touching=False)
    for a in np.linspace(0, 2 * math.pi, 40):
        dx, dy = rng.normal(0, jitter, 2)
        yield thumbs((cx + radius * math.cos(a) + dx, cy + radius * math.sin(a) + dy), touching=False)
    yield thumbs((cx, cy), touching=True)
    yield thumbs((cx, cy), touching=False)


def build_session(jitter: float, seed: int) -> FrameRecorder:
    rng = np.random.default_rng(seed)
    script = [
        hold(1160, 70, 1500, rng, jitter),
        iter([{}] * 10),
        scrub(680, 100, 1000, 2000, rng, jitter),
        spin(1160, 560, 70, 2, 2500, rng, jitter),
        iter([{}] * 10),
        circle_stroke(600, 400, 120, rng, jitter),
    ]

    recorder = FrameRecorder()
    recorder.start()
    t = 0.0
    for part in script:
        for hands in part:
            recorder.add_frame(LandmarkFrame(hands=hands, timestamp=t))
            t += FRAME_MS
    recorder.stop()
    return recorder


def main():
    parser = argparse.ArgumentParser(description="Write a synthetic storytelling session")
    parser.add_argument("--output", default="session.json", help="Output path (.json or .npz)")
    parser.add_argument("--jitter", type=float, default=2.0, help="Landmark noise in pixels")
    parser.add_argument("--seed", type=int, default=7)
    args = parser.parse_args()

    recorder = build_session(args.jitter, args.seed)
    if args.output.endswith(".npz"):
        path = recorder.save_compact(args.output)
    else:
        path = recorder.save(args.output)
    print(f"Wrote {recorder.frame_count} frames ({recorder.duration / 1000:.1f}s) to {path}")


if __name__ == "__main__":
    main()
