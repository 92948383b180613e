"""storygesture CLI.

Usage:
    storygesture serve         - Start the WebSocket frame/event server
    storygesture recognize     - Classify a stroke read from a JSON/YAML file
    storygesture templates     - List the built-in unistroke templates
    storygesture replay        - Run a recorded session through an engine
    storygesture check-config  - Validate an engine YAML file
    storygesture benchmark     - Time the recognizer and the frame loop
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="storygesture",
    help="🤚 Hands-free gesture listeners for data storytelling.",
    add_completion=False,
)


def _setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_config(path: Optional[str]):
    from storygesture.config import EngineConfig, load_engine_config
    from storygesture.errors import ConfigError

    if path is None:
        return EngineConfig()
    try:
        return load_engine_config(path)
    except ConfigError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)


def _load_points(path: Path) -> list:
    """Read ``[[x, y], ...]`` or ``{"points": [...]}`` from JSON or YAML."""
    import yaml

    with open(path) as f:
        data = yaml.safe_load(f)
    if isinstance(data, dict):
        data = data.get("points")
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of [x, y] points")
    return data


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(8765, help="Port"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to engine YAML config"),
    log_level: str = typer.Option("info", help="Log level"),
):
    """Start the WebSocket server that turns streamed frames into events."""
    import uvicorn
    from storygesture.server import app as fastapi_app, state

    _setup_logging(log_level)
    state.config = _load_config(config)
    if config:
        typer.echo(f"⚙️  Loaded {len(state.config.listeners)} listener(s) from {config}")

    typer.echo(f"🚀 Starting storygesture server on {host}:{port}")
    typer.echo(f"   Stream frames to ws://{host}:{port}/ws")
    uvicorn.run(fastapi_app, host=host, port=port, log_level=log_level)


@app.command()
def recognize(
    stroke: str = typer.Argument(..., help="JSON/YAML file with the stroke points"),
    protractor: bool = typer.Option(False, "--protractor", help="Use the Protractor (cosine) matcher"),
    template: Optional[list[str]] = typer.Option(None, "--template", "-t", help="Restrict to these built-ins"),
    fit: bool = typer.Option(False, "--fit", help="Also fit a circle to the stroke"),
):
    """Classify one stroke against the unistroke templates."""
    from storygesture.circle_fit import fit_circle
    from storygesture.unistroke import UnistrokeRecognizer

    path = Path(stroke)
    if not path.exists():
        typer.echo(f"❌ Stroke file not found: {stroke}", err=True)
        raise typer.Exit(1)

    try:
        points = _load_points(path)
        recognizer = UnistrokeRecognizer.with_defaults(template or None)
    except ValueError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)

    result = recognizer.recognize(points, use_protractor=protractor)
    mode = "protractor" if protractor else "golden-section"
    typer.echo(f"✍️  {result.name} (score: {result.score:.3f}, {mode}, {result.elapsed_ms:.2f} ms)")

    if fit:
        circle = fit_circle(points)
        if circle.success:
            cx, cy = circle.center
            typer.echo(f"   ⭕ center=({cx:.1f}, {cy:.1f}) radius={circle.radius:.1f} residue={circle.residue:.2f}")
        else:
            typer.echo("   ⭕ circle fit failed")


@app.command()
def templates():
    """List the built-in unistroke templates."""
    from storygesture.unistroke import UnistrokeRecognizer

    recognizer = UnistrokeRecognizer.with_defaults()
    typer.echo(f"📐 {len(recognizer.templates)} built-in templates:")
    for t in recognizer.templates:
        typer.echo(f"   {t.name}")


@app.command()
def replay(
    recording: str = typer.Argument(..., help="Path to a .json or .npz recording"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to engine YAML config"),
    speed: float = typer.Option(1.0, help="Playback speed multiplier"),
    realtime: bool = typer.Option(False, help="Pace frames by their timestamps"),
    flush: float = typer.Option(3000.0, help="Advance timers this many ms past the last frame"),
    log_level: str = typer.Option("warning", help="Log level"),
):
    """Replay a recorded session through the configured listeners."""
    from storygesture.engine import GestureEngine
    from storygesture.recorder import FramePlayer

    _setup_logging(log_level)
    path = Path(recording)
    if not path.exists():
        typer.echo(f"❌ Recording not found: {recording}", err=True)
        raise typer.Exit(1)

    engine = GestureEngine.from_config(_load_config(config))
    if not engine.listeners:
        typer.echo("⚠️  No listeners configured, nothing will be emitted", err=True)

    player = FramePlayer.load(path)
    typer.echo(f"▶️  Replaying {path.name} ({player.frame_count} frames, {player.duration / 1000:.1f}s)")

    event_count = 0

    def on_event(event):
        nonlocal event_count
        event_count += 1
        data = event.to_dict()
        kind = data.pop("type")
        listener = data.pop("listener")
        at = data.pop("timestamp")
        typer.echo(f"   🤚 [{at:8.0f} ms] {listener}: {kind} {data}")

    engine.on_event(on_event)
    frames = player.play_realtime(speed=speed) if realtime else player.play()
    last = None
    for frame in frames:
        engine.process_frame(frame)
        last = frame.timestamp
    # Let holds and stroke windows still open at the end of the recording decide.
    if last is not None and flush > 0:
        engine.tick(last + flush)
    engine.close()

    typer.echo(f"\n✅ Replay complete. {event_count} events emitted.")


@app.command("check-config")
def check_config(path: str = typer.Argument(..., help="Engine YAML config")):
    """Validate a config file and show the listeners it builds."""
    from storygesture.engine import build_listener

    config = _load_config(path)
    typer.echo(f"✅ {path}: canvas {config.canvas_width:g}x{config.canvas_height:g}, {len(config.listeners)} listener(s)")
    for listener_config in config.listeners:
        listener = build_listener(listener_config)
        typer.echo(f"   {listener.name:20s} {listener.kind:16s} region={listener.region.to_dict()}")


@app.command()
def benchmark(
    iterations: int = typer.Option(200, help="Number of strokes to recognize"),
    protractor: bool = typer.Option(False, "--protractor", help="Use the Protractor matcher"),
):
    """Time stroke recognition and the per-frame listener loop."""
    import numpy as np
    from storygesture.config import HighlightConfig, PointPoseConfig, RadialConfig
    from storygesture.engine import GestureEngine, build_listener
    from storygesture.frames import Hand, HandData, HandLandmark, LandmarkFrame, SupportedGesture
    from storygesture.geometry import Rect
    from storygesture.unistroke import UnistrokeRecognizer

    typer.echo(f"⚡ Running benchmark: {iterations} iterations")

    recognizer = UnistrokeRecognizer.with_defaults()
    rng = np.random.default_rng(42)
    t = np.linspace(0, 2 * np.pi, 48)
    times = []
    for _ in range(iterations):
        radius = rng.uniform(30, 120)
        stroke = np.column_stack([radius * np.cos(t), radius * np.sin(t)]) + rng.normal(0, 2, (len(t), 2))
        t0 = time.perf_counter()
        recognizer.recognize(stroke, use_protractor=protractor)
        times.append((time.perf_counter() - t0) * 1000)

    times_arr = np.array(times)
    typer.echo(f"\n📊 Recognizer ({'protractor' if protractor else 'golden-section'}):")
    typer.echo(f"   Average latency: {times_arr.mean():.2f} ms")
    typer.echo(f"   P95 latency:     {np.percentile(times_arr, 95):.2f} ms")

    region = Rect(0, 0, 1280, 720)
    engine = GestureEngine([
        build_listener(PointPoseConfig(region=region)),
        build_listener(RadialConfig(region=region)),
        build_listener(HighlightConfig(region=region)),
    ])
    for i in range(iterations):
        x, y = rng.uniform(100, 1100), rng.uniform(100, 600)
        hand = HandData.from_points({HandLandmark.INDEX_FINGER_TIP: (x, y)}, [SupportedGesture.POINTING])
        engine.process_frame(LandmarkFrame(hands={Hand.RIGHT: hand}, timestamp=i * 33.0))

    typer.echo(f"\n📈 Frame loop stage breakdown:")
    for name, stats in engine.profiler.summary().items():
        typer.echo(f"   {name:12s} avg={stats['avg_ms']:.3f}ms  p95={stats['p95_ms']:.3f}ms")


def main():
    app()


if __name__ == "__main__":
    main()
