"""WebSocket adapter: the browser streams landmark frames in, events come back.

The front end runs the hand tracker and gesture classifier, then sends one
message per video frame. Each connection gets its own engine built from the
server's config, so two open tabs never share hold timers.

Client -> server:
    {"type": "frame", "frame": {"timestamp": 1532.0, "hands": {...}}}
    {"type": "tick", "now": 1600.0}
    {"type": "reset"}
    {"type": "ping"}

Server -> client:
    {"type": "connected", "listeners": [...]}
    {"type": "events", "events": [{"type": "selection", ...}, ...]}
    {"type": "pong", "server_time": ...}
    {"type": "error", "message": "..."}

Usage:
    storygesture serve --config story.yaml
    # or
    uvicorn storygesture.server:app --host 0.0.0.0 --port 8765
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse

from storygesture import __version__
from storygesture.config import EngineConfig
from storygesture.engine import GestureEngine
from storygesture.errors import GestureEngineError
from storygesture.frames import LandmarkFrame
from storygesture.unistroke import UnistrokeRecognizer

logger = logging.getLogger("storygesture.server")

app = FastAPI(title="storygesture", version=__version__)

IDLE_PING_SECONDS = 30


class ServerState:
    def __init__(self):
        self.config: EngineConfig = EngineConfig()
        self.recognizer: Optional[UnistrokeRecognizer] = None
        self.engines: dict[int, GestureEngine] = {}
        self.total_frames = 0
        self.total_events = 0
        self.last_event: Optional[dict] = None

    def build_engine(self) -> GestureEngine:
        return GestureEngine.from_config(self.config, recognizer=self.recognizer)


state = ServerState()


@app.get("/")
async def index():
    return HTMLResponse(
        "<h1>storygesture</h1>"
        "<p>Stream landmark frames to <code>/ws</code>; see <code>/api/status</code>.</p>"
    )


# --- API endpoints ---

@app.get("/api/status")
async def api_status():
    return {
        "version": __version__,
        "connections": len(state.engines),
        "total_frames": state.total_frames,
        "total_events": state.total_events,
        "last_event": state.last_event,
        "canvas": {"width": state.config.canvas_width, "height": state.config.canvas_height},
    }


@app.get("/api/listeners")
async def list_listeners():
    return {"listeners": [c.to_dict() for c in state.config.listeners]}


@app.get("/api/templates")
async def list_templates():
    recognizer = state.recognizer or UnistrokeRecognizer.with_defaults()
    return {
        "templates": [
            {"name": t.name, "builtin": t.builtin, "points": len(t.points)}
            for t in recognizer.templates
        ]
    }


# --- WebSocket ---

def handle_message(engine: GestureEngine, data: dict) -> dict:
    """Apply one client message to the connection's engine and build the reply."""
    kind = data.get("type")
    if kind == "ping":
        return {"type": "pong", "server_time": time.time()}
    if kind == "frame":
        frame = LandmarkFrame.from_dict(data.get("frame") or {})
        events = engine.process_frame(frame, data.get("now"))
        state.total_frames += 1
    elif kind == "tick":
        events = engine.tick(float(data["now"]))
    elif kind == "reset":
        events = engine.reset()
    else:
        return {"type": "error", "message": f"unknown message type {kind!r}"}

    payload = [e.to_dict() for e in events]
    state.total_events += len(payload)
    if payload:
        state.last_event = payload[-1]
    return {"type": "events", "events": payload}


@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    engine = state.build_engine()
    state.engines[id(ws)] = engine
    logger.info("Client connected (%d total)", len(state.engines))

    try:
        await ws.send_json({"type": "connected", "listeners": engine.listener_names})

        while True:
            try:
                msg = await asyncio.wait_for(ws.receive_text(), timeout=IDLE_PING_SECONDS)
            except asyncio.TimeoutError:
                await ws.send_json({"type": "ping"})
                continue

            try:
                reply = handle_message(engine, json.loads(msg))
            except (AttributeError, KeyError, TypeError, ValueError, GestureEngineError) as e:
                logger.warning("Bad client message: %s", e)
                reply = {"type": "error", "message": str(e)}
            await ws.send_json(reply)
    except WebSocketDisconnect:
        pass
    finally:
        state.engines.pop(id(ws), None)
        engine.close()
        logger.info("Client disconnected (%d total)", len(state.engines))


def main():
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="storygesture WebSocket server")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    parser.add_argument("--port", type=int, default=8765, help="Port")
    parser.add_argument("--log-level", default="info")
    args = parser.parse_args()

    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level)


if __name__ == "__main__":
    main()
