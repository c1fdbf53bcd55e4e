"""HTTP + WebSocket server for glove gesture events.

Gloves POST raw sensor frames; every accepted frame is classified and
pushed to all connected WebSocket subscribers as a ``gesture-update``.

Endpoints:
- POST /sensor-data      — one raw frame in, classification summary out
- GET  /current-state    — shared gesture state snapshot
- POST /calibrate        — acknowledge calibration data
- GET  /health           — liveness
- GET/PUT /api/thresholds — read or adjust classification thresholds
- GET  /metrics          — Prometheus metrics
- WS   /ws               — event stream + control messages

Usage:
    python -m glove_engine.server
    # or
    uvicorn glove_engine.server:app --host 0.0.0.0 --port 3001
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from glove_engine import __version__
from glove_engine.config import EngineConfig, get_config
from glove_engine.errors import ControlMessageError, FrameProcessingError, FrameValidationError
from glove_engine.pipeline import GesturePipeline

logger = logging.getLogger("glove_engine.server")


# --- State ---

class ServerState:
    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or get_config()
        self.pipeline = GesturePipeline(self.config)
        self.started_at = time.monotonic()

    @property
    def publisher(self):
        return self.pipeline.publisher

    @property
    def uptime(self) -> float:
        return time.monotonic() - self.started_at


state = ServerState()


def configure(config: EngineConfig) -> ServerState:
    """Replace the server state with a fresh pipeline built from ``config``."""
    global state
    state = ServerState(config)
    return state


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Glove gesture server ready (thresholds: %s)", state.pipeline.classifier.thresholds.to_dict())
    yield
    logger.info("Glove gesture server stopped")


app = FastAPI(title="GloveEngine", version=__version__, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().cors_origins,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["*"],
)


# --- Request models ---

class CalibrationRequest(BaseModel):
    deviceId: str
    calibrationData: Any = None


# --- Frame ingestion ---

@app.post("/sensor-data")
async def sensor_data(request: Request):
    try:
        raw = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        state.pipeline.metrics.record_rejected()
        return JSONResponse({"error": "Body must be JSON"}, status_code=400)

    try:
        # Runs in a worker thread so different gloves are classified in parallel
        event = await run_in_threadpool(state.pipeline.process, raw)
    except FrameValidationError as e:
        return JSONResponse(e.to_dict(), status_code=400)
    except FrameProcessingError:
        return JSONResponse({"error": "Internal server error"}, status_code=500)

    return {"status": "success", "processedData": event.summary()}


@app.get("/current-state")
async def current_state():
    return {
        "currentState": state.pipeline.state.to_dict(),
        "connectedClients": state.publisher.subscriber_count,
        "timestamp": time.time() * 1000.0,
    }


@app.post("/calibrate")
async def calibrate(body: CalibrationRequest):
    try:
        return state.publisher.calibrate(body.deviceId, body.calibrationData)
    except ControlMessageError as e:
        return JSONResponse({"error": str(e)}, status_code=400)


@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "uptime": round(state.uptime, 3),
        "connectedClients": state.publisher.subscriber_count,
    }


# --- Threshold administration ---

@app.get("/api/thresholds")
async def get_thresholds():
    return {"thresholds": state.pipeline.classifier.thresholds.to_dict()}


@app.put("/api/thresholds")
async def put_thresholds(request: Request):
    try:
        changes = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse({"error": "Body must be JSON"}, status_code=400)
    if not isinstance(changes, dict):
        return JSONResponse({"error": "Body must be a JSON object"}, status_code=400)

    try:
        updated = state.pipeline.classifier.update_thresholds(**changes)
    except ValueError as e:
        return JSONResponse({"error": str(e)}, status_code=400)

    logger.info("Thresholds updated: %s", changes)
    return {"thresholds": updated.to_dict()}


# --- Prometheus metrics ---

@app.get("/metrics")
async def metrics():
    return PlainTextResponse(
        state.pipeline.metrics.render(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


# --- WebSocket: events + control ---

async def _sender(ws: WebSocket, sub):
    """Drain one subscriber's queue into its socket."""
    try:
        while True:
            message = await sub.get()
            await ws.send_json(message)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.debug(f"Send to {sub.id} failed: {e}")


@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    publisher = state.publisher
    sub = publisher.subscribe(asyncio.get_running_loop())
    sender = asyncio.create_task(_sender(ws, sub))

    try:
        while True:
            try:
                msg = await asyncio.wait_for(ws.receive_text(), timeout=30)
            except asyncio.TimeoutError:
                sub.deliver({"type": "ping"})
                continue

            try:
                data = json.loads(msg)
                reply = publisher.handle_control(sub, data)
            except json.JSONDecodeError:
                reply = {"type": "error", "error": "Message must be JSON"}
            except ControlMessageError as e:
                logger.warning("Bad control message from %s: %s", sub.id, e)
                reply = {"type": "error", "error": str(e)}

            if reply is not None:
                sub.deliver(reply)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.debug(f"WebSocket error: {e}")
    finally:
        sender.cancel()
        publisher.unsubscribe(sub)


# --- CLI entry point ---

def main():
    import argparse
    import uvicorn

    config = get_config()
    parser = argparse.ArgumentParser(description="GloveEngine gesture server")
    parser.add_argument("--host", default=config.host, help="Bind address")
    parser.add_argument("--port", type=int, default=config.port, help="Port")
    parser.add_argument("--log-level", default=config.log_level)
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper())
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level)


if __name__ == "__main__":
    main()
