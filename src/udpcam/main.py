"""
UdpCam Receiver Main Application
================================

FastAPI entry point for the scanline receiver service.

The receiver loop runs on its own thread and publishes completed frames
into a LatestFrameSlot; HTTP handlers only ever read published frames.

Endpoints:
    GET  /            - Service information
    GET  /health      - Liveness probe (is process alive?)
    GET  /ready       - Readiness probe (receiver thread running?)
    GET  /metrics     - Receiver, assembler and frame rate metrics
    GET  /frame       - Latest frame as PNG/JPEG
    GET  /frame/info  - Latest frame description
    WS   /ws/frames   - Frame description pushed on every publish
"""

import asyncio
import logging
import os
import threading
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, Response

from udpcam.config import settings
from udpcam.models.output import AssemblerMetrics, ServiceMetrics, StreamMetrics
from udpcam.observability import (
    FrameRateTracker,
    SnapshotEncodeError,
    describe_frame,
    encode_frame,
    media_type,
)
from udpcam.stream import FrameAssembler, FrameReceiver, open_udp_socket


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_assembler: Optional[FrameAssembler] = None
_receiver: Optional[FrameReceiver] = None
_receiver_thread: Optional[threading.Thread] = None
_frame_rate: Optional[FrameRateTracker] = None
_startup_time: float = 0.0


# =============================================================================
# Getters
# =============================================================================

def get_assembler() -> Optional[FrameAssembler]:
    return _assembler

def get_receiver() -> Optional[FrameReceiver]:
    return _receiver

def get_frame_rate() -> Optional[FrameRateTracker]:
    return _frame_rate

def is_ready() -> bool:
    return _receiver is not None and _receiver.running


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the receiver thread on startup and join it on shutdown."""
    global _assembler, _receiver, _receiver_thread, _frame_rate, _startup_time

    _startup_time = time.time()
    logger.info(f"Starting {settings.service.name} {settings.service.version}")

    sock = open_udp_socket(
        host=settings.receiver.host,
        port=settings.receiver.port,
        recv_buffer_bytes=settings.receiver.recv_buffer_bytes,
    )

    _frame_rate = FrameRateTracker(smoothing_alpha=settings.assembly.fps_smoothing_alpha)
    _assembler = FrameAssembler(
        sinks=[_frame_rate],
        honor_frame_end=settings.assembly.honor_frame_end,
        skip_empty_triggers=settings.assembly.skip_empty_triggers,
        log_every_n_frames=settings.assembly.log_every_n_frames,
    )
    _receiver = FrameReceiver(
        sock,
        _assembler,
        max_datagram_bytes=settings.receiver.max_datagram_bytes,
        log_every_n_drops=settings.receiver.log_every_n_drops,
    )
    _receiver_thread = _receiver.start_thread()

    logger.info("Receiver started")

    yield

    # Shutdown
    logger.info("Shutting down gracefully...")

    _receiver.stop()
    await asyncio.to_thread(_receiver_thread.join, 5.0)
    if _receiver_thread.is_alive():
        logger.warning("Receiver thread did not exit within 5s")

    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="UdpCam Receiver",
    description="Reassembles RGB565 scanline datagrams into 640x480 frames",
    version=settings.service.version,
    lifespan=lifespan,
)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    receiver = get_receiver()
    host, port = receiver.address if receiver and receiver.running else (None, None)
    return JSONResponse({
        "service": "UdpCam Receiver",
        "version": settings.service.version,
        "name": settings.service.name,
        "status": "running",
        "udp_host": host,
        "udp_port": port,
        "snapshot_format": settings.snapshot.format,
    })


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Always returns 200 if the service is running.
    """
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/ready")
async def ready() -> JSONResponse:
    """
    Readiness probe - is the receive loop running?

    Returns 200 once the receiver thread is active, 503 otherwise.
    Frames may still be absent if the camera has not started sending.
    """
    assembler = get_assembler()
    frames_published = assembler.state.frames_published if assembler else 0

    if is_ready():
        return JSONResponse({
            "status": "ready",
            "receiver_running": True,
            "frames_published": frames_published,
        })
    return JSONResponse(
        {
            "status": "not_ready",
            "receiver_running": False,
        },
        status_code=503,
    )


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Detailed metrics for observability."""
    receiver = get_receiver()
    assembler = get_assembler()
    frame_rate = get_frame_rate()

    latest = assembler.slot.latest() if assembler else None
    fps = frame_rate.fps if frame_rate else None

    payload = ServiceMetrics(
        uptime_seconds=round(time.time() - _startup_time, 1),
        receiver_running=is_ready(),
        frame_rate=round(fps, 2) if fps is not None else None,
        stream=StreamMetrics(**receiver.metrics.to_dict()) if receiver else StreamMetrics(),
        assembler=AssemblerMetrics(**assembler.metrics()) if assembler else AssemblerMetrics(),
        latest_frame=describe_frame(latest) if latest else None,
    )
    return JSONResponse(payload.model_dump(mode="json"))


@app.get("/frame")
async def frame() -> Response:
    """Latest complete frame as an encoded image."""
    assembler = get_assembler()
    latest = assembler.slot.latest() if assembler else None

    if latest is None:
        return JSONResponse(
            {"error": "No frame available yet"},
            status_code=503,
        )

    fmt = settings.snapshot.format
    try:
        body = await asyncio.to_thread(
            encode_frame, latest, fmt, settings.snapshot.jpeg_quality
        )
    except SnapshotEncodeError as e:
        logger.error(f"Snapshot error: {e}")
        return JSONResponse({"error": str(e)}, status_code=500)

    return Response(
        content=body,
        media_type=media_type(fmt),
        headers={"X-Frame-Id": str(latest.frame_id)},
    )


@app.get("/frame/info")
async def frame_info() -> JSONResponse:
    """Description of the latest complete frame."""
    assembler = get_assembler()
    latest = assembler.slot.latest() if assembler else None

    if latest is None:
        return JSONResponse(
            {"error": "No frame available yet"},
            status_code=503,
        )

    return JSONResponse(describe_frame(latest).model_dump(mode="json"))


# =============================================================================
# WebSocket Endpoints
# =============================================================================

@app.websocket("/ws/frames")
async def frame_stream(websocket: WebSocket) -> None:
    """WebSocket endpoint pushing a description of every new frame."""
    await websocket.accept()
    logger.info("Client connected to /ws/frames")

    last_id = 0
    disconnected = asyncio.create_task(_wait_disconnect(websocket))
    try:
        while is_ready() and not disconnected.done():
            frame = await asyncio.to_thread(
                _assembler.slot.wait_for_newer,
                last_id,
                settings.server.ws_poll_interval_sec,
            )
            if frame is None:
                continue
            await websocket.send_json(describe_frame(frame).model_dump(mode="json"))
            last_id = frame.frame_id

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.warning(f"WebSocket error: {e}")
    finally:
        disconnected.cancel()
        logger.info("Client disconnected from /ws/frames")


async def _wait_disconnect(websocket: WebSocket) -> None:
    """Drain client messages until the client goes away."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


# =============================================================================
# Main Entry Point
# =============================================================================

def run() -> None:
    """Serve the application with uvicorn."""
    import uvicorn

    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "udpcam.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    run()
