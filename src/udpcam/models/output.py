"""
Service Output Models
=====================

Pydantic models for the HTTP/WebSocket surface of the receiver service.

Output Contract (/metrics):
    {
        "uptime_seconds": 12.3,
        "receiver_running": true,
        "frame_rate": 14.8,
        "stream": {
            "datagrams_received": 48210,
            "rows_written": 47904,
            ...
        },
        "assembler": {
            "phase": "ACCUMULATING",
            "rows_written": 212,
            "frames_published": 99,
            "sink_errors": 0,
            "empty_triggers": 1
        },
        "latest_frame": {
            "frame_id": 99,
            "timestamp": 1770500938.284,
            "width": 640,
            "height": 480,
            "rows_written": 480,
            "trigger": "FRAME_START"
        }
    }

Design Rules:
    - These models describe state, they never drive the receiver
    - Pixel data is served separately (/frame), never inside JSON
"""

from typing import Optional

from pydantic import BaseModel, Field


class FrameInfo(BaseModel):
    """Description of a published frame without its pixels."""

    frame_id: int = Field(..., ge=1, description="Publish counter, starting at 1")
    timestamp: float = Field(..., gt=0, description="UNIX timestamp of the publish")
    width: int = Field(..., ge=1, description="Frame width in pixels")
    height: int = Field(..., ge=1, description="Frame height in pixels")
    rows_written: int = Field(
        ...,
        ge=0,
        description="Scanline writes accumulated for this frame",
    )
    trigger: str = Field(
        ...,
        description="Completion trigger: ROW_COUNT, FRAME_START or FRAME_END",
    )


class StreamMetrics(BaseModel):
    """Receiver loop counters."""

    datagrams_received: int = Field(default=0, ge=0)
    rows_written: int = Field(default=0, ge=0)
    rows_rejected: int = Field(default=0, ge=0)
    pixels_rejected: int = Field(default=0, ge=0)
    frame_start_markers: int = Field(default=0, ge=0)
    frame_end_markers: int = Field(default=0, ge=0)
    unknown_markers: int = Field(default=0, ge=0)
    malformed_packets: int = Field(default=0, ge=0)
    frames_published: int = Field(default=0, ge=0)
    last_sender: Optional[str] = Field(default=None, description="host:port of last datagram")


class AssemblerMetrics(BaseModel):
    """Frame assembler state."""

    phase: str = Field(default="ACCUMULATING", description="ACCUMULATING or PUBLISHING")
    rows_written: int = Field(default=0, ge=0, description="Rows pending in working buffer")
    frames_published: int = Field(default=0, ge=0)
    sink_errors: int = Field(default=0, ge=0)
    empty_triggers: int = Field(
        default=0,
        ge=0,
        description="Markers that arrived with no rows pending",
    )


class ServiceMetrics(BaseModel):
    """Complete /metrics payload."""

    uptime_seconds: float = Field(..., ge=0)
    receiver_running: bool = Field(...)
    frame_rate: Optional[float] = Field(
        default=None,
        ge=0,
        description="Smoothed published frames per second",
    )
    stream: StreamMetrics = Field(default_factory=StreamMetrics)
    assembler: AssemblerMetrics = Field(default_factory=AssemblerMetrics)
    latest_frame: Optional[FrameInfo] = Field(default=None)
