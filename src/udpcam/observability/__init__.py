"""
Observability Module
====================

Frame rate analytics and snapshot encoding for the receiver.

This module provides:
    - FrameRateTracker: FrameSink measuring published frames per second
    - encode_frame: PNG/JPEG encoding of published frames
    - describe_frame: Pixel-free FrameInfo for JSON endpoints

DESIGN RULES:
    - Does NOT touch the working buffer
    - Does NOT influence frame assembly
"""

from udpcam.observability.analytics import FrameRateTracker
from udpcam.observability.snapshot import (
    SNAPSHOT_FORMATS,
    SnapshotEncodeError,
    describe_frame,
    encode_frame,
    media_type,
)


__all__ = [
    "FrameRateTracker",
    "SNAPSHOT_FORMATS",
    "SnapshotEncodeError",
    "describe_frame",
    "encode_frame",
    "media_type",
]
