"""
Frame Snapshots
===============

Encodes published frames for serving over HTTP.

Design Rules:
    - Works on immutable Frame objects only, never the working buffer
    - Frames are stored RGB; OpenCV encoders expect BGR
"""

import logging

import cv2
import numpy as np

from udpcam.models.output import FrameInfo
from udpcam.stream.frame import Frame


logger = logging.getLogger(__name__)


SNAPSHOT_FORMATS = {
    "png": (".png", "image/png"),
    "jpg": (".jpg", "image/jpeg"),
}


class SnapshotEncodeError(Exception):
    """Raised when a frame cannot be encoded."""
    pass


def encode_frame(frame: Frame, fmt: str = "png", jpeg_quality: int = 90) -> bytes:
    """
    Encode a frame as PNG or JPEG.

    Args:
        frame: Published frame
        fmt: "png" or "jpg"
        jpeg_quality: JPEG quality in [1, 100], ignored for PNG

    Returns:
        Encoded image bytes

    Raises:
        SnapshotEncodeError: If the format is unknown or encoding fails
    """
    if fmt not in SNAPSHOT_FORMATS:
        raise SnapshotEncodeError(f"Unknown snapshot format: {fmt}")

    extension, _ = SNAPSHOT_FORMATS[fmt]
    bgr = cv2.cvtColor(np.ascontiguousarray(frame.image), cv2.COLOR_RGB2BGR)

    params = []
    if fmt == "jpg":
        params = [int(cv2.IMWRITE_JPEG_QUALITY), int(jpeg_quality)]

    ok, encoded = cv2.imencode(extension, bgr, params)
    if not ok:
        raise SnapshotEncodeError(
            f"cv2.imencode failed for frame {frame.frame_id} ({fmt})"
        )

    return encoded.tobytes()


def media_type(fmt: str) -> str:
    """HTTP media type for a snapshot format."""
    return SNAPSHOT_FORMATS[fmt][1]


def describe_frame(frame: Frame) -> FrameInfo:
    """Pixel-free description of a frame."""
    return FrameInfo(
        frame_id=frame.frame_id,
        timestamp=frame.timestamp,
        width=frame.width,
        height=frame.height,
        rows_written=frame.rows_written,
        trigger=frame.trigger.value,
    )
