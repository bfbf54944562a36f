"""
Wire Protocol
=============

Constants and datagram builders for the scanline camera protocol.

Each datagram is either a 4-byte control marker or one scanline of
RGB565 pixel data:

    offset  size  field
    0       4     marker (little-endian uint32)
    4       4     row_index + 1
    8       4     column_count + 1
    12      4     raw size field (sample count = field * 2)
    16      2N    RGB565 samples, big-endian per sample

Shared between the receiver and the test-pattern sender.
"""

import struct
from typing import Sequence

import numpy as np


# Markers
MARKER_FRAME_START = 0xDEADBEEF
MARKER_PIXEL_ROW = 0xBEEFBEEF
MARKER_FRAME_END = 0xDEADDEAD

MARKER_FORMAT = "<I"
MARKER_SIZE = struct.calcsize(MARKER_FORMAT)  # 4 bytes

ROW_HEADER_FORMAT = "<IIII"
ROW_HEADER_SIZE = struct.calcsize(ROW_HEADER_FORMAT)  # 16 bytes

# Samples carry their bytes high-first, unlike the header
SAMPLE_DTYPE = ">u2"
SAMPLE_SIZE = 2

# Fixed frame geometry
FRAME_WIDTH = 640
FRAME_HEIGHT = 480
FRAME_CHANNELS = 3

DEFAULT_PORT = 1024


def build_marker(marker: int) -> bytes:
    """Encode a bare control marker datagram."""
    return struct.pack(MARKER_FORMAT, marker)


def build_pixel_row(
    row_index: int,
    samples: Sequence[int],
    column_count: int = 0,
) -> bytes:
    """
    Encode one scanline datagram.

    Args:
        row_index: Zero-based row the samples belong to
        samples: RGB565 values, one per pixel. Must have even length,
            the size field counts pairs of samples.
        column_count: Zero-based column field (informational only)

    Returns:
        Datagram bytes ready for sendto()
    """
    if len(samples) % 2 != 0:
        raise ValueError("sample count must be even")

    header = struct.pack(
        ROW_HEADER_FORMAT,
        MARKER_PIXEL_ROW,
        row_index + 1,
        column_count + 1,
        len(samples) // 2,
    )
    payload = np.asarray(samples, dtype=np.uint16).astype(SAMPLE_DTYPE).tobytes()
    return header + payload
