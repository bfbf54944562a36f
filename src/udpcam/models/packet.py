"""
Packet Models
=============

Typed representations of datagrams after classification and parsing.

Models:
    - PacketKind: Role of a datagram, derived from its leading marker
    - PixelRowPacket: Parsed scanline datagram
    - RowWriteResult: Outcome of writing a scanline into the frame buffer
    - DatagramOutcome: Per-datagram result reported by the receiver loop
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np


class PacketKind(str, Enum):
    """
    Role of a datagram.

    Attributes:
        FRAME_START: 0xDEADBEEF marker, completes the pending frame
        PIXEL_ROW: 0xBEEFBEEF scanline data
        FRAME_END: 0xDEADDEAD marker, reserved completion trigger
        UNKNOWN: Anything else, discarded
    """

    FRAME_START = "FRAME_START"
    PIXEL_ROW = "PIXEL_ROW"
    FRAME_END = "FRAME_END"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True, slots=True)
class PixelRowPacket:
    """
    Parsed scanline datagram.

    Attributes:
        row_index: Target row (raw field - 1). May be negative or beyond
            the frame height when the sender misbehaves.
        column_count: Raw column field - 1. Not used for placement.
        sample_count: Number of samples (raw size field * 2)
        samples: RGB565 values as a uint16 array of length sample_count
    """

    row_index: int
    column_count: int
    sample_count: int
    samples: np.ndarray

    def __repr__(self) -> str:
        return (
            f"PixelRowPacket(row_index={self.row_index}, "
            f"column_count={self.column_count}, "
            f"sample_count={self.sample_count})"
        )


@dataclass(frozen=True, slots=True)
class RowWriteResult:
    """Pixels written to and rejected from the working buffer for one row."""

    row_index: int
    written: int
    rejected: int


class DatagramOutcome(str, Enum):
    """
    What the receiver did with a single datagram.

    Attributes:
        ROW_WRITTEN: Scanline decoded, at least one pixel written
        ROW_REJECTED: Scanline decoded but every pixel was out of range
            (still counts toward frame completion)
        FRAME_START: Frame-start marker handled
        FRAME_END: Frame-end marker handled
        UNKNOWN_MARKER: Unrecognized marker, discarded
        MALFORMED: Too short for its claimed fields, discarded
    """

    ROW_WRITTEN = "ROW_WRITTEN"
    ROW_REJECTED = "ROW_REJECTED"
    FRAME_START = "FRAME_START"
    FRAME_END = "FRAME_END"
    UNKNOWN_MARKER = "UNKNOWN_MARKER"
    MALFORMED = "MALFORMED"
