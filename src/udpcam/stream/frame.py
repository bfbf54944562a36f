"""
Frame Data Model
=================

Immutable completed frame handed from the receiver to frame sinks.

Design Rules:
    - This is the ONLY frame format passed to sinks and HTTP handlers
    - The image array is a private copy of the working buffer and is
      marked read-only before it is published
    - A Frame is never mutated after construction
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np


class FrameTrigger(str, Enum):
    """What caused a frame to be published."""

    ROW_COUNT = "ROW_COUNT"
    FRAME_START = "FRAME_START"
    FRAME_END = "FRAME_END"


@dataclass(frozen=True, slots=True)
class Frame:
    """
    Completed 640x480 RGB frame.

    Attributes:
        frame_id: Monotonically increasing publish counter, starting at 1
        timestamp: UNIX timestamp of the publish
        image: np.ndarray (480, 640, 3), dtype=uint8, read-only, RGB order
        rows_written: Scanline writes accumulated since the previous frame
        trigger: Event that completed the frame
    """

    frame_id: int
    timestamp: float
    image: np.ndarray
    rows_written: int
    trigger: FrameTrigger

    @property
    def height(self) -> int:
        return self.image.shape[0]

    @property
    def width(self) -> int:
        return self.image.shape[1]

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the full image."""
        return (
            f"Frame(frame_id={self.frame_id}, "
            f"timestamp={self.timestamp:.3f}, "
            f"rows_written={self.rows_written}, "
            f"trigger={self.trigger.value})"
        )
