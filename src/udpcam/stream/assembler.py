"""
Frame Assembler
===============

Tracks scanline writes and publishes completed frames.

This module provides:
    - AssemblyState: Working buffer and row counter owned by the receiver
    - LatestFrameSlot: Lock-guarded handoff of the most recent frame
    - FrameSink: Interface for external frame consumers
    - FrameAssembler: Decides when a frame is complete and publishes it

Publishing:
    1. Copy the working buffer into a new read-only array
    2. Swap it into the LatestFrameSlot under its lock and wake waiters
    3. Notify registered sinks (outside the lock)
    4. Reset the row counter

Completion Triggers:
    - FRAME_HEIGHT (480) scanline writes since the last publish
    - A frame-start marker
    - A frame-end marker, when honor_frame_end is enabled

Markers publish even with zero rows pending (a repeat of the previous
image) unless skip_empty_triggers is set.

Design Rules:
    - Only the receiver thread calls the on_* methods
    - The slot lock is never held while decoding pixels
    - Publishing never waits for consumers; stale frames are overwritten
    - Sink failures are logged and never reach the receiver loop
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Protocol, runtime_checkable

import numpy as np

from udpcam.protocol import FRAME_WIDTH, FRAME_HEIGHT, FRAME_CHANNELS
from udpcam.stream.frame import Frame, FrameTrigger


logger = logging.getLogger(__name__)


def new_frame_buffer() -> np.ndarray:
    """Blank (480, 640, 3) uint8 raster."""
    return np.zeros((FRAME_HEIGHT, FRAME_WIDTH, FRAME_CHANNELS), dtype=np.uint8)


@dataclass
class AssemblyState:
    """
    Mutable receiver-side frame state.

    Attributes:
        working_buffer: Raster mutated in place by the decoder
        rows_written: Scanline writes since the last publish
        frames_published: Total frames published
    """

    working_buffer: np.ndarray = field(default_factory=new_frame_buffer)
    rows_written: int = 0
    frames_published: int = 0


class AssemblerPhase(str, Enum):
    """Assembler state machine. ACCUMULATING is initial and resumed after every publish."""

    ACCUMULATING = "ACCUMULATING"
    PUBLISHING = "PUBLISHING"


@runtime_checkable
class FrameSink(Protocol):
    """External consumer of completed frames. Must not block."""

    def on_frame_ready(self, frame: Frame) -> None:
        ...


class LatestFrameSlot:
    """
    Holds the most recently published frame.

    At most one frame is buffered: a new publish replaces the previous
    frame whether or not anyone read it.

    Example:
        slot = LatestFrameSlot()

        # Consumer thread
        frame = slot.wait_for_newer(last_id, timeout=1.0)
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._frame: Optional[Frame] = None

    def publish(self, frame: Frame) -> None:
        """Swap in a new frame and wake waiting consumers."""
        with self._cond:
            self._frame = frame
            self._cond.notify_all()

    def latest(self) -> Optional[Frame]:
        """Most recent frame, or None if nothing was published yet."""
        with self._cond:
            return self._frame

    def wait_for_newer(
        self,
        frame_id: int,
        timeout: Optional[float] = None,
    ) -> Optional[Frame]:
        """
        Block until a frame newer than frame_id is available.

        Args:
            frame_id: Last frame id the caller has seen (0 for none)
            timeout: Maximum seconds to wait. None = wait forever.

        Returns:
            The newer frame, or None on timeout.
        """
        with self._cond:
            self._cond.wait_for(
                lambda: self._frame is not None and self._frame.frame_id > frame_id,
                timeout=timeout,
            )
            frame = self._frame
            if frame is not None and frame.frame_id > frame_id:
                return frame
            return None


class FrameAssembler:
    """
    Frame completion logic on top of an AssemblyState.

    Attributes:
        state: Working buffer and counters
        slot: Where completed frames are published
        phase: Current state machine phase
        honor_frame_end: Treat frame-end markers as completion triggers

    Example:
        assembler = FrameAssembler()
        assembler.add_sink(my_sink)

        # Receiver thread
        decode_row(datagram, assembler.state)
        assembler.on_row_decoded()
    """

    def __init__(
        self,
        state: Optional[AssemblyState] = None,
        slot: Optional[LatestFrameSlot] = None,
        sinks: Optional[List[FrameSink]] = None,
        honor_frame_end: bool = True,
        skip_empty_triggers: bool = False,
        log_every_n_frames: int = 100,
    ) -> None:
        """
        Initialize frame assembler.

        Args:
            state: Existing state to assemble into (new blank state if None)
            slot: Handoff slot (new slot if None)
            sinks: Sinks notified on every publish
            honor_frame_end: Publish on frame-end markers
            skip_empty_triggers: Ignore markers that arrive with no rows pending
            log_every_n_frames: Log a summary every N published frames
        """
        self.state = state if state is not None else AssemblyState()
        self.slot = slot if slot is not None else LatestFrameSlot()
        self.honor_frame_end = honor_frame_end
        self.skip_empty_triggers = skip_empty_triggers
        self.log_every_n_frames = log_every_n_frames
        self.phase = AssemblerPhase.ACCUMULATING

        self._sinks: List[FrameSink] = list(sinks or [])
        self._sink_errors: int = 0
        self._empty_triggers: int = 0

    @property
    def sink_errors(self) -> int:
        """Number of exceptions raised by sinks."""
        return self._sink_errors

    def add_sink(self, sink: FrameSink) -> None:
        """Register a sink. Call before the receiver starts."""
        self._sinks.append(sink)

    def on_row_decoded(self) -> Optional[Frame]:
        """
        Count one scanline write.

        Returns:
            The published frame if this row completed it, else None.
        """
        self.state.rows_written += 1
        if self.state.rows_written >= FRAME_HEIGHT:
            return self._publish(FrameTrigger.ROW_COUNT)
        return None

    def on_frame_start(self) -> Optional[Frame]:
        """Publish the pending frame regardless of how many rows it has."""
        return self._publish(FrameTrigger.FRAME_START)

    def on_frame_end(self) -> Optional[Frame]:
        """Publish the pending frame if frame-end markers are honored."""
        if not self.honor_frame_end:
            return None
        return self._publish(FrameTrigger.FRAME_END)

    def metrics(self) -> dict:
        """
        Get assembler metrics for observability.

        Returns:
            Dict with phase, rows_written, frames_published, sink_errors,
            empty_triggers (markers that arrived with no rows pending)
        """
        return {
            "phase": self.phase.value,
            "rows_written": self.state.rows_written,
            "frames_published": self.state.frames_published,
            "sink_errors": self._sink_errors,
            "empty_triggers": self._empty_triggers,
        }

    def _publish(self, trigger: FrameTrigger) -> Optional[Frame]:
        state = self.state

        if state.rows_written == 0:
            self._empty_triggers += 1
            if self.skip_empty_triggers:
                logger.debug(f"Ignoring {trigger.value} trigger with no rows written")
                return None

        self.phase = AssemblerPhase.PUBLISHING
        try:
            image = state.working_buffer.copy()
            image.setflags(write=False)

            state.frames_published += 1
            frame = Frame(
                frame_id=state.frames_published,
                timestamp=time.time(),
                image=image,
                rows_written=state.rows_written,
                trigger=trigger,
            )

            self.slot.publish(frame)
            self._notify_sinks(frame)
            state.rows_written = 0
        finally:
            self.phase = AssemblerPhase.ACCUMULATING

        if frame.frame_id % self.log_every_n_frames == 0:
            logger.info(
                f"Published {frame.frame_id} frames "
                f"(last trigger={trigger.value}, rows={frame.rows_written})"
            )
        else:
            logger.debug(f"Published {frame!r}")

        return frame

    def _notify_sinks(self, frame: Frame) -> None:
        for sink in self._sinks:
            try:
                sink.on_frame_ready(frame)
            except Exception:
                self._sink_errors += 1
                logger.exception(
                    f"Frame sink {type(sink).__name__} failed on frame {frame.frame_id}"
                )
