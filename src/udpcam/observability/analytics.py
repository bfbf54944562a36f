"""
Frame Rate Analytics
====================

Measures the rate at which complete frames are published.

FrameRateTracker is a FrameSink: register it on the assembler and it
observes every published frame.

Smoothing Choice (EMA):
    The inter-frame interval is smoothed with an Exponential Moving
    Average so one late frame does not swing the reported rate.

    Formula: smoothed = α * raw + (1 - α) * prev_smoothed
    Where α ∈ (0, 1] controls responsiveness (higher = more responsive)

Analytics are observability ONLY and never influence assembly.
"""

import logging
import threading
from typing import Optional

from udpcam.stream.frame import Frame


logger = logging.getLogger(__name__)


class FrameRateTracker:
    """
    Smoothed frames-per-second of published frames.

    Example:
        tracker = FrameRateTracker(smoothing_alpha=0.2)
        assembler.add_sink(tracker)

        print(tracker.fps)
    """

    def __init__(self, smoothing_alpha: float = 0.2) -> None:
        """
        Initialize frame rate tracker.

        Args:
            smoothing_alpha: EMA smoothing factor in (0, 1]
        """
        if not 0 < smoothing_alpha <= 1:
            raise ValueError("smoothing_alpha must be in (0, 1]")

        self.smoothing_alpha = smoothing_alpha

        self._lock = threading.Lock()
        self._prev_timestamp: Optional[float] = None
        self._smoothed_interval: Optional[float] = None
        self._frames_seen: int = 0

    @property
    def frames_seen(self) -> int:
        """Number of frames observed."""
        with self._lock:
            return self._frames_seen

    @property
    def fps(self) -> Optional[float]:
        """Smoothed rate, or None until two frames have been seen."""
        with self._lock:
            if not self._smoothed_interval:
                return None
            return 1.0 / self._smoothed_interval

    def on_frame_ready(self, frame: Frame) -> None:
        """Record the publish time of a frame."""
        with self._lock:
            self._frames_seen += 1

            if self._prev_timestamp is not None:
                dt = frame.timestamp - self._prev_timestamp
                if dt > 0:
                    if self._smoothed_interval is None:
                        self._smoothed_interval = dt
                    else:
                        self._smoothed_interval = (
                            self.smoothing_alpha * dt
                            + (1 - self.smoothing_alpha) * self._smoothed_interval
                        )

            self._prev_timestamp = frame.timestamp

    def reset(self) -> None:
        """Forget all observations."""
        with self._lock:
            self._prev_timestamp = None
            self._smoothed_interval = None
            self._frames_seen = 0
