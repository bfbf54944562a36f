"""
Observability Tests
===================

Tests for frame rate tracking and snapshot encoding.
"""

import cv2
import numpy as np
import pytest

from udpcam.observability import (
    FrameRateTracker,
    SnapshotEncodeError,
    describe_frame,
    encode_frame,
    media_type,
)
from udpcam.sender import build_pattern
from udpcam.stream.frame import Frame, FrameTrigger


def make_frame(frame_id=1, timestamp=1000.0, image=None):
    if image is None:
        image = build_pattern("bars")
    image.setflags(write=False)
    return Frame(
        frame_id=frame_id,
        timestamp=timestamp,
        image=image,
        rows_written=480,
        trigger=FrameTrigger.ROW_COUNT,
    )


class TestFrameRateTracker:
    """Tests for EMA frame rate."""

    def test_none_until_two_frames(self):
        tracker = FrameRateTracker()
        assert tracker.fps is None

        tracker.on_frame_ready(make_frame(1, 1000.0))
        assert tracker.fps is None
        assert tracker.frames_seen == 1

    def test_steady_rate(self):
        tracker = FrameRateTracker(smoothing_alpha=0.5)
        for i in range(10):
            tracker.on_frame_ready(make_frame(i + 1, 1000.0 + i * 0.1))

        assert tracker.fps == pytest.approx(10.0)

    def test_smoothing(self):
        tracker = FrameRateTracker(smoothing_alpha=0.5)
        tracker.on_frame_ready(make_frame(1, 1.0))
        tracker.on_frame_ready(make_frame(2, 2.0))   # interval 1.0
        tracker.on_frame_ready(make_frame(3, 2.5))   # interval 0.5 -> ema 0.75

        assert tracker.fps == pytest.approx(1 / 0.75)

    def test_reset(self):
        tracker = FrameRateTracker()
        tracker.on_frame_ready(make_frame(1, 1.0))
        tracker.on_frame_ready(make_frame(2, 2.0))
        tracker.reset()

        assert tracker.fps is None
        assert tracker.frames_seen == 0

    @pytest.mark.parametrize("alpha", [0, -0.1, 1.5])
    def test_invalid_alpha(self, alpha):
        with pytest.raises(ValueError):
            FrameRateTracker(smoothing_alpha=alpha)


class TestSnapshot:
    """Tests for image encoding."""

    def test_png_is_lossless_and_rgb(self):
        frame = make_frame()
        body = encode_frame(frame, "png")

        assert body.startswith(b"\x89PNG")
        decoded = cv2.imdecode(np.frombuffer(body, dtype=np.uint8), cv2.IMREAD_COLOR)
        assert np.array_equal(cv2.cvtColor(decoded, cv2.COLOR_BGR2RGB), frame.image)

    def test_jpeg(self):
        body = encode_frame(make_frame(), "jpg", jpeg_quality=50)
        assert body.startswith(b"\xff\xd8")

    def test_unknown_format(self):
        with pytest.raises(SnapshotEncodeError):
            encode_frame(make_frame(), "gif")

    def test_media_type(self):
        assert media_type("png") == "image/png"
        assert media_type("jpg") == "image/jpeg"

    def test_describe_frame(self):
        info = describe_frame(make_frame(frame_id=7, timestamp=1234.5))

        assert info.frame_id == 7
        assert info.width == 640
        assert info.height == 480
        assert info.trigger == "ROW_COUNT"
