"""
Frame Assembler Tests
=====================

Tests for completion triggers, publishing and the latest-frame slot.
"""

import threading

import numpy as np
import pytest

from udpcam.protocol import FRAME_HEIGHT
from udpcam.stream.assembler import (
    AssemblerPhase,
    AssemblyState,
    FrameAssembler,
    FrameSink,
    LatestFrameSlot,
)
from udpcam.stream.decoder import decode_row
from udpcam.stream.frame import FrameTrigger

from conftest import BLUE_565, RED_565, RecordingSink, solid_row


def write_rows(assembler, count, sample=RED_565, start=0):
    """Decode count full rows and feed them to the assembler, return published frames."""
    published = []
    for y in range(start, start + count):
        decode_row(solid_row(y % FRAME_HEIGHT, sample), assembler.state)
        frame = assembler.on_row_decoded()
        if frame is not None:
            published.append(frame)
    return published


class TestRowCountCompletion:
    """Tests for publishing after a full frame of rows."""

    def test_publishes_once_at_480_rows(self, assembler, sink):
        assert write_rows(assembler, FRAME_HEIGHT - 1) == []
        assert assembler.slot.latest() is None

        published = write_rows(assembler, 1, start=FRAME_HEIGHT - 1)

        assert len(published) == 1
        frame = published[0]
        assert frame.frame_id == 1
        assert frame.trigger == FrameTrigger.ROW_COUNT
        assert frame.rows_written == FRAME_HEIGHT
        assert assembler.state.rows_written == 0
        assert sink.frames == [frame]

    def test_frame_contents(self, assembler):
        frame = write_rows(assembler, FRAME_HEIGHT)[0]

        assert frame.image.shape == (480, 640, 3)
        assert frame.image.dtype == np.uint8
        assert (frame.image == [255, 0, 0]).all()

    def test_duplicate_rows_count(self, assembler):
        published = []
        for _ in range(FRAME_HEIGHT):
            decode_row(solid_row(0, RED_565), assembler.state)
            frame = assembler.on_row_decoded()
            if frame is not None:
                published.append(frame)

        assert len(published) == 1
        assert not published[0].image[1:].any()

    def test_frame_ids_increase(self, assembler):
        published = write_rows(assembler, FRAME_HEIGHT * 3)
        assert [f.frame_id for f in published] == [1, 2, 3]
        assert assembler.state.frames_published == 3


class TestMarkerCompletion:
    """Tests for frame-start and frame-end triggers."""

    def test_frame_start_publishes_partial_frame(self, assembler, sink):
        write_rows(assembler, 10)
        frame = assembler.on_frame_start()

        assert frame is not None
        assert frame.trigger == FrameTrigger.FRAME_START
        assert frame.rows_written == 10
        assert assembler.state.rows_written == 0
        assert len(sink.frames) == 1

    def test_frame_start_with_no_rows_publishes(self, assembler, sink):
        frame = assembler.on_frame_start()

        assert frame is not None
        assert frame.frame_id == 1
        assert frame.rows_written == 0
        assert not frame.image.any()
        assert assembler.slot.latest() is frame
        assert sink.frames == [frame]
        assert assembler.metrics()["empty_triggers"] == 1

    def test_marker_after_full_frame_republishes_previous_image(self, assembler, sink):
        first = write_rows(assembler, FRAME_HEIGHT)[0]
        repeat = assembler.on_frame_start()

        assert repeat is not None
        assert repeat.frame_id == 2
        assert repeat.rows_written == 0
        assert repeat.trigger == FrameTrigger.FRAME_START
        assert np.array_equal(repeat.image, first.image)
        assert sink.frames == [first, repeat]

    def test_frame_end_with_no_rows_publishes(self, assembler):
        frame = assembler.on_frame_end()
        assert frame is not None
        assert frame.trigger == FrameTrigger.FRAME_END

    def test_empty_triggers_skipped_when_configured(self, sink):
        assembler = FrameAssembler(sinks=[sink], skip_empty_triggers=True)

        assert assembler.on_frame_start() is None
        assert assembler.on_frame_end() is None
        assert assembler.slot.latest() is None
        assert sink.frames == []
        assert assembler.metrics()["empty_triggers"] == 2

        write_rows(assembler, 3)
        assert assembler.on_frame_start().rows_written == 3

    def test_frame_end_honored(self, assembler):
        write_rows(assembler, 5)
        frame = assembler.on_frame_end()

        assert frame is not None
        assert frame.trigger == FrameTrigger.FRAME_END

    def test_frame_end_ignored_when_disabled(self, sink):
        assembler = FrameAssembler(sinks=[sink], honor_frame_end=False)
        write_rows(assembler, 5)

        assert assembler.on_frame_end() is None
        assert assembler.state.rows_written == 5
        assert sink.frames == []

    def test_buffer_not_cleared_between_frames(self, assembler):
        write_rows(assembler, FRAME_HEIGHT)
        # Second frame only repaints row 0
        decode_row(solid_row(0, BLUE_565), assembler.state)
        assembler.on_row_decoded()
        frame = assembler.on_frame_start()

        assert (frame.image[0] == [0, 0, 255]).all()
        assert (frame.image[1:] == [255, 0, 0]).all()


class TestPublishedFrame:
    """Tests for published frame immutability."""

    def test_image_is_read_only(self, assembler):
        frame = write_rows(assembler, FRAME_HEIGHT)[0]
        with pytest.raises(ValueError):
            frame.image[0, 0] = [1, 2, 3]

    def test_image_independent_of_working_buffer(self, assembler):
        frame = write_rows(assembler, FRAME_HEIGHT)[0]
        write_rows(assembler, 10, sample=BLUE_565)

        assert (frame.image == [255, 0, 0]).all()
        assert frame.image is not assembler.state.working_buffer

    def test_frame_is_frozen(self, assembler):
        frame = write_rows(assembler, FRAME_HEIGHT)[0]
        with pytest.raises(AttributeError):
            frame.frame_id = 99

    def test_repr_omits_pixels(self, assembler):
        frame = write_rows(assembler, FRAME_HEIGHT)[0]
        assert "frame_id=1" in repr(frame)
        assert "array" not in repr(frame)


class TestSinks:
    """Tests for sink notification."""

    def test_recording_sink_satisfies_protocol(self, sink):
        assert isinstance(sink, FrameSink)

    def test_failing_sink_does_not_stop_others(self, sink):
        class BrokenSink:
            def on_frame_ready(self, frame):
                raise RuntimeError("boom")

        assembler = FrameAssembler(sinks=[BrokenSink(), sink])
        frame = write_rows(assembler, FRAME_HEIGHT)[0]

        assert sink.frames == [frame]
        assert assembler.sink_errors == 1
        assert assembler.slot.latest() is frame
        assert assembler.phase == AssemblerPhase.ACCUMULATING

    def test_add_sink(self):
        assembler = FrameAssembler()
        late = RecordingSink()
        assembler.add_sink(late)
        write_rows(assembler, FRAME_HEIGHT)

        assert len(late.frames) == 1

    def test_phase_is_publishing_inside_sink(self):
        seen = []

        class PhaseSink:
            def on_frame_ready(self, frame):
                seen.append(assembler.phase)

        assembler = FrameAssembler(sinks=[PhaseSink()])
        write_rows(assembler, FRAME_HEIGHT)

        assert seen == [AssemblerPhase.PUBLISHING]
        assert assembler.phase == AssemblerPhase.ACCUMULATING


class TestLatestFrameSlot:
    """Tests for the latest-frame handoff."""

    def test_empty_slot(self):
        slot = LatestFrameSlot()
        assert slot.latest() is None
        assert slot.wait_for_newer(0, timeout=0.01) is None

    def test_latest_replaces_unread(self, assembler):
        write_rows(assembler, FRAME_HEIGHT * 2)
        assert assembler.slot.latest().frame_id == 2

    def test_wait_for_newer_returns_immediately_when_available(self, assembler):
        write_rows(assembler, FRAME_HEIGHT)
        frame = assembler.slot.wait_for_newer(0, timeout=0.01)
        assert frame.frame_id == 1
        assert assembler.slot.wait_for_newer(1, timeout=0.01) is None

    def test_wait_for_newer_wakes_on_publish(self, assembler):
        result = {}

        def consumer():
            result["frame"] = assembler.slot.wait_for_newer(0, timeout=5.0)

        thread = threading.Thread(target=consumer)
        thread.start()
        write_rows(assembler, FRAME_HEIGHT)
        thread.join(timeout=5.0)

        assert result["frame"].frame_id == 1

    def test_readers_never_see_torn_frames(self):
        """Every frame a reader observes is uniformly one color."""
        assembler = FrameAssembler(state=AssemblyState())
        stop = threading.Event()
        torn = []

        def reader():
            while not stop.is_set():
                frame = assembler.slot.latest()
                if frame is not None:
                    first = frame.image[0, 0]
                    if not (frame.image == first).all():
                        torn.append(frame.frame_id)

        thread = threading.Thread(target=reader)
        thread.start()
        try:
            for i in range(6):
                write_rows(assembler, FRAME_HEIGHT, sample=RED_565 if i % 2 else BLUE_565)
        finally:
            stop.set()
            thread.join(timeout=5.0)

        assert torn == []
        assert assembler.state.frames_published == 6
