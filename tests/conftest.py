"""
Test Configuration
==================

Pytest fixtures and helpers for the scanline receiver tests.
"""

import socket
import threading
import time
from typing import Callable, List

import numpy as np
import pytest

from udpcam.protocol import (
    FRAME_HEIGHT,
    FRAME_WIDTH,
    MARKER_FRAME_START,
    build_marker,
    build_pixel_row,
)
from udpcam.stream import FrameAssembler, FrameReceiver, open_udp_socket
from udpcam.stream.frame import Frame


RED_565 = 0xF800
BLUE_565 = 0x001F


class RecordingSink:
    """FrameSink that keeps every frame it is given."""

    def __init__(self) -> None:
        self.frames: List[Frame] = []
        self.received = threading.Event()
        self._cond = threading.Condition()

    def on_frame_ready(self, frame: Frame) -> None:
        with self._cond:
            self.frames.append(frame)
            self._cond.notify_all()
        self.received.set()

    def full_frames(self) -> List[Frame]:
        """Frames completed by a full set of rows."""
        return [f for f in self.frames if f.rows_written == FRAME_HEIGHT]

    def wait_for(self, predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
        """Block until predicate() holds for the recorded frames."""
        with self._cond:
            return self._cond.wait_for(predicate, timeout=timeout)


def solid_row(row_index: int, sample: int, count: int = FRAME_WIDTH) -> bytes:
    """Pixel-row datagram filled with one packed color."""
    return build_pixel_row(row_index, [sample] * count)


def alternating_frame() -> List[bytes]:
    """Frame-start marker plus 480 rows alternating red (even) and blue (odd)."""
    datagrams = [build_marker(MARKER_FRAME_START)]
    for y in range(FRAME_HEIGHT):
        datagrams.append(solid_row(y, RED_565 if y % 2 == 0 else BLUE_565))
    return datagrams


@pytest.fixture
def sink():
    """Provide a recording frame sink."""
    return RecordingSink()


@pytest.fixture
def assembler(sink):
    """Provide an assembler with a recording sink attached."""
    return FrameAssembler(sinks=[sink])


@pytest.fixture
def loopback_socket():
    """Provide a datagram socket bound to an ephemeral loopback port."""
    sock = open_udp_socket("127.0.0.1", 0, recv_buffer_bytes=0)
    yield sock
    sock.close()


@pytest.fixture
def running_receiver(assembler):
    """
    Provide a FrameReceiver running on its own thread.

    Yields (receiver, send) where send(datagrams) delivers datagrams to
    the receiver over loopback UDP, paced to stay within socket buffers.
    """
    receiver = FrameReceiver(open_udp_socket("127.0.0.1", 0), assembler)
    thread = receiver.start_thread()
    target = receiver.address
    sender = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)

    def send(datagrams):
        for i, datagram in enumerate(datagrams):
            sender.sendto(datagram, target)
            if i % 20 == 19:
                time.sleep(0.002)

    yield receiver, send

    sender.close()
    receiver.stop()
    thread.join(timeout=5.0)
    assert not thread.is_alive()


@pytest.fixture
def red_blue_rows():
    """Expected RGB for even (red) and odd (blue) rows."""
    return np.array([255, 0, 0], dtype=np.uint8), np.array([0, 0, 255], dtype=np.uint8)
