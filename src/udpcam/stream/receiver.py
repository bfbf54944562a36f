"""
Frame Receiver
===============

Datagram receive loop for the scanline camera stream.

This module provides the FrameReceiver class which:
    - Blocks on a bound UDP socket
    - Classifies each datagram by its marker
    - Decodes pixel rows into the working buffer
    - Drives the FrameAssembler on rows and markers
    - Exits cleanly when stopped or when the socket is closed

Design Rules:
    - Single writer of the working buffer and row counter
    - Datagrams are processed strictly in arrival order
    - A bad datagram is counted and skipped, never fatal
    - No per-receive timeout; a silent sender just stalls frame production
"""

import contextlib
import logging
import socket
import threading
from typing import Optional

from udpcam.models.packet import DatagramOutcome, PacketKind
from udpcam.protocol import DEFAULT_PORT
from udpcam.stream.assembler import AssemblyState, FrameAssembler
from udpcam.stream.classifier import classify
from udpcam.stream.decoder import MalformedPacket, decode_row


logger = logging.getLogger(__name__)


MAX_DATAGRAM_BYTES = 65535


class ReceiverMetrics:
    """
    Metrics for FrameReceiver observability.

    frames_published mirrors the assembler state counter.
    """

    __slots__ = (
        "datagrams_received",
        "rows_written",
        "rows_rejected",
        "pixels_rejected",
        "frame_start_markers",
        "frame_end_markers",
        "unknown_markers",
        "malformed_packets",
        "last_sender",
        "_state",
    )

    def __init__(self, state: AssemblyState) -> None:
        self.datagrams_received: int = 0
        self.rows_written: int = 0
        self.rows_rejected: int = 0
        self.pixels_rejected: int = 0
        self.frame_start_markers: int = 0
        self.frame_end_markers: int = 0
        self.unknown_markers: int = 0
        self.malformed_packets: int = 0
        self.last_sender: Optional[str] = None
        self._state = state

    @property
    def frames_published(self) -> int:
        """Frames published by the assembler."""
        return self._state.frames_published

    @property
    def dropped(self) -> int:
        """Datagrams discarded without touching frame state."""
        return self.unknown_markers + self.malformed_packets

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "datagrams_received": self.datagrams_received,
            "rows_written": self.rows_written,
            "rows_rejected": self.rows_rejected,
            "pixels_rejected": self.pixels_rejected,
            "frame_start_markers": self.frame_start_markers,
            "frame_end_markers": self.frame_end_markers,
            "unknown_markers": self.unknown_markers,
            "malformed_packets": self.malformed_packets,
            "frames_published": self.frames_published,
            "last_sender": self.last_sender,
        }


def open_udp_socket(
    host: str = "0.0.0.0",
    port: int = DEFAULT_PORT,
    recv_buffer_bytes: int = 4 * 1024 * 1024,
) -> socket.socket:
    """
    Create and bind the datagram socket the receiver reads from.

    A full frame is ~480 datagrams arriving in a burst, so the kernel
    receive buffer is enlarged to ride out scheduling hiccups.

    Raises:
        OSError: If the address cannot be bound
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_DGRAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        if recv_buffer_bytes > 0:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, recv_buffer_bytes)
        sock.bind((host, port))
    except OSError:
        sock.close()
        raise

    bound_host, bound_port = sock.getsockname()[:2]
    logger.info(f"Listening for scanline datagrams on {bound_host}:{bound_port}")
    return sock


class FrameReceiver:
    """
    Blocking receive loop feeding a FrameAssembler.

    Attributes:
        assembler: Frame completion logic and state
        metrics: Operational metrics
        running: Whether run() is currently executing

    Example:
        sock = open_udp_socket(port=1024)
        receiver = FrameReceiver(sock, FrameAssembler())

        thread = receiver.start_thread()
        ...
        receiver.stop()
        thread.join()
    """

    def __init__(
        self,
        sock: socket.socket,
        assembler: FrameAssembler,
        max_datagram_bytes: int = MAX_DATAGRAM_BYTES,
        log_every_n_drops: int = 100,
    ) -> None:
        """
        Initialize frame receiver.

        Args:
            sock: Bound datagram socket. The receiver takes ownership and
                closes it on stop().
            assembler: Assembler to drive
            max_datagram_bytes: recvfrom buffer size
            log_every_n_drops: Log dropped datagrams at WARNING every N drops
        """
        self.assembler = assembler
        self.max_datagram_bytes = max_datagram_bytes
        self.log_every_n_drops = max(1, log_every_n_drops)
        self.metrics = ReceiverMetrics(assembler.state)

        self._sock = sock
        self._stop_event = threading.Event()
        self._running: bool = False

    @property
    def running(self) -> bool:
        """Whether the receive loop is active."""
        return self._running

    @property
    def address(self) -> tuple:
        """(host, port) the socket is bound to."""
        return self._sock.getsockname()[:2]

    def start_thread(self) -> threading.Thread:
        """Run the receive loop on a daemon thread and return it."""
        thread = threading.Thread(target=self.run, name="frame_receiver", daemon=True)
        thread.start()
        return thread

    def run(self) -> None:
        """
        Receive and process datagrams until stopped.

        Returns when stop() is called or the socket is closed.
        """
        self._running = True
        logger.info("FrameReceiver started")

        try:
            while not self._stop_event.is_set():
                try:
                    datagram, address = self._sock.recvfrom(self.max_datagram_bytes)
                except OSError as e:
                    if not self._stop_event.is_set():
                        logger.warning(f"Transport closed: {e}")
                    break

                if self._stop_event.is_set():
                    break

                # shutdown() wakes recvfrom with an empty read and no peer
                if address is None:
                    logger.info("Socket shut down, leaving receive loop")
                    break

                self.metrics.datagrams_received += 1
                self.metrics.last_sender = f"{address[0]}:{address[1]}"
                self.process_datagram(datagram)
        finally:
            self._running = False
            logger.info("FrameReceiver stopped")

    def stop(self) -> None:
        """
        Stop the receive loop and close the socket.

        Safe to call from any thread, and more than once. The caller
        joins the thread running run() afterwards.
        """
        if self._stop_event.is_set():
            return

        logger.info("FrameReceiver stopping...")
        self._stop_event.set()
        self._wake()

        with contextlib.suppress(OSError):
            self._sock.shutdown(socket.SHUT_RDWR)
        self._sock.close()

    def process_datagram(self, datagram: bytes) -> DatagramOutcome:
        """
        Classify one datagram and apply it to the frame state.

        Args:
            datagram: Raw datagram payload

        Returns:
            What was done with the datagram
        """
        kind = classify(datagram)

        if kind is PacketKind.PIXEL_ROW:
            return self._handle_row(datagram)

        if kind is PacketKind.FRAME_START:
            self.metrics.frame_start_markers += 1
            self.assembler.on_frame_start()
            return DatagramOutcome.FRAME_START

        if kind is PacketKind.FRAME_END:
            self.metrics.frame_end_markers += 1
            self.assembler.on_frame_end()
            return DatagramOutcome.FRAME_END

        self.metrics.unknown_markers += 1
        self._log_drop(f"Discarded datagram with unknown marker ({len(datagram)} bytes)")
        return DatagramOutcome.UNKNOWN_MARKER

    def _handle_row(self, datagram: bytes) -> DatagramOutcome:
        try:
            result = decode_row(datagram, self.assembler.state)
        except MalformedPacket as e:
            self.metrics.malformed_packets += 1
            self._log_drop(f"Discarded malformed datagram: {e}")
            return DatagramOutcome.MALFORMED

        self.metrics.pixels_rejected += result.rejected

        # Every decoded row counts toward completion, even if no pixel landed
        self.assembler.on_row_decoded()

        if result.written == 0:
            self.metrics.rows_rejected += 1
            return DatagramOutcome.ROW_REJECTED

        self.metrics.rows_written += 1
        return DatagramOutcome.ROW_WRITTEN

    def _log_drop(self, message: str) -> None:
        if (self.metrics.dropped - 1) % self.log_every_n_drops == 0:
            logger.warning(f"{message} (total dropped: {self.metrics.dropped})")
        else:
            logger.debug(message)

    def _wake(self) -> None:
        """Unblock a pending recvfrom by sending an empty datagram to ourselves."""
        try:
            host, port = self._sock.getsockname()[:2]
        except OSError:
            return

        if host in ("0.0.0.0", ""):
            host = "127.0.0.1"
        elif host == "::":
            host = "::1"

        with contextlib.suppress(OSError):
            with socket.socket(self._sock.family, socket.SOCK_DGRAM) as waker:
                waker.sendto(b"", (host, port))
