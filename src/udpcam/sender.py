"""
Test-Pattern Sender
===================

Emits the scanline camera protocol from synthetic frames.

Each frame goes out as a frame-start marker followed by one pixel-row
datagram per scanline. Loss, duplication and reordering can be injected
to exercise the receiver against an unreliable transport.

Usage:
    udpcam-send --host 127.0.0.1 --port 1024 --pattern bars --fps 10
    udpcam-send --pattern gradient --drop-rate 0.05 --shuffle --frames 100
"""

import argparse
import logging
import random
import socket
import time
from typing import List, Optional, Sequence

import numpy as np

from udpcam.protocol import (
    DEFAULT_PORT,
    FRAME_HEIGHT,
    FRAME_WIDTH,
    MARKER_FRAME_END,
    MARKER_FRAME_START,
    MARKER_SIZE,
    build_marker,
    build_pixel_row,
)
from udpcam.stream.color import rgb_array_to_rgb565


logger = logging.getLogger(__name__)


SOLID_COLORS = {
    "black": (0, 0, 0),
    "white": (255, 255, 255),
    "red": (255, 0, 0),
    "green": (0, 255, 0),
    "blue": (0, 0, 255),
}

BAR_COLORS = [
    (255, 255, 255),
    (255, 255, 0),
    (0, 255, 255),
    (0, 255, 0),
    (255, 0, 255),
    (255, 0, 0),
    (0, 0, 255),
    (0, 0, 0),
]

PATTERNS = ("bars", "rows", "gradient", "checkerboard", *SOLID_COLORS)


def build_pattern(name: str, frame_index: int = 0) -> np.ndarray:
    """
    Render a 640x480 RGB test frame.

    Args:
        name: One of PATTERNS
        frame_index: Animates "gradient" and "checkerboard" between frames

    Returns:
        np.ndarray (480, 640, 3), dtype=uint8
    """
    img = np.zeros((FRAME_HEIGHT, FRAME_WIDTH, 3), dtype=np.uint8)

    if name in SOLID_COLORS:
        img[:, :] = SOLID_COLORS[name]
    elif name == "bars":
        bar_width = FRAME_WIDTH // len(BAR_COLORS)
        for i, color in enumerate(BAR_COLORS):
            img[:, i * bar_width:(i + 1) * bar_width] = color
    elif name == "rows":
        img[0::2] = SOLID_COLORS["red"]
        img[1::2] = SOLID_COLORS["blue"]
    elif name == "gradient":
        x = (np.arange(FRAME_WIDTH) + frame_index * 8) % FRAME_WIDTH
        ramp = (x * 255 // (FRAME_WIDTH - 1)).astype(np.uint8)
        img[:, :, 0] = ramp
        img[:, :, 1] = ramp[::-1]
        img[:, :, 2] = (np.arange(FRAME_HEIGHT) * 255 // (FRAME_HEIGHT - 1))[:, None]
    elif name == "checkerboard":
        ys, xs = np.indices((FRAME_HEIGHT, FRAME_WIDTH))
        on = ((xs + frame_index * 4) // 32 + ys // 32) % 2 == 0
        img[on] = SOLID_COLORS["white"]
    else:
        raise ValueError(f"Unknown pattern: {name}")

    return img


def frame_datagrams(image: np.ndarray, send_frame_end: bool = False) -> List[bytes]:
    """
    Encode a frame as protocol datagrams.

    Args:
        image: np.ndarray (480, 640, 3), dtype=uint8, RGB
        send_frame_end: Append a frame-end marker

    Returns:
        Frame-start marker, one datagram per row, optional frame-end marker
    """
    if image.shape != (FRAME_HEIGHT, FRAME_WIDTH, 3):
        raise ValueError(f"Expected a {FRAME_WIDTH}x{FRAME_HEIGHT} RGB frame, got {image.shape}")

    packed = rgb_array_to_rgb565(image)
    datagrams = [build_marker(MARKER_FRAME_START)]
    datagrams.extend(build_pixel_row(y, packed[y]) for y in range(FRAME_HEIGHT))
    if send_frame_end:
        datagrams.append(build_marker(MARKER_FRAME_END))
    return datagrams


def degrade(
    datagrams: Sequence[bytes],
    rng: random.Random,
    drop_rate: float = 0.0,
    duplicate_rate: float = 0.0,
    shuffle: bool = False,
) -> List[bytes]:
    """
    Simulate an unreliable transport.

    Args:
        datagrams: Datagrams in send order
        rng: Random source
        drop_rate: Probability each datagram is lost
        duplicate_rate: Probability each surviving datagram is sent twice
        shuffle: Randomize the order of the pixel rows

    Returns:
        Datagrams as they would arrive
    """
    out: List[bytes] = []
    for datagram in datagrams:
        if rng.random() < drop_rate:
            continue
        out.append(datagram)
        if rng.random() < duplicate_rate:
            out.append(datagram)

    if shuffle:
        # Markers keep their positions, only pixel rows trade places
        row_slots = [i for i, d in enumerate(out) if len(d) > MARKER_SIZE]
        rows = [out[i] for i in row_slots]
        rng.shuffle(rows)
        for i, row in zip(row_slots, rows):
            out[i] = row

    return out


class PatternSender:
    """
    Streams test-pattern frames to a receiver.

    Example:
        sender = PatternSender("127.0.0.1", 1024, pattern="bars", fps=10)
        sender.run(frames=50)
        sender.close()
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = DEFAULT_PORT,
        pattern: str = "bars",
        fps: float = 10.0,
        drop_rate: float = 0.0,
        duplicate_rate: float = 0.0,
        shuffle: bool = False,
        send_frame_end: bool = False,
        seed: Optional[int] = None,
    ) -> None:
        if pattern not in PATTERNS:
            raise ValueError(f"Unknown pattern: {pattern}")
        if fps <= 0:
            raise ValueError("fps must be positive")
        if not 0 <= drop_rate < 1:
            raise ValueError("drop_rate must be in [0, 1)")
        if not 0 <= duplicate_rate < 1:
            raise ValueError("duplicate_rate must be in [0, 1)")

        self.target = (host, port)
        self.pattern = pattern
        self.fps = fps
        self.drop_rate = drop_rate
        self.duplicate_rate = duplicate_rate
        self.shuffle = shuffle
        self.send_frame_end = send_frame_end

        self._rng = random.Random(seed)
        self._sock = socket.socket(socket.AF_INET6 if ":" in host else socket.AF_INET, socket.SOCK_DGRAM)
        self.datagrams_sent: int = 0
        self.frames_sent: int = 0

    def send_frame(self, frame_index: int) -> int:
        """Send one frame and return the number of datagrams sent."""
        image = build_pattern(self.pattern, frame_index)
        datagrams = degrade(
            frame_datagrams(image, send_frame_end=self.send_frame_end),
            self._rng,
            drop_rate=self.drop_rate,
            duplicate_rate=self.duplicate_rate,
            shuffle=self.shuffle,
        )
        for datagram in datagrams:
            self._sock.sendto(datagram, self.target)

        self.datagrams_sent += len(datagrams)
        self.frames_sent += 1
        return len(datagrams)

    def run(self, frames: int = 0) -> None:
        """
        Send frames at the configured rate.

        Args:
            frames: Number of frames to send (0 = until interrupted)
        """
        interval = 1.0 / self.fps
        logger.info(
            f"Sending '{self.pattern}' to {self.target[0]}:{self.target[1]} "
            f"at {self.fps:.1f} fps"
        )

        frame_index = 0
        next_deadline = time.monotonic()
        while frames <= 0 or frame_index < frames:
            self.send_frame(frame_index)
            frame_index += 1

            if frame_index % 100 == 0:
                logger.info(f"Sent {frame_index} frames ({self.datagrams_sent} datagrams)")

            next_deadline += interval
            delay = next_deadline - time.monotonic()
            if delay > 0:
                time.sleep(delay)
            else:
                next_deadline = time.monotonic()

    def close(self) -> None:
        self._sock.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Send scanline test-pattern frames over UDP")
    parser.add_argument("--host", default="127.0.0.1", help="Receiver address")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Receiver UDP port")
    parser.add_argument("--pattern", choices=PATTERNS, default="bars")
    parser.add_argument("--fps", type=float, default=10.0)
    parser.add_argument("--frames", type=int, default=0, help="Frames to send (0 = forever)")
    parser.add_argument("--drop-rate", type=float, default=0.0, help="Fraction of datagrams to drop")
    parser.add_argument("--duplicate-rate", type=float, default=0.0, help="Fraction of datagrams to send twice")
    parser.add_argument("--shuffle", action="store_true", help="Reorder rows within each frame")
    parser.add_argument("--frame-end", action="store_true", help="Append a frame-end marker to each frame")
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    try:
        sender = PatternSender(
            host=args.host,
            port=args.port,
            pattern=args.pattern,
            fps=args.fps,
            drop_rate=args.drop_rate,
            duplicate_rate=args.duplicate_rate,
            shuffle=args.shuffle,
            send_frame_end=args.frame_end,
            seed=args.seed,
        )
    except ValueError as e:
        parser.error(str(e))

    try:
        sender.run(frames=args.frames)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        sender.close()
        logger.info(f"Sent {sender.frames_sent} frames, {sender.datagrams_sent} datagrams")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
