"""
Scanline Decoder
================

Parses pixel-row datagrams and writes them into the working frame buffer.

Design Rules:
    - This is the ONLY place that writes pixels into the working buffer
    - Validates datagram length before touching any state
    - Samples are placed from column 0; the column field is not an offset
    - Out-of-range pixels are rejected individually, never wrapped or clipped
      into neighbouring rows
"""

import logging
import struct

import numpy as np

from udpcam.models.packet import PixelRowPacket, RowWriteResult
from udpcam.protocol import (
    MARKER_PIXEL_ROW,
    ROW_HEADER_FORMAT,
    ROW_HEADER_SIZE,
    SAMPLE_DTYPE,
    SAMPLE_SIZE,
)
from udpcam.stream.assembler import AssemblyState
from udpcam.stream.color import rgb565_to_rgb_array


logger = logging.getLogger(__name__)


class MalformedPacket(Exception):
    """Raised when a datagram is too short to contain a field it claims."""
    pass


class TruncatedPacket(MalformedPacket):
    """Raised when the sample payload is shorter than the declared count."""
    pass


def parse_pixel_row(datagram: bytes) -> PixelRowPacket:
    """
    Parse a pixel-row datagram.

    Args:
        datagram: Raw datagram classified as PIXEL_ROW

    Returns:
        PixelRowPacket with samples as a native uint16 array

    Raises:
        MalformedPacket: If the 16-byte header is incomplete or the
            marker is not a pixel-row marker
        TruncatedPacket: If fewer bytes follow the header than the
            size field declares
    """
    if len(datagram) < ROW_HEADER_SIZE:
        raise MalformedPacket(
            f"Pixel row header needs {ROW_HEADER_SIZE} bytes, got {len(datagram)}"
        )

    marker, raw_row, raw_columns, raw_size = struct.unpack_from(
        ROW_HEADER_FORMAT, datagram, 0
    )
    if marker != MARKER_PIXEL_ROW:
        raise MalformedPacket(f"Not a pixel row marker: {marker:#010x}")

    sample_count = raw_size * 2
    expected_size = ROW_HEADER_SIZE + sample_count * SAMPLE_SIZE
    if len(datagram) < expected_size:
        raise TruncatedPacket(
            f"Row {raw_row - 1} declares {sample_count} samples "
            f"({expected_size} bytes), datagram has {len(datagram)}"
        )

    samples = np.frombuffer(
        datagram, dtype=SAMPLE_DTYPE, count=sample_count, offset=ROW_HEADER_SIZE
    ).astype(np.uint16)

    return PixelRowPacket(
        row_index=raw_row - 1,
        column_count=raw_columns - 1,
        sample_count=sample_count,
        samples=samples,
    )


def write_row(buffer: np.ndarray, packet: PixelRowPacket) -> RowWriteResult:
    """
    Convert and write a parsed row into a raster.

    Pixel col of the packet lands at buffer[row_index, col]. Pixels whose
    row or column fall outside the raster are counted as rejected.

    Args:
        buffer: np.ndarray (H, W, 3), dtype=uint8, modified in place
        packet: Parsed scanline

    Returns:
        RowWriteResult with written and rejected pixel counts
    """
    height, width = buffer.shape[:2]
    row = packet.row_index

    if not 0 <= row < height:
        return RowWriteResult(row_index=row, written=0, rejected=packet.sample_count)

    in_range = min(packet.sample_count, width)
    if in_range > 0:
        buffer[row, :in_range] = rgb565_to_rgb_array(packet.samples[:in_range])

    return RowWriteResult(
        row_index=row,
        written=in_range,
        rejected=packet.sample_count - in_range,
    )


def decode_row(datagram: bytes, state: AssemblyState) -> RowWriteResult:
    """
    Parse a pixel-row datagram and write it into the working buffer.

    State is left untouched when parsing fails.

    Raises:
        MalformedPacket: See parse_pixel_row
    """
    packet = parse_pixel_row(datagram)
    result = write_row(state.working_buffer, packet)

    if result.rejected:
        logger.debug(
            f"Rejected {result.rejected} out-of-range pixels "
            f"in row {packet.row_index}"
        )

    return result
