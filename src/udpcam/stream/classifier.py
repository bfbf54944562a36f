"""Datagram classification by leading marker."""

import struct

from udpcam.models.packet import PacketKind
from udpcam.protocol import (
    MARKER_FORMAT,
    MARKER_SIZE,
    MARKER_FRAME_START,
    MARKER_PIXEL_ROW,
    MARKER_FRAME_END,
)


_KINDS = {
    MARKER_FRAME_START: PacketKind.FRAME_START,
    MARKER_PIXEL_ROW: PacketKind.PIXEL_ROW,
    MARKER_FRAME_END: PacketKind.FRAME_END,
}


def read_marker(datagram: bytes) -> int:
    """Leading marker as an unsigned int. Caller checks the length."""
    (marker,) = struct.unpack_from(MARKER_FORMAT, datagram, 0)
    return marker


def classify(datagram: bytes) -> PacketKind:
    """
    Determine the role of a datagram from its first 4 bytes.

    Datagrams shorter than a marker are UNKNOWN rather than an error.
    """
    if len(datagram) < MARKER_SIZE:
        return PacketKind.UNKNOWN
    return _KINDS.get(read_marker(datagram), PacketKind.UNKNOWN)
