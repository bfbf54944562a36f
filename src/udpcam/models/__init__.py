"""
Data Models
===========

Typed models for the scanline receiver.

Models:
    Packets:
        - PacketKind: Datagram role from its marker
        - PixelRowPacket: Parsed scanline datagram
        - RowWriteResult: Pixels written/rejected for one scanline
        - DatagramOutcome: Per-datagram result of the receive loop

    Output:
        - FrameInfo: Published frame description
        - StreamMetrics, AssemblerMetrics, ServiceMetrics: /metrics payload
"""

from udpcam.models.packet import (
    DatagramOutcome,
    PacketKind,
    PixelRowPacket,
    RowWriteResult,
)
from udpcam.models.output import (
    AssemblerMetrics,
    FrameInfo,
    ServiceMetrics,
    StreamMetrics,
)

__all__ = [
    # Packets
    "PacketKind",
    "PixelRowPacket",
    "RowWriteResult",
    "DatagramOutcome",
    # Output
    "FrameInfo",
    "StreamMetrics",
    "AssemblerMetrics",
    "ServiceMetrics",
]
