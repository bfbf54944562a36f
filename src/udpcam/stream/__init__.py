"""
Stream Module
=============

UDP scanline ingestion and frame assembly components.

This module provides the reconstruction core:
    - rgb565_to_rgb: Packed color conversion
    - classify: Datagram role from its leading marker
    - decode_row: Scanline parsing and buffer writes
    - FrameAssembler: Frame completion and publishing
    - FrameReceiver: Blocking receive loop driving the chain above

Example:
    from udpcam.stream import FrameAssembler, FrameReceiver, open_udp_socket

    assembler = FrameAssembler()
    receiver = FrameReceiver(open_udp_socket(port=1024), assembler)
    thread = receiver.start_thread()

    frame = assembler.slot.wait_for_newer(0, timeout=5.0)

    receiver.stop()
    thread.join()
"""

from udpcam.stream.color import (
    rgb565_to_rgb,
    rgb565_to_rgb_array,
    rgb_to_rgb565,
    rgb_array_to_rgb565,
)
from udpcam.stream.classifier import classify
from udpcam.stream.frame import Frame, FrameTrigger
from udpcam.stream.assembler import (
    AssemblerPhase,
    AssemblyState,
    FrameAssembler,
    FrameSink,
    LatestFrameSlot,
    new_frame_buffer,
)
from udpcam.stream.decoder import (
    MalformedPacket,
    TruncatedPacket,
    decode_row,
    parse_pixel_row,
    write_row,
)
from udpcam.stream.receiver import FrameReceiver, ReceiverMetrics, open_udp_socket


__all__ = [
    "rgb565_to_rgb",
    "rgb565_to_rgb_array",
    "rgb_to_rgb565",
    "rgb_array_to_rgb565",
    "classify",
    "Frame",
    "FrameTrigger",
    "AssemblerPhase",
    "AssemblyState",
    "FrameAssembler",
    "FrameSink",
    "LatestFrameSlot",
    "new_frame_buffer",
    "MalformedPacket",
    "TruncatedPacket",
    "decode_row",
    "parse_pixel_row",
    "write_row",
    "FrameReceiver",
    "ReceiverMetrics",
    "open_udp_socket",
]
