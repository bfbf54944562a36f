"""
UdpCam Receiver
===============

Reassembles a live RGB565 scanline stream sent over UDP into 640x480 frames.

Each datagram carries either a control marker or one scanline of pixel
data. The receiver classifies datagrams, writes scanlines into a working
frame buffer, and publishes an immutable copy whenever a frame completes.
The transport is lossy: missing rows keep their previous contents and
malformed datagrams are skipped.

Components:
    - stream: Color conversion, classification, decoding, assembly, receive loop
    - models: Packet and service output models
    - observability: Frame rate tracking and snapshot encoding
    - sender: Test-pattern generator speaking the same protocol

Example:
    from udpcam.stream import FrameAssembler, FrameReceiver, open_udp_socket

    assembler = FrameAssembler()
    receiver = FrameReceiver(open_udp_socket(port=1024), assembler)
    thread = receiver.start_thread()

    frame = assembler.slot.wait_for_newer(0, timeout=5.0)
    if frame is not None:
        print(frame.image.shape)  # (480, 640, 3)
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
