"""
Color Conversion
================

RGB565 <-> 8-bit RGB conversion.

Bit layout of a packed sample:
    bits 11-15: red   (5 bits)
    bits 5-10:  green (6 bits)
    bits 0-4:   blue  (5 bits)

Each channel is rescaled linearly with integer truncation:
    r8 = r5 * 255 // 31
    g8 = g6 * 255 // 63
    b8 = b5 * 255 // 31

The scalar and array functions produce identical results.
"""

from typing import Tuple

import numpy as np


def rgb565_to_rgb(sample: int) -> Tuple[int, int, int]:
    """
    Convert one packed sample to an (r, g, b) triple.

    Args:
        sample: 16-bit packed color. Higher bits are ignored.

    Returns:
        (r, g, b), each in [0, 255]
    """
    r = (sample >> 11) & 0x1F
    g = (sample >> 5) & 0x3F
    b = sample & 0x1F
    return (r * 255 // 31, g * 255 // 63, b * 255 // 31)


def rgb565_to_rgb_array(samples: np.ndarray) -> np.ndarray:
    """
    Convert an array of packed samples to RGB.

    Args:
        samples: Array of 16-bit packed colors, any byte order

    Returns:
        np.ndarray (N, 3), dtype=uint8
    """
    arr = np.asarray(samples).astype(np.uint32, copy=False)
    r = (arr >> 11) & 0x1F
    g = (arr >> 5) & 0x3F
    b = arr & 0x1F
    rgb = np.stack([r * 255 // 31, g * 255 // 63, b * 255 // 31], axis=-1)
    return rgb.astype(np.uint8)


def rgb_to_rgb565(r: int, g: int, b: int) -> int:
    """Pack an 8-bit RGB triple by dropping the low bits of each channel."""
    return ((r >> 3) << 11) | ((g >> 2) << 5) | (b >> 3)


def rgb_array_to_rgb565(rgb: np.ndarray) -> np.ndarray:
    """
    Pack an (..., 3) uint8 RGB array.

    Returns:
        np.ndarray (...), dtype=uint16
    """
    arr = np.asarray(rgb, dtype=np.uint8)
    if arr.shape[-1] != 3:
        raise ValueError(f"expected trailing dimension of 3, got {arr.shape}")
    r = arr[..., 0].astype(np.uint16)
    g = arr[..., 1].astype(np.uint16)
    b = arr[..., 2].astype(np.uint16)
    return ((r >> 3) << 11) | ((g >> 2) << 5) | (b >> 3)
