from __future__ import annotations

import numpy as np

from studio_core.buffer import PixelBuffer


def solid(width: int, height: int, rgba=(255, 255, 255, 255)) -> PixelBuffer:
    return PixelBuffer.blank(width, height, rgba)


def paint(buf: PixelBuffer, x0: int, y0: int, x1: int, y1: int, rgba) -> PixelBuffer:
    """Fill the inclusive rectangle (x0, y0)-(x1, y1) in place and return the buffer."""
    buf.data[y0:y1 + 1, x0:x1 + 1] = np.array(rgba, dtype=np.uint8)
    return buf


def transparent(buf: PixelBuffer) -> np.ndarray:
    return buf.alpha == 0
