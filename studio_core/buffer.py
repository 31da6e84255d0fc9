from __future__ import annotations

from typing import Tuple

import numpy as np
from PIL import Image

RGBA = Tuple[int, int, int, int]


def pil_to_np_rgba(img: Image.Image) -> np.ndarray:
    arr = np.array(img.convert("RGBA"), dtype=np.uint8)
    if arr.ndim != 3 or arr.shape[2] != 4:
        raise ValueError("Expected RGBA image")
    return arr


def np_rgba_to_pil(arr: np.ndarray) -> Image.Image:
    return Image.fromarray(arr, mode="RGBA")


class PixelBuffer:
    """
    Width x height RGBA pixels, one uint8 per channel.

    The backing array is HxWx4 (row-major, like PIL/numpy). Dimensions are
    fixed at construction; ``clone()`` returns an independent copy.
    """

    __slots__ = ("_data",)

    def __init__(self, data: np.ndarray):
        if not isinstance(data, np.ndarray) or data.dtype != np.uint8 or data.ndim != 3 or data.shape[2] != 4:
            raise ValueError("rgba must be HxWx4 uint8")
        if data.shape[0] <= 0 or data.shape[1] <= 0:
            raise ValueError("buffer dimensions must be positive")
        self._data = data

    @classmethod
    def blank(cls, width: int, height: int, color: RGBA = (0, 0, 0, 0)) -> "PixelBuffer":
        if width <= 0 or height <= 0:
            raise ValueError("buffer dimensions must be positive")
        arr = np.empty((int(height), int(width), 4), dtype=np.uint8)
        arr[...] = np.array(color, dtype=np.uint8)
        return cls(arr)

    @classmethod
    def from_pil(cls, img: Image.Image) -> "PixelBuffer":
        return cls(pil_to_np_rgba(img))

    def to_pil(self) -> Image.Image:
        return np_rgba_to_pil(self._data)

    @property
    def data(self) -> np.ndarray:
        return self._data

    @property
    def width(self) -> int:
        return int(self._data.shape[1])

    @property
    def height(self) -> int:
        return int(self._data.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @property
    def rgb(self) -> np.ndarray:
        return self._data[..., :3]

    @property
    def alpha(self) -> np.ndarray:
        return self._data[..., 3]

    def contains(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def get_pixel(self, x: int, y: int) -> RGBA:
        if not self.contains(x, y):
            raise IndexError(f"pixel ({x}, {y}) outside {self.width}x{self.height} buffer")
        r, g, b, a = (int(v) for v in self._data[y, x])
        return (r, g, b, a)

    def set_pixel(self, x: int, y: int, rgba: RGBA) -> None:
        if not self.contains(x, y):
            raise IndexError(f"pixel ({x}, {y}) outside {self.width}x{self.height} buffer")
        self._data[y, x] = np.array(rgba, dtype=np.uint8)

    def clone(self) -> "PixelBuffer":
        return PixelBuffer(self._data.copy())

    def with_alpha(self, alpha: np.ndarray) -> "PixelBuffer":
        """New buffer with the same RGB and the given alpha plane."""
        if alpha.shape != self._data.shape[:2]:
            raise ValueError("alpha must match buffer shape")
        out = self._data.copy()
        out[..., 3] = alpha
        return PixelBuffer(out)

    def same_pixels(self, other: "PixelBuffer") -> bool:
        return self._data.shape == other._data.shape and bool(np.array_equal(self._data, other._data))

    def __repr__(self) -> str:
        return f"PixelBuffer({self.width}x{self.height})"
