from __future__ import annotations

from typing import Sequence

import numpy as np


def color_distance(a: Sequence[int], b: Sequence[int]) -> int:
    """Sum of absolute per-channel RGB differences (alpha ignored)."""
    return abs(int(a[0]) - int(b[0])) + abs(int(a[1]) - int(b[1])) + abs(int(a[2]) - int(b[2]))


def is_background(pixel: Sequence[int], reference: Sequence[int], tolerance: int) -> bool:
    return color_distance(pixel, reference) <= int(tolerance)


def brightness(rgb: np.ndarray) -> np.ndarray:
    arr = rgb.astype(np.int32)
    return (arr[..., 0] + arr[..., 1] + arr[..., 2]) / 3.0


def gray_spread(rgb: np.ndarray) -> np.ndarray:
    arr = rgb.astype(np.int32)
    r = arr[..., 0]
    g = arr[..., 1]
    b = arr[..., 2]
    return np.maximum(np.maximum(np.abs(r - g), np.abs(g - b)), np.abs(r - b))


def near_white_mask(rgb: np.ndarray, threshold: float, spread: int) -> np.ndarray:
    """Bright, nearly colourless pixels: brightness > threshold and gray spread < spread."""
    return (brightness(rgb) > float(threshold)) & (gray_spread(rgb) < int(spread))


def distance_mask(rgb: np.ndarray, reference: Sequence[int], tolerance: int) -> np.ndarray:
    r, g, b = int(reference[0]), int(reference[1]), int(reference[2])
    arr = rgb.astype(np.int32)
    d = np.abs(arr[..., 0] - r) + np.abs(arr[..., 1] - g) + np.abs(arr[..., 2] - b)
    return d <= int(tolerance)


def channel_match_mask(rgb: np.ndarray, reference: Sequence[int], tolerance: int) -> np.ndarray:
    """Every channel strictly within ``tolerance`` of the reference."""
    arr = rgb.astype(np.int32)
    tol = int(tolerance)
    out = np.ones(arr.shape[:2], dtype=bool)
    for c in range(3):
        out &= np.abs(arr[..., c] - int(reference[c])) < tol
    return out
