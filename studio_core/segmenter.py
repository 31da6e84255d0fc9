"""
Automatic background removal.

``segment`` combines two passes. A flat pass erases bright near-gray pixels
anywhere in the image, then a flood fill seeded at the four corners erases
everything light (or already transparent) that is reachable from the outside.
Light regions fully enclosed by artwork are never reached by the fill.
"""
from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from studio_core.buffer import PixelBuffer
from studio_core.chunking import DEFAULT_SLICE_SIZE, Steps, row_bands, run_to_completion
from studio_core.config import SegmenterConfig
from studio_core.floodfill import iter_flood_fill
from studio_core.tolerance import brightness, channel_match_mask, near_white_mask

logger = logging.getLogger(__name__)


def _corners(width: int, height: int) -> list[tuple[int, int]]:
    return [(0, 0), (width - 1, 0), (0, height - 1), (width - 1, height - 1)]


def iter_segment(source: PixelBuffer, config: Optional[SegmenterConfig] = None) -> Steps[PixelBuffer]:
    cfg = config or SegmenterConfig()
    data = source.data.copy()
    h, w = data.shape[:2]

    # Flat classification
    for y0, y1 in row_bands(h, w, cfg.slice_size):
        band = data[y0:y1]
        flat = near_white_mask(band[..., :3], cfg.flat_threshold, cfg.gray_spread)
        band[..., 3][flat] = 0
        yield y1 * w

    candidate = np.empty((h, w), dtype=bool)
    for y0, y1 in row_bands(h, w, cfg.slice_size):
        band = data[y0:y1]
        candidate[y0:y1] = (band[..., 3] == 0) | (brightness(band[..., :3]) > float(cfg.loose_threshold))
        yield y1 * w

    filled = yield from iter_flood_fill(candidate, _corners(w, h), cfg.slice_size)
    data[..., 3][filled] = 0

    logger.debug(
        "segmented %dx%d buffer: %d of %d pixels transparent",
        w, h, int(np.count_nonzero(data[..., 3] == 0)), w * h,
    )
    return PixelBuffer(data)


def segment(source: PixelBuffer, config: Optional[SegmenterConfig] = None) -> PixelBuffer:
    return run_to_completion(iter_segment(source, config))


def iter_segment_by_corner_color(
    source: PixelBuffer,
    tolerance: int = 10,
    slice_size: int = DEFAULT_SLICE_SIZE,
) -> Steps[PixelBuffer]:
    """
    Corner-seeded fill against the top-left pixel's colour.

    A pixel matches when every channel is strictly within ``tolerance`` of the
    reference. Transparent pixels are walked through but not counted as matches.
    """
    data = source.data.copy()
    h, w = data.shape[:2]
    ref = tuple(int(v) for v in data[0, 0, :3])

    candidate = np.empty((h, w), dtype=bool)
    for y0, y1 in row_bands(h, w, slice_size):
        band = data[y0:y1]
        candidate[y0:y1] = (band[..., 3] == 0) | channel_match_mask(band[..., :3], ref, tolerance)
        yield y1 * w

    filled = yield from iter_flood_fill(candidate, _corners(w, h), slice_size)
    data[..., 3][filled] = 0
    logger.debug("corner-colour fill against %s removed %d pixels", ref, int(np.count_nonzero(filled)))
    return PixelBuffer(data)


def segment_by_corner_color(
    source: PixelBuffer,
    tolerance: int = 10,
    slice_size: int = DEFAULT_SLICE_SIZE,
) -> PixelBuffer:
    return run_to_completion(iter_segment_by_corner_color(source, tolerance, slice_size))


def iter_remove_light_pixels(
    source: PixelBuffer,
    threshold: int = 220,
    slice_size: int = DEFAULT_SLICE_SIZE,
) -> Steps[PixelBuffer]:
    data = source.data.copy()
    h, w = data.shape[:2]
    t = int(threshold)
    for y0, y1 in row_bands(h, w, slice_size):
        rgb = data[y0:y1, :, :3]
        light = (rgb[..., 0] > t) & (rgb[..., 1] > t) & (rgb[..., 2] > t)
        data[y0:y1, :, 3][light] = 0
        yield y1 * w
    return PixelBuffer(data)


def remove_light_pixels(
    source: PixelBuffer,
    threshold: int = 220,
    slice_size: int = DEFAULT_SLICE_SIZE,
) -> PixelBuffer:
    """Make every pixel with all channels above ``threshold`` transparent, connected or not."""
    return run_to_completion(iter_remove_light_pixels(source, threshold, slice_size))
