from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple

import numpy as np

from studio_core.buffer import PixelBuffer
from studio_core.chunking import row_bands, run_to_completion
from studio_core.config import EditorConfig
from studio_core.errors import ImageEditError
from studio_core.floodfill import iter_flood_fill
from studio_core.history import HistoryStack
from studio_core.services import ImageEditService, request_edit
from studio_core.tolerance import distance_mask, near_white_mask

logger = logging.getLogger(__name__)

Point = Tuple[float, float]


class Tool(Enum):
    PAN = "pan"
    BRUSH = "brush"
    MAGIC_WAND = "magic_wand"


@dataclass
class ToolState:
    active_tool: Tool = Tool.BRUSH
    brush_diameter: float = 20.0
    tolerance: int = 30
    zoom_scale: float = 1.0
    pan_offset: Tuple[float, float] = (0.0, 0.0)


def _stamp_segment(alpha: np.ndarray, p0: Point, p1: Point, radius: float) -> bool:
    """Zero alpha of pixels whose centre lies within ``radius`` of the segment p0-p1 (round caps).

    Pixel (x, y) covers [x, x+1) x [y, y+1), the same cell the canvas draws and the wand picks.
    Returns True if anything changed.
    """
    h, w = alpha.shape
    x0 = max(0, int(math.floor(min(p0[0], p1[0]) - radius - 0.5)))
    y0 = max(0, int(math.floor(min(p0[1], p1[1]) - radius - 0.5)))
    x1 = min(w - 1, int(math.ceil(max(p0[0], p1[0]) + radius - 0.5)))
    y1 = min(h - 1, int(math.ceil(max(p0[1], p1[1]) + radius - 0.5)))
    if x1 < x0 or y1 < y0:
        return False

    ys, xs = np.mgrid[y0:y1 + 1, x0:x1 + 1].astype(np.float64)
    xs += 0.5
    ys += 0.5
    dx = float(p1[0] - p0[0])
    dy = float(p1[1] - p0[1])
    seg_len2 = dx * dx + dy * dy
    if seg_len2 <= 0.0:
        t = np.zeros_like(xs)
    else:
        t = np.clip(((xs - p0[0]) * dx + (ys - p0[1]) * dy) / seg_len2, 0.0, 1.0)
    px = p0[0] + t * dx
    py = p0[1] + t * dy
    inside = (xs - px) ** 2 + (ys - py) ** 2 <= radius * radius

    region = alpha[y0:y1 + 1, x0:x1 + 1]
    hit = inside & (region > 0)
    if not np.any(hit):
        return False
    region[hit] = 0
    return True


def _min3(alpha: np.ndarray) -> np.ndarray:
    padded = np.pad(alpha, 1, mode="edge")
    h, w = alpha.shape
    out = padded[1:1 + h, 1:1 + w].copy()
    for dy in range(3):
        for dx in range(3):
            np.minimum(out, padded[dy:dy + h, dx:dx + w], out=out)
    return out


def _box3(alpha: np.ndarray) -> np.ndarray:
    padded = np.pad(alpha.astype(np.uint16), 1, mode="edge")
    h, w = alpha.shape
    total = np.zeros((h, w), dtype=np.uint16)
    for dy in range(3):
        for dx in range(3):
            total += padded[dy:dy + h, dx:dx + w]
    return ((total + 4) // 9).astype(np.uint8)


class MaskEditor:
    """
    Interactive alpha-mask editing session over one buffer.

    The session owns its working buffer, tool state and history. UI code calls
    the methods below and redraws from ``buffer``; it never holds pixel state.
    Content edits replace the working buffer with a new one and commit it to
    history. Pan and zoom only change the view transform.
    """

    def __init__(self, source: PixelBuffer, config: Optional[EditorConfig] = None):
        self.config = config or EditorConfig()
        self.tool = ToolState(
            brush_diameter=max(1.0, float(self.config.brush_diameter)),
            tolerance=max(0, min(255, int(self.config.tolerance))),
        )
        self._buffer = source.clone()
        self._history = HistoryStack(self._buffer, limit=self.config.history_limit)
        self._stroke: Optional[PixelBuffer] = None
        self._stroke_last: Optional[Point] = None
        self._stroke_changed = False
        self._stroke_radius = 0.0

    # ---------------------------
    # State
    # ---------------------------
    @property
    def buffer(self) -> PixelBuffer:
        """Current working buffer, including an in-progress stroke. Treat as read-only."""
        if self._stroke is not None:
            return self._stroke
        return self._buffer

    @property
    def history(self) -> HistoryStack:
        return self._history

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    def export_buffer(self) -> PixelBuffer:
        return self._buffer.clone()

    def set_tool(self, tool: Tool) -> None:
        self.tool.active_tool = Tool(tool)

    def set_brush_diameter(self, diameter: float) -> None:
        self.tool.brush_diameter = max(1.0, float(diameter))

    def set_tolerance(self, tolerance: int) -> None:
        self.tool.tolerance = max(0, min(255, int(tolerance)))

    def _commit(self, new_buffer: PixelBuffer, label: str) -> None:
        self._buffer = new_buffer
        self._history.push(new_buffer)
        logger.debug("committed %s (history %d/%d)", label, self._history.cursor + 1, len(self._history))

    # ---------------------------
    # View transform
    # ---------------------------
    def pan(self, dx: float, dy: float) -> None:
        px, py = self.tool.pan_offset
        self.tool.pan_offset = (px + float(dx), py + float(dy))

    def zoom(self, factor: float, anchor: Optional[Point] = None) -> None:
        """Multiply the zoom scale (clamped). With ``anchor`` the screen point under it stays put."""
        if factor <= 0:
            raise ValueError("zoom factor must be > 0")
        old = self.tool.zoom_scale
        new = max(self.config.min_zoom, min(self.config.max_zoom, old * float(factor)))
        if anchor is not None:
            bx, by = self.screen_to_buffer(anchor)
            self.tool.pan_offset = (anchor[0] - bx * new, anchor[1] - by * new)
        self.tool.zoom_scale = new

    def screen_to_buffer(self, point: Point) -> Point:
        z = self.tool.zoom_scale
        px, py = self.tool.pan_offset
        return ((point[0] - px) / z, (point[1] - py) / z)

    def buffer_to_screen(self, point: Point) -> Point:
        z = self.tool.zoom_scale
        px, py = self.tool.pan_offset
        return (point[0] * z + px, point[1] * z + py)

    def _to_buffer(self, point: Point, screen: bool) -> Point:
        if screen:
            return self.screen_to_buffer(point)
        return (float(point[0]), float(point[1]))

    # ---------------------------
    # Brush
    # ---------------------------
    @property
    def stroke_active(self) -> bool:
        return self._stroke is not None

    def begin_stroke(self, point: Point, diameter: Optional[float] = None, screen: bool = False) -> None:
        if self._stroke is not None:
            self.end_stroke()
        d = self.tool.brush_diameter if diameter is None else max(1.0, float(diameter))
        self._stroke = self._buffer.clone()
        self._stroke_radius = d / 2.0
        p = self._to_buffer(point, screen)
        self._stroke_last = p
        self._stroke_changed = _stamp_segment(self._stroke.alpha, p, p, self._stroke_radius)

    def extend_stroke(self, point: Point, screen: bool = False) -> None:
        if self._stroke is None or self._stroke_last is None:
            return
        p = self._to_buffer(point, screen)
        if _stamp_segment(self._stroke.alpha, self._stroke_last, p, self._stroke_radius):
            self._stroke_changed = True
        self._stroke_last = p

    def end_stroke(self) -> bool:
        """Finish the stroke; commits one history entry if any pixel changed."""
        stroke, changed = self._stroke, self._stroke_changed
        self._stroke = None
        self._stroke_last = None
        self._stroke_changed = False
        if stroke is None or not changed:
            return False
        self._commit(stroke, "erase stroke")
        return True

    def cancel_stroke(self) -> None:
        self._stroke = None
        self._stroke_last = None
        self._stroke_changed = False

    def erase_stroke(self, points: Iterable[Point], diameter: Optional[float] = None, screen: bool = False) -> bool:
        pts = list(points)
        if not pts:
            return False
        self.begin_stroke(pts[0], diameter=diameter, screen=screen)
        for p in pts[1:]:
            self.extend_stroke(p, screen=screen)
        return self.end_stroke()

    # ---------------------------
    # Magic wand
    # ---------------------------
    def magic_wand_fill(self, seed: Point, tolerance: Optional[int] = None, screen: bool = False) -> bool:
        bx, by = self._to_buffer(seed, screen)
        x, y = int(math.floor(bx)), int(math.floor(by))
        buf = self._buffer
        if not buf.contains(x, y):
            return False
        if int(buf.alpha[y, x]) == 0:
            logger.debug("magic wand at (%d, %d) hit a transparent pixel; nothing to do", x, y)
            return False

        tol = self.tool.tolerance if tolerance is None else max(0, min(255, int(tolerance)))
        seed_rgb = tuple(int(v) for v in buf.rgb[y, x])
        candidate = distance_mask(buf.rgb, seed_rgb, tol)
        filled = run_to_completion(iter_flood_fill(candidate, [(x, y)], self.config.slice_size))

        alpha = buf.alpha.copy()
        alpha[filled] = 0
        self._commit(buf.with_alpha(alpha), f"magic wand at ({x}, {y}) tol={tol}")
        return True

    # ---------------------------
    # Auto polish
    # ---------------------------
    def auto_polish(self) -> bool:
        """Erase near-white pixels on the alpha edge, then soften the edge with a 3x3 box average."""
        buf = self._buffer
        h, w = buf.height, buf.width
        src_alpha = buf.alpha
        rgb = buf.rgb

        cleaned = np.empty_like(src_alpha)
        for y0, y1 in row_bands(h, w, self.config.slice_size):
            ha, hb = max(0, y0 - 1), min(h, y1 + 1)
            crop = src_alpha[ha:hb]
            edge = (crop > 0) & (_min3(crop) == 0)
            edge = edge[y0 - ha:y1 - ha]
            white = near_white_mask(rgb[y0:y1], self.config.polish_threshold, self.config.polish_gray_spread)
            cleaned[y0:y1] = np.where(edge & white, 0, src_alpha[y0:y1])

        smoothed = np.empty_like(cleaned)
        for y0, y1 in row_bands(h, w, self.config.slice_size):
            ha, hb = max(0, y0 - 1), min(h, y1 + 1)
            crop = cleaned[ha:hb]
            edge = (crop > 0) & (_min3(crop) == 0)
            soft = np.where(edge, np.minimum(crop, _box3(crop)), crop)
            smoothed[y0:y1] = soft[y0 - ha:y1 - ha]

        if np.array_equal(smoothed, src_alpha):
            return False
        self._commit(buf.with_alpha(smoothed), "auto polish")
        return True

    # ---------------------------
    # History
    # ---------------------------
    def undo(self) -> bool:
        self.cancel_stroke()
        snapshot = self._history.undo()
        if snapshot is None:
            return False
        self._buffer = snapshot
        return True

    def redo(self) -> bool:
        self.cancel_stroke()
        snapshot = self._history.redo()
        if snapshot is None:
            return False
        self._buffer = snapshot
        return True

    # ---------------------------
    # External edit
    # ---------------------------
    def apply_external_edit(self, service: ImageEditService, instruction: str) -> bool:
        result = request_edit(service, self._buffer, instruction)
        if result.size != self._buffer.size:
            raise ImageEditError(
                f"edit service returned {result.width}x{result.height}, expected {self._buffer.width}x{self._buffer.height}"
            )
        self._commit(result.clone(), "external edit")
        return True
