from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

import numpy as np
from PIL import Image

from studio_core.buffer import PixelBuffer, pil_to_np_rgba
from studio_core.config import CompositorConfig
from studio_core.errors import (
    AssetMismatchError,
    CannotRemoveLastLayer,
    EmptyCompositionError,
    LayerNotFound,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Layer:
    id: int
    # Anchor (centre) in background-buffer coordinates
    x: float
    y: float
    scale: float

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class Placement:
    layer_id: int
    center: Tuple[float, float]
    scale: float
    # Paste box in target pixels: left, top, width, height
    box: Tuple[int, int, int, int]


def _resample(high_quality: bool) -> Image.Resampling:
    return Image.Resampling.LANCZOS if high_quality else Image.Resampling.BILINEAR


def _blend_normal(base: np.ndarray, top: np.ndarray) -> np.ndarray:
    base_rgb = base[..., :3].astype(np.float32) / 255.0
    top_rgb = top[..., :3].astype(np.float32) / 255.0
    base_a = base[..., 3:4].astype(np.float32) / 255.0
    top_a = top[..., 3:4].astype(np.float32) / 255.0

    out_a = top_a + base_a * (1.0 - top_a)
    out_premul = top_rgb * top_a + base_rgb * base_a * (1.0 - top_a)
    out_rgb = np.where(out_a > 0, out_premul / np.maximum(out_a, 1e-6), 0.0)

    out = np.empty_like(base)
    out[..., :3] = np.clip(np.round(out_rgb * 255.0), 0, 255).astype(np.uint8)
    out[..., 3] = np.clip(np.round(out_a[..., 0] * 255.0), 0, 255).astype(np.uint8)
    return out


def _paste_over(base: np.ndarray, arr: np.ndarray, x: int, y: int) -> None:
    out_h, out_w = base.shape[:2]
    x0 = max(0, x)
    y0 = max(0, y)
    x1 = min(out_w, x + arr.shape[1])
    y1 = min(out_h, y + arr.shape[0])
    if x1 <= x0 or y1 <= y0:
        return
    sx0 = x0 - x
    sy0 = y0 - y
    sx1 = sx0 + (x1 - x0)
    sy1 = sy0 + (y1 - y0)
    base[y0:y1, x0:x1] = _blend_normal(base[y0:y1, x0:x1], arr[sy0:sy1, sx0:sx1])


class LayerCompositor:
    """
    Places instances of one shared asset onto a background.

    Layer positions and scales live in background (working) coordinates. A
    render at any target size rescales every transform by the target/working
    ratio, so the preview and the export agree. The asset buffer is shared by
    all layers and never written to.
    """

    def __init__(
        self,
        background: PixelBuffer,
        asset: PixelBuffer,
        config: Optional[CompositorConfig] = None,
    ):
        self.config = config or CompositorConfig()
        self._background = background
        self._asset = asset
        self._layers: List[Layer] = []
        self._ids = itertools.count(1)

    @property
    def background(self) -> PixelBuffer:
        return self._background

    @property
    def asset(self) -> PixelBuffer:
        return self._asset

    @property
    def working_size(self) -> Tuple[int, int]:
        return self._background.size

    @property
    def layers(self) -> Tuple[Layer, ...]:
        return tuple(self._layers)

    def replace_asset(self, asset: PixelBuffer) -> None:
        if asset.size != self._asset.size:
            raise AssetMismatchError(
                f"asset is {asset.width}x{asset.height}, compositor expects {self._asset.width}x{self._asset.height}"
            )
        self._asset = asset

    def _index_of(self, layer_id: int) -> int:
        for i, layer in enumerate(self._layers):
            if layer.id == layer_id:
                return i
        raise LayerNotFound(layer_id)

    def get_layer(self, layer_id: int) -> Layer:
        return self._layers[self._index_of(layer_id)]

    def default_scale(self) -> float:
        bw, bh = self.working_size
        aw, ah = self._asset.size
        if aw >= ah:
            return self.config.default_coverage * bw / aw
        return self.config.default_coverage * bh / ah

    def add_layer(
        self,
        position: Optional[Tuple[float, float]] = None,
        scale: Optional[float] = None,
    ) -> int:
        if position is None:
            bw, bh = self.working_size
            position = (bw / 2.0, bh / 2.0)
        s = self.default_scale() if scale is None else float(scale)
        if s <= 0:
            raise ValueError("scale must be > 0")
        layer = Layer(id=next(self._ids), x=float(position[0]), y=float(position[1]), scale=s)
        self._layers.append(layer)
        logger.debug("added layer %d at (%.1f, %.1f) scale %.3f", layer.id, layer.x, layer.y, layer.scale)
        return layer.id

    def hit_test(self, point: Tuple[float, float]) -> Optional[int]:
        aw, ah = self._asset.size
        px, py = point
        for layer in reversed(self._layers):
            half_w = aw * layer.scale / 2.0
            half_h = ah * layer.scale / 2.0
            if layer.x - half_w <= px <= layer.x + half_w and layer.y - half_h <= py <= layer.y + half_h:
                return layer.id
        return None

    def move_layer(self, layer_id: int, position: Tuple[float, float]) -> None:
        i = self._index_of(layer_id)
        self._layers[i] = replace(self._layers[i], x=float(position[0]), y=float(position[1]))

    def scale_layer(self, layer_id: int, scale: float) -> None:
        i = self._index_of(layer_id)
        if scale <= 0:
            raise ValueError("scale must be > 0")
        self._layers[i] = replace(self._layers[i], scale=float(scale))

    def duplicate_layer(self, layer_id: int) -> int:
        src = self._layers[self._index_of(layer_id)]
        dx, dy = self.config.duplicate_offset
        dup = Layer(id=next(self._ids), x=src.x + dx, y=src.y + dy, scale=src.scale)
        self._layers.append(dup)
        logger.debug("duplicated layer %d as %d", src.id, dup.id)
        return dup.id

    def remove_layer(self, layer_id: int) -> None:
        i = self._index_of(layer_id)
        if len(self._layers) <= 1:
            raise CannotRemoveLastLayer("a composition needs at least one layer")
        del self._layers[i]
        logger.debug("removed layer %d", layer_id)

    def _target(self, target_size: Optional[Tuple[int, int]]) -> Tuple[int, int]:
        if target_size is None:
            return (self.config.target_width, self.config.target_height)
        tw, th = int(target_size[0]), int(target_size[1])
        if tw <= 0 or th <= 0:
            raise ValueError("target size must be positive")
        return (tw, th)

    def placements(self, target_size: Optional[Tuple[int, int]] = None) -> List[Placement]:
        tw, th = self._target(target_size)
        ww, wh = self.working_size
        ratio_x = tw / float(ww)
        ratio_y = th / float(wh)
        aw, ah = self._asset.size

        out: List[Placement] = []
        for layer in self._layers:
            eff = layer.scale * ratio_x
            new_w = max(1, int(round(aw * eff)))
            new_h = max(1, int(round(ah * eff)))
            cx = layer.x * ratio_x
            cy = layer.y * ratio_y
            left = int(round(cx - new_w * 0.5))
            top = int(round(cy - new_h * 0.5))
            out.append(Placement(layer_id=layer.id, center=(cx, cy), scale=eff, box=(left, top, new_w, new_h)))
        return out

    def render(self, target_size: Optional[Tuple[int, int]] = None) -> PixelBuffer:
        if not self._layers:
            raise EmptyCompositionError("nothing to render: composition has no layers")
        tw, th = self._target(target_size)
        resample = _resample(self.config.high_quality)

        bg = self._background.to_pil()
        if bg.size != (tw, th):
            bg = bg.resize((tw, th), resample=resample)
        base = pil_to_np_rgba(bg)

        asset_img = self._asset.to_pil()
        scaled_cache: Dict[Tuple[int, int], np.ndarray] = {}
        for placement in self.placements((tw, th)):
            left, top, new_w, new_h = placement.box
            arr = scaled_cache.get((new_w, new_h))
            if arr is None:
                if asset_img.size == (new_w, new_h):
                    arr = pil_to_np_rgba(asset_img)
                else:
                    arr = pil_to_np_rgba(asset_img.resize((new_w, new_h), resample=resample))
                scaled_cache[(new_w, new_h)] = arr
            _paste_over(base, arr, left, top)

        logger.info("rendered %d layer(s) at %dx%d", len(self._layers), tw, th)
        return PixelBuffer(base)

    def render_preview(self) -> PixelBuffer:
        return self.render(self.working_size)


def export_transparent(
    asset: PixelBuffer,
    target_size: Tuple[int, int] = (2500, 2500),
    high_quality: bool = True,
) -> PixelBuffer:
    """Asset alone, fitted inside ``target_size`` (aspect kept) and centred on a transparent canvas."""
    tw, th = int(target_size[0]), int(target_size[1])
    if tw <= 0 or th <= 0:
        raise ValueError("target size must be positive")
    aw, ah = asset.size
    fit = min(tw / float(aw), th / float(ah))
    new_w = max(1, int(round(aw * fit)))
    new_h = max(1, int(round(ah * fit)))

    img = asset.to_pil()
    if img.size != (new_w, new_h):
        img = img.resize((new_w, new_h), resample=_resample(high_quality))
    base = np.zeros((th, tw, 4), dtype=np.uint8)
    arr = pil_to_np_rgba(img)
    x = (tw - new_w) // 2
    y = (th - new_h) // 2
    base[y:y + new_h, x:x + new_w] = arr
    return PixelBuffer(base)
