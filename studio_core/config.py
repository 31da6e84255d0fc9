from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple

from studio_core.chunking import DEFAULT_SLICE_SIZE


CONFIG_VERSION = 1


@dataclass
class SegmenterConfig:
    # Flat pass: erase bright near-gray pixels anywhere in the image
    flat_threshold: float = 225.0
    gray_spread: int = 10
    # Flood fill from the corners: erase anything brighter than this
    loose_threshold: float = 195.0
    slice_size: int = DEFAULT_SLICE_SIZE


@dataclass
class EditorConfig:
    history_limit: int = 20
    min_zoom: float = 0.1
    max_zoom: float = 5.0
    brush_diameter: float = 20.0
    tolerance: int = 30
    # Auto-polish re-tests edge pixels with this (stricter) near-white rule
    polish_threshold: float = 200.0
    polish_gray_spread: int = 10
    slice_size: int = DEFAULT_SLICE_SIZE


@dataclass
class CompositorConfig:
    target_width: int = 2500
    target_height: int = 2500
    # Fraction of the background the asset's longer side covers on placement
    default_coverage: float = 0.4
    duplicate_offset: Tuple[float, float] = (50.0, 50.0)
    high_quality: bool = True


@dataclass
class StudioConfig:
    segmenter: SegmenterConfig = field(default_factory=SegmenterConfig)
    editor: EditorConfig = field(default_factory=EditorConfig)
    compositor: CompositorConfig = field(default_factory=CompositorConfig)


def _segmenter_to_raw(cfg: SegmenterConfig) -> dict:
    return {
        "flat_threshold": cfg.flat_threshold,
        "gray_spread": cfg.gray_spread,
        "loose_threshold": cfg.loose_threshold,
        "slice_size": cfg.slice_size,
    }


def _segmenter_from_raw(raw: dict) -> SegmenterConfig:
    return SegmenterConfig(
        flat_threshold=float(raw.get("flat_threshold", 225.0)),
        gray_spread=int(raw.get("gray_spread", 10)),
        loose_threshold=float(raw.get("loose_threshold", 195.0)),
        slice_size=int(raw.get("slice_size", DEFAULT_SLICE_SIZE)),
    )


def _editor_to_raw(cfg: EditorConfig) -> dict:
    return {
        "history_limit": cfg.history_limit,
        "min_zoom": cfg.min_zoom,
        "max_zoom": cfg.max_zoom,
        "brush_diameter": cfg.brush_diameter,
        "tolerance": cfg.tolerance,
        "polish_threshold": cfg.polish_threshold,
        "polish_gray_spread": cfg.polish_gray_spread,
        "slice_size": cfg.slice_size,
    }


def _editor_from_raw(raw: dict) -> EditorConfig:
    return EditorConfig(
        history_limit=max(1, int(raw.get("history_limit", 20))),
        min_zoom=float(raw.get("min_zoom", 0.1)),
        max_zoom=float(raw.get("max_zoom", 5.0)),
        brush_diameter=max(1.0, float(raw.get("brush_diameter", 20.0))),
        tolerance=max(0, min(255, int(raw.get("tolerance", 30)))),
        polish_threshold=float(raw.get("polish_threshold", 200.0)),
        polish_gray_spread=int(raw.get("polish_gray_spread", 10)),
        slice_size=int(raw.get("slice_size", DEFAULT_SLICE_SIZE)),
    )


def _compositor_to_raw(cfg: CompositorConfig) -> dict:
    return {
        "target_width": cfg.target_width,
        "target_height": cfg.target_height,
        "default_coverage": cfg.default_coverage,
        "duplicate_offset": list(cfg.duplicate_offset),
        "high_quality": bool(cfg.high_quality),
    }


def _compositor_from_raw(raw: dict) -> CompositorConfig:
    offset = raw.get("duplicate_offset", [50.0, 50.0])
    if not isinstance(offset, list) or len(offset) != 2:
        offset = [50.0, 50.0]
    return CompositorConfig(
        target_width=int(raw.get("target_width", 2500)),
        target_height=int(raw.get("target_height", 2500)),
        default_coverage=float(raw.get("default_coverage", 0.4)),
        duplicate_offset=(float(offset[0]), float(offset[1])),
        high_quality=bool(raw.get("high_quality", True)),
    )


def save_config(path: str, cfg: StudioConfig) -> None:
    payload = {
        "version": CONFIG_VERSION,
        "segmenter": _segmenter_to_raw(cfg.segmenter),
        "editor": _editor_to_raw(cfg.editor),
        "compositor": _compositor_to_raw(cfg.compositor),
    }
    Path(path).write_text(json.dumps(payload, indent=2), encoding="utf-8")


def load_config(path: str) -> StudioConfig:
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    return StudioConfig(
        segmenter=_segmenter_from_raw(raw.get("segmenter", {})),
        editor=_editor_from_raw(raw.get("editor", {})),
        compositor=_compositor_from_raw(raw.get("compositor", {})),
    )
