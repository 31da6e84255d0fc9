from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from studio_core.compositor import export_transparent
from studio_core.config import StudioConfig
from studio_core.io import load_image_rgba, save_image
from studio_core.segmenter import segment

logger = logging.getLogger(__name__)


def iter_images(folder: str) -> Iterable[Path]:
    exts = {".png", ".jpg", ".jpeg", ".bmp", ".webp", ".tif", ".tiff"}
    root = Path(folder)
    for p in sorted(root.iterdir()):
        if p.is_file() and p.suffix.lower() in exts:
            yield p


def batch_segment(
    input_dir: str,
    output_dir: str,
    config: Optional[StudioConfig] = None,
    suffix: str = "_transparent",
) -> int:
    """Segment every image in ``input_dir`` and write transparent PNGs at the export size."""
    cfg = config or StudioConfig()
    out_root = Path(output_dir)
    out_root.mkdir(parents=True, exist_ok=True)
    target = (cfg.compositor.target_width, cfg.compositor.target_height)

    count = 0
    for src_path in iter_images(input_dir):
        src = load_image_rgba(str(src_path))
        asset = segment(src, cfg.segmenter)
        out = export_transparent(asset, target, high_quality=cfg.compositor.high_quality)
        save_image(str(out_root / f"{src_path.stem}{suffix}.png"), out)
        count += 1
    logger.info("batch segmented %d image(s) from %s", count, input_dir)
    return count
