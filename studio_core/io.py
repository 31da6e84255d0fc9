from __future__ import annotations

import io
import logging
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from studio_core.buffer import PixelBuffer
from studio_core.errors import DecodeError

logger = logging.getLogger(__name__)


def _to_buffer(img: Image.Image, origin: str) -> PixelBuffer:
    w, h = img.size
    if w <= 0 or h <= 0:
        raise DecodeError(f"{origin}: zero-size image")
    # Convert to RGBA for consistent alpha work
    return PixelBuffer.from_pil(img.convert("RGBA"))


def decode_image(data: bytes) -> PixelBuffer:
    if not data:
        raise DecodeError("empty image data")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            return _to_buffer(img, "image data")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as exc:
        if isinstance(exc, DecodeError):
            raise
        raise DecodeError(f"could not decode image: {exc}") from exc


def load_image_rgba(path: str) -> PixelBuffer:
    try:
        with Image.open(path) as img:
            img.load()
            return _to_buffer(img, path)
    except FileNotFoundError:
        raise
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as exc:
        if isinstance(exc, DecodeError):
            raise
        raise DecodeError(f"could not decode {path}: {exc}") from exc


def png_filename(name: str) -> str:
    p = Path(name)
    if p.suffix.lower() == ".png":
        return name
    return str(p.with_suffix(".png"))


def encode_png(buffer: PixelBuffer) -> bytes:
    out = io.BytesIO()
    buffer.to_pil().save(out, format="PNG")
    return out.getvalue()


def save_image(path: str, buffer: PixelBuffer) -> str:
    # Always PNG: downstream consumers need a real alpha channel
    target = png_filename(path)
    buffer.to_pil().save(target, format="PNG")
    logger.info("saved %dx%d PNG to %s", buffer.width, buffer.height, target)
    return target
