from __future__ import annotations

import logging
from typing import Protocol

from studio_core.buffer import PixelBuffer
from studio_core.errors import ImageEditError

logger = logging.getLogger(__name__)


class ImageEditService(Protocol):
    """
    A remote image-editing collaborator.

    Implementations live outside the core (network, credentials, rate limits).
    They raise ``ImageEditError`` or their own exceptions on failure; retry and
    backoff policy belongs to whoever wires the service in.
    """

    def edit_image(self, buffer: PixelBuffer, instruction: str) -> PixelBuffer:
        ...


def request_edit(service: ImageEditService, buffer: PixelBuffer, instruction: str) -> PixelBuffer:
    """Call the service once with a private copy of ``buffer``; failures propagate."""
    logger.info("requesting external edit of %dx%d buffer", buffer.width, buffer.height)
    result = service.edit_image(buffer.clone(), instruction)
    if not isinstance(result, PixelBuffer):
        raise ImageEditError(f"edit service returned {type(result).__name__}, expected PixelBuffer")
    return result
