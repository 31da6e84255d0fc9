from __future__ import annotations

import logging
from typing import Optional

from studio_core.buffer import PixelBuffer
from studio_core.config import SegmenterConfig
from studio_core.segmenter import segment
from studio_core.services import ImageEditService, request_edit

logger = logging.getLogger(__name__)


def prepare_asset(
    source: PixelBuffer,
    config: Optional[SegmenterConfig] = None,
    service: Optional[ImageEditService] = None,
    instruction: Optional[str] = None,
) -> PixelBuffer:
    """
    Source bitmap -> transparent asset.

    When both ``service`` and ``instruction`` are given the source is first sent
    through the edit service (one attempt, errors propagate), then segmented.
    """
    buf = source
    if service is not None and instruction:
        buf = request_edit(service, buf, instruction)
    elif service is not None:
        logger.debug("edit service given without an instruction; segmenting source as is")
    return segment(buf, config)
