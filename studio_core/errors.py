from __future__ import annotations


class StudioError(Exception):
    """Base class for errors raised by the segmentation and compositing core."""


class DecodeError(StudioError, ValueError):
    """Input bitmap is malformed or has a zero dimension."""


class LayerNotFound(StudioError, KeyError):
    def __init__(self, layer_id: int):
        super().__init__(layer_id)
        self.layer_id = layer_id

    def __str__(self) -> str:
        return f"no layer with id {self.layer_id}"


class CannotRemoveLastLayer(StudioError):
    pass


class EmptyCompositionError(StudioError):
    pass


class AssetMismatchError(StudioError, RuntimeError):
    """An asset does not match the size the compositor was built with.

    This is API misuse, not a runtime condition to recover from.
    """


class ImageEditError(StudioError):
    """Raised by an image-edit service. The core never retries it."""
