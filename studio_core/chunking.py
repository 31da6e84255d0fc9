"""
Helpers for running full-buffer passes in bounded slices.

A pass is written as a generator that yields the amount of work done after
each slice and returns its result. Callers on a cooperative runtime drive it
with ``run_cooperatively``; everyone else uses ``run_to_completion``. The
slice size only changes where the yields happen, never the result.
"""
from __future__ import annotations

import asyncio
from typing import Generator, Iterator, Tuple, TypeVar

T = TypeVar("T")

Steps = Generator[int, None, T]

DEFAULT_SLICE_SIZE = 65536


def normalize_slice_size(slice_size: int) -> int:
    return max(1, int(slice_size))


def row_bands(height: int, width: int, slice_size: int) -> Iterator[Tuple[int, int]]:
    """(y0, y1) row ranges holding at most ``slice_size`` pixels (at least one row)."""
    rows = max(1, normalize_slice_size(slice_size) // max(1, int(width)))
    for y0 in range(0, int(height), rows):
        yield y0, min(int(height), y0 + rows)


def run_to_completion(steps: Steps[T]) -> T:
    while True:
        try:
            next(steps)
        except StopIteration as stop:
            return stop.value


async def run_cooperatively(steps: Steps[T]) -> T:
    while True:
        try:
            next(steps)
        except StopIteration as stop:
            return stop.value
        await asyncio.sleep(0)
