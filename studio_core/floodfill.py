from __future__ import annotations

from typing import Iterable, Tuple

import numpy as np

from studio_core.chunking import Steps, normalize_slice_size


def iter_flood_fill(
    candidate: np.ndarray,
    seeds: Iterable[Tuple[int, int]],
    slice_size: int,
) -> Steps[np.ndarray]:
    """
    4-connected fill over ``candidate`` (HxW bool) starting from ``seeds`` (x, y).

    Every popped pixel is marked visited; a candidate pixel joins the fill and
    pushes its unvisited neighbours. Seeds that are not candidates stop there.
    Yields the running count of popped pixels after each ``slice_size`` pops and
    returns the filled HxW bool mask. The result does not depend on pop order.
    """
    if candidate.ndim != 2:
        raise ValueError("candidate must be HxW")
    h, w = candidate.shape
    n = h * w
    cand = np.ascontiguousarray(candidate, dtype=np.uint8).tobytes()
    visited = bytearray(n)
    filled = bytearray(n)
    budget = normalize_slice_size(slice_size)

    stack: list[int] = []
    for x, y in seeds:
        if 0 <= x < w and 0 <= y < h:
            stack.append(int(y) * w + int(x))

    popped = 0
    in_slice = 0
    while stack:
        idx = stack.pop()
        popped += 1
        in_slice += 1
        if not visited[idx]:
            visited[idx] = 1
            if cand[idx]:
                filled[idx] = 1
                x = idx % w
                if x + 1 < w and not visited[idx + 1]:
                    stack.append(idx + 1)
                if x > 0 and not visited[idx - 1]:
                    stack.append(idx - 1)
                if idx + w < n and not visited[idx + w]:
                    stack.append(idx + w)
                if idx >= w and not visited[idx - w]:
                    stack.append(idx - w)
        if in_slice >= budget:
            in_slice = 0
            yield popped

    return np.frombuffer(bytes(filled), dtype=np.uint8).reshape(h, w).astype(bool)
