"""Split keyed results into aggregation batches."""
from __future__ import annotations

import math
from enum import Enum
from typing import List, Sequence, TypeVar

T = TypeVar("T")


class BatchStrategy(str, Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


def strategy_for_pass(pass_number: int) -> BatchStrategy:
    """First pass groups neighbours; later passes interleave them."""
    return BatchStrategy.HORIZONTAL if pass_number <= 1 else BatchStrategy.VERTICAL


def create_horizontal_batches(entries: Sequence[T], batch_size: int) -> List[List[T]]:
    """Slice ``entries`` into contiguous runs of ``batch_size``."""
    _check_batch_size(batch_size)
    return [list(entries[start : start + batch_size]) for start in range(0, len(entries), batch_size)]


def create_vertical_batches(entries: Sequence[T], batch_size: int) -> List[List[T]]:
    """Group the i-th element of every contiguous chunk together.

    With ``[1..6]`` and a batch size of 3 the chunks are ``[1,2] [3,4] [5,6]``
    and the batches ``[1,3,5] [2,4,6]``, so files adjacent in the first pass
    land in different batches here.
    """
    _check_batch_size(batch_size)
    if not entries:
        return []

    chunk_size = math.ceil(len(entries) / batch_size)
    chunks = create_horizontal_batches(entries, chunk_size)
    batches: List[List[T]] = []
    for position in range(chunk_size):
        batch = [chunk[position] for chunk in chunks if position < len(chunk)]
        if batch:
            batches.append(batch)
    return batches


def plan_batches(entries: Sequence[T], batch_size: int, strategy: BatchStrategy) -> List[List[T]]:
    if BatchStrategy(strategy) is BatchStrategy.HORIZONTAL:
        return create_horizontal_batches(entries, batch_size)
    return create_vertical_batches(entries, batch_size)


def _check_batch_size(batch_size: int) -> None:
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
