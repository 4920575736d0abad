"""Filter a streamed change set and re-emit it in fixed-size batches."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Iterator, List, Optional, Protocol, Sequence, Tuple

from .changes import ChangeDescriptor, ChangeStatus
from .patterns import matches_glob_pattern

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10


class ChangeSource(Protocol):
    """Anything that can hand out successive batches of changed files."""

    def iter_change_batches(self, batch_size: int) -> Iterable[Sequence[ChangeDescriptor]]:
        ...


@dataclass(frozen=True)
class FilterConfig:
    """Optional constraints on which changes get processed; None disables one."""

    include: Optional[Tuple[str, ...]] = None
    exclude: Optional[Tuple[str, ...]] = None
    max_changes: Optional[int] = None
    allowed_statuses: Optional[FrozenSet[ChangeStatus]] = None

    @classmethod
    def build(
        cls,
        include: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None,
        max_changes: Optional[int] = None,
        allowed_statuses: Optional[Iterable[object]] = None,
    ) -> "FilterConfig":
        statuses = None
        if allowed_statuses is not None:
            statuses = frozenset(ChangeStatus(status) for status in allowed_statuses)
        return cls(
            include=tuple(include) if include is not None else None,
            exclude=tuple(exclude) if exclude is not None else None,
            max_changes=max_changes,
            allowed_statuses=statuses,
        )


def rejection_reason(change: ChangeDescriptor, file_filter: Optional[FilterConfig]) -> Optional[str]:
    """Return why ``change`` is filtered out, or None when it is accepted.

    Checks run in a fixed order and the first failing one wins: change
    count, status, exclude patterns, include patterns.
    """
    if file_filter is None:
        return None

    if file_filter.max_changes is not None and change.changes > file_filter.max_changes:
        return f"changes ({change.changes}) exceeds limit ({file_filter.max_changes})"

    if file_filter.allowed_statuses is not None and change.status not in file_filter.allowed_statuses:
        return f"status {change.status.value} not in allowed list"

    if file_filter.exclude and any(matches_glob_pattern(change.path, p) for p in file_filter.exclude):
        return "matches exclude pattern"

    if file_filter.include and not any(matches_glob_pattern(change.path, p) for p in file_filter.include):
        return "does not match any include pattern"

    return None


def should_process_file(change: ChangeDescriptor, file_filter: Optional[FilterConfig]) -> bool:
    reason = rejection_reason(change, file_filter)
    if reason is not None:
        logger.debug("Skipping %s: %s", change.path, reason)
        return False
    return True


def collect_changed_files(
    source: ChangeSource,
    file_filter: Optional[FilterConfig] = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> Iterator[List[ChangeDescriptor]]:
    """Yield filtered changes from ``source`` in batches of ``batch_size``.

    The source is only advanced when the consumer asks for the next batch,
    so at most one upstream page plus one partial batch is held in memory.
    If the source fails, the error is logged and re-raised and anything
    still buffered is dropped.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    buffer: List[ChangeDescriptor] = []
    try:
        for page in source.iter_change_batches(batch_size):
            for change in page:
                if should_process_file(change, file_filter):
                    buffer.append(change)

            while len(buffer) >= batch_size:
                batch = buffer[:batch_size]
                del buffer[:batch_size]
                yield batch
    except Exception as exc:
        logger.error("Failed to collect changed files: %s", exc)
        raise

    if buffer:
        yield buffer
