"""Change descriptors and the file-backed sources that produce them."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)


class ChangeSourceError(RuntimeError):
    """Raised when a change source cannot continue producing batches."""


class ChangeStatus(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"
    CHANGED = "changed"


@dataclass(frozen=True)
class ChangeDescriptor:
    """One changed file in a change set, as reported by the VCS host."""

    path: str
    patch: Optional[str]
    changes: int
    status: ChangeStatus

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChangeDescriptor":
        """Build a descriptor from a GitHub-style ``pulls/files`` entry."""
        if not isinstance(data, Mapping):
            raise ValueError("change entry must be a JSON object")

        path = data.get("path", data.get("filename"))
        if not isinstance(path, str) or not path:
            raise ValueError("change entry is missing a file path")

        patch = data.get("patch")
        if patch is not None and not isinstance(patch, str):
            raise ValueError(f"{path}: patch must be a string or null")

        changes = data.get("changes", 0)
        if isinstance(changes, bool) or not isinstance(changes, int) or changes < 0:
            raise ValueError(f"{path}: changes must be a non-negative integer")

        raw_status = data.get("status", ChangeStatus.MODIFIED.value)
        try:
            status = ChangeStatus(raw_status)
        except ValueError:
            raise ValueError(f"{path}: unknown change status {raw_status!r}") from None

        return cls(path=path, patch=patch, changes=changes, status=status)

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "patch": self.patch,
            "changes": self.changes,
            "status": self.status.value,
        }


def iter_jsonl(path: Path) -> Iterable[dict]:
    """Yield JSON objects from a JSON Lines file, skipping malformed rows."""
    with path.open("r", encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError:
                logger.warning("Skipping malformed JSON line %d in %s", line_number, path)
                continue


def iter_change_records(path: Path) -> Iterable[Any]:
    """Yield raw change entries from a JSON array file or a JSON Lines file."""
    path = Path(path).expanduser()
    if path.suffix == ".json":
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except ValueError as exc:
            raise ChangeSourceError(f"{path} is not valid JSON: {exc}") from exc
        if isinstance(payload, Mapping) and isinstance(payload.get("files"), list):
            payload = payload["files"]
        if not isinstance(payload, list):
            raise ChangeSourceError(f"{path} must contain a JSON array of changes")
        yield from payload
        return
    yield from iter_jsonl(path)


class JsonChangeSource:
    """Pull-based change source reading descriptors from a JSON/JSONL file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()

    def iter_change_batches(self, batch_size: int) -> Iterator[List[ChangeDescriptor]]:
        if not self.path.is_file():
            raise ChangeSourceError(f"Change file not found: {self.path}")

        page: List[ChangeDescriptor] = []
        for index, record in enumerate(iter_change_records(self.path), start=1):
            try:
                page.append(ChangeDescriptor.from_dict(record))
            except ValueError as exc:
                raise ChangeSourceError(f"{self.path} entry {index}: {exc}") from exc
            if len(page) >= batch_size:
                yield page
                page = []
        if page:
            yield page


class InMemoryChangeSource:
    """Serve an existing sequence of descriptors in pages of ``batch_size``."""

    def __init__(self, changes: Sequence[ChangeDescriptor]) -> None:
        self._changes = list(changes)

    def iter_change_batches(self, batch_size: int) -> Iterator[List[ChangeDescriptor]]:
        for start in range(0, len(self._changes), batch_size):
            yield self._changes[start : start + batch_size]
