"""Prompt templates for the summarizer.

Templates are Markdown files with ``{{name}}`` placeholders. The bundled
ones live next to this module; a custom directory can shadow them by name.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Mapping, Optional, Set, Tuple

_PLACEHOLDER = re.compile(r"\{\{\s*([a-zA-Z_][a-zA-Z0-9_]*)\s*\}\}")
_BUNDLED_DIR = Path(__file__).resolve().parent / "prompts"
_SUFFIXES = (".md", ".txt")


class PromptValidationError(ValueError):
    """Raised when a template is malformed or rendered without all its values."""


@dataclass(frozen=True)
class PromptDocument:
    content: str
    path: Path

    @property
    def placeholders(self) -> Set[str]:
        return set(_PLACEHOLDER.findall(self.content))

    def render(self, values: Mapping[str, object]) -> str:
        """Fill every placeholder in one pass; inserted text is never re-expanded."""
        missing = self.placeholders - set(values)
        if missing:
            raise PromptValidationError(f"Prompt '{self.path}' needs values for: {', '.join(sorted(missing))}.")
        return _PLACEHOLDER.sub(lambda match: str(values[match.group(1)]), self.content)


class PromptLoader:
    """Find templates by name, custom directory first, then the bundled set."""

    def __init__(self, prompts_dir: Optional[Path] = None) -> None:
        dirs = [_BUNDLED_DIR]
        if prompts_dir:
            dirs.insert(0, Path(prompts_dir).expanduser())
        self.search_dirs: Tuple[Path, ...] = tuple(dirs)

    def resolve(self, prompt: str) -> Path:
        for candidate in self._candidates(prompt):
            if candidate.is_file():
                return candidate
        roots = ", ".join(str(directory) for directory in self.search_dirs)
        raise FileNotFoundError(f"Prompt '{prompt}' was not found in: {roots}.")

    def load(self, prompt: str) -> PromptDocument:
        path = self.resolve(prompt)
        content = path.read_text(encoding="utf-8")
        check_template(content, path)
        return PromptDocument(content=content, path=path)

    def render(self, prompt: str, **values: object) -> str:
        return self.load(prompt).render(values)

    def _candidates(self, prompt: str) -> Iterator[Path]:
        for directory in self.search_dirs:
            if Path(prompt).suffix:
                yield directory / prompt
            else:
                for suffix in _SUFFIXES:
                    yield directory / f"{prompt}{suffix}"


def check_template(content: str, path: Path) -> None:
    """Reject templates with unbalanced ``{{``/``}}`` or no placeholder at all."""
    opened = content.count("{{")
    closed = content.count("}}")
    if opened != closed:
        raise PromptValidationError(f"Prompt '{path}' has {opened} '{{{{' but {closed} '}}}}'.")
    if not opened:
        raise PromptValidationError(f"Prompt '{path}' has no '{{{{name}}}}' placeholders.")
