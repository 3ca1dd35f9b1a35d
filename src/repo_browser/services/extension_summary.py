"""Per-extension breakdown of a file listing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from repo_browser.domain.entities import TreeEntry

NO_EXTENSION = "(no extension)"
LONG_EXTENSION = "(long extension)"
_MAX_EXTENSION_LENGTH = 10


@dataclass(frozen=True, slots=True)
class ExtensionStats:
    extension: str
    count: int
    percentage: float
    size: int


def file_extension(path: str) -> str:
    """Lower-cased extension of the file name in *path*.

    Dotfiles (``.gitignore``) and names ending in a dot have no extension.
    """
    name = path.rsplit("/", 1)[-1]
    parts = name.split(".")
    if len(parts) < 2 or not parts[0] or not parts[-1]:
        return NO_EXTENSION
    extension = parts[-1].lower()
    if len(extension) > _MAX_EXTENSION_LENGTH:
        return LONG_EXTENSION
    return extension


def summarize_extensions(files: Sequence[TreeEntry]) -> list[ExtensionStats]:
    """Count files and bytes per extension, most common first."""
    counts: dict[str, list[int]] = {}
    for entry in files:
        bucket = counts.setdefault(file_extension(entry.path), [0, 0])
        bucket[0] += 1
        bucket[1] += entry.size or 0

    total = len(files)
    stats = [
        ExtensionStats(
            extension=extension,
            count=count,
            percentage=(count / total * 100) if total else 0.0,
            size=size,
        )
        for extension, (count, size) in counts.items()
    ]
    stats.sort(key=lambda s: s.count, reverse=True)
    return stats
