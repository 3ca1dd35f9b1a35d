"""Small helpers over file records received from the stream."""

from __future__ import annotations

import math
from typing import Any

from repo_browser.domain.entities import EntryKind, TreeEntry


def format_file_size(size_bytes: int) -> str:
    """Human-readable size: ``512 B``, ``1.5 KB``, ``2.0 MB``."""
    if size_bytes < 0:
        return "0 B"
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / (1024 * 1024):.1f} MB"


def github_file_url(owner: str, repo: str, branch: str, file_path: str) -> str:
    """Link to a file on github.com; falls back to ``main`` when *branch* is empty."""
    return f"https://github.com/{owner}/{repo}/blob/{branch or 'main'}/{file_path}"


def is_valid_file(record: Any) -> bool:
    """True for a mapping with a non-empty string ``path`` and a numeric ``size``."""
    if not isinstance(record, dict):
        return False
    path = record.get("path")
    size = record.get("size")
    return (
        isinstance(path, str)
        and len(path) > 0
        and isinstance(size, (int, float))
        and not isinstance(size, bool)
        and math.isfinite(size)
    )


def file_from_wire(record: dict[str, Any]) -> TreeEntry:
    """Build a blob entry from a wire record already checked by :func:`is_valid_file`."""
    return TreeEntry(
        path=record["path"],
        mode=str(record.get("mode") or ""),
        kind=EntryKind.BLOB,
        sha=str(record.get("sha") or ""),
        url=str(record.get("url") or ""),
        size=int(record["size"]),
    )
