"""Stream events produced by the tree materializer.

Every event knows its own wire shape (:meth:`to_wire`); the transport only
serialises what it is given.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from repo_browser.domain.entities import TreeEntry


@dataclass(frozen=True, slots=True)
class FileEvent:
    """A blob with its fully-qualified repository path."""

    entry: TreeEntry

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": "file",
            "path": self.entry.path,
            "mode": self.entry.mode,
            "sha": self.entry.sha,
            "size": self.entry.size if self.entry.size is not None else 0,
            "url": self.entry.url,
        }


@dataclass(frozen=True, slots=True)
class BranchEvent:
    name: str

    def to_wire(self) -> dict[str, Any]:
        return {"type": "branch", "name": self.name}


@dataclass(frozen=True, slots=True)
class StatusEvent:
    """Human-readable progress with the running file total."""

    message: str
    files_processed: int | None = None

    def to_wire(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": "status", "message": self.message}
        if self.files_processed is not None:
            data["files_processed"] = self.files_processed
        return data


@dataclass(frozen=True, slots=True)
class WarningEvent:
    """A recovered partial failure; the traversal keeps going."""

    message: str
    files_processed: int | None = None

    def to_wire(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": "warning", "message": self.message}
        if self.files_processed is not None:
            data["files_processed"] = self.files_processed
        return data


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    """Fatal; always the last event of a stream."""

    message: str

    def to_wire(self) -> dict[str, Any]:
        return {"type": "error", "message": self.message}


@dataclass(frozen=True, slots=True)
class CompleteEvent:
    """Normal termination with final totals."""

    total_files: int
    total_directories: int

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": "complete",
            "total_files": self.total_files,
            "total_directories": self.total_directories,
        }


StreamEvent = Union[
    FileEvent, BranchEvent, StatusEvent, WarningEvent, ErrorEvent, CompleteEvent
]

TERMINAL_EVENTS: tuple[type, ...] = (ErrorEvent, CompleteEvent)
