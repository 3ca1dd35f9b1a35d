"""Folds decoded stream events into a single client-side state object.

A fresh :class:`StreamAggregator` is created per repository request.  It
implements the :class:`~repo_browser.services.stream_decoder.StreamHandlers`
callbacks, so it can be passed straight to ``decode_stream``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from repo_browser.domain.entities import TreeEntry

logger = logging.getLogger(__name__)

ABNORMAL_END_MESSAGE = "Stream ended before the repository listing was complete."


@dataclass
class ClientAggregateState:
    """Everything a listing view needs while a traversal is streaming."""

    files: list[TreeEntry] = field(default_factory=list)
    branch_name: str = ""
    status_message: str = "Initializing..."
    file_count: int = 0  # displayed count; never decreases
    total_files: int | None = None
    total_directories: int | None = None
    error: str | None = None
    completed: bool = False
    is_loading: bool = True
    total_repo_size: int = 0
    # Mined from status text; only drives the progress estimate.
    discovered_directories: int = 0
    processed_directories: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.completed or self.error is not None

    @property
    def loading_progress(self) -> int:
        """Percentage of discovered directories processed, capped at 99 until done."""
        if self.completed:
            return 100
        if self.discovered_directories <= 0:
            return 0
        ratio = self.processed_directories / self.discovered_directories
        return min(round(ratio * 100), 99)


_FOUND_DIRECTORIES_RE = re.compile(r"Found\s+(\d+)\s+(?:more\s+)?directories", re.IGNORECASE)
_FINISHED_DIRECTORY_PREFIXES = ("Completed directory", "Skipped directory")


class StreamAggregator:
    """Applies the update rules for each event kind.

    Events arriving after ``complete`` or ``error`` are ignored.
    """

    def __init__(self, state: ClientAggregateState | None = None) -> None:
        self.state = state if state is not None else ClientAggregateState()

    # ── StreamHandlers ──────────────────────────────────────────────────

    def on_file(self, file: TreeEntry) -> None:
        if self.state.is_terminal:
            return
        self.state.files.append(file)
        self.state.total_repo_size += file.size or 0
        self._raise_count(len(self.state.files))

    def on_branch(self, name: str) -> None:
        if self.state.is_terminal:
            return
        self.state.branch_name = name

    def on_status(self, message: str, file_count: int | None) -> None:
        if self.state.is_terminal:
            return
        self.state.status_message = message
        self._raise_count(file_count)
        self._track_directories(message)

    def on_warning(self, message: str, file_count: int | None) -> None:
        if self.state.is_terminal:
            return
        self.state.status_message = f"Warning: {message}"
        self._raise_count(file_count)
        self._track_directories(message)

    def on_complete(self, total_files: int, total_directories: int | None) -> None:
        if self.state.is_terminal:
            return
        self.state.total_files = total_files
        self.state.total_directories = total_directories
        self._raise_count(total_files)
        self.state.status_message = "Complete!"
        self.state.completed = True
        self.state.is_loading = False

    def on_error(self, message: str) -> None:
        if self.state.is_terminal:
            return
        self.state.error = message
        self.state.is_loading = False

    # ── End of stream ───────────────────────────────────────────────────

    def finish(self) -> ClientAggregateState:
        """Close out the state once the byte stream has ended."""
        if not self.state.is_terminal:
            logger.warning("Stream ended without a terminal event")
            self.state.error = ABNORMAL_END_MESSAGE
        self.state.is_loading = False
        return self.state

    # ── Internals ───────────────────────────────────────────────────────

    def _raise_count(self, count: int | None) -> None:
        if count is not None and count > self.state.file_count:
            self.state.file_count = count

    def _track_directories(self, message: str) -> None:
        match = _FOUND_DIRECTORIES_RE.search(message)
        if match:
            self.state.discovered_directories += int(match.group(1))
        if message.startswith(_FINISHED_DIRECTORY_PREFIXES):
            self.state.processed_directories += 1
