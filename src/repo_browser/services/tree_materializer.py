"""Incremental repository-tree materializer.

Turns one branch (or commit) of a hosted repository into a live stream of
:mod:`repo_browser.domain.events`.  The GitHub git-trees endpoint only returns
direct children, so the materializer walks the tree breadth-first, one
generation of directories at a time, rebuilding full paths as it goes.

Guarantees for a single traversal:

* each blob SHA is emitted as a ``file`` at most once, even when several paths
  point at the same content;
* each tree SHA is fetched at most once, even when it is reachable through
  several parents;
* a failed subtree produces one ``warning`` and the walk continues with its
  siblings;
* the stream ends with exactly one ``complete`` or ``error`` and the
  generator never raises past its own boundary.

Fetches are issued strictly one after another.  Each ``await`` is a
suspension point, but nothing else touches the traversal state in between, so
the sets and the frontier need no locking.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import AsyncIterator

from repo_browser.domain.entities import TreeEntry, TreeListing
from repo_browser.domain.events import (
    BranchEvent,
    CompleteEvent,
    ErrorEvent,
    FileEvent,
    StatusEvent,
    TERMINAL_EVENTS,
    StreamEvent,
    WarningEvent,
)
from repo_browser.domain.exceptions import NotFoundError
from repo_browser.domain.ports.tree_source import TreeSource

logger = logging.getLogger(__name__)

_COMMIT_SHA_RE = re.compile(r"[0-9a-fA-F]{7,40}")

CANCELLED_MESSAGE = "Traversal cancelled."


@dataclass
class _Traversal:
    """Mutable state owned by one call to :meth:`TreeMaterializer.materialize`."""

    yielded_blobs: set[str] = field(default_factory=set)
    processed_trees: set[str] = field(default_factory=set)
    discovered_trees: set[str] = field(default_factory=set)
    frontier: list[TreeEntry] = field(default_factory=list)
    files: int = 0
    directories: int = 0

    def admit(self, entry: TreeEntry) -> FileEvent | None:
        """Classify one entry; return a file event for a blob not seen before."""
        if entry.is_blob:
            if entry.sha in self.yielded_blobs:
                return None
            self.yielded_blobs.add(entry.sha)
            self.files += 1
            return FileEvent(entry)

        if not entry.is_tree:
            return None
        if entry.sha not in self.processed_trees and entry.sha not in self.discovered_trees:
            self.discovered_trees.add(entry.sha)
            self.frontier.append(entry)
            self.directories += 1
        return None

    def take_generation(self) -> list[TreeEntry]:
        batch, self.frontier = self.frontier, []
        return batch


class TreeMaterializer:
    """Breadth-first walker over a :class:`TreeSource`.

    Parameters
    ----------
    tree_source:
        Anything implementing the ``TreeSource`` port, usually a
        :class:`~repo_browser.infrastructure.github_tree_client.GitHubTreeClient`.
    status_interval:
        Emit an interim progress status after every *n* new files found in
        the same directory.
    """

    def __init__(self, tree_source: TreeSource, *, status_interval: int = 5) -> None:
        if status_interval < 1:
            raise ValueError("status_interval must be at least 1")
        self._source = tree_source
        self._status_interval = status_interval

    async def materialize(
        self,
        owner: str,
        repo: str,
        ref: str,
        cancel: asyncio.Event | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Yield the events of one traversal, ending in ``complete`` or ``error``."""
        logger.info("Materializing %s/%s@%s", owner, repo, ref)
        events = self._walk(owner, repo, ref, cancel)
        try:
            async for event in events:
                yield event
                if isinstance(event, TERMINAL_EVENTS):
                    return
        except Exception as exc:
            logger.exception("Traversal of %s/%s failed", owner, repo)
            yield ErrorEvent(f"Critical error during stream generation: {exc}")
        finally:
            await events.aclose()

    async def _walk(
        self,
        owner: str,
        repo: str,
        ref: str,
        cancel: asyncio.Event | None,
    ) -> AsyncIterator[StreamEvent]:
        state = _Traversal()
        root: TreeListing | None = None

        # ── Branch resolution (the only failure that aborts everything) ──

        try:
            branch = await self._source.get_branch(owner, repo, ref)
            branch_name, root_sha = branch.name, branch.commit_sha
        except NotFoundError:
            if not _COMMIT_SHA_RE.fullmatch(ref):
                yield _branch_not_found(owner, repo, ref)
                return
            # A hex-looking ref counts as a commit only if it names a tree.
            try:
                root = await self._source.get_tree(owner, repo, ref)
            except NotFoundError:
                yield _branch_not_found(owner, repo, ref)
                return
            except Exception as exc:
                yield ErrorEvent(f"Error fetching repository structure: {exc}")
                return
            logger.info("'%s' is not a branch; treating it as a commit SHA", ref)
            branch_name, root_sha = ref, ref
        except Exception as exc:
            yield ErrorEvent(f"Failed to fetch branch '{ref}': {exc}")
            return

        yield BranchEvent(branch_name)

        # ── Generation 0 ─────────────────────────────────────────────────

        if root is None:
            try:
                root = await self._source.get_tree(owner, repo, root_sha)
            except Exception as exc:
                logger.warning("Root tree of %s/%s unavailable: %s", owner, repo, exc)
                yield ErrorEvent(f"Error fetching repository structure: {exc}")
                return

        yield StatusEvent(
            f"Found root directory with {len(root.entries)} items", state.files
        )
        if root.truncated:
            yield _truncated_warning("root", state.files)

        for entry in root.entries:
            file_event = state.admit(entry)
            if file_event is not None:
                yield file_event

        yield StatusEvent(
            f"Processed {state.files} files in root directory", state.files
        )
        if state.frontier:
            yield StatusEvent(
                f"Found {len(state.frontier)} directories to process", state.files
            )

        # ── Generational BFS ─────────────────────────────────────────────

        generation = 0
        while state.frontier:
            generation += 1
            processed = 0

            for directory in state.take_generation():
                if directory.sha in state.processed_trees:
                    continue
                if cancel is not None and cancel.is_set():
                    logger.info("Traversal of %s/%s cancelled", owner, repo)
                    yield ErrorEvent(CANCELLED_MESSAGE)
                    return

                state.processed_trees.add(directory.sha)
                processed += 1
                yield StatusEvent(f"Processing directory: {directory.path}", state.files)

                try:
                    listing = await self._source.get_tree(owner, repo, directory.sha)
                except Exception as exc:
                    logger.warning("Skipping %s: %s", directory.path, exc)
                    yield WarningEvent(
                        f"Skipped directory {directory.path} due to error: {exc}",
                        state.files,
                    )
                    continue

                if listing.truncated:
                    yield _truncated_warning(directory.path, state.files)

                found = 0
                for child in listing.entries:
                    file_event = state.admit(child.under(directory.path))
                    if file_event is None:
                        continue
                    yield file_event
                    found += 1
                    if found % self._status_interval == 0:
                        yield StatusEvent(
                            f"Found {found} more files (total: {state.files})",
                            state.files,
                        )

                yield StatusEvent(
                    f"Completed directory {directory.path}: "
                    f"Found {found} files (total: {state.files})",
                    state.files,
                )

            if processed:
                yield StatusEvent(
                    f"Completed batch {generation}: processed {processed} directories, "
                    f"found {state.files} files total",
                    state.files,
                )
            if state.frontier:
                yield StatusEvent(
                    f"Found {len(state.frontier)} more directories to process "
                    "in the next batch",
                    state.files,
                )

        logger.info(
            "Completed %s/%s: %d files across %d directories",
            owner,
            repo,
            state.files,
            state.directories,
        )
        yield CompleteEvent(total_files=state.files, total_directories=state.directories)


def _branch_not_found(owner: str, repo: str, ref: str) -> ErrorEvent:
    return ErrorEvent(f"Branch '{ref}' not found in repository {owner}/{repo}.")


def _truncated_warning(where: str, files: int) -> WarningEvent:
    return WarningEvent(
        f"GitHub truncated the listing of {where}; some entries may be missing",
        files,
    )
