"""Domain entities: plain data with no external dependencies."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum


class EntryKind(str, Enum):
    """Node kind reported by the GitHub git-trees API."""

    BLOB = "blob"
    TREE = "tree"


@dataclass(frozen=True, slots=True)
class TreeEntry:
    """A single child returned by one tree listing call.

    ``path`` is relative to the listed tree until the materializer rewrites it
    into a repository-relative path.
    """

    path: str
    mode: str
    kind: EntryKind
    sha: str
    url: str = ""
    size: int | None = None  # blobs only

    @property
    def is_blob(self) -> bool:
        return self.kind is EntryKind.BLOB

    @property
    def is_tree(self) -> bool:
        return self.kind is EntryKind.TREE

    def under(self, parent_path: str) -> TreeEntry:
        """Return a copy whose path is prefixed by ``parent_path``."""
        if not parent_path:
            return self
        return replace(self, path=f"{parent_path}/{self.path}")


@dataclass(frozen=True, slots=True)
class TreeListing:
    """One level of a git tree."""

    sha: str
    entries: list[TreeEntry] = field(default_factory=list)
    truncated: bool = False


@dataclass(frozen=True, slots=True)
class RepoInfo:
    """The subset of repository metadata the browser needs."""

    owner: str
    repo: str
    default_branch: str


@dataclass(frozen=True, slots=True)
class BranchInfo:
    """A resolved branch; ``commit_sha`` anchors the root tree."""

    name: str
    commit_sha: str
    protected: bool = False


@dataclass(frozen=True, slots=True)
class RateLimit:
    """Core API quota for the configured token."""

    remaining: int
    reset_epoch_seconds: int
