"""Port for reading repository trees, implemented by infrastructure."""

from __future__ import annotations

from typing import Protocol

from repo_browser.domain.entities import BranchInfo, RateLimit, RepoInfo, TreeListing


class TreeSource(Protocol):
    """Abstract contract for reading a hosted repository one tree at a time."""

    async def get_repo_info(self, owner: str, repo: str) -> RepoInfo:
        """Return repository metadata (notably the default branch)."""
        ...

    async def get_branch(self, owner: str, repo: str, branch: str) -> BranchInfo:
        """Resolve a branch name to its head commit."""
        ...

    async def get_tree(
        self, owner: str, repo: str, sha_or_branch: str, *, recursive: bool = False
    ) -> TreeListing:
        """Return the direct children of one tree."""
        ...

    async def repo_exists(self, owner: str, repo: str) -> bool:
        """Return ``False`` on 404, ``True`` on success."""
        ...

    async def get_rate_limit(self) -> RateLimit:
        """Return the core API quota."""
        ...
