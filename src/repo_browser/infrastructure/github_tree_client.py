"""GitHub REST API client implementing the TreeSource port."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from repo_browser.domain.entities import (
    BranchInfo,
    EntryKind,
    RateLimit,
    RepoInfo,
    TreeEntry,
    TreeListing,
)
from repo_browser.domain.exceptions import (
    ConfigurationError,
    GitHubRateLimitError,
    InvalidArgumentError,
    NotFoundError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"


class GitHubTreeClient:
    """Concrete TreeSource backed by the GitHub v3 REST API.

    One instance is cheap; the underlying ``httpx.AsyncClient`` is shared and
    owned by the caller.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        token: str | None,
        base_url: str = GITHUB_API,
    ) -> None:
        if not token:
            raise ConfigurationError("GITHUB_ACCESS_TOKEN environment variable is not set.")
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._headers: dict[str, str] = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "repo-browser/1.0",
            "Authorization": f"Bearer {token}",
        }

    async def get_repo_info(self, owner: str, repo: str) -> RepoInfo:
        """GET /repos/{owner}/{repo} → RepoInfo."""
        _require(owner=owner, repo=repo)
        data = await self._get_json(f"/repos/{owner}/{repo}", what="repo")
        default_branch = data.get("default_branch")
        if not isinstance(default_branch, str) or not default_branch:
            raise UpstreamError(f"GitHub returned no default branch for {owner}/{repo}.")
        return RepoInfo(owner=owner, repo=repo, default_branch=default_branch)

    async def get_branch(self, owner: str, repo: str, branch: str) -> BranchInfo:
        """GET /repos/{owner}/{repo}/branches/{branch} → BranchInfo."""
        _require(owner=owner, repo=repo, branch=branch)
        data = await self._get_json(
            f"/repos/{owner}/{repo}/branches/{branch}", what="branch"
        )
        commit = data.get("commit") or {}
        sha = commit.get("sha")
        if not isinstance(sha, str) or not sha:
            raise UpstreamError(f"GitHub returned no commit for branch '{branch}'.")
        return BranchInfo(
            name=data.get("name", branch),
            commit_sha=sha,
            protected=bool(data.get("protected", False)),
        )

    async def get_tree(
        self, owner: str, repo: str, sha_or_branch: str, *, recursive: bool = False
    ) -> TreeListing:
        """GET /repos/{owner}/{repo}/git/trees/{sha} → TreeListing.

        Non-recursive by default: only the direct children are returned and
        their ``path`` is a single segment.
        """
        _require(owner=owner, repo=repo, sha=sha_or_branch)
        params = {"recursive": "true"} if recursive else None
        data = await self._get_json(
            f"/repos/{owner}/{repo}/git/trees/{sha_or_branch}",
            what="tree files",
            params=params,
        )
        try:
            entries = _parse_entries(data.get("tree", []))
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise UpstreamError(f"Malformed tree listing for {sha_or_branch}: {exc}") from exc
        return TreeListing(
            sha=data.get("sha", sha_or_branch),
            entries=entries,
            truncated=bool(data.get("truncated", False)),
        )

    async def repo_exists(self, owner: str, repo: str) -> bool:
        """HEAD-style existence probe; 404 means ``False``."""
        _require(owner=owner, repo=repo)
        resp = await self._send(f"/repos/{owner}/{repo}")
        if resp.status_code == 404:
            return False
        if resp.is_success:
            return True
        raise UpstreamError(
            f"Failed to check repo existence: {resp.status_code} {resp.reason_phrase}",
            status_code=resp.status_code,
        )

    async def get_rate_limit(self) -> RateLimit:
        """GET /rate_limit → RateLimit (core resource)."""
        data = await self._get_json("/rate_limit", what="rate limit")
        core = (data.get("resources") or {}).get("core") or {}
        try:
            return RateLimit(
                remaining=int(core["remaining"]),
                reset_epoch_seconds=int(core["reset"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise UpstreamError(f"Malformed rate limit payload: {exc}") from exc

    # ── HTTP plumbing ───────────────────────────────────────────────────

    async def _send(
        self, endpoint: str, params: dict[str, str] | None = None
    ) -> httpx.Response:
        url = f"{self._base_url}{endpoint}"
        try:
            return await self._client.get(url, headers=self._headers, params=params)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Network error fetching {url}: {exc}") from exc

    async def _get_json(
        self,
        endpoint: str,
        *,
        what: str,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Perform a GitHub API GET request with error translation."""
        resp = await self._send(endpoint, params)

        if resp.is_success:
            try:
                data = resp.json()
            except ValueError as exc:
                raise UpstreamError(f"GitHub returned invalid JSON for {what}: {exc}") from exc
            if not isinstance(data, dict):
                raise UpstreamError(f"GitHub returned an unexpected {what} payload.")
            return data

        logger.warning(
            "Failed to fetch %s: %s %s %s",
            what,
            resp.status_code,
            resp.reason_phrase,
            resp.text[:200],
        )

        if resp.status_code == 404:
            raise NotFoundError(f"Failed to fetch {what}: 404 Not Found")

        if resp.status_code in (403, 429) and resp.headers.get("x-ratelimit-remaining") == "0":
            raise GitHubRateLimitError(
                "GitHub API rate limit exceeded. "
                f"Resets at {_format_reset(resp.headers.get('x-ratelimit-reset', ''))}.",
                status_code=resp.status_code,
            )

        raise UpstreamError(
            f"Failed to fetch {what}: {resp.status_code} {resp.reason_phrase} - {_error_text(resp)}",
            status_code=resp.status_code,
        )


# ── Helpers ─────────────────────────────────────────────────────────────────


def _require(**values: str) -> None:
    missing = [name for name, value in values.items() if not value]
    if missing:
        raise InvalidArgumentError(
            f"Owner and repo must be provided (missing: {', '.join(missing)})."
        )


def _parse_entries(items: list[dict[str, Any]]) -> list[TreeEntry]:
    entries: list[TreeEntry] = []
    for item in items:
        # Submodules appear as "commit" entries and have no content here.
        if item.get("type") not in ("blob", "tree"):
            continue
        kind = EntryKind(item["type"])
        size = item.get("size") if kind is EntryKind.BLOB else None
        entries.append(
            TreeEntry(
                path=str(item["path"]),
                mode=str(item.get("mode", "")),
                kind=kind,
                sha=str(item["sha"]),
                url=str(item.get("url") or ""),
                size=int(size or 0) if kind is EntryKind.BLOB else None,
            )
        )
    return entries


def _error_text(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return resp.text[:200]


def _format_reset(reset_raw: str) -> str:
    try:
        return datetime.fromtimestamp(int(reset_raw), tz=timezone.utc).strftime(
            "%Y-%m-%d %H:%M:%S UTC"
        )
    except (ValueError, OSError):
        return reset_raw or "unknown"
