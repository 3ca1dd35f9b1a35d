"""Request and response bodies of the HTTP API."""

from __future__ import annotations

from pydantic import BaseModel, field_validator

from repo_browser.domain.entities import BranchInfo, RateLimit, TreeEntry


class RepositoryRequest(BaseModel):
    """Request body for the ``/api/v1/repo*`` endpoints."""

    url: str

    @field_validator("url")
    @classmethod
    def _github_host(cls, value: str) -> str:
        # Full parsing happens in RepositoryUrl; this only rejects other hosts early.
        value = value.strip()
        if not value:
            raise ValueError("url must not be empty")
        if "github.com" not in value.lower():
            raise ValueError(f"'{value}' is not a github.com repository URL")
        return value


class TreeEntryModel(BaseModel):
    path: str
    mode: str
    type: str
    sha: str
    size: int | None = None
    url: str

    @classmethod
    def from_entry(cls, entry: TreeEntry) -> TreeEntryModel:
        return cls(
            path=entry.path,
            mode=entry.mode,
            type=entry.kind.value,
            sha=entry.sha,
            size=entry.size,
            url=entry.url,
        )


class BranchInfoModel(BaseModel):
    name: str
    commit_sha: str
    protected: bool

    @classmethod
    def from_branch(cls, branch: BranchInfo) -> BranchInfoModel:
        return cls(name=branch.name, commit_sha=branch.commit_sha, protected=branch.protected)


class RepositoryTreeResponse(BaseModel):
    """Successful response from ``POST /api/v1/repo``."""

    branch_info: BranchInfoModel
    tree: list[TreeEntryModel]
    truncated: bool


class RateLimitResponse(BaseModel):
    """Core quota of the configured token."""

    remaining: int
    reset: int

    @classmethod
    def from_rate_limit(cls, limit: RateLimit) -> RateLimitResponse:
        return cls(remaining=limit.remaining, reset=limit.reset_epoch_seconds)


class RepoCheckResponse(BaseModel):
    """Outcome of the pre-flight check; exactly one of owner/repo or error is set."""

    owner: str | None = None
    repo: str | None = None
    error: str | None = None
    rate_limit_reset_time: str | None = None


class ErrorResponse(BaseModel):
    """Standard error envelope returned on all failure paths."""

    status: str = "error"
    message: str
