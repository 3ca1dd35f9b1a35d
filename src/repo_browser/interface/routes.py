"""API routes. Thin controllers over the tree client and the materializer."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from repo_browser.domain.exceptions import (
    InvalidRepositoryUrlError,
    NotFoundError,
)
from repo_browser.domain.ports.tree_source import TreeSource
from repo_browser.domain.value_objects import RepositoryUrl
from repo_browser.interface.dependencies import get_materializer, get_tree_client
from repo_browser.interface.schemas import (
    BranchInfoModel,
    ErrorResponse,
    RateLimitResponse,
    RepoCheckResponse,
    RepositoryRequest,
    RepositoryTreeResponse,
    TreeEntryModel,
)
from repo_browser.services.ndjson_transport import (
    NDJSON_HEADERS,
    NDJSON_MEDIA_TYPE,
    ndjson_stream,
)
from repo_browser.services.tree_materializer import TreeMaterializer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")

_ERROR_RESPONSES: dict[int | str, dict] = {
    400: {"model": ErrorResponse, "description": "Malformed request or repository URL"},
    404: {"model": ErrorResponse, "description": "Repository not found"},
    500: {"model": ErrorResponse, "description": "GitHub API or server configuration error"},
}


async def _resolve_ref(tree_client: TreeSource, url: RepositoryUrl) -> str:
    """Use the branch named in the URL, else the repository's default branch."""
    if url.ref:
        return url.ref
    try:
        info = await tree_client.get_repo_info(url.owner, url.repo)
    except NotFoundError as exc:
        raise NotFoundError(f"Repository {url.full_name} not found.") from exc
    logger.debug("Using default branch %s of %s", info.default_branch, url.full_name)
    return info.default_branch


@router.post(
    "/repo/streaming",
    response_class=StreamingResponse,
    responses={200: {"content": {"application/x-ndjson": {}}}, **_ERROR_RESPONSES},
)
async def stream_repository(
    body: RepositoryRequest,
    request: Request,
    tree_client: TreeSource = Depends(get_tree_client),
    materializer: TreeMaterializer = Depends(get_materializer),
) -> StreamingResponse:
    """Stream every file of a repository as newline-delimited JSON."""
    url = RepositoryUrl.from_string(body.url)
    ref = await _resolve_ref(tree_client, url)
    logger.info("Streaming %s@%s", url.full_name, ref)

    cancel = asyncio.Event()
    events = materializer.materialize(url.owner, url.repo, ref, cancel)
    return StreamingResponse(
        ndjson_stream(events, cancel=cancel, is_disconnected=request.is_disconnected),
        media_type=NDJSON_MEDIA_TYPE,
        headers=NDJSON_HEADERS,
    )


@router.post("/repo", response_model=RepositoryTreeResponse, responses=_ERROR_RESPONSES)
async def get_repository(
    body: RepositoryRequest,
    tree_client: TreeSource = Depends(get_tree_client),
) -> RepositoryTreeResponse:
    """Return branch info and GitHub's recursive listing in one response.

    GitHub caps recursive listings; ``truncated`` tells the caller when
    entries were dropped.
    """
    url = RepositoryUrl.from_string(body.url)
    ref = await _resolve_ref(tree_client, url)
    branch = await tree_client.get_branch(url.owner, url.repo, ref)
    listing = await tree_client.get_tree(url.owner, url.repo, ref, recursive=True)
    return RepositoryTreeResponse(
        branch_info=BranchInfoModel.from_branch(branch),
        tree=[TreeEntryModel.from_entry(entry) for entry in listing.entries],
        truncated=listing.truncated,
    )


@router.get("/rate-limit", response_model=RateLimitResponse)
async def rate_limit(
    tree_client: TreeSource = Depends(get_tree_client),
) -> RateLimitResponse:
    """Remaining core API quota of the configured token."""
    return RateLimitResponse.from_rate_limit(await tree_client.get_rate_limit())


@router.post("/repo/check", response_model=RepoCheckResponse)
async def check_repository(
    body: RepositoryRequest,
    tree_client: TreeSource = Depends(get_tree_client),
) -> RepoCheckResponse:
    """Pre-flight check run before navigating to a listing.

    Problems are reported in the body rather than as HTTP errors.
    """
    try:
        url = RepositoryUrl.from_bare_string(body.url)
    except InvalidRepositoryUrlError as exc:
        return RepoCheckResponse(error=str(exc))

    limit = await tree_client.get_rate_limit()
    if limit.remaining <= 0:
        reset = datetime.fromtimestamp(limit.reset_epoch_seconds, tz=timezone.utc)
        return RepoCheckResponse(
            error="GitHub API rate limit exceeded.",
            rate_limit_reset_time=(
                f"Please wait until {reset.strftime('%H:%M:%S')} UTC to try again."
            ),
        )

    if not await tree_client.repo_exists(url.owner, url.repo):
        return RepoCheckResponse(
            error=f"Repository {url.full_name} does not exist or is not accessible."
        )

    return RepoCheckResponse(owner=url.owner, repo=url.repo)
