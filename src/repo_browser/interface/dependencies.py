"""FastAPI dependency injection wiring."""

from __future__ import annotations

import httpx
from fastapi import Depends

from repo_browser.domain.exceptions import ConfigurationError
from repo_browser.domain.ports.tree_source import TreeSource
from repo_browser.infrastructure.config import get_settings
from repo_browser.infrastructure.github_tree_client import GitHubTreeClient
from repo_browser.services.tree_materializer import TreeMaterializer

_http_client: httpx.AsyncClient | None = None


async def startup() -> None:
    """Initialise shared resources; called from the lifespan context manager.

    Refuses to start without a GitHub token.
    """
    global _http_client  # noqa: PLW0603

    settings = get_settings()
    if settings.github_access_token is None or not settings.github_access_token.get_secret_value():
        raise ConfigurationError("GITHUB_ACCESS_TOKEN environment variable is not set.")
    _http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.request_timeout_seconds))


async def shutdown() -> None:
    """Release shared resources."""
    global _http_client  # noqa: PLW0603

    if _http_client:
        await _http_client.aclose()
        _http_client = None


def get_tree_client() -> TreeSource:
    """Build a GitHub client over the shared HTTP connection pool."""
    settings = get_settings()

    assert _http_client is not None, "startup() was not called"

    token = (
        settings.github_access_token.get_secret_value()
        if settings.github_access_token
        else None
    )
    return GitHubTreeClient(
        client=_http_client, token=token, base_url=settings.github_api_url
    )


def get_materializer(
    tree_client: TreeSource = Depends(get_tree_client),
) -> TreeMaterializer:
    """One materializer per request; it holds no state between traversals."""
    return TreeMaterializer(tree_client, status_interval=get_settings().status_interval)
