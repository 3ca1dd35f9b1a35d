"""HTTP consumer for the streaming listing endpoint."""

from __future__ import annotations

import logging

import httpx

from repo_browser.services.client_state import ClientAggregateState, StreamAggregator
from repo_browser.services.stream_decoder import decode_stream

logger = logging.getLogger(__name__)

STREAMING_PATH = "/api/v1/repo/streaming"


class RepoStreamClient:
    """POSTs a repository URL and folds the NDJSON response into client state.

    Failures never raise: they end up as ``state.error`` just like an
    ``error`` event from the server would.
    """

    def __init__(self, client: httpx.AsyncClient, base_url: str = "") -> None:
        self._client = client
        self._url = f"{base_url.rstrip('/')}{STREAMING_PATH}"

    async def fetch_listing(
        self,
        repository_url: str,
        aggregator: StreamAggregator | None = None,
    ) -> ClientAggregateState:
        """Stream the listing of *repository_url* and return the final state."""
        aggregator = aggregator if aggregator is not None else StreamAggregator()
        try:
            async with self._client.stream(
                "POST", self._url, json={"url": repository_url}
            ) as resp:
                if not resp.is_success:
                    await resp.aread()
                    aggregator.on_error(_failure_message(resp))
                    return aggregator.finish()
                await decode_stream(resp.aiter_bytes(), aggregator)
        except httpx.HTTPError as exc:
            logger.warning("Listing stream for %s failed: %s", repository_url, exc)
            aggregator.on_error(f"Failed to fetch stream: {exc}")
        return aggregator.finish()


def _failure_message(resp: httpx.Response) -> str:
    detail = None
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        detail = body.get("message") or body.get("error")
    if detail:
        return f"API request failed with status {resp.status_code}: {detail}"
    return f"API request failed with status {resp.status_code}"
