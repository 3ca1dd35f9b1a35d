"""NDJSON transport: one compact JSON object per line.

The response body is pulled from :func:`ndjson_stream` one line at a time, so
the materializer does no work until the transport asks for the next event.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import AsyncIterator, Awaitable, Callable

from repo_browser.domain.events import TERMINAL_EVENTS, StreamEvent

logger = logging.getLogger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson; charset=utf-8"

# Keeps browsers from sniffing the stream as HTML.
NDJSON_HEADERS: dict[str, str] = {"X-Content-Type-Options": "nosniff"}


def encode_event(event: StreamEvent) -> bytes:
    """Serialise one event as a compact, newline-terminated UTF-8 line."""
    line = json.dumps(event.to_wire(), separators=(",", ":"), ensure_ascii=False)
    return (line + "\n").encode("utf-8")


async def ndjson_stream(
    events: AsyncIterator[StreamEvent],
    *,
    cancel: asyncio.Event | None = None,
    is_disconnected: Callable[[], Awaitable[bool]] | None = None,
) -> AsyncIterator[bytes]:
    """Encode *events* lazily; stop writing when the client goes away.

    ``is_disconnected`` is polled before each event is written.  On a
    disconnect with a *cancel* flag, the flag is set and the remaining
    events are drained unwritten, so the traversal ends itself at its next
    checkpoint (before any further fetch) with its own terminal event.
    Without a flag the event source is simply closed.
    """
    try:
        async for event in events:
            if is_disconnected is not None and await is_disconnected():
                logger.info("Client disconnected; abandoning stream")
                if cancel is not None:
                    cancel.set()
                    await _drain(events)
                break
            yield encode_event(event)
    finally:
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()


async def _drain(events: AsyncIterator[StreamEvent]) -> None:
    async for event in events:
        if isinstance(event, TERMINAL_EVENTS):
            logger.info("Abandoned stream ended with %s", event.to_wire())
