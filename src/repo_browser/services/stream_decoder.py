"""Client-side NDJSON stream decoder.

Bytes arrive in arbitrary chunks: a JSON line may straddle two chunks, a
multi-byte character may be split in half, and the last line has no trailing
newline.  :class:`NdjsonStreamDecoder` turns such chunks back into complete
JSON lines, and :func:`dispatch_line` routes each line to a handler by its
``type``.

The decoder is lenient on the wire: malformed lines are dropped (logged at
debug level) and never reach the handlers.
"""

from __future__ import annotations

import codecs
import json
import logging
import math
import re
from typing import Any, AsyncIterable, Protocol

from repo_browser.domain.entities import TreeEntry
from repo_browser.services.file_utils import file_from_wire, is_valid_file

logger = logging.getLogger(__name__)

_JSON_DECODER = json.JSONDecoder()


class StreamHandlers(Protocol):
    """Callbacks invoked for each decoded event."""

    def on_file(self, file: TreeEntry) -> None: ...

    def on_error(self, message: str) -> None: ...

    def on_complete(self, total_files: int, total_directories: int | None) -> None: ...

    def on_branch(self, name: str) -> None: ...

    def on_status(self, message: str, file_count: int | None) -> None: ...

    def on_warning(self, message: str, file_count: int | None) -> None: ...


# ── Line framing ────────────────────────────────────────────────────────────


class NdjsonStreamDecoder:
    """Reassembles newline-delimited JSON lines from byte chunks.

    For any split of the same byte sequence into chunks, the lines returned
    by all :meth:`feed` calls plus :meth:`finish` are identical.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._residual = ""

    def feed(self, chunk: bytes) -> list[str]:
        """Consume one chunk and return the lines it completed."""
        self._residual += self._decoder.decode(chunk)
        *lines, self._residual = self._residual.split("\n")
        return [line for line in lines if line.strip()]

    def finish(self) -> list[str]:
        """Flush the residual buffer at end of stream.

        The residual is first tried as a single JSON value; if that fails the
        brace scanner salvages whatever complete objects it contains.
        """
        self._residual += self._decoder.decode(b"", final=True)
        residual, self._residual = self._residual, ""
        if not residual.strip():
            return []
        try:
            json.loads(residual)
        except ValueError:
            logger.debug("Final buffer is not a single JSON value; scanning %r", residual[:200])
            return recover_json_objects(residual)
        return [residual]


def recover_json_objects(buffer: str) -> list[str]:
    """Return every parseable top-level ``{...}`` object in *buffer*, in order.

    ``'{"a":1}{invalid}{"b":2}'`` yields ``['{"a":1}', '{"b":2}']``.  When a
    candidate fails to parse, or never closes, the scan drops one character
    and restarts at the next ``{``.

    One pass from a start brace also settles every later brace it meets
    outside a string, so a restart only rescans when it begins inside a
    string seen by an earlier pass.
    """
    recovered: list[str] = []
    ends: dict[int, int | None] = {}
    start = buffer.find("{")
    while start != -1:
        if start not in ends:
            ends.update(_brace_ends(buffer, start))
        end = ends[start]
        if end is not None and _object_spans(buffer, start, end):
            recovered.append(buffer[start:end])
            start = buffer.find("{", end)
            continue
        start = buffer.find("{", start + 1)
    return recovered


def _brace_ends(text: str, start: int) -> dict[int, int | None]:
    """Scan from *start* and pair every ``{`` met outside a string.

    Maps each opening index to the index just past its closing brace, or to
    ``None`` when the text ends first.
    """
    ends: dict[int, int | None] = {}
    open_braces: list[int] = []
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            open_braces.append(index)
        elif char == "}" and open_braces:
            ends[open_braces.pop()] = index + 1
    for index in open_braces:
        ends[index] = None
    return ends


def _object_spans(text: str, start: int, end: int) -> bool:
    """True when text[start:end] is exactly one JSON object."""
    try:
        value, stop = _JSON_DECODER.raw_decode(text, start)
    except (ValueError, RecursionError):
        return False
    return stop == end and isinstance(value, dict)


# ── Status-text mining (best effort, never authoritative) ───────────────────

_COUNT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"total:\s*(\d+)", re.IGNORECASE),
    re.compile(r"(\d+)\s+files\s+(?:loaded|found)", re.IGNORECASE),
    re.compile(r"processed\s+(\d+)\s+files", re.IGNORECASE),
)


def extract_file_count(message: str) -> int:
    """Pull a running file count out of free text; 0 when none is found."""
    for pattern in _COUNT_PATTERNS:
        match = pattern.search(message)
        if match:
            return int(match.group(1))
    return 0


def resolve_file_count(message: str, files_processed: Any) -> int | None:
    """Prefer the structured count; fall back to mining *message*."""
    if _is_number(files_processed) and files_processed > 0:
        return int(files_processed)
    mined = extract_file_count(message)
    return mined if mined > 0 else None


# ── Dispatch ────────────────────────────────────────────────────────────────


def dispatch_line(line: str, handlers: StreamHandlers) -> bool:
    """Parse one line and invoke the matching handler.

    Returns ``True`` when a handler was called.
    """
    try:
        data = json.loads(line)
    except ValueError:
        logger.debug("Dropping unparseable line: %.200s", line)
        return False
    if not isinstance(data, dict):
        return False

    kind = data.get("type")

    if kind == "error":
        handlers.on_error(str(data.get("message") or "Unknown error"))
        return True

    if kind == "complete":
        total_files = data.get("total_files")
        total_dirs = data.get("total_directories")
        handlers.on_complete(
            int(total_files) if _is_number(total_files) else 0,
            int(total_dirs) if _is_number(total_dirs) else None,
        )
        return True

    if kind == "branch":
        name = data.get("name")
        if not isinstance(name, str):
            return False
        handlers.on_branch(name)
        return True

    if kind in ("status", "warning"):
        message = data.get("message")
        if not isinstance(message, str) or not message:
            return False
        count = resolve_file_count(message, data.get("files_processed"))
        if kind == "status":
            handlers.on_status(message, count)
        else:
            handlers.on_warning(message, count)
        return True

    if is_valid_file(data):
        handlers.on_file(file_from_wire(data))
        return True

    logger.debug("Dropping unrecognised record: %.200s", line)
    return False


async def decode_stream(chunks: AsyncIterable[bytes], handlers: StreamHandlers) -> None:
    """Drive a decoder over *chunks* and dispatch every recovered line."""
    decoder = NdjsonStreamDecoder()
    async for chunk in chunks:
        for line in decoder.feed(chunk):
            dispatch_line(line, handlers)
    for line in decoder.finish():
        dispatch_line(line, handlers)


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )
