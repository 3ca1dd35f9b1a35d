"""Domain exception hierarchy.

Each exception maps to a specific HTTP status code at the interface layer.
Inner layers raise these; the outermost error-handler translates them.
During a streamed traversal they never reach the handler: the materializer
turns them into ``warning`` or ``error`` events instead.
"""

from __future__ import annotations


class RepoBrowserError(Exception):
    """Base exception for the entire application."""


# ── Input validation ────────────────────────────────────────────────────────


class InvalidArgumentError(RepoBrowserError):
    """A required owner / repo / branch value is missing or empty."""


class InvalidRepositoryUrlError(InvalidArgumentError):
    """The supplied URL does not point to a GitHub repository."""


# ── GitHub API errors ───────────────────────────────────────────────────────


class NotFoundError(RepoBrowserError):
    """The repository or branch does not exist (404)."""


class UpstreamError(RepoBrowserError):
    """GitHub answered with a non-success status or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GitHubRateLimitError(UpstreamError):
    """GitHub API rate limit exceeded (429 / 403 with rate-limit header)."""


# ── Configuration ───────────────────────────────────────────────────────────


class ConfigurationError(RepoBrowserError):
    """The GitHub access token is not configured."""
