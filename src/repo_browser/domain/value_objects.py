"""Self-validating domain primitives."""

from __future__ import annotations

import re
from dataclasses import dataclass

from repo_browser.domain.exceptions import InvalidRepositoryUrlError

_GITHUB_PREFIX_RE = re.compile(r"^https?://(?:www\.)?github\.com/", re.IGNORECASE)

# Strict form accepted by the pre-flight check: no branch, no trailing path.
_BARE_REPO_URL_RE = re.compile(
    r"^https?://github\.com/(?P<owner>[A-Za-z0-9\-_]+)/(?P<repo>[A-Za-z0-9_\-.]+?)(?:\.git)?/?$"
)


@dataclass(frozen=True, slots=True)
class RepositoryUrl:
    """Validated GitHub repository URL.

    Extracts *owner*, *repo* and an optional *ref* from URLs like
    ``https://github.com/psf/requests`` or
    ``https://github.com/psf/requests/tree/v2.31.0``.  ``ref`` is ``None``
    when the URL names no branch, meaning the default branch should be used.
    """

    owner: str
    repo: str
    ref: str | None
    raw: str

    @classmethod
    def from_string(cls, url: str) -> RepositoryUrl:
        """Parse a raw URL string."""
        url = url.strip()
        if not _GITHUB_PREFIX_RE.match(url):
            raise InvalidRepositoryUrlError(
                f"Invalid GitHub URL: '{url}'. "
                "Expected format: https://github.com/<owner>/<repo>"
            )

        segments = _GITHUB_PREFIX_RE.sub("", url).split("?", 1)[0].split("#", 1)[0].split("/")
        owner = segments[0] if segments else ""
        repo = segments[1] if len(segments) > 1 else ""
        if repo.endswith(".git"):
            repo = repo[: -len(".git")]
        if not owner or not repo:
            raise InvalidRepositoryUrlError(
                "Invalid GitHub URL: Missing owner or repository."
            )

        rest = segments[2:]
        if not rest or not rest[0]:
            return cls(owner=owner, repo=repo, ref=None, raw=url)

        if rest[0] == "tree":
            if len(rest) > 1 and rest[1]:
                return cls(owner=owner, repo=repo, ref=rest[1], raw=url)
        elif rest[0] != "blob":
            return cls(owner=owner, repo=repo, ref=rest[0], raw=url)

        raise InvalidRepositoryUrlError(
            "Invalid URL format: Could not determine branch from path."
        )

    @classmethod
    def from_bare_string(cls, url: str) -> RepositoryUrl:
        """Parse a URL that must name exactly ``owner/repo``."""
        url = url.strip()
        match = _BARE_REPO_URL_RE.match(url)
        if not match:
            raise InvalidRepositoryUrlError("Invalid GitHub repository URL format.")
        return cls(owner=match["owner"], repo=match["repo"], ref=None, raw=url)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def html_url(self) -> str:
        return f"https://github.com/{self.full_name}"
