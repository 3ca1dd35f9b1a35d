"""``repo-browser-list``: print a repository listing streamed from a running server.

The command POSTs the URL to ``/api/v1/repo/streaming``, folds the NDJSON
response into a :class:`ClientAggregateState` and prints it as a compacted
directory tree (or a flat list) followed by a per-extension summary.
Progress messages go to stderr so stdout stays pipeable.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Iterator

import click
import httpx

from repo_browser.domain.exceptions import InvalidRepositoryUrlError
from repo_browser.domain.value_objects import RepositoryUrl
from repo_browser.infrastructure.repo_stream_client import RepoStreamClient
from repo_browser.services.client_state import ClientAggregateState, StreamAggregator
from repo_browser.services.extension_summary import summarize_extensions
from repo_browser.services.file_utils import format_file_size, github_file_url
from repo_browser.services.tree_builder import TreeNode, build_file_tree, compact_tree_paths

DEFAULT_SERVER = "http://127.0.0.1:8000"


def make_http_client(server: str, timeout: float) -> httpx.AsyncClient:
    # No read timeout: a large repository streams for minutes.
    return httpx.AsyncClient(base_url=server, timeout=httpx.Timeout(timeout, read=None))


class _ProgressAggregator(StreamAggregator):
    """Echoes status and warning messages to stderr as they arrive."""

    def on_status(self, message: str, file_count: int | None) -> None:
        super().on_status(message, file_count)
        click.echo(f"[{self.state.file_count} files] {message}", err=True)

    def on_warning(self, message: str, file_count: int | None) -> None:
        super().on_warning(message, file_count)
        click.echo(f"warning: {message}", err=True)


async def fetch_state(
    repository_url: str, *, server: str, timeout: float, progress: bool
) -> ClientAggregateState:
    aggregator = _ProgressAggregator() if progress else StreamAggregator()
    async with make_http_client(server, timeout) as http:
        return await RepoStreamClient(http).fetch_listing(repository_url, aggregator)


def render_tree(
    nodes: list[TreeNode],
    describe: Callable[[str, int | None], str],
    depth: int = 0,
) -> Iterator[str]:
    pad = "  " * depth
    for node in nodes:
        if node.kind == "folder":
            yield f"{pad}{node.display_path}/"
            yield from render_tree(node.children, describe, depth + 1)
        else:
            size = node.file.size if node.file is not None else None
            yield f"{pad}{node.display_path}  {describe(node.path, size)}"


def render_listing(
    url: RepositoryUrl,
    state: ClientAggregateState,
    *,
    flat: bool = False,
    links: bool = False,
    extensions: bool = True,
) -> Iterator[str]:
    """Yield the printable lines for a finished listing."""

    def describe(path: str, size: int | None) -> str:
        if links:
            return github_file_url(url.owner, url.repo, state.branch_name, path)
        return f"({format_file_size(size or 0)})"

    yield f"{url.full_name}@{state.branch_name}  {url.html_url}"
    yield (
        f"{len(state.files)} files, {state.total_directories or 0} directories, "
        f"{format_file_size(state.total_repo_size)}"
    )
    yield ""

    if flat:
        for entry in sorted(state.files, key=lambda f: f.path):
            yield f"{entry.path}  {describe(entry.path, entry.size)}"
    else:
        yield from render_tree(compact_tree_paths(build_file_tree(state.files)), describe)

    if extensions and state.files:
        yield ""
        for stats in summarize_extensions(state.files):
            yield (
                f"{stats.extension:<18} {stats.count:>6}  {stats.percentage:5.1f}%  "
                f"{format_file_size(stats.size)}"
            )


@click.command()
@click.argument("repository_url")
@click.option(
    "--server",
    default=DEFAULT_SERVER,
    show_default=True,
    envvar="REPO_BROWSER_SERVER",
    help="Base URL of a running repo-browser server.",
)
@click.option("--timeout", type=float, default=30.0, show_default=True,
              help="Connect timeout in seconds.")
@click.option("--flat", is_flag=True, help="One path per line instead of a nested tree.")
@click.option("--links", is_flag=True, help="Show github.com links instead of sizes.")
@click.option("--extensions/--no-extensions", default=True, show_default=True,
              help="Append a per-extension summary.")
@click.option("--quiet", "-q", is_flag=True, help="Do not print progress to stderr.")
def main(
    repository_url: str,
    server: str,
    timeout: float,
    flat: bool,
    links: bool,
    extensions: bool,
    quiet: bool,
) -> None:
    """List every file of REPOSITORY_URL, e.g. https://github.com/psf/requests."""
    try:
        url = RepositoryUrl.from_string(repository_url)
    except InvalidRepositoryUrlError as exc:
        raise click.BadParameter(str(exc), param_hint="REPOSITORY_URL") from exc

    state = asyncio.run(
        fetch_state(url.raw, server=server, timeout=timeout, progress=not quiet)
    )
    if state.error is not None:
        raise click.ClickException(state.error)

    for line in render_listing(url, state, flat=flat, links=links, extensions=extensions):
        click.echo(line)


if __name__ == "__main__":
    main()
