"""HTTP-level tests for the FastAPI application."""

from __future__ import annotations

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from fakes import FakeTreeSource, blob, tree
from repo_browser.domain.entities import RateLimit
from repo_browser.domain.exceptions import ConfigurationError
from repo_browser.infrastructure.config import get_settings
from repo_browser.infrastructure.github_tree_client import GitHubTreeClient
from repo_browser.interface import dependencies
from repo_browser.interface.app import create_app
from repo_browser.interface.dependencies import get_tree_client


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def source() -> FakeTreeSource:
    return FakeTreeSource(
        {
            "c0": [blob("file1.txt", "a1", 10), tree("folder1", "t1")],
            "t1": [blob("file2.txt", "b2", 20)],
            "main": [blob("file1.txt", "a1", 10), blob("folder1/file2.txt", "b2", 20)],
        },
        branches={"main": "c0", "dev": "c0"},
    )


@pytest.fixture
def client(source: FakeTreeSource) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_tree_client] = lambda: source
    return TestClient(app)


def _ndjson(text: str) -> list[dict]:
    return [json.loads(line) for line in text.splitlines() if line]


def test_health(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_openapi_documents_error_envelope(client: TestClient) -> None:
    schema = client.get("/openapi.json").json()
    responses = schema["paths"]["/api/v1/repo/streaming"]["post"]["responses"]
    assert {"200", "400", "404", "500"} <= set(responses)
    assert "ErrorResponse" in schema["components"]["schemas"]


class TestStreamingEndpoint:
    def test_streams_ndjson(self, client: TestClient) -> None:
        resp = client.post("/api/v1/repo/streaming", json={"url": "https://github.com/o/r"})

        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/x-ndjson; charset=utf-8"
        assert resp.headers["x-content-type-options"] == "nosniff"
        events = _ndjson(resp.text)
        assert events[0] == {"type": "branch", "name": "main"}
        assert [e["path"] for e in events if e["type"] == "file"] == [
            "file1.txt",
            "folder1/file2.txt",
        ]
        assert events[-1] == {"type": "complete", "total_files": 2, "total_directories": 1}

    def test_every_line_is_compact_json(self, client: TestClient) -> None:
        resp = client.post("/api/v1/repo/streaming", json={"url": "https://github.com/o/r"})
        lines = resp.text.split("\n")
        assert lines[0] == '{"type":"branch","name":"main"}'
        assert lines[-1] == ""
        assert all(json.loads(line)["type"] for line in lines[:-1])

    def test_branch_from_url(self, client: TestClient) -> None:
        resp = client.post(
            "/api/v1/repo/streaming", json={"url": "https://github.com/o/r/tree/dev"}
        )
        assert _ndjson(resp.text)[0] == {"type": "branch", "name": "dev"}

    def test_unknown_branch_is_an_error_event(self, client: TestClient) -> None:
        resp = client.post(
            "/api/v1/repo/streaming", json={"url": "https://github.com/o/r/tree/nope"}
        )
        assert resp.status_code == 200
        assert _ndjson(resp.text) == [
            {"type": "error", "message": "Branch 'nope' not found in repository o/r."}
        ]

    def test_missing_repository_is_404(self, client: TestClient, source: FakeTreeSource) -> None:
        source.repo_missing = True
        resp = client.post("/api/v1/repo/streaming", json={"url": "https://github.com/o/r"})
        assert resp.status_code == 404
        assert resp.json() == {"status": "error", "message": "Repository o/r not found."}

    @pytest.mark.parametrize(
        "body",
        [{}, {"url": ""}, {"url": "https://gitlab.com/o/r"}, {"url": 5}],
    )
    def test_invalid_body_is_400(self, client: TestClient, body: dict) -> None:
        resp = client.post("/api/v1/repo/streaming", json=body)
        assert resp.status_code == 400
        payload = resp.json()
        assert payload["status"] == "error"
        assert payload["message"].startswith("Invalid request body")

    def test_unparseable_github_url_is_400(self, client: TestClient) -> None:
        resp = client.post("/api/v1/repo/streaming", json={"url": "https://github.com/o"})
        assert resp.status_code == 400
        assert resp.json() == {
            "status": "error",
            "message": "Invalid GitHub URL: Missing owner or repository.",
        }


class TestRepositoryEndpoint:
    def test_recursive_listing(self, client: TestClient, source: FakeTreeSource) -> None:
        resp = client.post("/api/v1/repo", json={"url": "https://github.com/o/r"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["branch_info"] == {"name": "main", "commit_sha": "c0", "protected": False}
        assert [e["path"] for e in body["tree"]] == ["file1.txt", "folder1/file2.txt"]
        assert body["truncated"] is False
        assert source.recursive_calls == ["main"]

    def test_truncated_flag(self, client: TestClient, source: FakeTreeSource) -> None:
        source.truncated.add("main")
        assert client.post("/api/v1/repo", json={"url": "https://github.com/o/r"}).json()[
            "truncated"
        ] is True


def test_rate_limit(client: TestClient) -> None:
    resp = client.get("/api/v1/rate-limit")
    assert resp.status_code == 200
    assert resp.json() == {"remaining": 4999, "reset": 1_700_000_000}


class TestCheckEndpoint:
    def test_ok(self, client: TestClient) -> None:
        resp = client.post("/api/v1/repo/check", json={"url": "https://github.com/o/r"})
        assert resp.status_code == 200
        assert resp.json() == {
            "owner": "o",
            "repo": "r",
            "error": None,
            "rate_limit_reset_time": None,
        }

    def test_url_with_branch_is_rejected(self, client: TestClient) -> None:
        resp = client.post(
            "/api/v1/repo/check", json={"url": "https://github.com/o/r/tree/main"}
        )
        assert resp.status_code == 200
        assert resp.json()["error"] == "Invalid GitHub repository URL format."

    def test_rate_limit_exhausted(self, client: TestClient, source: FakeTreeSource) -> None:
        source.rate_limit = RateLimit(remaining=0, reset_epoch_seconds=1_700_000_000)
        body = client.post("/api/v1/repo/check", json={"url": "https://github.com/o/r"}).json()
        assert body["error"] == "GitHub API rate limit exceeded."
        assert body["rate_limit_reset_time"] == "Please wait until 22:13:20 UTC to try again."

    def test_missing_repository(self, client: TestClient, source: FakeTreeSource) -> None:
        source.repo_missing = True
        body = client.post("/api/v1/repo/check", json={"url": "https://github.com/o/r"}).json()
        assert body["error"] == "Repository o/r does not exist or is not accessible."
        assert body["owner"] is None


class TestStartup:
    def test_refuses_to_start_without_token(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GITHUB_ACCESS_TOKEN", raising=False)
        with pytest.raises(ConfigurationError, match="GITHUB_ACCESS_TOKEN"):
            asyncio.run(dependencies.startup())

    def test_builds_client_from_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GITHUB_ACCESS_TOKEN", "ghp_test")
        monkeypatch.setenv("STATUS_INTERVAL", "7")

        async def _run() -> tuple[object, int]:
            await dependencies.startup()
            try:
                tree_client = dependencies.get_tree_client()
                materializer = dependencies.get_materializer(tree_client)
                return tree_client, materializer._status_interval
            finally:
                await dependencies.shutdown()

        tree_client, interval = asyncio.run(_run())
        assert isinstance(tree_client, GitHubTreeClient)
        assert interval == 7
