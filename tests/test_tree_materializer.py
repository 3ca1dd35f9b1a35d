"""Tests for the breadth-first tree materializer."""

from __future__ import annotations

import asyncio

import pytest

from fakes import FakeTreeSource, blob, collect, tree
from repo_browser.domain.events import (
    BranchEvent,
    CompleteEvent,
    ErrorEvent,
    FileEvent,
    StatusEvent,
    WarningEvent,
)
from repo_browser.domain.exceptions import UpstreamError
from repo_browser.services.tree_materializer import CANCELLED_MESSAGE, TreeMaterializer


def _run(source: FakeTreeSource, ref: str = "main", **kwargs) -> list:
    return collect(TreeMaterializer(source, **kwargs).materialize("o", "r", ref))


def _files(events: list) -> list[str]:
    return [e.entry.path for e in events if isinstance(e, FileEvent)]


def _terminal_count(events: list) -> int:
    return sum(isinstance(e, (CompleteEvent, ErrorEvent)) for e in events)


class TestEndToEndScenario:
    @pytest.fixture
    def events(self) -> list:
        source = FakeTreeSource(
            {
                "c0": [blob("file1.txt", "a1", 10), tree("folder1", "t1")],
                "t1": [blob("file2.txt", "b2", 20)],
            }
        )
        return _run(source)

    def test_event_order(self, events: list) -> None:
        assert [type(e) for e in events] == [
            BranchEvent,
            StatusEvent,
            FileEvent,
            StatusEvent,
            StatusEvent,
            StatusEvent,
            FileEvent,
            StatusEvent,
            StatusEvent,
            CompleteEvent,
        ]

    def test_messages(self, events: list) -> None:
        assert events[0] == BranchEvent("main")
        assert events[1].message == "Found root directory with 2 items"
        assert events[3].message == "Processed 1 files in root directory"
        assert events[4].message == "Found 1 directories to process"
        assert events[5].message == "Processing directory: folder1"
        assert events[7].message == "Completed directory folder1: Found 1 files (total: 2)"
        assert events[8].message.startswith("Completed batch 1: processed 1 directories")

    def test_paths_are_fully_qualified(self, events: list) -> None:
        assert _files(events) == ["file1.txt", "folder1/file2.txt"]
        assert events[6].entry.size == 20

    def test_complete_totals(self, events: list) -> None:
        assert events[-1] == CompleteEvent(total_files=2, total_directories=1)

    def test_status_carries_running_count(self, events: list) -> None:
        statuses = [e for e in events if isinstance(e, StatusEvent)]
        assert [s.files_processed for s in statuses] == [0, 1, 1, 1, 2, 2]


class TestDeduplication:
    def test_blob_reachable_twice_is_emitted_once(self) -> None:
        source = FakeTreeSource(
            {
                "c0": [tree("a", "tA"), tree("b", "tB")],
                "tA": [blob("x.txt", "same")],
                "tB": [blob("y.txt", "same")],
            }
        )
        events = _run(source)
        assert _files(events) == ["a/x.txt"]
        assert events[-1] == CompleteEvent(total_files=1, total_directories=2)

    def test_shared_subtree_is_expanded_once(self) -> None:
        source = FakeTreeSource(
            {
                "c0": [tree("a", "tA"), tree("b", "tB")],
                "tA": [tree("shared", "tS")],
                "tB": [tree("shared", "tS")],
                "tS": [blob("z.txt", "z1")],
            }
        )
        events = _run(source)
        assert source.tree_calls.count("tS") == 1
        assert _files(events) == ["a/shared/z.txt"]
        assert events[-1] == CompleteEvent(total_files=1, total_directories=3)

    def test_same_tree_twice_in_one_listing(self) -> None:
        source = FakeTreeSource(
            {"c0": [tree("a", "tX"), tree("b", "tX")], "tX": [blob("f", "f1")]}
        )
        events = _run(source)
        assert source.tree_calls == ["c0", "tX"]
        assert events[-1] == CompleteEvent(total_files=1, total_directories=1)

    def test_duplicate_blob_in_root(self) -> None:
        source = FakeTreeSource({"c0": [blob("a", "s1"), blob("b", "s1")]})
        events = _run(source)
        assert _files(events) == ["a"]

    def test_each_tree_fetched_at_most_once_in_deep_tree(self) -> None:
        source = FakeTreeSource(
            {
                "c0": [tree("a", "t1")],
                "t1": [tree("b", "t2"), blob("one", "b1")],
                "t2": [tree("c", "t3"), blob("two", "b2")],
                "t3": [blob("three", "b3")],
            }
        )
        events = _run(source)
        assert sorted(source.tree_calls) == ["c0", "t1", "t2", "t3"]
        assert _files(events) == ["a/one", "a/b/two", "a/b/c/three"]


class TestPartialFailure:
    def test_failed_subtree_warns_once_and_completes(self) -> None:
        source = FakeTreeSource(
            {
                "c0": [tree("good", "tG"), tree("bad", "tB"), blob("root.txt", "r1")],
                "tG": [blob("ok.txt", "g1")],
                "tB": UpstreamError("Failed to fetch tree files: 500 boom"),
            }
        )
        events = _run(source)

        warnings = [e for e in events if isinstance(e, WarningEvent)]
        assert len(warnings) == 1
        assert warnings[0].message == (
            "Skipped directory bad due to error: Failed to fetch tree files: 500 boom"
        )
        assert _terminal_count(events) == 1
        assert events[-1] == CompleteEvent(total_files=2, total_directories=2)

    def test_siblings_after_failure_are_still_walked(self) -> None:
        source = FakeTreeSource(
            {
                "c0": [tree("bad", "tB"), tree("later", "tL")],
                "tB": RuntimeError("connection reset"),
                "tL": [tree("deeper", "tD")],
                "tD": [blob("found.txt", "d1")],
            }
        )
        events = _run(source)
        assert _files(events) == ["later/deeper/found.txt"]
        assert isinstance(events[-1], CompleteEvent)

    def test_truncated_listing_is_surfaced(self) -> None:
        source = FakeTreeSource(
            {"c0": [tree("big", "tBig")], "tBig": [blob("f", "f1")]},
            truncated=["tBig"],
        )
        events = _run(source)
        warnings = [e for e in events if isinstance(e, WarningEvent)]
        assert len(warnings) == 1
        assert "big" in warnings[0].message
        assert isinstance(events[-1], CompleteEvent)


class TestFatalFailures:
    def test_missing_branch(self) -> None:
        source = FakeTreeSource({}, branches={})
        events = _run(source, ref="develop")
        assert events == [ErrorEvent("Branch 'develop' not found in repository o/r.")]

    def test_branch_fetch_failure(self) -> None:
        source = FakeTreeSource({}, branch_error=UpstreamError("503 Service Unavailable"))
        events = _run(source)
        assert events == [ErrorEvent("Failed to fetch branch 'main': 503 Service Unavailable")]
        assert source.tree_calls == []

    def test_root_tree_failure_is_a_single_error(self) -> None:
        source = FakeTreeSource({"c0": UpstreamError("500 boom")})
        events = _run(source)
        assert isinstance(events[0], BranchEvent)
        assert events[-1] == ErrorEvent("Error fetching repository structure: 500 boom")
        assert _terminal_count(events) == 1

    def test_unexpected_exception_becomes_error_event(self) -> None:
        source = FakeTreeSource({"c0": [None]})
        events = _run(source)
        assert isinstance(events[-1], ErrorEvent)
        assert events[-1].message.startswith("Critical error during stream generation:")
        assert _terminal_count(events) == 1


class TestRefs:
    def test_commit_sha_is_used_as_root_anchor(self) -> None:
        source = FakeTreeSource({"abc1234": [blob("a.txt", "s1")]}, branches={})
        events = _run(source, ref="abc1234")
        assert events[0] == BranchEvent("abc1234")
        assert events[-1] == CompleteEvent(total_files=1, total_directories=0)
        assert source.tree_calls == ["abc1234"]

    def test_missing_branch_with_hex_looking_name(self) -> None:
        source = FakeTreeSource({}, branches={})
        events = _run(source, ref="2024010")
        assert events == [ErrorEvent("Branch '2024010' not found in repository o/r.")]
        assert source.tree_calls == ["2024010"]

    def test_commit_fallback_with_failing_tree(self) -> None:
        source = FakeTreeSource({"abc1234": UpstreamError("502 Bad Gateway")}, branches={})
        events = _run(source, ref="abc1234")
        assert events == [ErrorEvent("Error fetching repository structure: 502 Bad Gateway")]

    def test_empty_repository(self) -> None:
        events = _run(FakeTreeSource({"c0": []}))
        assert [type(e) for e in events] == [BranchEvent, StatusEvent, StatusEvent, CompleteEvent]
        assert events[-1] == CompleteEvent(total_files=0, total_directories=0)


class TestProgressStatus:
    def test_interim_status_every_fifth_file(self) -> None:
        source = FakeTreeSource(
            {
                "c0": [tree("many", "tM")],
                "tM": [blob(f"f{i}.txt", f"s{i}") for i in range(12)],
            }
        )
        events = _run(source)
        interim = [
            e.message
            for e in events
            if isinstance(e, StatusEvent) and e.message.startswith("Found") and "more files" in e.message
        ]
        assert interim == ["Found 5 more files (total: 5)", "Found 10 more files (total: 10)"]

    def test_custom_interval(self) -> None:
        source = FakeTreeSource(
            {"c0": [tree("d", "tD")], "tD": [blob("a", "1"), blob("b", "2")]}
        )
        events = _run(source, status_interval=1)
        interim = [e for e in events if isinstance(e, StatusEvent) and "more files" in e.message]
        assert len(interim) == 2

    def test_interval_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            TreeMaterializer(FakeTreeSource({}), status_interval=0)

    def test_next_batch_announced(self) -> None:
        source = FakeTreeSource(
            {"c0": [tree("a", "t1")], "t1": [tree("b", "t2")], "t2": []}
        )
        messages = [e.message for e in _run(source) if isinstance(e, StatusEvent)]
        assert "Found 1 more directories to process in the next batch" in messages
        assert any(m.startswith("Completed batch 2:") for m in messages)


class TestCancellation:
    def test_cancel_stops_before_next_directory(self) -> None:
        source = FakeTreeSource(
            {
                "c0": [tree("a", "tA"), tree("b", "tB")],
                "tA": [blob("a.txt", "1")],
                "tB": [blob("b.txt", "2")],
            }
        )
        materializer = TreeMaterializer(source)

        async def _drive() -> list:
            cancel = asyncio.Event()
            seen = []
            async for event in materializer.materialize("o", "r", "main", cancel):
                seen.append(event)
                if isinstance(event, StatusEvent) and event.message == "Processing directory: a":
                    cancel.set()
            return seen

        events = asyncio.run(_drive())
        assert events[-1] == ErrorEvent(CANCELLED_MESSAGE)
        assert "tB" not in source.tree_calls
        assert not any(isinstance(e, CompleteEvent) for e in events)

    def test_closing_the_generator_stops_fetching(self) -> None:
        source = FakeTreeSource(
            {"c0": [tree("a", "tA")], "tA": [blob("a.txt", "1")]}
        )

        async def _drive() -> None:
            events = TreeMaterializer(source).materialize("o", "r", "main")
            await events.__anext__()  # branch
            await events.aclose()

        asyncio.run(_drive())
        assert source.tree_calls == []
