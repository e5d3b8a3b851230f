"""Tests for the parallel multi-source search executor."""

import asyncio
import logging
from datetime import datetime, timezone

import pytest

from search_session.exceptions import SearchExecutorError, SourceSearchError
from search_session.executor import ParallelSearchExecutor
from search_session.models import SearchResult, SortKey, SourceConfig
from search_session.providers import StaticSearchProvider


def make_result(result_id: str, source_id: str, rank: int = 1, url: str | None = None, day: int | None = None) -> SearchResult:
    return SearchResult(
        id=result_id,
        title=f"cats {result_id}",
        url=url or f"https://{source_id}.example/{result_id}",
        source_id=source_id,
        rank=rank,
        published_at=datetime(2024, 1, day, tzinfo=timezone.utc) if day else None,
    )


class FailingProvider:
    def __init__(self, source_id: str):
        self.source_id = source_id

    async def search(self, query: str) -> list[SearchResult]:
        raise SourceSearchError(self.source_id, "HTTP 503")


class SlowProvider:
    def __init__(self, source_id: str, delay: float):
        self.source_id = source_id
        self.delay = delay

    async def search(self, query: str) -> list[SearchResult]:
        await asyncio.sleep(self.delay)
        return [make_result("slow", self.source_id)]


class GatedProvider:
    """Holds its answer until the test opens the gate."""

    def __init__(self, source_id: str, results: list[SearchResult]):
        self.source_id = source_id
        self.results = results
        self.gate = asyncio.Event()
        self.calls: list[str] = []

    async def search(self, query: str) -> list[SearchResult]:
        self.calls.append(query)
        await self.gate.wait()
        return self.results


def sources(*ids: str) -> list[SourceConfig]:
    return [SourceConfig(id=source_id) for source_id in ids]


@pytest.mark.anyio
async def test_fan_out_merges_all_sources():
    """Every source is searched and the merged results are reported on completion."""
    completed = []
    order = []
    executor = ParallelSearchExecutor(
        {
            "web": StaticSearchProvider("web", [make_result("w1", "web", 1), make_result("w2", "web", 2)]),
            "news": StaticSearchProvider("news", [make_result("n1", "news", 1)]),
        },
        on_complete=lambda record: (order.append("complete"), completed.append(record)),
        on_query_complete=lambda query: order.append(f"query:{query}"),
    )

    executor.perform_search("cats", sources("web", "news"), SortKey.DEFAULT)
    assert executor.loading is True
    assert executor.progress.total_sources == 2

    await executor.wait_idle()

    progress = executor.progress
    assert progress.loading is False
    assert progress.completed_sources == 2
    assert sorted(r.id for r in progress.results) == ["n1", "w1", "w2"]
    assert sorted(progress.available_sources) == ["news", "web"]
    assert order == ["query:cats", "complete"]
    assert completed[0].query == "cats"
    assert len(completed[0].results) == 3


@pytest.mark.anyio
async def test_progress_is_reported_per_source():
    snapshots = []
    executor = ParallelSearchExecutor(
        {
            "web": StaticSearchProvider("web", [make_result("w1", "web")]),
            "news": StaticSearchProvider("news", [make_result("n1", "news")]),
        }
    )
    executor.subscribe(lambda: snapshots.append(executor.progress))

    executor.perform_search("cats", sources("web", "news"), SortKey.DEFAULT)
    await executor.wait_idle()

    assert [s.completed_sources for s in snapshots] == [0, 1, 2, 2]
    assert [s.loading for s in snapshots] == [True, True, True, False]


@pytest.mark.anyio
async def test_duplicate_urls_are_merged():
    shared = "https://example.com/shared"
    executor = ParallelSearchExecutor(
        {
            "web": StaticSearchProvider("web", [make_result("w1", "web", url=shared)]),
            "news": StaticSearchProvider("news", [make_result("n1", "news", url=shared)]),
        }
    )

    executor.perform_search("cats", sources("web", "news"), SortKey.DEFAULT)
    await executor.wait_idle()

    assert len(executor.progress.results) == 1


@pytest.mark.anyio
async def test_failing_and_unknown_sources_still_complete():
    """A failing or unregistered source counts as completed with no results."""
    executor = ParallelSearchExecutor(
        {
            "web": StaticSearchProvider("web", [make_result("w1", "web")]),
            "broken": FailingProvider("broken"),
        }
    )

    executor.perform_search("cats", sources("web", "broken", "missing"), SortKey.DEFAULT)
    await executor.wait_idle()

    progress = executor.progress
    assert progress.loading is False
    assert progress.completed_sources == 3
    assert progress.available_sources == ["web"]
    assert [r.id for r in progress.results] == ["w1"]


@pytest.mark.anyio
async def test_slow_source_times_out():
    executor = ParallelSearchExecutor({"slow": SlowProvider("slow", delay=5)}, source_timeout=0.01)

    executor.perform_search("cats", sources("slow"), SortKey.DEFAULT)
    await executor.wait_idle()

    assert executor.progress.completed_sources == 1
    assert executor.progress.results == []
    assert executor.loading is False


@pytest.mark.anyio
async def test_no_sources_completes_empty():
    completed = []
    executor = ParallelSearchExecutor(on_complete=completed.append)

    executor.perform_search("cats", [], SortKey.DEFAULT)
    await executor.wait_idle()

    assert executor.loading is False
    assert completed[0].results == []


@pytest.mark.anyio
async def test_reset_discards_late_results():
    """Results arriving after a reset are dropped and nothing completes."""
    completed = []
    provider = GatedProvider("web", [make_result("w1", "web")])
    executor = ParallelSearchExecutor({"web": provider}, on_complete=completed.append)

    executor.perform_search("cats", sources("web"), SortKey.DEFAULT)
    await asyncio.sleep(0)
    executor.reset_search()
    provider.gate.set()
    await executor.wait_idle()

    progress = executor.progress
    assert progress.loading is False
    assert progress.results == []
    assert progress.total_sources == 0
    assert completed == []


@pytest.mark.anyio
async def test_new_search_supersedes_previous():
    completed = []
    slow = GatedProvider("web", [make_result("old", "web")])
    executor = ParallelSearchExecutor({"web": slow}, on_complete=completed.append)

    executor.perform_search("cats", sources("web"), SortKey.DEFAULT)
    await asyncio.sleep(0)
    executor.providers["web"] = StaticSearchProvider("web", [make_result("new", "web")])
    executor.perform_search("cats", sources("web"), SortKey.DEFAULT)
    await asyncio.sleep(0)
    slow.gate.set()
    await executor.wait_idle()

    assert [r.id for r in executor.progress.results] == ["new"]
    assert [record.results[0].id for record in completed] == ["new"]


@pytest.mark.anyio
async def test_results_follow_sort_key():
    executor = ParallelSearchExecutor(
        {
            "web": StaticSearchProvider("web", [make_result("jan2", "web", 1, day=2), make_result("jan9", "web", 2, day=9)]),
            "news": StaticSearchProvider("news", [make_result("undated", "news", 1)]),
        }
    )

    executor.perform_search("cats", sources("web", "news"), SortKey.NEWEST)
    await executor.wait_idle()

    assert [r.id for r in executor.progress.results] == ["jan9", "jan2", "undated"]


def test_perform_search_requires_event_loop():
    executor = ParallelSearchExecutor()

    with pytest.raises(SearchExecutorError):
        executor.perform_search("cats", sources("web"), SortKey.DEFAULT)


def test_load_cached_results_hydrates_synchronously():
    """Cached results are shown without contacting any provider."""
    provider = GatedProvider("web", [])
    executor = ParallelSearchExecutor({"web": provider})
    cached = [make_result("c1", "web")]

    executor.load_cached_results(cached, ["web"])

    progress = executor.progress
    assert progress.loading is False
    assert [r.id for r in progress.results] == ["c1"]
    assert progress.completed_sources == progress.total_sources == 1
    assert provider.calls == []


def test_apply_sorting_reorders_in_place():
    executor = ParallelSearchExecutor()
    executor.load_cached_results(
        [make_result("w1", "web", 1, day=3), make_result("n1", "news", 1, day=5), make_result("w2", "web", 2, day=1)],
        ["web", "news"],
    )

    executor.apply_sorting(SortKey.OLDEST)
    assert [r.id for r in executor.progress.results] == ["w2", "w1", "n1"]
    assert executor.sort_key == SortKey.OLDEST

    executor.apply_sorting(SortKey.SOURCE)
    assert [r.id for r in executor.progress.results] == ["w1", "w2", "n1"]


@pytest.mark.anyio
async def test_completion_handler_failure_is_logged(caplog):
    """An exception raised by a completion handler is reported, not dropped."""

    def explode(record):
        raise RuntimeError("cache backend down")

    executor = ParallelSearchExecutor({"web": StaticSearchProvider("web", [make_result("w1", "web")])}, on_complete=explode)

    with caplog.at_level(logging.ERROR, logger="search_session.executor"):
        executor.perform_search("cats", sources("web"), SortKey.DEFAULT)
        await executor.wait_idle()

    assert any("cache backend down" in record.getMessage() for record in caplog.records)
    assert executor.loading is False
