"""Parallel multi-source search executor with incremental progress reporting."""

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Protocol

from .exceptions import SearchExecutorError
from .models import CachedSearchRecord, SearchProgress, SearchResult, SortKey, SourceConfig
from .providers import SearchProvider
from .sorting import sort_results

logger = logging.getLogger(__name__)

ProgressListener = Callable[[], None]
CompletionHandler = Callable[[CachedSearchRecord], None]
QueryCompletionHandler = Callable[[str], None]


class SearchExecutor(Protocol):
    """Commands and telemetry the session coordinator relies on."""

    @property
    def progress(self) -> SearchProgress: ...

    @property
    def sort_key(self) -> SortKey: ...

    def perform_search(self, query: str, sources: Sequence[SourceConfig], sort_key: SortKey) -> None: ...

    def reset_search(self) -> None: ...

    def load_cached_results(self, results: Sequence[SearchResult], available_sources: Sequence[str]) -> None: ...

    def apply_sorting(self, sort_key: SortKey) -> None: ...

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]: ...

    def set_completion_handlers(self, on_complete: CompletionHandler | None, on_query_complete: QueryCompletionHandler | None) -> None: ...


class ParallelSearchExecutor:
    """Fans a query out to every enabled source concurrently.

    Results are merged as each source finishes, so listeners see the result list
    grow while ``loading`` is true. Every search gets a generation number; starting
    a new search, resetting, or hydrating from cache supersedes older generations
    and their late results are dropped.
    """

    def __init__(
        self,
        providers: Mapping[str, SearchProvider] | None = None,
        on_complete: CompletionHandler | None = None,
        on_query_complete: QueryCompletionHandler | None = None,
        source_timeout: float = 15.0,
    ):
        self.providers: dict[str, SearchProvider] = dict(providers or {})
        self.on_complete = on_complete
        self.on_query_complete = on_query_complete
        self.source_timeout = source_timeout

        self._progress = SearchProgress()
        self._sort_key = SortKey.DEFAULT
        self._source_order: list[str] = []
        self._generation = 0
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[ProgressListener] = []

    @property
    def progress(self) -> SearchProgress:
        return self._progress.model_copy(deep=True)

    @property
    def sort_key(self) -> SortKey:
        return self._sort_key

    @property
    def loading(self) -> bool:
        return self._progress.loading

    def set_completion_handlers(self, on_complete: CompletionHandler | None, on_query_complete: QueryCompletionHandler | None) -> None:
        self.on_complete = on_complete
        self.on_query_complete = on_query_complete

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    # --- Commands ---

    def perform_search(self, query: str, sources: Sequence[SourceConfig], sort_key: SortKey) -> None:
        """Start a search in the background and return immediately.

        Raises:
            SearchExecutorError: If called outside a running event loop.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise SearchExecutorError("perform_search requires a running event loop") from e

        self._generation += 1
        generation = self._generation
        self._sort_key = SortKey(sort_key)
        self._source_order = [s.id for s in sources]
        self._progress = SearchProgress(loading=True, total_sources=len(sources))
        logger.info(f"Searching {len(sources)} source(s) for '{query}' (generation {generation})")
        self._notify()

        task = loop.create_task(self._run(generation, query, list(sources)))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def reset_search(self) -> None:
        """Discard results and progress. In-flight work finishes but is ignored."""
        self._generation += 1
        self._progress = SearchProgress()
        self._notify()

    def load_cached_results(self, results: Sequence[SearchResult], available_sources: Sequence[str]) -> None:
        """Display previously fetched results without contacting any source."""
        self._generation += 1
        self._progress = SearchProgress(
            loading=False,
            results=[r.model_copy() for r in results],
            available_sources=list(available_sources),
            completed_sources=len(available_sources),
            total_sources=len(available_sources),
        )
        self._source_order = list(available_sources)
        self._notify()

    def apply_sorting(self, sort_key: SortKey) -> None:
        """Re-order the current results in place. Never fetches."""
        self._sort_key = SortKey(sort_key)
        self._progress = self._progress.model_copy(update={"results": sort_results(self._progress.results, self._sort_key, self._source_order)})
        self._notify()

    async def wait_idle(self) -> None:
        """Wait until every scheduled search task has finished.

        Task failures are logged by ``_on_task_done`` as each task finishes.
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # --- Background work ---

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Search task failed: {error!r}", exc_info=error)

    async def _run(self, generation: int, query: str, sources: list[SourceConfig]) -> None:
        seen_urls: set[str] = set()

        async def run_source(source: SourceConfig) -> None:
            found = await self._search_source(source, query)
            if generation != self._generation:
                return
            fresh = []
            for result in found:
                if result.url not in seen_urls:
                    seen_urls.add(result.url)
                    fresh.append(result)
            available = self._progress.available_sources + ([source.id] if found else [])
            self._progress = self._progress.model_copy(
                update={
                    "results": sort_results(self._progress.results + fresh, self._sort_key, self._source_order),
                    "available_sources": available,
                    "completed_sources": self._progress.completed_sources + 1,
                }
            )
            self._notify()

        await asyncio.gather(*(run_source(source) for source in sources))

        if generation != self._generation:
            logger.debug(f"Dropping superseded results for '{query}' (generation {generation})")
            return

        self._progress = self._progress.model_copy(update={"loading": False})
        logger.info(f"Search for '{query}' finished with {len(self._progress.results)} result(s)")
        self._notify()

        record = CachedSearchRecord(
            query=query,
            results=list(self._progress.results),
            available_sources=list(self._progress.available_sources),
        )
        if self.on_query_complete:
            self.on_query_complete(query)
        if self.on_complete:
            self.on_complete(record)

    async def _search_source(self, source: SourceConfig, query: str) -> list[SearchResult]:
        """Search one source. A failing source contributes no results."""
        provider = self.providers.get(source.id)
        if provider is None:
            logger.warning(f"No provider registered for source '{source.id}'")
            return []

        try:
            return await asyncio.wait_for(provider.search(query), timeout=self.source_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Source '{source.id}' timed out after {self.source_timeout}s")
        except Exception as e:
            logger.error(f"Search failed for source '{source.id}': {e}")
        return []
