"""Search session coordinator.

Reconciles four event sources against one piece of session state:

* mount: restore from the shareable location, preferring a matching cached record
* settings-store notifications: adopt the sort preference and retry a search that
  was deferred or came back empty once enabled sources show up
* sort-preference changes: re-order already fetched results in place
* explicit user actions: search and reset

All handlers run to completion on the caller's thread. The live search is delegated
to the executor, whose progress notifications flow back through ``_on_progress``.
Re-entrancy is prevented with boolean guards (``_has_loaded_cache``, the executor's
``loading`` flag) rather than locks, so a coordinator must only be driven from a
single thread or event loop.
"""

from collections.abc import Callable, Sequence
from typing import Protocol

from .exceptions import CacheError
from .executor import SearchExecutor
from .models import CachedSearchRecord, SearchResult, SessionState, SessionView, SortKey, SourceConfig, UserSettings
from .observability import get_session_logger

logger = get_session_logger(__name__)

SessionListener = Callable[[], None]
SearchSignature = tuple[str, tuple[str, ...], SortKey]


class SettingsSource(Protocol):
    def get_settings(self) -> UserSettings: ...

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]: ...


class ResultCacheBackend(Protocol):
    def load_from_cache(self) -> CachedSearchRecord | None: ...

    def save_to_cache(self, record: CachedSearchRecord) -> None: ...


class LocationSync(Protocol):
    def initial_query(self) -> str | None: ...

    def replace_query(self, query: str) -> None: ...

    def clear(self) -> None: ...


def _signature(query: str, sources: Sequence[SourceConfig], sort_key: SortKey) -> SearchSignature:
    return (query, tuple(s.id for s in sources), SortKey(sort_key))


class SearchSessionCoordinator:
    """Owns session state and is the only caller into its collaborators."""

    def __init__(
        self,
        settings_store: SettingsSource,
        executor: SearchExecutor,
        cache: ResultCacheBackend,
        navigation: LocationSync,
        default_sort: SortKey = SortKey.DEFAULT,
    ):
        self.settings_store = settings_store
        self.executor = executor
        self.cache = cache
        self.navigation = navigation

        self._state = SessionState(sort_preference=default_sort)
        self._has_loaded_cache = False
        self._mounted = False
        self._last_signature: SearchSignature | None = None
        self._seen_source_ids: tuple[str, ...] | None = None
        self._listeners: list[SessionListener] = []
        self._unsubscribe_settings: Callable[[], None] | None = None
        self._unsubscribe_executor: Callable[[], None] | None = None

        executor.set_completion_handlers(self.on_search_complete, self.on_query_complete)

    # --- Exposed surface ---

    @property
    def state(self) -> SessionState:
        return self._state.model_copy()

    @property
    def query(self) -> str:
        return self._state.query

    @property
    def has_searched(self) -> bool:
        return self._state.has_searched

    @property
    def sort_preference(self) -> SortKey:
        return self._state.sort_preference

    @property
    def loading(self) -> bool:
        return self.executor.progress.loading

    @property
    def results(self) -> list[SearchResult]:
        return self.executor.progress.results

    @property
    def view(self) -> SessionView:
        progress = self.executor.progress
        return SessionView(
            query=self._state.query,
            has_searched=self._state.has_searched,
            loading=progress.loading,
            results=progress.results,
            available_sources=progress.available_sources,
            completed_sources=progress.completed_sources,
            total_sources=progress.total_sources,
        )

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Notify ``listener`` whenever session state or search progress changes."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    def _update(self, **changes) -> None:
        updated = self._state.model_copy(update=changes)
        if updated == self._state:
            return
        self._state = updated
        self._notify()

    # --- Lifecycle ---

    def mount(self) -> None:
        """Attach to collaborators and restore the session. Later calls are no-ops."""
        if self._mounted:
            return
        self._mounted = True

        self._unsubscribe_executor = self.executor.subscribe(self._on_progress)
        self._reconcile_settings()
        self._restore_on_mount()
        self._unsubscribe_settings = self.settings_store.subscribe(self._reconcile_settings)

    def unmount(self) -> None:
        if self._unsubscribe_settings:
            self._unsubscribe_settings()
            self._unsubscribe_settings = None
        if self._unsubscribe_executor:
            self._unsubscribe_executor()
            self._unsubscribe_executor = None

    def _restore_on_mount(self) -> None:
        if self._has_loaded_cache:
            return
        self._has_loaded_cache = True

        url_query = self.navigation.initial_query()
        if not url_query:
            return

        cached = self.cache.load_from_cache()
        self._update(query=url_query)

        if cached is not None and cached.is_restorable_for(url_query):
            self._update(has_searched=True)
            self.executor.load_cached_results(cached.results, cached.available_sources)
            logger.info("cache_restored", query=url_query, results=len(cached.results))
            return

        logger.debug("cache_miss", query=url_query, cached_query=cached.query if cached else None)
        self.handle_search(url_query)

    # --- User actions ---

    def handle_search(self, query: str) -> None:
        """Search for ``query``. Blank input is ignored.

        With no enabled sources the search is deferred; the next settings
        notification that brings sources retries it.
        """
        if not query or not query.strip():
            return

        self._update(query=query, has_searched=True)
        enabled = self.settings_store.get_settings().enabled_sources()

        if not enabled:
            logger.info("search_deferred", query=query, reason="no enabled sources")
            return

        self._issue_search(query, enabled, self._state.sort_preference)

    def handle_reset(self) -> None:
        """Return to the idle state and clear the shareable location."""
        self._update(query="", has_searched=False)
        self._last_signature = None
        self.executor.reset_search()
        self.navigation.clear()
        logger.info("session_reset")

    def _issue_search(self, query: str, sources: Sequence[SourceConfig], sort_key: SortKey) -> None:
        self._last_signature = _signature(query, sources, sort_key)
        logger.info("search_issued", query=query, sources=[s.id for s in sources], sort=SortKey(sort_key).value)
        self.executor.perform_search(query, sources, sort_key)

    # --- Reactive handlers ---

    def _reconcile_settings(self) -> None:
        """Runs on mount and on every settings notification. Safe to repeat."""
        settings = self.settings_store.get_settings()

        if settings.sort_by != self._state.sort_preference:
            self._set_sort_preference(settings.sort_by)

        enabled = settings.enabled_sources()
        source_ids = tuple(s.id for s in enabled)
        if source_ids != self._seen_source_ids:
            # Enabled list changed (possibly to empty and back): forget the last search
            self._seen_source_ids = source_ids
            self._last_signature = None

        progress = self.executor.progress
        needs_results = not self._state.has_searched or not progress.results

        if not (self._state.query and enabled and needs_results and not progress.loading):
            return

        signature = _signature(self._state.query, enabled, settings.sort_by)
        if signature == self._last_signature:
            # Same intent already searched; only a change in sources or sort earns a retry
            logger.debug("retry_skipped", query=self._state.query)
            return

        logger.info("retry_search", query=self._state.query, sources=len(enabled))
        self._issue_search(self._state.query, enabled, settings.sort_by)
        self._update(has_searched=True)

    def _set_sort_preference(self, sort_key: SortKey) -> None:
        self._update(sort_preference=sort_key)
        if self._state.has_searched and self.executor.progress.results:
            self.executor.apply_sorting(sort_key)
            logger.debug("resort_applied", sort=SortKey(sort_key).value)

    def _on_progress(self) -> None:
        progress = self.executor.progress
        # Results that arrive under a stale sort key (e.g. preference changed before any
        # result existed) get re-ordered once; apply_sorting notifies again.
        if self._state.has_searched and progress.results and self.executor.sort_key != self._state.sort_preference:
            self.executor.apply_sorting(self._state.sort_preference)
            return
        self._notify()

    # --- Executor completion handlers ---

    def on_query_complete(self, query: str) -> None:
        if query != self._state.query:
            logger.debug("late_completion_ignored", query=query)
            return
        self.navigation.replace_query(query)

    def on_search_complete(self, record: CachedSearchRecord) -> None:
        if record.query != self._state.query:
            return
        try:
            self.cache.save_to_cache(record)
        except CacheError as e:
            logger.warning("cache_save_failed", query=record.query, error=str(e))
