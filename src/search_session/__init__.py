"""Search session coordinator for multi-source search pages."""

from .cache import ResultCache
from .config import get_settings
from .coordinator import SearchSessionCoordinator
from .exceptions import CacheError, ProviderConfigError, SearchExecutorError, SearchSessionError, SettingsStoreError, SourceSearchError
from .executor import ParallelSearchExecutor
from .models import CachedSearchRecord, SearchProgress, SearchResult, SessionState, SessionView, SortKey, SourceConfig, UserSettings
from .navigation import NavigationSync
from .settings_store import SettingsStore

__all__ = [
    "CacheError",
    "CachedSearchRecord",
    "NavigationSync",
    "ParallelSearchExecutor",
    "ProviderConfigError",
    "ResultCache",
    "SearchExecutorError",
    "SearchProgress",
    "SearchResult",
    "SearchSessionCoordinator",
    "SearchSessionError",
    "SessionState",
    "SessionView",
    "SettingsStore",
    "SettingsStoreError",
    "SortKey",
    "SourceConfig",
    "SourceSearchError",
    "UserSettings",
    "get_settings",
]
