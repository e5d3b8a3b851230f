"""Custom exceptions for the search session coordinator."""


class SearchSessionError(Exception):
    """Base exception for search session errors."""

    pass


class SettingsStoreError(SearchSessionError):
    """Raised when user settings cannot be persisted."""

    pass


class CacheError(SearchSessionError):
    """Raised when the result cache cannot be written."""

    pass


class SearchExecutorError(SearchSessionError):
    """Raised when the search executor is used outside an event loop."""

    pass


class ProviderConfigError(SearchSessionError):
    """Raised when a source has no usable provider configuration."""

    pass


class SourceSearchError(SearchSessionError):
    """Raised when a single source fails to return results."""

    def __init__(self, source_id: str, message: str):
        super().__init__(f"{source_id}: {message}")
        self.source_id = source_id
