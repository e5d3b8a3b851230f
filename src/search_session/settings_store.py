"""User settings store with change notification and optional JSON persistence."""

import logging
from collections.abc import Callable, Iterable
from pathlib import Path

from pydantic import ValidationError

from .exceptions import SettingsStoreError
from .models import SortKey, SourceConfig, UserSettings

logger = logging.getLogger(__name__)

SettingsListener = Callable[[], None]


class SettingsStore:
    """Holds source enablement and sort preference.

    Readers take point-in-time snapshots with ``get_settings()`` and register for
    change notification with ``subscribe()``. Subscribers are only notified when
    the stored settings actually change.
    """

    def __init__(self, initial: UserSettings | None = None, path: Path | None = None):
        """Initialize the store.

        Args:
            initial: Settings to start from when no persisted file is available.
            path: Optional JSON file to load from and save to.
        """
        self.path = Path(path).expanduser() if path else None
        self._settings = initial.model_copy(deep=True) if initial else UserSettings()
        self._listeners: list[SettingsListener] = []

        if self.path:
            loaded = self._load()
            if loaded is not None:
                self._settings = loaded

    def _load(self) -> UserSettings | None:
        if not self.path.exists():
            return None
        try:
            text = self.path.read_text(encoding="utf-8")
            if not text.strip():
                return None
            return UserSettings.model_validate_json(text)
        except (OSError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable settings file {self.path}: {e}")
            return None

    def _save(self) -> None:
        if not self.path:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(self._settings.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to save settings to {self.path}: {e}")
            raise SettingsStoreError(f"Failed to save settings to {self.path}: {e}") from e

    def get_settings(self) -> UserSettings:
        """Return a snapshot; mutating it does not affect the store."""
        return self._settings.model_copy(deep=True)

    def subscribe(self, listener: SettingsListener) -> Callable[[], None]:
        """Register ``listener`` for change notifications and return an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, updated: UserSettings) -> bool:
        if updated == self._settings:
            return False
        previous = self._settings
        self._settings = updated
        try:
            self._save()
        except SettingsStoreError:
            # Roll back: nothing was saved and nobody was notified
            self._settings = previous
            raise
        self._notify()
        return True

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Settings listener failed")

    # --- Mutation API ---

    def replace(self, settings: UserSettings) -> bool:
        """Replace all settings. Returns True if anything changed."""
        return self._commit(settings.model_copy(deep=True))

    def set_sort_by(self, sort_by: SortKey | str) -> bool:
        updated = self.get_settings()
        updated.sort_by = SortKey(sort_by)
        return self._commit(updated)

    def set_source_enabled(self, source_id: str, enabled: bool) -> bool:
        updated = self.get_settings()
        source = updated.get_source(source_id)
        if source is None:
            raise KeyError(f"Unknown source: {source_id}")
        source.enabled = enabled
        return self._commit(updated)

    def merge_sources(self, sources: Iterable[SourceConfig]) -> bool:
        """Add newly discovered sources, keeping the user's existing enablement.

        Known sources get their name and endpoint refreshed. Returns True if anything changed.
        """
        updated = self.get_settings()
        for incoming in sources:
            existing = updated.get_source(incoming.id)
            if existing is None:
                updated.sources.append(incoming.model_copy())
                continue
            existing.name = incoming.name or existing.name
            existing.endpoint = incoming.endpoint or existing.endpoint
        return self._commit(updated)

    def remove_source(self, source_id: str) -> bool:
        updated = self.get_settings()
        updated.sources = [s for s in updated.sources if s.id != source_id]
        return self._commit(updated)
