"""Single-slot cache for the most recent completed search."""

import logging
from pathlib import Path

from pydantic import ValidationError

from .exceptions import CacheError
from .models import CachedSearchRecord

logger = logging.getLogger(__name__)


class ResultCache:
    """Keeps the last ``CachedSearchRecord``, in memory or in a JSON file.

    There is exactly one slot: saving replaces whatever was there before.
    """

    def __init__(self, path: Path | None = None):
        self.path = Path(path).expanduser() if path else None
        self._record: CachedSearchRecord | None = None

    def load_from_cache(self) -> CachedSearchRecord | None:
        """Return the cached record, or None on a miss.

        A missing, empty, or invalid cache file is treated as a miss.
        """
        if not self.path:
            return self._record.model_copy(deep=True) if self._record else None

        if not self.path.exists():
            return None
        try:
            text = self.path.read_text(encoding="utf-8")
            if not text.strip():
                return None
            return CachedSearchRecord.model_validate_json(text)
        except (OSError, ValidationError) as e:
            logger.warning(f"Discarding unreadable cache file {self.path}: {e}")
            return None

    def save_to_cache(self, record: CachedSearchRecord) -> None:
        if not self.path:
            self._record = record.model_copy(deep=True)
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(record.model_dump_json(), encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to write cache {self.path}: {e}")
            raise CacheError(f"Failed to write cache {self.path}: {e}") from e
        logger.debug(f"Cached {len(record.results)} results for '{record.query}'")

    def clear(self) -> None:
        self._record = None
        if self.path and self.path.exists():
            try:
                self.path.unlink()
            except OSError as e:
                raise CacheError(f"Failed to clear cache {self.path}: {e}") from e
