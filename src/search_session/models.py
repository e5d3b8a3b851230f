"""Data models shared by the coordinator and its collaborators."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class SortKey(str, Enum):
    """Result ordering preference."""

    DEFAULT = "default"
    NEWEST = "newest"
    OLDEST = "oldest"
    SOURCE = "source"


class SourceConfig(BaseModel):
    """A result provider the user can toggle on or off."""

    id: str
    name: str | None = None
    enabled: bool = True
    endpoint: str | None = None  # JSON search endpoint, queried with ?q=

    @property
    def display_name(self) -> str:
        return self.name or self.id


class UserSettings(BaseModel):
    """Snapshot of the user's search preferences."""

    sort_by: SortKey = SortKey.DEFAULT
    sources: list[SourceConfig] = Field(default_factory=list)

    def enabled_sources(self) -> list[SourceConfig]:
        """Enabled sources, in stored order."""
        return [s for s in self.sources if s.enabled]

    def get_source(self, source_id: str) -> SourceConfig | None:
        for source in self.sources:
            if source.id == source_id:
                return source
        return None


class SearchResult(BaseModel):
    """A single result contributed by one source."""

    id: str
    title: str
    url: str
    source_id: str
    snippet: str = ""
    rank: int = 0  # 1-based position within its source
    published_at: datetime | None = None


class CachedSearchRecord(BaseModel):
    """The last completed search, persisted for instant restoration."""

    query: str
    results: list[SearchResult] = Field(default_factory=list)
    available_sources: list[str] = Field(default_factory=list)

    def is_restorable_for(self, query: str) -> bool:
        """Only an exact query match with at least one result may be restored."""
        return self.query == query and len(self.results) > 0


class SearchProgress(BaseModel):
    """Executor telemetry. Read-only from the coordinator's point of view."""

    loading: bool = False
    results: list[SearchResult] = Field(default_factory=list)
    available_sources: list[str] = Field(default_factory=list)
    completed_sources: int = 0
    total_sources: int = 0


class SessionState(BaseModel):
    """Session-level state owned by the coordinator."""

    query: str = ""
    has_searched: bool = False
    sort_preference: SortKey = SortKey.DEFAULT


class SessionView(BaseModel):
    """What the presentation layer reads from the coordinator."""

    query: str
    has_searched: bool
    loading: bool
    results: list[SearchResult]
    available_sources: list[str]
    completed_sources: int
    total_sources: int
