"""Per-source search providers and the factory that builds them from settings."""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from .exceptions import ProviderConfigError, SourceSearchError
from .models import SearchResult, SourceConfig

logger = logging.getLogger(__name__)


class SearchProvider(Protocol):
    """Anything that can answer a query for one source."""

    source_id: str

    async def search(self, query: str) -> list[SearchResult]: ...


def _parse_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def parse_results(source_id: str, payload: Any) -> list[SearchResult]:
    """Map a JSON payload (``{"results": [...]}`` or a bare list) to results.

    Items without a URL are skipped. Ranks are assigned in payload order, starting at 1.
    """
    items = payload.get("results", []) if isinstance(payload, dict) else payload
    if not isinstance(items, list):
        raise SourceSearchError(source_id, "response is not a result list")

    results: list[SearchResult] = []
    for item in items:
        if not isinstance(item, dict) or not item.get("url"):
            continue
        rank = len(results) + 1
        try:
            results.append(
                SearchResult(
                    id=str(item.get("id") or f"{source_id}:{rank}"),
                    title=str(item.get("title") or item["url"]),
                    url=str(item["url"]),
                    source_id=source_id,
                    snippet=str(item.get("snippet") or item.get("description") or ""),
                    rank=rank,
                    published_at=_parse_datetime(item.get("published_at") or item.get("date")),
                )
            )
        except ValidationError as e:
            logger.debug(f"Skipping malformed result from {source_id}: {e}")
    return results


class HttpSearchProvider:
    """Queries a JSON search endpoint with ``GET <endpoint>?q=<query>``."""

    def __init__(self, source: SourceConfig, client: httpx.AsyncClient):
        if not source.endpoint:
            raise ProviderConfigError(f"Source '{source.id}' has no endpoint configured")
        self.source_id = source.id
        self.endpoint = source.endpoint
        self.client = client

    async def search(self, query: str) -> list[SearchResult]:
        try:
            response = await self.client.get(self.endpoint, params={"q": query})
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise SourceSearchError(self.source_id, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise SourceSearchError(self.source_id, f"request failed: {e}") from e
        except ValueError as e:
            raise SourceSearchError(self.source_id, f"invalid JSON: {e}") from e

        return parse_results(self.source_id, payload)


class StaticSearchProvider:
    """Serves a fixed result list, filtered by a case-insensitive title/snippet match."""

    def __init__(self, source_id: str, results: Iterable[SearchResult]):
        self.source_id = source_id
        self.results = list(results)

    async def search(self, query: str) -> list[SearchResult]:
        needle = query.strip().lower()
        return [r for r in self.results if needle in r.title.lower() or needle in r.snippet.lower()]


def build_providers(sources: Iterable[SourceConfig], client: httpx.AsyncClient) -> dict[str, SearchProvider]:
    """Create an HTTP provider for each source.

    Raises:
        ProviderConfigError: If a source has no endpoint.
    """
    return {source.id: HttpSearchProvider(source, client) for source in sources}
