"""Pure re-ordering of already-fetched results."""

from datetime import timezone

from .models import SearchResult, SortKey


def _timestamp(result: SearchResult) -> float:
    published = result.published_at
    if published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)
    return published.timestamp()


def sort_results(results: list[SearchResult], sort_key: SortKey | str, source_order: list[str] | None = None) -> list[SearchResult]:
    """Return a new list ordered by ``sort_key``.

    Sorting is stable, so ties keep their arrival order. Undated results always go last
    for the date orderings. ``source_order`` fixes the group order for ``SortKey.SOURCE``;
    sources not listed follow in alphabetical order.
    """
    key = SortKey(sort_key)

    if key == SortKey.DEFAULT:
        return sorted(results, key=lambda r: r.rank)

    if key in (SortKey.NEWEST, SortKey.OLDEST):
        dated = [r for r in results if r.published_at is not None]
        undated = [r for r in results if r.published_at is None]
        dated.sort(key=_timestamp, reverse=key == SortKey.NEWEST)
        return dated + undated

    order = {source_id: i for i, source_id in enumerate(source_order or [])}
    return sorted(results, key=lambda r: (order.get(r.source_id, len(order)), r.source_id, r.rank))
