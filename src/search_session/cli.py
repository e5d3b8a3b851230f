"""CLI interface for running search sessions and managing user settings."""

import asyncio
from uuid import uuid4

import httpx
import typer

from .cache import ResultCache
from .config import get_config_file, get_settings
from .coordinator import SearchSessionCoordinator
from .exceptions import ProviderConfigError
from .executor import ParallelSearchExecutor
from .models import SessionView, SortKey, SourceConfig
from .navigation import NavigationSync
from .observability import bind_session_context, clear_session_context, setup_structured_logging
from .providers import build_providers
from .settings_store import SettingsStore

app = typer.Typer(help="Multi-source search sessions from the command line")
sources_app = typer.Typer(help="Manage search sources")
app.add_typer(sources_app, name="sources")


def _settings_store() -> SettingsStore:
    return SettingsStore(path=get_settings().get_settings_path())


def _print_view(view: SessionView, location: str) -> None:
    print(f"Query: {view.query or '(none)'}")
    print(f"Sources: {view.completed_sources}/{view.total_sources} completed, {len(view.available_sources)} with results")
    print(f"Location: {location}")
    if view.has_searched and not view.results:
        print("No results.")
    for i, result in enumerate(view.results, start=1):
        published = f" ({result.published_at.date().isoformat()})" if result.published_at else ""
        print(f"{i:>3}. [{result.source_id}] {result.title}{published}")
        print(f"     {result.url}")


@app.command()
def run(
    query: str = typer.Argument(None, help="Query to search for"),
    location: str = typer.Option(None, "--location", "-l", help="Shareable location to restore, e.g. '/?q=cats'"),
    sort: SortKey = typer.Option(None, "--sort", "-s", help="Sort preference to store before searching"),
) -> None:
    """Run a search session and print its results."""
    if not query and not location:
        print("Error: provide a QUERY or --location")
        raise typer.Exit(code=1)

    app_settings = get_settings()
    setup_structured_logging(app_settings.log.level, app_settings.log.json_output)
    bind_session_context(uuid4().hex[:8])

    store = _settings_store()
    if sort is not None:
        store.set_sort_by(sort)
    cache = ResultCache(path=app_settings.get_cache_path())
    navigation = NavigationSync(location or "/")

    async def _run() -> SessionView:
        async with httpx.AsyncClient(timeout=app_settings.session.source_timeout) as client:
            providers = build_providers(store.get_settings().enabled_sources(), client)
            executor = ParallelSearchExecutor(providers, source_timeout=app_settings.session.source_timeout)
            coordinator = SearchSessionCoordinator(store, executor, cache, navigation, default_sort=app_settings.session.default_sort)
            coordinator.mount()
            if query:
                coordinator.handle_search(query)
            await executor.wait_idle()
            coordinator.unmount()
            return coordinator.view

    try:
        view = asyncio.run(_run())
    except ProviderConfigError as e:
        print(f"Error: {e}")
        raise typer.Exit(code=1) from e
    finally:
        clear_session_context()

    if view.has_searched and view.total_sources == 0 and not view.results:
        print("No enabled sources; the search is deferred until one is enabled.")
    _print_view(view, navigation.location)


@sources_app.command("list")
def list_sources() -> None:
    """List configured sources."""
    settings = _settings_store().get_settings()
    if not settings.sources:
        print("No sources configured.")
        return
    for source in settings.sources:
        state = "enabled" if source.enabled else "disabled"
        print(f"{source.id:<20} {state:<9} {source.display_name}  {source.endpoint or '(no endpoint)'}")


@sources_app.command("add")
def add_source(
    source_id: str = typer.Argument(..., help="Source identifier"),
    endpoint: str = typer.Argument(..., help="JSON search endpoint, queried with ?q="),
    name: str = typer.Option(None, "--name", "-n", help="Display name"),
) -> None:
    """Add a source, or update the endpoint of an existing one."""
    _settings_store().merge_sources([SourceConfig(id=source_id, name=name, endpoint=endpoint)])
    print(f"Source '{source_id}' saved.")


def _set_enabled(source_id: str, enabled: bool) -> None:
    try:
        _settings_store().set_source_enabled(source_id, enabled)
    except KeyError as e:
        print(f"Error: unknown source '{source_id}'")
        raise typer.Exit(code=1) from e
    print(f"Source '{source_id}' {'enabled' if enabled else 'disabled'}.")


@sources_app.command("enable")
def enable_source(source_id: str = typer.Argument(..., help="Source identifier")) -> None:
    """Enable a source."""
    _set_enabled(source_id, True)


@sources_app.command("disable")
def disable_source(source_id: str = typer.Argument(..., help="Source identifier")) -> None:
    """Disable a source."""
    _set_enabled(source_id, False)


@sources_app.command("remove")
def remove_source(source_id: str = typer.Argument(..., help="Source identifier")) -> None:
    """Remove a source."""
    if not _settings_store().remove_source(source_id):
        print(f"Error: unknown source '{source_id}'")
        raise typer.Exit(code=1)
    print(f"Source '{source_id}' removed.")


@app.command()
def sort(key: SortKey = typer.Argument(..., help="Sort preference")) -> None:
    """Set the stored sort preference."""
    _settings_store().set_sort_by(key)
    print(f"Sort preference: {key.value}")


@app.command("clear-cache")
def clear_cache() -> None:
    """Forget the last cached search."""
    ResultCache(path=get_settings().get_cache_path()).clear()
    print("Cache cleared.")


@app.command()
def config() -> None:
    """Show current configuration."""
    app_settings = get_settings()
    print(f"Config file: {get_config_file()}")
    print(f"Default sort: {app_settings.session.default_sort.value}")
    print(f"Source timeout: {app_settings.session.source_timeout}s")
    print(f"Settings file: {app_settings.get_settings_path()}")
    print(f"Cache file: {app_settings.get_cache_path()}")
    print(f"Log level: {app_settings.log.level}")


if __name__ == "__main__":
    app()
