"""Reflects the session query into a shareable location."""

import logging
from urllib.parse import parse_qs, quote, urlsplit

logger = logging.getLogger(__name__)

QUERY_PARAM = "q"
BASE_LOCATION = "/"


def build_location(query: str) -> str:
    """Build the shareable location for ``query`` (``/?q=<encoded>``)."""
    return f"{BASE_LOCATION}?{QUERY_PARAM}={quote(query, safe='')}"


def parse_query(location: str) -> str | None:
    """Extract the ``q`` parameter from a location, or None when absent or blank."""
    params = parse_qs(urlsplit(location).query)
    values = params.get(QUERY_PARAM)
    if not values or not values[0].strip():
        return None
    return values[0]


class NavigationSync:
    """Holds the current location and updates it by replacement only.

    The history never grows: ``replace_query`` and ``clear`` both overwrite
    the current entry.
    """

    def __init__(self, location: str = BASE_LOCATION):
        self.location = location or BASE_LOCATION
        self._initial_location = self.location
        self.replace_count = 0

    def initial_query(self) -> str | None:
        """Parse the query present when the page was opened."""
        return parse_query(self._initial_location)

    def replace_query(self, query: str) -> None:
        self._replace(build_location(query))

    def clear(self) -> None:
        self._replace(BASE_LOCATION)

    def _replace(self, location: str) -> None:
        self.location = location
        self.replace_count += 1
        logger.debug(f"Location replaced: {location}")
