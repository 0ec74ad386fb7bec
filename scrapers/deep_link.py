import logging
from typing import Optional
from urllib.parse import urlparse

log = logging.getLogger(__name__)

PREFIX_SEARCH = "path:"


def search_query_from_uri(uri: str) -> Optional[str]:
    """
    Map a shared site link like https://host/<type>/<slug> to a search query.

    Returns "path:<type>/<slug>", or None when the link has fewer than two path segments.
    """
    segments = [s for s in urlparse(uri).path.split('/') if s]
    if len(segments) < 2:
        log.error(f"Could not parse uri {uri!r}")
        return None
    return f"{PREFIX_SEARCH}{segments[0]}/{segments[1]}"
