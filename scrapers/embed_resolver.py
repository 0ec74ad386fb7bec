import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .fetcher import env_number
from .filemoon_extractor import FilemoonExtractor
from .playlist_utils import Video
from .vidhide_extractor import VidHideExtractor

DEFAULT_MAX_WORKERS = env_number("HIKARI_MAX_WORKERS", 4, int)

VIDHIDE_DOMAINS = ("vidhide", "filelions", "vidhidepro")


@dataclass(frozen=True)
class EmbedCandidate:
    url: str
    name: str


@dataclass(frozen=True)
class ProviderRoute:
    """One provider: when `matches` accepts a candidate, `resolve` turns it into videos."""
    name: str
    matches: Callable[[EmbedCandidate], bool]
    resolve: Callable[[EmbedCandidate], List[Video]]


def name_contains(token: str) -> Callable[[EmbedCandidate], bool]:
    return lambda candidate: token.lower() in candidate.name.lower()


def url_contains(*tokens: str) -> Callable[[EmbedCandidate], bool]:
    return lambda candidate: any(token.lower() in candidate.url.lower() for token in tokens)


def default_routes(vidhide: VidHideExtractor, filemoon: FilemoonExtractor, headers=None) -> List[ProviderRoute]:
    """Server-label routes first, then embed-domain routes."""
    return [
        ProviderRoute("vidhide", name_contains("vidhide"),
                      lambda c: vidhide.videos_from_url(c.url)),
        ProviderRoute("filemoon", url_contains("filemoon"),
                      lambda c: filemoon.videos_from_url(c.url, prefix=f"{c.name} - ", headers=headers)),
        ProviderRoute("vidhide-domain", url_contains(*VIDHIDE_DOMAINS),
                      lambda c: vidhide.videos_from_url(c.url)),
    ]


class EmbedResolver:
    def __init__(self, routes: Sequence[ProviderRoute], max_workers: int = DEFAULT_MAX_WORKERS):
        self.routes = list(routes)
        self.max_workers = max(1, max_workers)
        self.log = logging.getLogger(__name__)

    def route_for(self, candidate: EmbedCandidate) -> Optional[ProviderRoute]:
        for route in self.routes:
            if route.matches(candidate):
                return route
        return None

    def resolve(self, candidate: EmbedCandidate) -> List[Video]:
        """Videos for one embed. Unknown providers and failures give []."""
        route = self.route_for(candidate)
        if route is None:
            self.log.info(f"[{candidate.name}] no provider for {candidate.url}, skipping")
            return []

        try:
            videos = [v for v in route.resolve(candidate) if v.url]
        except Exception as e:
            self.log.warning(f"[{candidate.name} -> {route.name}] failed for {candidate.url}: {e}", exc_info=True)
            return []

        if videos:
            self.log.info(f"[{candidate.name} -> {route.name}] resolved {len(videos)} videos")
        else:
            self.log.info(f"[{candidate.name} -> {route.name}] nothing found at {candidate.url}")
        return videos

    def resolve_all(self, candidates: Sequence[EmbedCandidate]) -> List[Video]:
        """
        Resolve every candidate on a bounded thread pool and concatenate the results.

        Never raises. Output order carries no meaning; rank the result afterwards.
        """
        if not candidates:
            return []

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(candidates))) as executor:
            futures = [executor.submit(self.resolve, candidate) for candidate in candidates]
            results = []
            for future, candidate in zip(futures, candidates):
                try:
                    results.append(future.result())
                except Exception as e:
                    self.log.error(f"[{candidate.name}] worker crashed: {e}", exc_info=True)

        videos = [video for batch in results for video in batch]
        self.log.info(f"Resolved {len(videos)} videos from {len(candidates)} embeds")
        return videos
