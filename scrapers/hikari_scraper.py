import logging
import os
import re
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, quote_plus, urlencode, urljoin, urlparse

from bs4 import BeautifulSoup

from .deep_link import PREFIX_SEARCH
from .embed_resolver import EmbedCandidate, EmbedResolver, default_routes
from .fetcher import Fetcher, build_headers
from .filemoon_extractor import FilemoonExtractor
from .playlist_utils import Video
from .preferences import Preferences
from .vidhide_extractor import VidHideExtractor
from .video_sort import sort_videos

log = logging.getLogger(__name__)


class HikariScraper:
    """Scraper for watch.hikaritv.xyz"""

    BASE_URL = os.environ.get("HIKARI_BASE_URL", "https://watch.hikaritv.xyz")

    # Preferences
    PREF_QUALITY_KEY = "preferred_quality"
    PREF_QUALITY_DEFAULT = "1080"
    QUALITY_VALUES = ["1080", "720", "480", "360"]
    QUALITY_ENTRIES = [f"{q}p" for q in QUALITY_VALUES]

    EMBED_REGEX = re.compile(r"getEmbed\(\s*(\d+)\s*,\s*(\d+)\s*,\s*'(\d+)'")
    SPECIAL_CHAR_REGEX = re.compile(r'(?![\-_])\W+')
    SERVER_SELECTOR = ".server-item:has(a[onclick*=getEmbed])"

    STATUS_MAP = {
        "currently airing": "Ongoing",
        "finished": "Completed",
    }

    def __init__(self, fetcher: Optional[Fetcher] = None, preferences: Optional[Preferences] = None, resolver: Optional[EmbedResolver] = None):
        self.source_name = "hikari"
        self.base_url = self.BASE_URL.rstrip('/')
        self.fetcher = fetcher or Fetcher()
        self.preferences = preferences or Preferences(defaults={self.PREF_QUALITY_KEY: self.PREF_QUALITY_DEFAULT})
        if resolver is None:
            headers = build_headers(self.base_url)
            resolver = EmbedResolver(default_routes(
                VidHideExtractor(self.fetcher, headers),
                FilemoonExtractor(self.fetcher),
                headers=headers,
            ))
        self.resolver = resolver

    def _get_preference(self, key, default=None):
        return self.preferences.get(key, default)

    def set_preferred_quality(self, quality: str) -> str:
        """Accepts "720" or "720p"; returns the stored value."""
        value = str(quality).strip().lower().rstrip('p')
        if value not in self.QUALITY_VALUES:
            raise ValueError(f"Invalid quality {quality!r}. Choose one of: {', '.join(self.QUALITY_ENTRIES)}")
        self.preferences.set(self.PREF_QUALITY_KEY, value)
        return value

    # ============================== Catalog ===============================

    def _filter_url(self, sort: str, page: int) -> str:
        params = {
            "type": "", "country": "", "stats": "", "rate": "", "source": "", "season": "",
            "language": "", "aired_year": "", "aired_month": "", "aired_day": "",
            "sort": sort, "genres": "", "page": page,
        }
        return f"{self.base_url}/ajax/getfilter?{urlencode(params)}"

    def _parse_html_response(self, data: Any, page: int) -> Dict[str, Any]:
        """Parse the {html, page:{totalPages}} payload of the filter endpoint."""
        if not isinstance(data, dict) or 'html' not in data:
            raise ValueError("Invalid filter response format")
        soup = BeautifulSoup(data['html'], 'html.parser')
        total_pages = (data.get('page') or {}).get('totalPages') or 0
        return {
            'results': self._parse_anime_items(soup),
            'has_next_page': page < int(total_pages),
        }

    def _parse_anime_items(self, soup: BeautifulSoup) -> List[Dict[str, Any]]:
        results = []
        for item in soup.select('.flw-item'):
            link = item.select_one('a[data-id]')
            title = item.select_one('.film-name')
            if not link or not title:
                continue
            poster = item.select_one('img')
            url = urljoin(self.base_url + '/', link.get('href', ''))
            results.append({
                'title': title.text.strip(),
                'url': url,
                'id': link.get('data-id'),
                'poster': urljoin(self.base_url + '/', poster['src']) if poster and poster.get('src') else None,
                'source': self.source_name,
            })
        return results

    def _get_filter_page(self, sort: str, page: int) -> Dict[str, Any]:
        headers = build_headers(self.base_url, referer=f"{self.base_url}/filter")
        data = self.fetcher.get_json(self._filter_url(sort, page), headers=headers)
        return self._parse_html_response(data, page)

    def get_popular_anime(self, page: int = 1) -> Dict[str, Any]:
        return self._get_filter_page("score", page)

    def get_latest_anime(self, page: int = 1) -> Dict[str, Any]:
        return self._get_filter_page("recently_updated", page)

    def search_anime(self, query: str = "", page: int = 1) -> Dict[str, Any]:
        """
        Search by keyword. An empty query browses the filter listing instead.

        A "path:<type>/<id>" query (from a shared link) returns that single anime.
        """
        query = (query or "").strip()
        # Shared link: fetch that one anime directly
        if query.startswith(PREFIX_SEARCH):
            details = self.get_anime_details(f"{self.base_url}/{query[len(PREFIX_SEARCH):]}")
            return {'results': [details], 'has_next_page': False}

        if not query:
            return self._get_filter_page("", page)

        referer = f"{self.base_url}/search?keyword={quote_plus(query)}"
        url = f"{referer}&page={page}"
        soup = self.fetcher.get_soup(url, headers=build_headers(self.base_url, referer=referer))
        return {
            'results': self._parse_anime_items(soup),
            'has_next_page': soup.select_one('ul.pagination > li.active + li') is not None,
        }

    def get_anime_details(self, url: str) -> Dict[str, Any]:
        full_url = urljoin(self.base_url + '/', url)
        soup = self.fetcher.get_soup(full_url, headers=build_headers(self.base_url))

        # Everything we need lives under #ani_detail
        detail = soup.select_one('#ani_detail')
        if detail is None:
            raise ValueError(f"Could not parse details page for {full_url}")

        title = detail.select_one('.film-name')
        poster = detail.select_one('.film-poster img')
        description = detail.select_one('.film-description > .text')
        status = detail.select_one('.item:has(span:-soup-contains("Status")) > .name')
        path = urlparse(full_url).path

        return {
            'url': path,
            'id': path.split('/')[2] if len(path.split('/')) > 2 else None,
            'title': title.text.strip() if title else None,
            'poster': urljoin(self.base_url + '/', poster['src']) if poster and poster.get('src') else None,
            'description': description.text.strip() if description else None,
            'genres': [a.text.strip() for a in detail.select('.item-list:has(span:-soup-contains("Genres")) > a')],
            'studio': ', '.join(a.text.strip() for a in detail.select('.item:has(span:-soup-contains("Studio")) > a')),
            'status': self.STATUS_MAP.get(status.text.strip().lower(), "Unknown") if status else "Unknown",
            'source': self.source_name,
        }

    def get_episodes(self, anime: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Episodes newest first."""
        path = urlparse(anime['url']).path
        parts = path.split('/')
        if len(parts) < 3 or not parts[2]:
            raise ValueError(f"Could not find anime id in {anime['url']}")
        anime_id = parts[2]

        sanitized = self.SPECIAL_CHAR_REGEX.sub('', (anime.get('title') or '').replace(' ', '_'))
        referer = f"{self.base_url}/watch?{urlencode({'anime': sanitized, 'uid': anime_id, 'eps': '1'})}"
        data = self.fetcher.get_json(
            f"{self.base_url}/ajax/episodelist/{anime_id}",
            headers=build_headers(self.base_url, referer=referer),
        )
        if not isinstance(data, dict) or 'html' not in data:
            raise ValueError(f"Invalid episode list response for anime {anime_id}")

        # Episode list comes back as an HTML fragment
        soup = BeautifulSoup(data['html'], 'html.parser')
        episodes = []
        for item in soup.select('a.ep-item'):
            number = item.select_one('.ssli-order')
            if number is None:
                continue
            ep = number.text.strip()
            name = item.select_one('.ep-name')
            try:
                episode_number = float(ep)
            except ValueError:
                log.warning(f"Skipping episode with non-numeric number {ep!r}")
                continue
            episodes.append({
                'number': episode_number,
                'title': f"Ep. {ep} - {name.text.strip() if name else ''}",
                'url': urljoin(self.base_url + '/', item.get('href', '')),
            })
        # Newest first
        episodes.reverse()
        return episodes

    # ============================ Video Links =============================

    def discover_embeds(self, episode_url: str) -> List[EmbedCandidate]:
        """Embed candidates for an episode page (ajax/embedserver, then ajax/embed per server)."""
        full_url = urljoin(self.base_url + '/', episode_url)
        query = parse_qs(urlparse(full_url).query)
        anime_id = query.get('uid', [None])[0]
        episode_num = query.get('eps', [None])[0]
        if not anime_id or not episode_num:
            raise ValueError(f"Episode URL is missing uid/eps: {episode_url}")

        # Server list for this episode
        server_url = f"{self.base_url}/ajax/embedserver/{anime_id}/{episode_num}"
        data = self.fetcher.get_json(server_url, headers=build_headers(self.base_url, referer=full_url))
        if not isinstance(data, dict) or 'html' not in data:
            raise ValueError(f"Invalid embed server response for {episode_url}")
        return self.discover_embeds_from_html(data['html'], server_url)

    def discover_embeds_from_html(self, html: str, referer: str) -> List[EmbedCandidate]:
        soup = BeautifulSoup(html, 'html.parser')
        headers = build_headers(self.base_url, referer=referer)

        candidates = []
        for server in soup.select(self.SERVER_SELECTOR):
            name = server.text.strip()
            link = server.select_one('a[onclick]')
            # onclick="getEmbed(anime, episode, 'server')"
            match = self.EMBED_REGEX.search(link.get('onclick', '')) if link else None
            if not match:
                continue
            embed_list_url = f"{self.base_url}/ajax/embed/{match.group(1)}/{match.group(2)}/{match.group(3)}"
            candidates.extend(self._fetch_embed_list(embed_list_url, name, headers))
        return candidates

    def _fetch_embed_list(self, url: str, name: str, headers: Dict[str, str]) -> List[EmbedCandidate]:
        try:
            response = self.fetcher.get(url, headers=headers)
        except ConnectionError as e:
            log.warning(f"[{name}] embed list unavailable: {e}")
            return []
        if not response.ok:
            log.warning(f"[{name}] embed list returned {response.status_code}: {url}")
            return []
        try:
            fragments = response.json()
        except ValueError as e:
            log.warning(f"[{name}] embed list is not JSON: {e}")
            return []

        candidates = []
        for fragment in fragments if isinstance(fragments, list) else []:
            if not isinstance(fragment, str):
                continue
            # Each fragment is an <iframe> snippet
            iframe = BeautifulSoup(fragment, 'html.parser').find('iframe', src=True)
            if iframe is not None:
                candidates.append(EmbedCandidate(iframe['src'], name))
        return candidates

    def get_video_streams(self, episode_url: str) -> List[Video]:
        """Ranked playable videos for an episode. Never raises; [] when nothing resolves."""
        try:
            candidates = self.discover_embeds(episode_url)
        except Exception as e:
            log.error(f"Failed to discover embeds for {episode_url}: {e}")
            return []

        log.info(f"Found {len(candidates)} embeds for {episode_url}")
        # Resolve every embed, then rank by the current quality preference
        videos = self.resolver.resolve_all(candidates)
        quality = self._get_preference(self.PREF_QUALITY_KEY, self.PREF_QUALITY_DEFAULT)
        return sort_videos(videos, quality)
