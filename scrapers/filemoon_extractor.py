import logging
import re
from typing import List, Mapping, Optional
from urllib.parse import parse_qs, urljoin, urlparse

from bs4 import BeautifulSoup

from . import unpacker
from .fetcher import Fetcher
from .playlist_utils import PlaylistUtils, Track, Video
from .script_utils import parse_subtitles

FILE_REGEX = re.compile(r'file:\s*"([^"]+)"')
SUB_FETCH_REGEX = re.compile(r"fetch\('([^']+)'\)")


class FilemoonExtractor:
    """Filemoon embeds: the player setup is p,a,c,k,e,d packed, sometimes one iframe deep."""

    def __init__(self, fetcher: Optional[Fetcher] = None):
        self.fetcher = fetcher or Fetcher()
        self.playlist_utils = PlaylistUtils(self.fetcher)
        self.log = logging.getLogger(__name__)

    def videos_from_url(self, url: str, prefix: str = "Filemoon - ", headers: Optional[Mapping[str, str]] = None) -> List[Video]:
        try:
            parsed = urlparse(url)
            origin = f"{parsed.scheme}://{parsed.netloc}"
            video_headers = dict(headers or {})
            video_headers['Referer'] = url
            video_headers['Origin'] = origin

            # Player page, or the page inside its wrapper iframe
            packed_script = self._find_packed_script(url, video_headers)
            if packed_script is None:
                self.log.info(f"No packed player script in {url}")
                return []

            # Unpack the p,a,c,k,e,d setup and pull the master playlist out of it
            unpacked = unpacker.unpack(packed_script) or ""
            match = FILE_REGEX.search(unpacked)
            if not match or not match.group(1).strip():
                self.log.info(f"No master playlist in unpacked player of {url}")
                return []
            master_url = match.group(1)

            # sub.info list first, then tracks declared in the player setup
            subtitle_list = self._external_subtitles(url, unpacked, video_headers)
            subtitle_list += parse_subtitles(unpacked)

            return self.playlist_utils.extract_from_hls(
                master_url,
                referer=f"{origin}/",
                video_name_gen=lambda q: f"{prefix}{q}",
                subtitle_list=subtitle_list,
            )

        except Exception as e:
            self.log.error(f"Failed to get videos from {url}: {e}", exc_info=True)
            return []

    def _find_packed_script(self, url: str, headers: Mapping[str, str]) -> Optional[str]:
        """Packed script of the embed page, following a wrapper iframe once."""
        document = self.fetcher.get_soup(url, headers=headers)
        script = self._packed_script_in(document)
        if script is not None:
            return script

        iframe = document.find('iframe', src=True)
        if iframe is None:
            return None
        iframe_url = urljoin(url, iframe['src'])
        iframe_headers = dict(headers)
        iframe_headers['Referer'] = url
        return self._packed_script_in(self.fetcher.get_soup(iframe_url, headers=iframe_headers))

    def _packed_script_in(self, document: BeautifulSoup) -> Optional[str]:
        for script in document.find_all('script'):
            data = script.string if script.string is not None else script.get_text()
            if data and 'eval(function' in data and unpacker.detect(data):
                return str(data)
        return None

    def _external_subtitles(self, url: str, unpacked: str, headers: Mapping[str, str]) -> List[Track]:
        """Subtitles listed at the `sub.info` URL (query parameter or fetched by the player)."""
        # Prefer the query parameter, fall back to the fetch() in the player
        sub_url = parse_qs(urlparse(url).query).get('sub.info', [None])[0]
        if not sub_url:
            match = SUB_FETCH_REGEX.search(unpacked)
            sub_url = match.group(1) if match else None
        if not sub_url:
            return []

        try:
            entries = self.fetcher.get_json(sub_url, headers=headers)
        except (ConnectionError, ValueError) as e:
            self.log.warning(f"Could not load subtitles from {sub_url}: {e}")
            return []

        tracks = []
        for entry in entries if isinstance(entries, list) else []:
            if isinstance(entry, dict) and entry.get('file'):
                tracks.append(Track(entry['file'], entry.get('label') or ""))
        return tracks
