import logging
from typing import Callable, List, Mapping, Optional

from bs4 import BeautifulSoup

from .fetcher import Fetcher
from .playlist_utils import PlaylistUtils, Video
from .script_utils import extract_script, locate_manifest, parse_subtitles


class VidHideExtractor:
    """Embeds whose player script carries the master playlist in plain text."""

    def __init__(self, fetcher: Optional[Fetcher] = None, headers: Optional[Mapping[str, str]] = None):
        self.fetcher = fetcher or Fetcher()
        self.headers = dict(headers or {})
        self.playlist_utils = PlaylistUtils(self.fetcher)
        self.log = logging.getLogger(__name__)

    def videos_from_url(self, url: str, video_name_gen: Callable[[str], str] = lambda q: f"VidHide - {q}") -> List[Video]:
        """Main entry point - gets videos from a VidHide embed URL"""
        try:
            response = self.fetcher.get(url, headers=self.headers)
            if not response.ok:
                self.log.warning(f"VidHide embed returned {response.status_code}: {url}")
                return []

            document = BeautifulSoup(response.text, 'html.parser')
            script_body = extract_script(document, "m3u8")
            if script_body is None:
                self.log.info(f"No player script in {url}")
                return []

            master_url = locate_manifest(script_body)
            if not master_url:
                self.log.info(f"No master playlist in player script of {url}")
                return []

            subtitle_list = parse_subtitles(script_body)

            return self.playlist_utils.extract_from_hls(
                master_url,
                referer=url,
                video_name_gen=video_name_gen,
                subtitle_list=subtitle_list,
            )

        except Exception as e:
            self.log.error(f"Failed to get videos from {url}: {e}", exc_info=True)
            return []
