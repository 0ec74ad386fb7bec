import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import urljoin

from .fetcher import Fetcher

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Track:
    url: str
    label: str = ""


@dataclass(frozen=True)
class Video:
    url: str
    quality: str
    headers: Mapping[str, str] = field(default_factory=dict, compare=False, hash=False)
    subtitles: Tuple[Track, ...] = ()
    audio_tracks: Tuple[Track, ...] = ()

    def __post_init__(self):
        # each video gets its own read-only copy of the request headers
        object.__setattr__(self, 'headers', MappingProxyType(dict(self.headers)))

    def to_dict(self) -> Dict:
        return {
            'url': self.url,
            'quality': self.quality,
            'headers': dict(self.headers),
            'subtitles': [{'url': t.url, 'label': t.label} for t in self.subtitles],
            'audio_tracks': [{'url': t.url, 'label': t.label} for t in self.audio_tracks],
        }


class PlaylistUtils:
    PLAYLIST_SEPARATOR = "#EXT-X-STREAM-INF:"
    SUBTITLE_REGEX = re.compile(r'#EXT-X-MEDIA:TYPE=SUBTITLES.*?NAME="(.*?)".*?URI="(.*?)"')
    AUDIO_REGEX = re.compile(r'#EXT-X-MEDIA:TYPE=AUDIO.*?NAME="(.*?)".*?URI="(.*?)"')
    RESOLUTION_REGEX = re.compile(r'RESOLUTION=(\d+)x(\d+)')

    def __init__(self, fetcher: Optional[Fetcher] = None):
        self.fetcher = fetcher or Fetcher()

    def extract_from_hls(self,
                         playlist_url: str,
                         referer: str = "",
                         video_name_gen: Callable[[str], str] = lambda q: q,
                         subtitle_list: Sequence[Track] = (),
                         audio_list: Sequence[Track] = ()) -> List[Video]:
        """
        Expand an HLS master playlist into one Video per variant stream.

        A media playlist (no #EXT-X-STREAM-INF) yields a single "Auto" video.
        Subtitle/audio renditions declared in the master are appended to the given lists.
        Never raises: fetch or parse errors are logged and give an empty list.
        """
        if not playlist_url:
            return []

        headers = {
            'Accept': '*/*',
            'Referer': referer,
            'User-Agent': self.fetcher.session.headers.get('User-Agent', ''),
        }
        if referer:
            headers['Origin'] = self._get_origin(referer)

        try:
            response = self.fetcher.get_ok(playlist_url, headers=headers)
            playlist = response.text
        except Exception as e:
            log.warning(f"Error fetching HLS playlist {playlist_url}: {e}")
            return []

        # Single stream case
        if self.PLAYLIST_SEPARATOR not in playlist:
            return [Video(
                playlist_url,
                video_name_gen("Auto"),
                headers=headers,
                subtitles=tuple(subtitle_list),
                audio_tracks=tuple(audio_list),
            )]

        base_url = self._get_base_url(playlist_url)
        subtitles = tuple(subtitle_list) + tuple(self._parse_tracks(playlist, base_url, self.SUBTITLE_REGEX))
        audio_tracks = tuple(audio_list) + tuple(self._parse_tracks(playlist, base_url, self.AUDIO_REGEX))

        videos = []
        for segment in playlist.split(self.PLAYLIST_SEPARATOR)[1:]:
            lines = segment.split('\n')
            if len(lines) < 2:
                continue

            resolution = self._parse_resolution(lines[0])
            stream_url = lines[1].strip()
            if not stream_url:
                continue

            if stream_url.startswith('//'):
                stream_url = 'https:' + stream_url
            elif not stream_url.startswith('http'):
                stream_url = urljoin(base_url, stream_url)

            videos.append(Video(
                stream_url,
                video_name_gen(resolution),
                headers=headers,
                subtitles=subtitles,
                audio_tracks=audio_tracks,
            ))

        return videos

    def _parse_resolution(self, line: str) -> str:
        """Extract resolution from an #EXT-X-STREAM-INF attribute line"""
        match = self.RESOLUTION_REGEX.search(line)
        if match:
            return f"{match.group(2)}p"
        return "Auto"

    def _parse_tracks(self, playlist: str, base_url: str, regex: re.Pattern) -> List[Track]:
        tracks = []
        for match in regex.finditer(playlist):
            label = match.group(1)
            url = match.group(2)
            if not url.startswith(('http', '//')):
                url = urljoin(base_url, url)
            tracks.append(Track(url, label))
        return tracks

    def _get_base_url(self, url: str) -> str:
        """Get base URL for relative path resolution"""
        path = url.split('?')[0]
        return path.rsplit('/', 1)[0] + '/'

    def _get_origin(self, url: str) -> str:
        parts = url.split('/')
        return '/'.join(parts[:3])
