import logging
import re
from typing import List, Optional

from bs4 import BeautifulSoup

from . import lenient_json
from .playlist_utils import Track

log = logging.getLogger(__name__)

SOURCE_ASSIGNMENT_REGEX = re.compile(r'source\s*=\s*"(.*?)"')


def _substring_after(text: str, marker: str, missing: Optional[str] = None) -> str:
    """Text after the first marker; `missing` (default: the whole text) when absent."""
    index = text.find(marker)
    if index == -1:
        return text if missing is None else missing
    return text[index + len(marker):]


def _substring_before(text: str, marker: str, missing: Optional[str] = None) -> str:
    index = text.find(marker)
    if index == -1:
        return text if missing is None else missing
    return text[:index]


def extract_script(document: BeautifulSoup, marker: str = "m3u8") -> Optional[str]:
    """Raw text of the first <script> containing marker, or None."""
    for script in document.find_all('script'):
        data = script.string if script.string is not None else script.get_text()
        if data and marker in data:
            return str(data)
    return None


def locate_source_assignment(script: str) -> Optional[str]:
    """Player scripts that assign the master URL directly: source = "<url>"."""
    match = SOURCE_ASSIGNMENT_REGEX.search(script)
    return match.group(1) if match else None


def locate_file_after_source(script: str) -> Optional[str]:
    """Player scripts that nest it in a setup object: sources:[{file:"<url>"}]."""
    url = _substring_after(script, 'source', "")
    url = _substring_after(url, 'file:"', "")
    url = _substring_before(url, '"', "")
    return url if url.strip() else None


def locate_manifest(script: str) -> Optional[str]:
    for locator in (locate_source_assignment, locate_file_after_source):
        url = locator(script)
        if url and url.strip():
            return url
    return None


def parse_subtitles(script: str) -> List[Track]:
    """
    Caption tracks declared in a player setup's `tracks:[...]` array.

    Non-caption kinds (thumbnails, chapters) are dropped. A malformed array yields [].
    """
    subtitle_str = _substring_after(script, 'tracks')
    subtitle_str = _substring_after(subtitle_str, '[')
    subtitle_str = _substring_before(subtitle_str, ']')

    try:
        parsed = lenient_json.loads(f"[{subtitle_str}]")
    except lenient_json.LenientJSONError as e:
        log.debug(f"Unparseable tracks array: {e}")
        return []

    tracks = []
    for entry in parsed:
        if not isinstance(entry, dict):
            continue
        file_url = entry.get('file')
        kind = entry.get('kind')
        if not isinstance(file_url, str) or not isinstance(kind, str):
            continue
        if kind.lower() != 'captions':
            continue
        label = entry.get('label')
        tracks.append(Track(file_url, label if isinstance(label, str) else ""))
    return tracks
