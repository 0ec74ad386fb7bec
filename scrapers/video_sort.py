import re
from typing import Iterable, List

from .playlist_utils import Video

QUALITY_REGEX = re.compile(r'(\d+)p')


def quality_number(quality: str) -> int:
    """Numeric resolution in a label like "VidHide - 720p", 0 when there is none."""
    match = QUALITY_REGEX.search(quality)
    return int(match.group(1)) if match else 0


def sort_videos(videos: Iterable[Video], preferred_quality: str) -> List[Video]:
    """Preferred quality first, then highest resolution. Ties keep their input order."""
    def sort_key(video):
        return (preferred_quality in video.quality, quality_number(video.quality))

    return sorted(videos, key=sort_key, reverse=True)
