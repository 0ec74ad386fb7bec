import json
from unittest.mock import MagicMock

import pytest
import requests

from scrapers.fetcher import Fetcher
from scrapers.preferences import Preferences


class FakeResponse:
    def __init__(self, text="", status_code=200, url=""):
        self.text = text
        self.status_code = status_code
        self.url = url

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        return json.loads(self.text)


def make_session(routes):
    """
    MagicMock session answering GETs from a {url: FakeResponse | Exception} map.

    Unknown URLs get a 404. Exceptions are raised from session.get.
    """
    def get(url, headers=None, params=None, timeout=None):
        result = routes.get(url)
        if result is None:
            return FakeResponse("not found", 404, url)
        if isinstance(result, Exception):
            raise result
        result.url = url
        return result

    session = MagicMock(spec=requests.Session)
    session.headers = {'User-Agent': 'test-agent'}
    session.get = MagicMock(side_effect=get)
    return session


@pytest.fixture
def routes():
    return {}


@pytest.fixture
def fetcher(routes):
    return Fetcher(session=make_session(routes), timeout=1)


@pytest.fixture
def prefs():
    return Preferences(path=None, defaults={"preferred_quality": "1080"})


MASTER_PLAYLIST = """#EXTM3U
#EXT-X-MEDIA:TYPE=SUBTITLES,GROUP-ID="subs",NAME="Deutsch",URI="subs/de.m3u8"
#EXT-X-STREAM-INF:BANDWIDTH=800000,RESOLUTION=854x480
480/index.m3u8
#EXT-X-STREAM-INF:BANDWIDTH=2800000,RESOLUTION=1920x1080
https://cdn.example.com/hls/1080/index.m3u8
#EXT-X-STREAM-INF:BANDWIDTH=1400000,RESOLUTION=1280x720
720/index.m3u8
"""


@pytest.fixture
def master_playlist():
    return MASTER_PLAYLIST


@pytest.fixture
def response():
    """Factory for canned responses: response(text, status_code=200)."""
    return FakeResponse
