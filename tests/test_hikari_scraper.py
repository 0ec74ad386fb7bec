import json
from unittest.mock import MagicMock

import pytest

from scrapers.embed_resolver import EmbedCandidate, EmbedResolver, ProviderRoute, url_contains
from scrapers.hikari_scraper import HikariScraper
from scrapers.playlist_utils import Video

BASE = HikariScraper.BASE_URL.rstrip('/')
EPISODE_URL = f"{BASE}/watch?anime=Frieren&uid=12&eps=3"
SERVER_URL = f"{BASE}/ajax/embedserver/12/3"

SERVER_HTML = """
<div class="server-item"><a onclick="getEmbed(12, 3, '1')">VidHide</a></div>
<div class="server-item"><a onclick="getEmbed(12, 3, '2')">Moon</a></div>
<div class="server-item"><a onclick="getEmbed(broken)">Broken</a></div>
<div class="server-item"><a onclick="somethingElse()">Other</a></div>
"""

ANIME_ITEMS = """
<div class="flw-item">
  <div class="film-poster"><img src="/images/frieren.jpg"></div>
  <a data-id="12" href="/anime/12/frieren">watch</a>
  <h3 class="film-name">Frieren</h3>
</div>
<div class="flw-item"><h3 class="film-name">No link</h3></div>
"""

DETAILS_PAGE = """
<html><body><div id="ani_detail">
  <div class="film-poster"><img src="https://img.example.com/frieren.jpg"></div>
  <h2 class="film-name">Sousou no Frieren: Beyond</h2>
  <div class="film-description"><div class="text"> An elf mage looks back. </div></div>
  <div class="item-list"><span>Genres:</span><a>Adventure</a><a>Drama</a></div>
  <div class="item"><span>Studio:</span><a>Madhouse</a></div>
  <div class="item"><span>Status:</span><span class="name">Finished</span></div>
</div></body></html>
"""

EPISODES_HTML = """
<a class="ep-item" href="/watch?anime=Frieren&amp;uid=12&amp;eps=1"><div class="ssli-order">1</div><div class="ep-name">Journey's End</div></a>
<a class="ep-item" href="/watch?anime=Frieren&amp;uid=12&amp;eps=2"><div class="ssli-order">2</div></a>
"""


@pytest.fixture
def scraper(fetcher, prefs):
    return HikariScraper(fetcher=fetcher, preferences=prefs, resolver=EmbedResolver([]))


def headers_sent_to(fetcher, url):
    calls = [c for c in fetcher.session.get.call_args_list if c.args[0] == url]
    assert calls, f"{url} was not requested"
    return calls[0].kwargs["headers"]


class TestEmbedDiscovery:
    def test_discovers_iframes_per_server(self, routes, fetcher, response, scraper):
        routes[SERVER_URL] = response(json.dumps({"html": SERVER_HTML}))
        routes[f"{BASE}/ajax/embed/12/3/1"] = response(json.dumps([
            '<iframe src="https://vidhidepro.com/v/abc" allowfullscreen></iframe>',
            '<p>no player here</p>',
        ]))
        routes[f"{BASE}/ajax/embed/12/3/2"] = response("error", 500)

        candidates = scraper.discover_embeds(EPISODE_URL)

        assert candidates == [EmbedCandidate("https://vidhidepro.com/v/abc", "VidHide")]

    def test_referers_follow_the_page_chain(self, routes, fetcher, response, scraper):
        routes[SERVER_URL] = response(json.dumps({"html": SERVER_HTML}))
        scraper.discover_embeds(EPISODE_URL)

        assert headers_sent_to(fetcher, SERVER_URL)["Referer"] == EPISODE_URL
        embed_headers = headers_sent_to(fetcher, f"{BASE}/ajax/embed/12/3/1")
        assert embed_headers["Referer"] == SERVER_URL
        assert embed_headers["Origin"] == BASE

    def test_no_directives_fetches_nothing(self, fetcher, scraper):
        html = '<div class="server-item"><a onclick="play()">Plain</a></div>'
        assert scraper.discover_embeds_from_html(html, SERVER_URL) == []
        fetcher.session.get.assert_not_called()

    def test_undecodable_embed_list(self, routes, response, scraper):
        routes[f"{BASE}/ajax/embed/12/3/1"] = response("<html>oops</html>")
        html = """<div class="server-item"><a onclick="getEmbed(12, 3, '1')">VidHide</a></div>"""
        assert scraper.discover_embeds_from_html(html, SERVER_URL) == []

    def test_episode_url_without_ids(self, scraper):
        with pytest.raises(ValueError):
            scraper.discover_embeds(f"{BASE}/watch?anime=Frieren")


class TestGetVideoStreams:
    def test_ranks_resolved_videos(self, routes, fetcher, response, prefs):
        routes[SERVER_URL] = response(json.dumps({"html": SERVER_HTML}))
        routes[f"{BASE}/ajax/embed/12/3/1"] = response(json.dumps(['<iframe src="https://vidhidepro.com/v/abc"></iframe>']))
        routes[f"{BASE}/ajax/embed/12/3/2"] = response(json.dumps(['<iframe src="https://filemoon.sx/e/xyz"></iframe>']))

        def vidhide(candidate):
            return [Video("https://v/480.m3u8", "VidHide - 480p"), Video("https://v/1080.m3u8", "VidHide - 1080p")]

        def filemoon(candidate):
            return [Video("https://f/720.m3u8", "Moon - 720p")]

        resolver = EmbedResolver([
            ProviderRoute("vidhide", url_contains("vidhide"), vidhide),
            ProviderRoute("filemoon", url_contains("filemoon"), filemoon),
        ])
        prefs.set("preferred_quality", "720")
        scraper = HikariScraper(fetcher=fetcher, preferences=prefs, resolver=resolver)

        videos = scraper.get_video_streams(EPISODE_URL)

        assert [v.quality for v in videos] == ["Moon - 720p", "VidHide - 1080p", "VidHide - 480p"]

    def test_discovery_failure_gives_empty_list(self, routes, response, scraper):
        routes[SERVER_URL] = response("down", 503)
        assert scraper.get_video_streams(EPISODE_URL) == []

    def test_nothing_resolvable(self, routes, response, fetcher, prefs):
        routes[SERVER_URL] = response(json.dumps({"html": SERVER_HTML}))
        resolver = MagicMock(spec=EmbedResolver)
        resolver.resolve_all.return_value = []
        scraper = HikariScraper(fetcher=fetcher, preferences=prefs, resolver=resolver)

        assert scraper.get_video_streams(EPISODE_URL) == []
        resolver.resolve_all.assert_called_once_with([])


class TestCatalog:
    def test_popular(self, routes, fetcher, response, scraper):
        url = scraper._filter_url("score", 2)
        routes[url] = response(json.dumps({"html": ANIME_ITEMS, "page": {"totalPages": 3}}))

        page = scraper.get_popular_anime(2)

        assert page["has_next_page"] is True
        assert page["results"] == [{
            'title': "Frieren",
            'url': f"{BASE}/anime/12/frieren",
            'id': "12",
            'poster': f"{BASE}/images/frieren.jpg",
            'source': "hikari",
        }]
        assert headers_sent_to(fetcher, url)["Referer"] == f"{BASE}/filter"

    def test_latest_last_page(self, routes, response, scraper):
        routes[scraper._filter_url("recently_updated", 3)] = response(json.dumps({"html": ANIME_ITEMS, "page": {"totalPages": 3}}))
        assert scraper.get_latest_anime(3)["has_next_page"] is False

    def test_filter_response_without_html(self, routes, response, scraper):
        routes[scraper._filter_url("score", 1)] = response(json.dumps({"error": "x"}))
        with pytest.raises(ValueError):
            scraper.get_popular_anime(1)

    def test_search(self, routes, fetcher, response, scraper):
        url = f"{BASE}/search?keyword=sousou+no+frieren&page=1"
        routes[url] = response(
            f"<html>{ANIME_ITEMS}<ul class='pagination'><li class='active'>1</li><li>2</li></ul></html>"
        )

        page = scraper.search_anime("sousou no frieren")

        assert [a["title"] for a in page["results"]] == ["Frieren"]
        assert page["has_next_page"] is True
        assert headers_sent_to(fetcher, url)["Referer"] == f"{BASE}/search?keyword=sousou+no+frieren"

    def test_search_by_shared_path(self, routes, response, scraper):
        routes[f"{BASE}/anime/12"] = response(DETAILS_PAGE)
        page = scraper.search_anime("path:anime/12")
        assert page["results"][0]["title"] == "Sousou no Frieren: Beyond"
        assert page["has_next_page"] is False

    def test_search_connection_error(self, routes, response, scraper):
        routes[f"{BASE}/search?keyword=x&page=1"] = response("blocked", 403)
        with pytest.raises(ConnectionError):
            scraper.search_anime("x")

    def test_details(self, routes, response, scraper):
        routes[f"{BASE}/anime/12/frieren"] = response(DETAILS_PAGE)

        details = scraper.get_anime_details("/anime/12/frieren")

        assert details == {
            'url': "/anime/12/frieren",
            'id': "12",
            'title': "Sousou no Frieren: Beyond",
            'poster': "https://img.example.com/frieren.jpg",
            'description': "An elf mage looks back.",
            'genres': ["Adventure", "Drama"],
            'studio': "Madhouse",
            'status': "Completed",
            'source': "hikari",
        }

    def test_details_unparseable(self, routes, response, scraper):
        routes[f"{BASE}/anime/99"] = response("<html><body>Not here</body></html>")
        with pytest.raises(ValueError):
            scraper.get_anime_details(f"{BASE}/anime/99")

    def test_episodes_newest_first(self, routes, fetcher, response, scraper):
        url = f"{BASE}/ajax/episodelist/12"
        routes[url] = response(json.dumps({"html": EPISODES_HTML}))

        episodes = scraper.get_episodes({'url': "/anime/12/frieren", 'title': "Sousou no Frieren: Beyond"})

        assert episodes == [
            {'number': 2.0, 'title': "Ep. 2 - ", 'url': f"{BASE}/watch?anime=Frieren&uid=12&eps=2"},
            {'number': 1.0, 'title': "Ep. 1 - Journey's End", 'url': f"{BASE}/watch?anime=Frieren&uid=12&eps=1"},
        ]
        assert headers_sent_to(fetcher, url)["Referer"] == f"{BASE}/watch?anime=Sousou_no_Frieren_Beyond&uid=12&eps=1"


class TestQualityPreference:
    def test_default(self, scraper):
        assert scraper._get_preference("preferred_quality") == "1080"

    @pytest.mark.parametrize("value, stored", [("720", "720"), ("480p", "480"), (" 360P ", "360")])
    def test_set(self, scraper, value, stored):
        assert scraper.set_preferred_quality(value) == stored
        assert scraper._get_preference("preferred_quality") == stored

    def test_rejects_unknown(self, scraper):
        with pytest.raises(ValueError):
            scraper.set_preferred_quality("4k")
