import pytest

from scrapers.deep_link import PREFIX_SEARCH, search_query_from_uri


class TestSearchQueryFromUri:
    @pytest.mark.parametrize("uri, expected", [
        ("https://watch.hikaritv.xyz/anime/12", "path:anime/12"),
        ("https://watch.hikaritv.xyz/anime/12/frieren", "path:anime/12"),
        ("https://watch.hikaritv.xyz/anime/12/?ref=share", "path:anime/12"),
    ])
    def test_two_segments(self, uri, expected):
        assert search_query_from_uri(uri) == expected

    @pytest.mark.parametrize("uri", ["https://watch.hikaritv.xyz/", "https://watch.hikaritv.xyz/anime", ""])
    def test_too_short(self, uri):
        assert search_query_from_uri(uri) is None

    def test_prefix(self):
        assert search_query_from_uri("https://host/a/b").startswith(PREFIX_SEARCH)
