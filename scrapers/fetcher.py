import logging
import os
from types import MappingProxyType
from typing import Dict, Mapping, Optional

import cloudscraper
import requests
from bs4 import BeautifulSoup

log = logging.getLogger(__name__)


def env_number(name: str, default, cast=float):
    """Numeric setting from the environment; malformed values fall back to default."""
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError:
        log.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


DEFAULT_TIMEOUT = env_number("HIKARI_TIMEOUT", 15.0)

BASE_HEADERS: Mapping[str, str] = MappingProxyType({
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.5',
})


def build_headers(base_url: str, referer: Optional[str] = None, **overrides: str) -> Dict[str, str]:
    """
    Build a fresh header set for one request.

    Origin is always the site root, Referer defaults to "<base_url>/".
    Keyword overrides use underscores for dashes (X_Requested_With -> X-Requested-With).
    """
    headers = dict(BASE_HEADERS)
    headers['Origin'] = base_url
    headers['Referer'] = referer or f"{base_url}/"
    for key, value in overrides.items():
        headers[key.replace('_', '-')] = value
    return headers


class Fetcher:
    """Thin wrapper around a requests session with a per-request timeout."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = DEFAULT_TIMEOUT):
        self.session = session or cloudscraper.create_scraper()
        self.timeout = timeout

    def get(self, url: str, headers: Optional[Mapping[str, str]] = None, params: Optional[dict] = None) -> requests.Response:
        """
        Issue a GET and return the raw response, whatever its status.

        Transport failures (timeouts, refused connections) are raised as ConnectionError.
        """
        try:
            return self.session.get(url, headers=dict(headers or {}), params=params, timeout=self.timeout)
        except requests.exceptions.Timeout:
            log.error(f"Request timed out: {url}")
            raise ConnectionError(f"Request timed out for {url}")
        except requests.exceptions.RequestException as e:
            log.error(f"Request failed for {url}: {e}")
            raise ConnectionError(f"Failed to connect to {url}: {e}")

    def get_ok(self, url: str, headers: Optional[Mapping[str, str]] = None, params: Optional[dict] = None) -> requests.Response:
        """Like get(), but a non-2xx status is raised as ConnectionError too."""
        response = self.get(url, headers=headers, params=params)
        if not response.ok:
            log.warning(f"Unexpected status {response.status_code} for {url}")
            raise ConnectionError(f"HTTP {response.status_code} for {url}")
        return response

    def get_soup(self, url: str, headers: Optional[Mapping[str, str]] = None, params: Optional[dict] = None) -> BeautifulSoup:
        response = self.get_ok(url, headers=headers, params=params)
        return BeautifulSoup(response.text, 'html.parser')

    def get_json(self, url: str, headers: Optional[Mapping[str, str]] = None, params: Optional[dict] = None):
        response = self.get_ok(url, headers=headers, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise ValueError(f"Invalid JSON from {url}: {e}")
