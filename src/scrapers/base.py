"""Base scraper shared by the event-source and timing-source scrapers"""
from typing import Optional
import logging
import time

import requests
from bs4 import BeautifulSoup
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config.settings import SCRAPER_CONFIG
from src.base import FetchError

logger = logging.getLogger(__name__)


def init_http_session(user_agent: Optional[str] = None) -> requests.Session:
    """Initialize HTTP session with transport-level retry logic"""
    session = requests.Session()

    adapter = HTTPAdapter(
        pool_connections=4,
        pool_maxsize=4,
        max_retries=Retry(
            total=3,
            backoff_factor=1.0,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["GET", "HEAD"]
        )
    )

    session.mount("https://", adapter)
    session.mount("http://", adapter)

    session.headers.update({
        'User-Agent': user_agent or SCRAPER_CONFIG['user_agent'],
        'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
        'Accept-Language': 'ja,en-US;q=0.7,en;q=0.3',
    })

    return session


def sleep_ms(delay_ms: int) -> None:
    if delay_ms > 0:
        time.sleep(delay_ms / 1000.0)


class BaseScraper:
    """
    Sequential HTML fetcher with a fixed courtesy delay between requests.

    Subclasses call fetch_html() for every page; the first request of a run
    is not delayed.
    """

    def __init__(self, session: Optional[requests.Session] = None, delay_ms: Optional[int] = None):
        self.session = session or init_http_session()
        self.delay_ms = SCRAPER_CONFIG['ranking_delay_ms'] if delay_ms is None else delay_ms
        self.timeout = SCRAPER_CONFIG['timeout']
        self.requests_made = 0

    def wait(self) -> None:
        if self.requests_made > 0:
            sleep_ms(self.delay_ms)

    def fetch_text(self, url: str) -> str:
        """GET a page; raises FetchError on network failure or non-2xx status"""
        self.wait()
        self.requests_made += 1
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(url, str(e)) from e

        if not 200 <= response.status_code < 300:
            raise FetchError(url, f"HTTP {response.status_code}", status_code=response.status_code)

        if not response.encoding or response.encoding.lower() == 'iso-8859-1':
            response.encoding = response.apparent_encoding
        return response.text

    def fetch_html(self, url: str) -> BeautifulSoup:
        return BeautifulSoup(self.fetch_text(url), 'html.parser')
