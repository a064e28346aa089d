"""
Shared fakes for the crawl tests.

Nothing here touches the network: pages come from a dict, the oracle answers
from canned lists, and time only moves when the code under test sleeps.
"""

from typing import Dict, List, Optional

import pytest

from fetcher import FetchedPage, FetchError
from llm_interface import OracleError, SearchHit, SelectedLink
from parser import extract_links
from politeness import PolitenessController


def page(title: str, *links: str, body: str = "") -> str:
    anchors = "".join(f'<a href="{u}">{t}</a>' for u, t in
                      ((u, f"link to {u.rsplit('/', 1)[-1]}") for u in links))
    return (f"<html><head><title>{title}</title></head><body>"
            f"<h1>{title}</h1><p>{body or title + ' text.'}</p>{anchors}"
            f"</body></html>")


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFetcher:
    """Pages keyed by URL; a FetchError value simulates an unavailable page."""

    def __init__(self, pages: Dict[str, object], clock: Optional[FakeClock] = None,
                 cost: float = 0.0, crawl_delay: float = 0.0) -> None:
        self.pages = pages
        self.clock = clock
        self.cost = cost
        self.crawl_delay = crawl_delay
        self.calls: List[str] = []
        self.call_times: List[float] = []

    def fetch(self, url: str) -> FetchedPage:
        self.calls.append(url)
        if self.clock is not None:
            self.call_times.append(self.clock())
            self.clock.advance(self.cost)
        html = self.pages.get(url)
        if html is None:
            raise FetchError("http status: 404")
        if isinstance(html, FetchError):
            raise html
        return FetchedPage(url=url, html=html, links=extract_links(url, html),
                           crawl_delay=self.crawl_delay)


class FakeOracle:
    def __init__(self, seeds=(), selections=None, search_error=None, select_error=None):
        self.seeds = list(seeds)
        self.selections: Dict[str, List[str]] = selections or {}
        self.search_error = search_error
        self.select_error = select_error
        self.search_calls: List[tuple] = []
        self.select_calls: List[dict] = []

    def web_search(self, query: str, limit: int) -> List[SearchHit]:
        self.search_calls.append((query, limit))
        if self.search_error is not None:
            raise self.search_error
        return [SearchHit(url=u) for u in self.seeds[:limit]]

    def select_child_links(self, query, page_url, excerpt, candidates, max_select):
        self.select_calls.append({"query": query, "page_url": page_url,
                                  "excerpt": excerpt, "candidates": list(candidates),
                                  "max_select": max_select})
        if self.select_error is not None:
            raise self.select_error
        return [SelectedLink(url=u) for u in self.selections.get(page_url, [])]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def politeness(clock):
    return PolitenessController(clock=clock, sleep=clock.sleep)


@pytest.fixture
def oracle_error():
    return OracleError("http status: 503")
