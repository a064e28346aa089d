# crawler.py — bounded, trust-ordered crawl driven by an oracle
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set

import trust
from fetcher import FetchError, PageFetcher
from frontier import Frontier
from llm_interface import Oracle, OracleError
from parser import ExtractionError, extract
from politeness import PolitenessController
from selector import build_candidates, select_children
from trust import TrustTier
from utils import host_of, is_admissible, normalize_url

log = logging.getLogger(__name__)


class CrawlError(RuntimeError):
    """The crawl cannot continue (no seeds, oracle outage)."""


@dataclass(frozen=True)
class UserRequest:
    query: str
    max_chars: int = 4000
    min_sources: int = 3
    search_limit: int = 10
    max_pages: int = 20
    max_depth: int = 1
    max_elapsed: float = 30.0           # seconds
    max_child_candidates: int = 20
    max_children_per_page: int = 3
    allow_local: bool = False


@dataclass(frozen=True)
class Source:
    url: str
    trust_tier: TrustTier
    excerpt: str


@dataclass
class CrawlResult:
    sources: List[Source] = field(default_factory=list)


class Crawler:
    """
    One crawl: seed from the oracle, then pop → gate → fetch → extract →
    select → push until a budget runs out or the frontier is empty.

    Frontier, visited set and politeness state belong to this instance
    only; the loop is single-threaded.
    """

    def __init__(self,
                 request: UserRequest,
                 oracle: Oracle,
                 fetcher: PageFetcher,
                 politeness: Optional[PolitenessController] = None,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.request = request
        self.oracle = oracle
        self.fetcher = fetcher
        self.politeness = politeness or PolitenessController()
        self._clock = clock

        self.frontier = Frontier()
        self.visited: Set[str] = set()
        self.sources: List[Source] = []

    # ---------- seeding ----------
    def seed(self) -> int:
        req = self.request
        try:
            hits = self.oracle.web_search(req.query, req.search_limit)
        except OracleError as exc:
            raise CrawlError("web search") from exc

        pushed = 0
        for hit in hits[:req.search_limit]:
            if not is_admissible(hit.url, req.allow_local):
                log.debug("seed %s rejected", hit.url)
                continue
            self.frontier.push(hit.url, 0, trust.classify(hit.url))
            pushed += 1
        log.info("seeded %d url(s) for %r", pushed, req.query)
        return pushed

    # ---------- loop ----------
    def _out_of_budget(self, started_at: float) -> bool:
        req = self.request
        if len(self.sources) >= req.max_pages:
            log.info("stop: max_pages=%d reached", req.max_pages)
            return True
        if self._clock() - started_at > req.max_elapsed:
            log.info("stop: max_elapsed=%.1fs exceeded", req.max_elapsed)
            return True
        if not self.frontier:
            log.info("stop: frontier empty")
            return True
        return False

    def _fetch(self, url: str):
        host = host_of(url)
        self.politeness.before_request(host)
        try:
            page = self.fetcher.fetch(url)
        except FetchError as exc:
            self.politeness.record_request(host, exc.crawl_delay)
            log.warning("fetch failed; skipping %s: %s", url, exc)
            return None
        self.politeness.record_request(host, page.crawl_delay)
        return page

    def _expand(self, url: str, depth: int, page, anchors, excerpt: str) -> None:
        req = self.request
        candidates = build_candidates(page.links, anchors,
                                      visited=self.visited,
                                      allow_local=req.allow_local,
                                      limit=req.max_child_candidates)
        try:
            children = select_children(req.query, url, excerpt, candidates,
                                       req.max_children_per_page, self.oracle)
        except OracleError as exc:
            raise CrawlError(f"select child links: {url}") from exc

        for child in children:
            if not is_admissible(child, req.allow_local):
                continue
            self.frontier.push(child, depth + 1, trust.classify(child))
        log.debug("%s: %d candidate(s), %d child(ren) queued",
                  url, len(candidates), len(children))

    def step(self) -> None:
        """Process one frontier entry."""
        req = self.request
        entry = self.frontier.pop()
        if entry is None:
            return
        url, depth = entry

        key = normalize_url(url)
        if key in self.visited:
            return
        self.visited.add(key)

        if not is_admissible(url, req.allow_local):
            return

        page = self._fetch(url)
        if page is None:
            return

        try:
            excerpt, anchors = extract(url, page.html)
        except ExtractionError as exc:
            log.warning("extract failed; skipping %s: %s", url, exc)
            return

        self.sources.append(Source(url=url, trust_tier=trust.classify(url), excerpt=excerpt))
        log.info("source %d/%d: [%s] %s (depth %d)",
                 len(self.sources), req.max_pages, trust.classify(url), url, depth)

        if depth >= req.max_depth or len(self.sources) >= req.max_pages:
            return
        self._expand(url, depth, page, anchors, excerpt)

    def run(self) -> CrawlResult:
        started_at = self._clock()
        self.seed()
        while not self._out_of_budget(started_at):
            self.step()
        return CrawlResult(sources=list(self.sources))


def crawl(request: UserRequest, oracle: Oracle, fetcher: PageFetcher,
          **kwargs) -> CrawlResult:
    """Run one bounded crawl and return its sources in discovery order."""
    return Crawler(request, oracle, fetcher, **kwargs).run()
