# fetcher.py — robots-aware single-page fetch
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol
from urllib.parse import urlsplit, urlunsplit
from urllib.robotparser import RobotFileParser

import requests

from parser import extract_links

log = logging.getLogger(__name__)

# ─────────────────────────── tunables ────────────────────────────
DEFAULT_USER_AGENT = "llm-spider/0.1 (respectful; contact: unknown)"
REQUEST_TIMEOUT    = 10                 # seconds
MAX_RESPONSE_BYTES = 1024 * 1024
_CHUNK             = 16 * 1024
# ──────────────────────────────────────────────────────────────────


class FetchError(RuntimeError):
    """Page unavailable: robots, status, content type, size or transport."""

    def __init__(self, message: str, crawl_delay: float = 0.0) -> None:
        super().__init__(message)
        self.crawl_delay = crawl_delay


@dataclass
class FetchedPage:
    url: str
    html: str
    links: List[str] = field(default_factory=list)
    crawl_delay: float = 0.0


class PageFetcher(Protocol):
    def fetch(self, url: str) -> FetchedPage: ...


def _is_html(resp) -> bool:
    ct = (resp.headers.get("content-type") or "").lower()
    return "text/html" in ct or "application/xhtml+xml" in ct


class HttpFetcher:
    """
    Fetch one page with ``requests``. robots.txt is read once per origin
    and its Crawl-delay is reported back as the politeness hint.
    """

    def __init__(self,
                 user_agent: str = DEFAULT_USER_AGENT,
                 timeout: float = REQUEST_TIMEOUT,
                 max_bytes: int = MAX_RESPONSE_BYTES,
                 session: Optional[requests.Session] = None) -> None:
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.session = session or requests.Session()
        self.session.headers["User-Agent"] = user_agent
        self._robots: Dict[str, RobotFileParser] = {}

    # ---------- robots ----------
    def robots_for(self, url: str) -> RobotFileParser:
        parts = urlsplit(url)
        origin = f"{parts.scheme}://{parts.netloc}"
        rp = self._robots.get(origin)
        if rp is not None:
            return rp

        robots_url = urlunsplit((parts.scheme, parts.netloc, "/robots.txt", "", ""))
        rp = RobotFileParser(robots_url)
        try:
            resp = self.session.get(robots_url, timeout=self.timeout, allow_redirects=True)
        except requests.RequestException as exc:
            log.debug("robots.txt unreachable for %s (%s); allowing all", origin, exc)
            rp.allow_all = True
        else:
            if resp.status_code in (401, 403):
                rp.disallow_all = True
            elif resp.status_code >= 400:
                rp.allow_all = True
            else:
                rp.parse(resp.text.splitlines())
        self._robots[origin] = rp
        return rp

    def crawl_delay(self, rp: RobotFileParser) -> float:
        delay = rp.crawl_delay(self.user_agent)
        return float(delay) if delay else 0.0

    # ---------- page ----------
    def _read_body(self, resp) -> str:
        declared = resp.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > self.max_bytes:
            raise FetchError(f"body too large: {declared} bytes")
        buf = bytearray()
        for chunk in resp.iter_content(chunk_size=_CHUNK):
            buf.extend(chunk)
            if len(buf) > self.max_bytes:
                raise FetchError(f"body exceeds {self.max_bytes} bytes")
        return buf.decode(resp.encoding or "utf-8", errors="replace")

    def fetch(self, url: str) -> FetchedPage:
        rp = self.robots_for(url)
        delay = self.crawl_delay(rp)
        if not rp.can_fetch(self.user_agent, url):
            raise FetchError("blocked by robots.txt", crawl_delay=delay)

        log.info("FETCH %s", url)
        try:
            with self.session.get(url, timeout=self.timeout, stream=True,
                                  allow_redirects=True) as resp:
                if not 200 <= resp.status_code < 300:
                    raise FetchError(f"http status: {resp.status_code}", crawl_delay=delay)
                if not _is_html(resp):
                    raise FetchError("not html", crawl_delay=delay)
                html = self._read_body(resp)
        except requests.RequestException as exc:
            raise FetchError(f"transport error: {exc}", crawl_delay=delay) from exc
        except FetchError as exc:
            exc.crawl_delay = delay
            raise

        return FetchedPage(url=url, html=html,
                           links=extract_links(url, html), crawl_delay=delay)
