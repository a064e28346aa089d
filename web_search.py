# web_search.py — raw search hits (DuckDuckGo HTML, Startpage fallback)
from __future__ import annotations

import html
import logging
import random
import time
from typing import Any, Dict, List
from urllib.parse import parse_qs, urlsplit

import requests
from bs4 import BeautifulSoup

import utils
from fetcher import DEFAULT_USER_AGENT

log = logging.getLogger(__name__)

# ────────────────────────── constants ────────────────────────── #
_DDG_HTML  = "https://html.duckduckgo.com/html/"
_STARTPAGE = "https://www.startpage.com/do/search"
_TIMEOUT   = 10
_HEADERS   = {
    "User-Agent": DEFAULT_USER_AGENT,
    "Referer": "https://duckduckgo.com/",
    "Accept-Language": "en-US,en;q=0.9",
}
_BAD_SUBSTRINGS = ("duckduckgo.com/y.js", "adserver", "bing.com/aclick",
                   "doubleclick.net")


class SearchError(RuntimeError):
    """Every search backend failed."""

# ─────────────────────── helpers ─────────────────────────────── #
def _unwrap(href: str) -> str:
    """DuckDuckGo wraps results as //duckduckgo.com/l/?uddg=<target>."""
    if href.startswith("//"):
        href = "https:" + href
    parts = urlsplit(href)
    if parts.netloc.endswith("duckduckgo.com") and parts.path.startswith("/l/"):
        target = parse_qs(parts.query).get("uddg")
        if target:
            return target[0]
    return href


def _clean_hit(href: str) -> bool:
    """True if the URL should be kept (drops ads / trackers)."""
    if not utils.has_web_scheme(href):
        return False
    return not any(s in href for s in _BAD_SUBSTRINGS)


def _ddg_html(session: requests.Session, query: str, k: int) -> List[Dict[str, Any]]:
    """
    DuckDuckGo lightweight HTML search.
    Update selectors here if DDG tweaks markup again.
    """
    time.sleep(random.uniform(0, 0.5))     # jitter → fewer 403s
    r = session.get(_DDG_HTML, params={"q": query, "kl": "us-en"},
                    headers=_HEADERS, timeout=_TIMEOUT)
    r.raise_for_status()

    soup = BeautifulSoup(r.text, "html.parser")
    hits: List[Dict[str, Any]] = []
    for body in soup.select("div.result__body"):
        a = body.select_one("a.result__a")
        if not a:
            continue
        href = _unwrap(a.get("href", ""))
        if not _clean_hit(href):
            continue
        snip = body.select_one(".result__snippet")
        hits.append({"title": a.get_text(" ", strip=True),
                     "href": href,
                     "body": html.unescape(snip.get_text(" ", strip=True)) if snip else ""})
        if len(hits) >= k:
            break
    return hits


def _startpage_html(session: requests.Session, query: str, k: int) -> List[Dict[str, Any]]:
    """Fallback search using Startpage."""
    hdrs = {**_HEADERS, "Referer": "https://www.startpage.com/"}
    r = session.get(_STARTPAGE, params={"query": query, "language": "english"},
                    headers=hdrs, timeout=_TIMEOUT)
    r.raise_for_status()

    soup = BeautifulSoup(r.text, "html.parser")
    hits: List[Dict[str, Any]] = []
    for res in soup.select("a.w-gl__result-title"):
        href = res.get("href", "")
        if not _clean_hit(href):
            continue
        snip = res.find_next("p", class_="w-gl__description")
        hits.append({"title": res.get_text(" ", strip=True),
                     "href": href,
                     "body": snip.get_text(" ", strip=True) if snip else ""})
        if len(hits) >= k:
            break
    return hits

# ─────────────────────── public API ──────────────────────────── #
def search_web(query: str, max_results: int = 8,
               session: requests.Session | None = None) -> List[Dict[str, Any]]:
    """
    Raw hits as ``{"title", "href", "body"}`` dicts. An empty list is a valid
    answer; ``SearchError`` means neither backend could be reached.
    """
    if max_results <= 0:
        return []
    session = session or requests.Session()
    log.info("search «%s»", query)
    t0 = time.monotonic()

    try:
        results = _ddg_html(session, query, max_results)
    except requests.RequestException as exc:
        log.warning("DuckDuckGo failed (%s); trying Startpage.", exc)
        try:
            results = _startpage_html(session, query, max_results)
        except requests.RequestException as exc2:
            raise SearchError(f"all search backends failed: {exc2}") from exc2
    else:
        if not results:
            # challenge pages come back 2xx with no result blocks
            log.warning("DuckDuckGo returned no hits; trying Startpage.")
            try:
                results = _startpage_html(session, query, max_results)
            except requests.RequestException as exc:
                log.warning("Startpage failed (%s).", exc)

    dt = (time.monotonic() - t0) * 1000
    log.info("%d hits in %.0f ms", len(results), dt)
    log.debug("search hits:\n%s", utils.format_search_results(results))
    return results
