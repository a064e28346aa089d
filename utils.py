# utils.py — URL and text helpers shared by the crawl modules
from __future__ import annotations

import ipaddress
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit, urlunsplit

# ─────────────────────────── constants ────────────────────────────
ALLOWED_SCHEMES = ("http", "https")
_DEFAULT_PORTS  = {"http": ":80", "https": ":443"}
_WS_RE = re.compile(r"\s+")
# ──────────────────────────────────────────────────────────────────

# ─────────────────────────── URL helpers ──────────────────────────
def normalize_url(url: str) -> str:
    """
    Canonical key for dedup: fragment dropped, scheme/host lower-cased,
    default port dropped, empty path replaced by ``/``. Unparseable input
    keeps only the defrag.
    """
    bare = url.split("#", 1)[0]
    try:
        parts = urlsplit(bare)
    except ValueError:
        return bare
    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        return bare

    scheme = parts.scheme.lower()
    userinfo, sep, hostport = parts.netloc.rpartition("@")
    hostport = hostport.lower()
    default_port = _DEFAULT_PORTS[scheme]
    if hostport.endswith(default_port):
        hostport = hostport[:-len(default_port)]
    netloc = f"{userinfo}{sep}{hostport}"
    return urlunsplit((scheme, netloc, parts.path or "/",
                       parts.query, ""))


def host_of(url: str) -> Optional[str]:
    """Lower-cased host of `url`, or None."""
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    return host.lower() if host else None


def has_web_scheme(url: str) -> bool:
    try:
        return urlsplit(url).scheme.lower() in ALLOWED_SCHEMES
    except ValueError:
        return False


def _is_local_ip(host: str) -> Optional[bool]:
    """True/False for IP literals, None when `host` is a domain name."""
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return None
    return (ip.is_private or ip.is_loopback or ip.is_link_local
            or ip.is_reserved or ip.is_multicast or ip.is_unspecified)


def is_admissible(url: str, allow_local: bool = False) -> bool:
    """
    True when `url` may be crawled: http/https with a host and, unless
    `allow_local`, not pointing at localhost or a private/loopback address.
    """
    if not has_web_scheme(url):
        return False
    host = host_of(url)
    if not host:
        return False
    if allow_local:
        return True

    local_ip = _is_local_ip(host)
    if local_ip is not None:
        return not local_ip
    return host != "localhost" and not host.endswith(".localhost")

# ─────────────────────────── text helpers ─────────────────────────
def normalize_text(text: str) -> str:
    """Collapse every whitespace run to one space and strip the ends."""
    return _WS_RE.sub(" ", text).strip()


def truncate_chars(text: str, max_chars: int) -> str:
    return text[:max(0, max_chars)]

# ─────────────────────── pretty-print search hits ─────────────────
def format_search_results(results: List[Dict[str, Any]]) -> str:
    """Human-friendly view of search hits (used in debug logs)."""
    if not results:
        return "No results found."
    return "\n".join(
        f"{i+1}. {r.get('title') or 'N/A'}\n"
        f"   {r.get('href', 'N/A')}"
        for i, r in enumerate(results)
    )
