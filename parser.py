# parser.py — excerpt + anchor-text extraction
from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple
from urllib.parse import urldefrag, urljoin

from bs4 import BeautifulSoup, SoupStrainer
from bs4.builder import ParserRejectedMarkup

from utils import has_web_scheme, normalize_text, normalize_url, truncate_chars

# ─────────────────────────── tunables ────────────────────────────
MAX_EXCERPT_RAW_BYTES = 32 * 1024
MAX_EXCERPT_CHARS     = 600
MAX_ANCHOR_CHARS      = 120
CONTENT_ROOTS = (
    ("main", {}),
    ("article", {}),
    (None, {"role": "main"}),
)
# ──────────────────────────────────────────────────────────────────

_NOSCRIPT_RE   = re.compile(r"<noscript\b.*?</noscript\s*>", re.I | re.S)
_NOSCRIPT_OPEN = re.compile(r"<noscript\b", re.I)
_LINK_STRAINER = SoupStrainer("a", href=True)


class ExtractionError(RuntimeError):
    """The page has no element content or could not be parsed."""


def strip_noscript(html: str) -> str:
    """Drop <noscript> blocks; an unclosed one swallows the rest."""
    html = _NOSCRIPT_RE.sub("", html)
    m = _NOSCRIPT_OPEN.search(html)
    return html[:m.start()] if m else html


def _resolve(base_url: str, href: str) -> Optional[str]:
    try:
        url, _ = urldefrag(urljoin(base_url, href.strip()))
    except ValueError:
        return None
    return url if has_web_scheme(url) else None


def _content_root(soup: BeautifulSoup):
    for name, attrs in CONTENT_ROOTS:
        root = soup.find(name, attrs=attrs) if name else soup.find(attrs=attrs)
        if root is not None:
            return root
    if soup.body is not None:
        return soup.body
    # html.parser never implies a <body>; use what is left without <head>
    root = soup.html or soup
    for head in root("head"):
        head.decompose()
    return root


def _root_text(root) -> str:
    pieces, size = [], 0
    for piece in root.strings:
        pieces.append(piece)
        size += len(piece.encode("utf-8")) + 1
        if size >= MAX_EXCERPT_RAW_BYTES:
            break
    return " ".join(pieces)


def extract(base_url: str, html: str) -> Tuple[str, Dict[str, str]]:
    """
    Return ``(excerpt, anchor_text_by_url)`` for one page.

    The excerpt is the whitespace-normalized text of the primary content
    region, capped at ``MAX_EXCERPT_CHARS``. The map goes from normalized
    link URL to the first non-empty anchor text seen for it.
    """
    try:
        soup = BeautifulSoup(strip_noscript(html or ""), "html.parser")
    except (ParserRejectedMarkup, AssertionError, ValueError) as exc:
        raise ExtractionError(f"parse failed: {exc}") from exc

    if soup.find(True) is None:
        raise ExtractionError("no element content")
    root = _content_root(soup)

    for tag in root(["script", "style", "template"]):
        tag.decompose()

    excerpt = truncate_chars(normalize_text(_root_text(root)), MAX_EXCERPT_CHARS)

    anchors: Dict[str, str] = {}
    for a in root.find_all("a", href=True):
        url = _resolve(base_url, a["href"])
        if url is None:
            continue
        text = truncate_chars(normalize_text(a.get_text(" ")), MAX_ANCHOR_CHARS)
        if text:
            anchors.setdefault(normalize_url(url), text)
    return excerpt, anchors


def extract_links(base_url: str, html: str) -> List[str]:
    """All http(s) links in the document, defragmented, first-seen order."""
    soup = BeautifulSoup(html or "", "html.parser", parse_only=_LINK_STRAINER)
    links, seen = [], set()
    for a in soup.find_all("a", href=True):
        url = _resolve(base_url, a["href"])
        if url is None:
            continue
        key = normalize_url(url)
        if key not in seen:
            seen.add(key)
            links.append(url)
    return links
