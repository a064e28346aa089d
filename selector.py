# selector.py — which outbound links become frontier entries
"""
Child-link selection for one expanded page.

When the candidates fit the per-page budget they are all taken, in trust
order, without asking the oracle. Only when there is a real choice to make
is the oracle consulted, and its answer is then checked against what it was
offered.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Sequence

import trust
from llm_interface import SelectedLink, SelectionOracle
from trust import TrustTier
from utils import has_web_scheme, is_admissible, normalize_url

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkCandidate:
    url: str
    anchor_text: str
    trust_tier: TrustTier

    def as_dict(self) -> Dict[str, str]:
        return {"url": self.url,
                "anchor_text": self.anchor_text,
                "trust_tier": self.trust_tier.label}


def build_candidates(links: Iterable[str],
                     anchors: Mapping[str, str],
                     *,
                     visited: Iterable[str] = (),
                     allow_local: bool = False,
                     limit: int) -> List[LinkCandidate]:
    """
    Admissible, not-yet-visited, distinct links in page order, at most
    `limit` of them, each tagged with its tier and anchor text.
    """
    visited = visited if isinstance(visited, (set, frozenset)) else set(visited)
    out: List[LinkCandidate] = []
    seen: set = set()
    for url in links:
        if len(out) >= limit:
            break
        if not is_admissible(url, allow_local):
            continue
        key = normalize_url(url)
        if key in visited or key in seen:
            continue
        seen.add(key)
        out.append(LinkCandidate(url=url,
                                 anchor_text=anchors.get(key, ""),
                                 trust_tier=trust.classify(url)))
    return out


def rank_candidates(candidates: Iterable[LinkCandidate]) -> List[LinkCandidate]:
    """High first, Low last; ties by URL string."""
    return sorted(candidates, key=lambda c: (c.trust_tier, c.url))


def filter_selected(selected: Iterable[SelectedLink],
                    candidates: Sequence[LinkCandidate],
                    limit: int) -> List[str]:
    """
    Keep http(s) answers that were actually offered, once each, clipped
    to `limit`. An empty offer set disables the membership check.
    """
    offered = {normalize_url(c.url) for c in candidates}
    out: List[str] = []
    seen: set = set()
    for link in selected:
        if len(out) >= limit:
            log.debug("oracle over-selected; clipping to %d", limit)
            break
        if not has_web_scheme(link.url):
            continue
        key = normalize_url(link.url)
        if offered and key not in offered:
            log.debug("oracle returned unoffered url %s; dropped", link.url)
            continue
        if key in seen:
            continue
        seen.add(key)
        out.append(link.url)
    return out


def select_children(query: str,
                    page_url: str,
                    excerpt: str,
                    candidates: Sequence[LinkCandidate],
                    max_children: int,
                    oracle: SelectionOracle) -> List[str]:
    """
    URLs to enqueue below `page_url`. Calls the oracle at most once, and only
    when there are more candidates than `max_children`.
    """
    if max_children <= 0 or not candidates:
        return []

    ranked = rank_candidates(candidates)
    if len(ranked) <= max_children:
        log.debug("cheap path: %d candidate(s) for %s", len(ranked), page_url)
        return [c.url for c in ranked[:max_children]]

    log.info("asking oracle to pick %d of %d links on %s",
             max_children, len(ranked), page_url)
    selected = oracle.select_child_links(query, page_url, excerpt,
                                         [c.as_dict() for c in ranked],
                                         max_children)
    return filter_selected(selected, ranked, max_children)
