# trust.py — host reputation tiers
"""
Coarse per-host trust classification.

The tier drives frontier priority (High pops first) and the order in which
child-link candidates are shown to the oracle.
"""

from __future__ import annotations

import enum
from urllib.parse import urlsplit

# ─────────────────────────── host policy ────────────────────────────
LOW_TRUST_HOSTS = (
    "reddit.com", "x.com", "twitter.com", "facebook.com",
    "instagram.com", "tiktok.com", "pinterest.com", "quora.com",
)
HIGH_TRUST_HOSTS = (
    "python.org", "rust-lang.org", "docs.rs", "developer.mozilla.org",
    "w3.org", "ietf.org", "rfc-editor.org",
)
HIGH_TRUST_SUFFIXES = (".gov", ".edu", ".mil", ".go.jp")
HIGH_TRUST_INFIXES  = (".gov.", ".edu.", ".ac.")   # e.g. gov.uk, ac.jp
# ──────────────────────────────────────────────────────────────────


class TrustTier(enum.IntEnum):
    """Lower value sorts first, so High < Medium < Low."""

    HIGH = 0
    MEDIUM = 1
    LOW = 2

    @property
    def label(self) -> str:
        return self.name.capitalize()

    def __str__(self) -> str:
        return self.label

    @classmethod
    def parse(cls, text: str) -> "TrustTier":
        """Parse ``High`` / ``Medium`` / ``Low`` (any case)."""
        key = (text or "").strip().upper()
        if key not in cls.__members__:
            raise ValueError(f"invalid TrustTier: {text!r}")
        return cls[key]


def _matches(host: str, domains) -> bool:
    return any(host == d or host.endswith("." + d) for d in domains)


def classify(url: str) -> TrustTier:
    """Classify `url` by host. Never raises; host-less URLs are Low."""
    try:
        host = (urlsplit(url).hostname or "").lower()
    except ValueError:
        return TrustTier.LOW
    if not host:
        return TrustTier.LOW

    if _matches(host, LOW_TRUST_HOSTS):
        return TrustTier.LOW
    if _matches(host, HIGH_TRUST_HOSTS):
        return TrustTier.HIGH
    if host.endswith(HIGH_TRUST_SUFFIXES) or any(s in host for s in HIGH_TRUST_INFIXES):
        return TrustTier.HIGH
    return TrustTier.MEDIUM
