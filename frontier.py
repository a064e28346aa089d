# frontier.py — three-bucket crawl queue
from __future__ import annotations

from collections import deque
from typing import Deque, Dict, NamedTuple, Optional

from trust import TrustTier


class FrontierEntry(NamedTuple):
    url: str
    depth: int


class Frontier:
    """
    Strict tier priority (High, then Medium, then Low), FIFO within a tier.

    No dedup happens here: the same URL may be queued more than once and the
    crawler discards repeats when they are popped.
    """

    def __init__(self) -> None:
        self._buckets: Dict[TrustTier, Deque[FrontierEntry]] = {
            tier: deque() for tier in TrustTier
        }

    def push(self, url: str, depth: int, tier: TrustTier) -> None:
        self._buckets[tier].append(FrontierEntry(url, depth))

    def pop(self) -> Optional[FrontierEntry]:
        for tier in TrustTier:                 # IntEnum order: High first
            bucket = self._buckets[tier]
            if bucket:
                return bucket.popleft()
        return None

    def __len__(self) -> int:
        return sum(len(b) for b in self._buckets.values())

    def __bool__(self) -> bool:
        return any(self._buckets.values())
