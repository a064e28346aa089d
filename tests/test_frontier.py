from frontier import Frontier, FrontierEntry
from trust import TrustTier


class TestFrontier:

    def test_empty_pop_returns_none(self):
        f = Frontier()
        assert f.pop() is None
        assert not f
        assert len(f) == 0

    def test_strict_tier_priority(self):
        f = Frontier()
        f.push("low", 0, TrustTier.LOW)
        f.push("medium", 0, TrustTier.MEDIUM)
        f.push("high", 1, TrustTier.HIGH)
        assert [f.pop().url for _ in range(3)] == ["high", "medium", "low"]

    def test_fifo_within_tier(self):
        f = Frontier()
        for name in ("m1", "m2", "m3"):
            f.push(name, 0, TrustTier.MEDIUM)
        assert [f.pop().url for _ in range(3)] == ["m1", "m2", "m3"]

    def test_late_high_entry_jumps_the_queue(self):
        f = Frontier()
        f.push("m1", 0, TrustTier.MEDIUM)
        f.push("m2", 0, TrustTier.MEDIUM)
        assert f.pop().url == "m1"
        f.push("h", 1, TrustTier.HIGH)
        assert f.pop() == FrontierEntry("h", 1)
        assert f.pop().url == "m2"

    def test_duplicates_are_kept_with_their_depths(self):
        f = Frontier()
        f.push("u", 1, TrustTier.MEDIUM)
        f.push("u", 2, TrustTier.MEDIUM)
        assert len(f) == 2
        assert f.pop() == ("u", 1)
        assert f.pop() == ("u", 2)
