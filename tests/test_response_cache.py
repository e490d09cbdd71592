from __future__ import annotations

from nutrigen.models.research import TaskCategory
from nutrigen.services.response_cache import ResponseCache, build_key


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_build_key_normalizes_inputs_and_embeds_genotype():
    a = build_key(TaskCategory.PLANNING, {"query": "MTHFR  y Folato", "genotype_id": 3}, "gemini-2.0-flash-exp")
    b = build_key(TaskCategory.PLANNING, {"genotype_id": 3, "query": "mthfr y folato"}, "gemini-2.0-flash-exp")

    assert a == b
    assert a.startswith("planning:")
    assert ":genotype:3:" in a
    assert a.endswith(":gemini-2.0-flash-exp")


def test_build_key_differs_by_task_model_and_genotype():
    inputs = {"query": "MTHFR"}
    base = build_key(TaskCategory.PLANNING, inputs, "m1")

    assert build_key(TaskCategory.LITERATURE_REVIEW, inputs, "m1") != base
    assert build_key(TaskCategory.PLANNING, inputs, "m2") != base
    assert build_key(TaskCategory.PLANNING, {**inputs, "genotype_id": 1}, "m1") != base


def test_get_returns_value_until_ttl_expires():
    clock = FakeClock()
    cache = ResponseCache(ttl_seconds=3600, clock=clock)
    cache.set("k", {"content": "x"}, model_id="m1")

    clock.now += 3599
    assert cache.get("k") == {"content": "x"}

    clock.now += 1
    assert cache.get("k") is None
    # Stale entries are skipped, not evicted.
    assert cache.stats() == {"entries": 1, "live": 0, "expired": 1}


def test_set_overwrites_and_refreshes_timestamp():
    clock = FakeClock()
    cache = ResponseCache(ttl_seconds=10, clock=clock)
    cache.set("k", "old", model_id="m1")
    clock.now += 8
    cache.set("k", "new", model_id="m2")
    clock.now += 8

    assert cache.get("k") == "new"


def test_sweep_expired_removes_only_stale_entries():
    clock = FakeClock()
    cache = ResponseCache(ttl_seconds=10, clock=clock)
    cache.set("old", 1, model_id="m")
    clock.now += 11
    cache.set("fresh", 2, model_id="m")

    assert cache.sweep_expired() == 1
    assert cache.get("fresh") == 2
    assert cache.stats()["entries"] == 1


def test_entries_for_genotype_returns_live_scoped_entries():
    clock = FakeClock()
    cache = ResponseCache(ttl_seconds=10, clock=clock)
    cache.set("a", 1, model_id="m", genotype_scoped=True, genotype_id=2)
    cache.set("b", 2, model_id="m", genotype_scoped=True, genotype_id=5)
    cache.set("c", 3, model_id="m")

    assert [e.key for e in cache.entries_for_genotype(2)] == ["a"]
    clock.now += 10
    assert cache.entries_for_genotype(2) == []
