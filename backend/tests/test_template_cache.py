from __future__ import annotations

from cache.template_cache import TemplateCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = TemplateCache(ttl_seconds=300, clock=clock)
    cache.set("wholesale_bos", "<html>compiled</html>")

    clock.now += 299
    assert cache.get("wholesale_bos") == "<html>compiled</html>"

    clock.now += 1
    assert cache.get("wholesale_bos") is None
    assert len(cache) == 0
    assert (cache.hits, cache.misses) == (1, 1)


def test_access_does_not_extend_ttl():
    clock = FakeClock()
    cache = TemplateCache(ttl_seconds=10, clock=clock)
    cache.set("k", "v")
    for _ in range(3):
        clock.now += 4
        cache.get("k")
    assert cache.get("k") is None


def test_get_or_compile_compiles_once_per_ttl():
    clock = FakeClock()
    cache = TemplateCache(ttl_seconds=60, clock=clock)
    compiled = []

    def compile_fn():
        compiled.append(1)
        return f"fragment-{len(compiled)}"

    assert cache.get_or_compile("k", compile_fn) == "fragment-1"
    assert cache.get_or_compile("k", compile_fn) == "fragment-1"
    clock.now += 60
    assert cache.get_or_compile("k", compile_fn) == "fragment-2"
    assert len(compiled) == 2


def test_evict_expired_and_clear():
    clock = FakeClock()
    cache = TemplateCache(ttl_seconds=30, clock=clock)
    cache.set("old", "a")
    clock.now += 20
    cache.set("new", "b")
    clock.now += 15
    assert cache.evict_expired() == 1
    assert cache.get("new") == "b"
    cache.clear()
    assert len(cache) == 0
