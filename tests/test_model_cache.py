# tests/test_model_cache.py
from scholarai.ml.model_cache import GLOBAL_KEY, ModelWeightsCache, scholarship_key


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_entry_expires_after_ttl():
    clock = FakeClock()
    cache = ModelWeightsCache(ttl_seconds=300, clock=clock)
    cache.set(GLOBAL_KEY, "model")

    clock.now = 299.0
    assert cache.get(GLOBAL_KEY) == "model"

    clock.now = 300.0
    assert cache.get(GLOBAL_KEY) is None
    # expiration paresseuse : l’entrée est supprimée à la lecture
    assert len(cache) == 0


def test_set_refreshes_expiry():
    clock = FakeClock()
    cache = ModelWeightsCache(ttl_seconds=10, clock=clock)
    cache.set("k", 1)
    clock.now = 8.0
    cache.set("k", 2)
    clock.now = 15.0

    assert cache.get("k") == 2


def test_invalidate_and_clear():
    cache = ModelWeightsCache()
    cache.set(GLOBAL_KEY, "g")
    cache.set(scholarship_key("abc"), "s")

    cache.invalidate(GLOBAL_KEY)
    assert cache.keys() == ["scholarship_abc"]

    cache.clear()
    assert len(cache) == 0
    assert cache.get("scholarship_abc") is None


def test_write_prepared_before_clear_is_dropped():
    cache = ModelWeightsCache()
    generation = cache.generation

    cache.clear()

    assert cache.set(GLOBAL_KEY, "stale", generation=generation) is False
    assert cache.get(GLOBAL_KEY) is None
    assert cache.set(GLOBAL_KEY, "fresh", generation=cache.generation) is True
    assert cache.get(GLOBAL_KEY) == "fresh"


def test_invalidate_bumps_generation():
    cache = ModelWeightsCache()
    before = cache.generation

    cache.invalidate("missing")

    assert cache.generation == before + 1
