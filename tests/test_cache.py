"""網路回應快取測試"""

from module.stream_player.storage import ResponseCache, StoreKey


class TestResponseCache:
    """ResponseCache 測試"""

    def test_miss(self, cache) -> None:
        assert cache.get("search_lofi") is None

    def test_hit_within_ttl(self, cache, clock) -> None:
        cache.set("search_lofi", [{"id": "a"}])
        clock.advance(299)
        assert cache.get("search_lofi") == [{"id": "a"}]

    def test_expired_at_ttl(self, cache, clock, library) -> None:
        """剛好到 TTL 就視為過期，並在讀取時刪除"""
        cache.set("search_lofi", [{"id": "a"}])
        clock.advance(300)

        assert cache.get("search_lofi") is None
        assert "search_lofi" not in library.store.get(StoreKey.CACHE)

    def test_persisted_entry_shape(self, cache, clock, library) -> None:
        cache.set("trending_US", ["x"])
        entry = library.store.get(StoreKey.CACHE)["trending_US"]
        assert entry == {"data": ["x"], "timestamp": clock()}

    def test_evicts_first_inserted(self, library, clock) -> None:
        """滿了就刪除插入順序第一筆，讀取不影響順序"""
        cache = ResponseCache(library, max_entries=3, clock=clock)
        for key in ("a", "b", "c"):
            cache.set(key, key)

        cache.get("a")
        cache.set("d", "d")

        assert cache.get("a") is None
        assert [cache.get(key) for key in ("b", "c", "d")] == ["b", "c", "d"]
        assert len(cache) == 3

    def test_max_entries_default(self, cache) -> None:
        for i in range(25):
            cache.set(f"k{i}", i)
        assert len(cache) == 20
        assert cache.get("k4") is None
        assert cache.get("k5") == 5

    def test_corrupt_entry(self, cache, library) -> None:
        library.store.set(StoreKey.CACHE, {"bad": "not-an-entry", "worse": {"timestamp": 1}})
        assert cache.get("bad") is None
        assert cache.get("worse") is None

    def test_clear(self, cache) -> None:
        cache.set("a", 1)
        cache.clear()
        assert len(cache) == 0
