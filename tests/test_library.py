"""使用者資料庫測試"""

from module.stream_player.constants import DEFAULT_SETTINGS, MAX_HISTORY
from module.stream_player.storage import JsonStore, Library, ResponseCache, StoreKey

from conftest import FakeClock, make_song


class TestDefaults:
    """預設值測試"""

    def test_ensure_defaults(self, library) -> None:
        assert library.get_settings() == DEFAULT_SETTINGS
        assert library.get_history() == []
        assert library.get_favorites() == []
        assert library.get_playlists() == []
        assert library.store.get(StoreKey.CACHE) == {}

    def test_ensure_defaults_keeps_existing(self) -> None:
        store = JsonStore(None)
        store.set(StoreKey.SETTINGS, {"volume": 20})
        Library(store).ensure_defaults()
        assert store.get(StoreKey.SETTINGS) == {"volume": 20}


class TestSettings:
    """設定測試"""

    def test_update_merges(self, library) -> None:
        library.update_settings(volume=55)
        library.update_settings(repeat="all")

        settings = library.get_settings()
        assert settings["volume"] == 55
        assert settings["repeat"] == "all"
        assert settings["quality"] == "medium"

    def test_missing_fields_use_defaults(self, store, library) -> None:
        store.set(StoreKey.SETTINGS, {"theme": "light"})
        assert library.get_setting("theme") == "light"
        assert library.get_setting("volume") == 100

    def test_corrupt_settings(self, store, library) -> None:
        store.set(StoreKey.SETTINGS, "garbage")
        assert library.get_settings() == DEFAULT_SETTINGS


class TestHistory:
    """播放紀錄測試"""

    def test_newest_first_with_timestamp(self, library, clock) -> None:
        library.add_to_history(make_song("a"))
        clock.advance(10)
        library.add_to_history(make_song("b"))

        history = library.get_history()
        assert [item["id"] for item in history] == ["b", "a"]
        assert history[0]["playedAt"] == int(clock() * 1000)

    def test_replay_moves_to_front(self, library) -> None:
        """重播不會產生重複紀錄"""
        for song_id in ("a", "b", "a"):
            library.add_to_history(make_song(song_id))

        assert [item["id"] for item in library.get_history()] == ["a", "b"]

    def test_capped(self, library) -> None:
        for i in range(MAX_HISTORY + 5):
            library.add_to_history(make_song(f"s{i}"))

        history = library.get_history()
        assert len(history) == MAX_HISTORY
        assert history[0]["id"] == f"s{MAX_HISTORY + 4}"

    def test_clear(self, library) -> None:
        library.add_to_history(make_song("a"))
        library.clear_history()
        assert library.get_history() == []


class TestFavorites:
    """最愛測試"""

    def test_add_remove(self, library) -> None:
        library.add_to_favorites(make_song("a"))
        library.add_to_favorites(make_song("a"))

        assert library.is_favorite("a")
        assert len(library.get_favorites()) == 1

        library.remove_from_favorites("a")
        assert not library.is_favorite("a")


class TestPlaylists:
    """播放清單測試"""

    def test_create_and_modify(self, library) -> None:
        playlist = library.create_playlist("通勤")
        assert playlist["name"] == "通勤"
        assert playlist["songs"] == []

        assert library.add_to_playlist(playlist["id"], make_song("a"))
        assert not library.add_to_playlist(playlist["id"], make_song("a"))
        assert library.add_to_playlist(playlist["id"], make_song("b"))

        stored = library.get_playlists()[0]
        assert [song["id"] for song in stored["songs"]] == ["a", "b"]

        library.remove_from_playlist(playlist["id"], "a")
        assert [song["id"] for song in library.get_playlists()[0]["songs"]] == ["b"]

    def test_unknown_playlist(self, library) -> None:
        assert not library.add_to_playlist("missing", make_song("a"))
        assert not library.remove_from_playlist("missing", "a")

    def test_delete(self, library) -> None:
        first = library.create_playlist("one")
        library.create_playlist("two")

        library.delete_playlist(first["id"])
        assert [p["name"] for p in library.get_playlists()] == ["two"]


class TestLastPlayed:
    """上次播放測試"""

    def test_round_trip(self, library) -> None:
        library.set_last_played(make_song("a"), 42.5)

        entry = library.get_last_played()
        assert entry["song"]["id"] == "a"
        assert entry["position"] == 42.5

    def test_missing(self, library) -> None:
        assert library.get_last_played() is None


class TestQuotaRecovery:
    """空間不足時的壓縮與重試"""

    def _fill(self, store: JsonStore) -> None:
        store.set(StoreKey.CACHE, {
            f"key{i}": {"data": "x" * 100, "timestamp": i} for i in range(10)
        })
        store.set(StoreKey.HISTORY, [make_song(f"h{i}").to_dict() for i in range(40)])

    def test_compact_then_retry(self) -> None:
        """壓縮後寫入成功，快取剩一半、播放紀錄截短"""
        store = JsonStore(None)
        library = Library(store, clock=FakeClock())
        self._fill(store)
        store.quota = store.size + 100

        assert library.save("note", "y" * 300)

        assert store.get("note") == "y" * 300
        cache = store.get(StoreKey.CACHE)
        assert list(cache) == [f"key{i}" for i in range(5, 10)]
        assert len(store.get(StoreKey.HISTORY)) == MAX_HISTORY // 2

    def test_gives_up_after_one_retry(self) -> None:
        """壓縮後仍不足就放棄，不拋出錯誤"""
        store = JsonStore(None)
        library = Library(store, clock=FakeClock())
        self._fill(store)
        store.quota = store.size + 10

        assert library.save("note", "y" * 100000) is False
        assert "note" not in store

    def test_cache_write_survives_compaction(self) -> None:
        """經由 ResponseCache 寫入：壓縮後保留較新的一半快取與新資料"""
        clock = FakeClock()
        store = JsonStore(None)
        library = Library(store, clock=clock)
        cache = ResponseCache(library, clock=clock)
        for i in range(10):
            assert cache.set(f"key{i}", "x" * 1000)
        store.quota = store.size + 500

        assert cache.set("new", "y" * 1000)

        assert list(store.get(StoreKey.CACHE)) == [f"key{i}" for i in range(5, 10)] + ["new"]
        assert cache.get("new") == "y" * 1000

    def test_history_write_survives_compaction(self) -> None:
        """加入播放紀錄時空間不足：紀錄截短後新歌仍在最前面"""
        store = JsonStore(None)
        library = Library(store, clock=FakeClock())
        store.set(StoreKey.HISTORY, [make_song(f"h{i}").to_dict() for i in range(MAX_HISTORY)])
        store.quota = store.size + 5

        assert library.add_to_history(make_song("h99"))

        history = library.get_history()
        assert len(history) == MAX_HISTORY // 2
        assert history[0]["id"] == "h99"
