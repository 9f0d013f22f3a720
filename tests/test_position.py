"""播放位置記錄測試"""

from module.stream_player.core.position import PositionStore, RateLimiter
from module.stream_player.storage import StoreKey

from conftest import FakeClock, make_song


class TestRateLimiter:
    """限流器測試"""

    def test_window(self) -> None:
        clock = FakeClock()
        limiter = RateLimiter(5, clock)

        assert limiter.try_acquire()
        clock.advance(4.9)
        assert not limiter.try_acquire()
        clock.advance(0.1)
        assert limiter.try_acquire()

    def test_reset(self) -> None:
        limiter = RateLimiter(5, FakeClock())
        limiter.try_acquire()
        limiter.reset()
        assert limiter.try_acquire()


class TestPositionStore:
    """PositionStore 測試"""

    def test_burst_writes_once(self, library, clock) -> None:
        """一秒內呼叫十次只寫入一次"""
        positions = PositionStore(library, clock=clock)
        song = make_song("a")

        writes = []
        for i in range(10):
            writes.append(positions.record(song, 10 + i))
            clock.advance(0.1)

        assert writes.count(True) == 1
        assert library.get_last_played()["position"] == 10

    def test_writes_again_after_interval(self, library, clock) -> None:
        positions = PositionStore(library, clock=clock)
        song = make_song("a")

        positions.record(song, 10)
        clock.advance(5)
        assert positions.record(song, 15)
        assert library.get_last_played()["position"] == 15

    def test_zero_position_ignored(self, library, clock) -> None:
        """位置為 0 時不寫入，也不佔用限流視窗"""
        positions = PositionStore(library, clock=clock)
        song = make_song("a")

        assert not positions.record(song, 0)
        assert not positions.record(None, 12)
        assert positions.record(song, 3)
        assert library.get_last_played()["position"] == 3

    def test_flush_ignores_window(self, library, clock) -> None:
        positions = PositionStore(library, clock=clock)
        positions.record(make_song("a"), 10)

        assert positions.flush(make_song("b"), 20)
        assert library.get_last_played()["song"]["id"] == "b"

    def test_load(self, library, clock) -> None:
        positions = PositionStore(library, clock=clock)
        positions.record(make_song("a", duration=240), 42.5)

        song, position = positions.load()
        assert song.id == "a"
        assert song.duration == 240
        assert position == 42.5

    def test_load_missing_or_corrupt(self, library, store) -> None:
        positions = PositionStore(library)
        assert positions.load() is None

        store.set(StoreKey.LAST_PLAYED, {"song": {"title": "no id"}, "position": 5})
        assert positions.load() is None

        store.set(StoreKey.LAST_PLAYED, {"song": {"id": "a"}, "position": "bad"})
        assert positions.load() == (make_song("a"), 0.0)
