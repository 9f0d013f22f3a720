"""
播放位置記錄

- RateLimiter: 固定間隔的限流器（視窗內的呼叫直接丟棄，不排隊）
- PositionStore: 記錄上次播放的歌曲與秒數，最多每 5 秒寫入一次
"""

import time
from typing import Callable, Optional, Tuple, TYPE_CHECKING

from loguru import logger

from ..constants import POSITION_SAVE_INTERVAL
from .queue import Song

if TYPE_CHECKING:
    from ..storage.library import Library


class RateLimiter:
    """
    固定間隔限流器

    使用方式：
        limiter = RateLimiter(interval=5)
        if limiter.try_acquire():
            save()
    """

    def __init__(self, interval: float, clock: Callable[[], float] = time.time):
        self.interval = interval
        self._clock = clock
        self._last_fire: Optional[float] = None

    def try_acquire(self) -> bool:
        """距離上次放行已超過 interval 才放行"""
        now = self._clock()
        if self._last_fire is not None and now - self._last_fire < self.interval:
            return False
        self._last_fire = now
        return True

    def reset(self) -> None:
        self._last_fire = None


class PositionStore:
    """
    上次播放位置

    使用方式：
        positions = PositionStore(library)

        # 播放中頻繁呼叫，實際寫入最多每 5 秒一次
        positions.record(song, 42.5)

        # 啟動時讀取一次
        last = positions.load()  # (Song, 秒數) 或 None
    """

    def __init__(
        self,
        library: "Library",
        interval: float = POSITION_SAVE_INTERVAL,
        clock: Callable[[], float] = time.time,
    ):
        self.library = library
        self.limiter = RateLimiter(interval, clock)

    def record(self, song: Optional[Song], position: float) -> bool:
        """
        限流寫入

        沒有歌曲或位置 <= 0 時不寫入，也不佔用限流視窗。

        Returns:
            這次是否真的寫入
        """
        if song is None or not position or position <= 0:
            return False
        if not self.limiter.try_acquire():
            return False
        return self.library.set_last_played(song, position)

    def flush(self, song: Optional[Song], position: float) -> bool:
        """立即寫入（換歌、關閉時使用）"""
        if song is None or not position or position <= 0:
            return False
        self.limiter.reset()
        self.limiter.try_acquire()
        return self.library.set_last_played(song, position)

    def load(self) -> Optional[Tuple[Song, float]]:
        """
        讀取上次播放

        Returns:
            (歌曲, 秒數)，沒有紀錄或資料損毀時返回 None
        """
        entry = self.library.get_last_played()
        if not entry:
            return None

        song = Song.from_dict(entry.get("song"))
        if song is None:
            logger.warning("上次播放紀錄損毀，略過")
            return None

        try:
            position = max(0.0, float(entry.get("position") or 0))
        except (TypeError, ValueError):
            position = 0.0

        return song, position
