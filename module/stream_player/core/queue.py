"""
播放佇列管理

特性：
- 以歌曲 ID 去重（重複加入只會移動游標）
- 隨機播放時，起始歌曲固定在第一首，其餘打亂
- 依重複模式決定上一首 / 下一首
- 單執行緒 asyncio，所有操作都是同步的，不需要鎖
"""

import random
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional

from loguru import logger

from ..constants import DEFAULT_ARTIST, DEFAULT_TITLE, PREVIOUS_RESTART_THRESHOLD
from .state import RepeatMode, format_time


@dataclass(frozen=True)
class Song:
    """
    歌曲資料結構（不可變，以 id 判斷相等）

    預設值只在網路邊界（resolver/parsing.py）套用一次，下游不再重新驗證。
    """
    id: str                                                      # 上游提供的穩定 ID
    title: str = field(default=DEFAULT_TITLE, compare=False)
    artist: str = field(default=DEFAULT_ARTIST, compare=False)
    thumbnail: str = field(default="", compare=False)            # 縮圖 URL
    duration: int = field(default=0, compare=False)              # 時長（秒）

    def __post_init__(self):
        if not isinstance(self.id, str) or not self.id:
            raise ValueError(f"Song id must be a non-empty string, got {self.id!r}")

    @property
    def duration_text(self) -> str:
        """格式化時長"""
        return format_time(self.duration)

    def to_dict(self) -> dict:
        """轉為可 JSON 序列化的字典"""
        return {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "thumbnail": self.thumbnail,
            "duration": self.duration,
            "durationText": self.duration_text,
        }

    @classmethod
    def from_dict(cls, data) -> Optional["Song"]:
        """
        從儲存的字典還原

        資料損毀或缺少 id 時返回 None
        """
        if not isinstance(data, dict):
            return None
        song_id = data.get("id")
        if not isinstance(song_id, str) or not song_id:
            return None

        duration = data.get("duration") or 0
        try:
            duration = max(0, int(float(duration)))
        except (ValueError, TypeError, OverflowError):
            duration = 0

        return cls(
            id=song_id,
            title=data.get("title") or DEFAULT_TITLE,
            artist=data.get("artist") or DEFAULT_ARTIST,
            thumbnail=data.get("thumbnail") or "",
            duration=duration,
        )


@dataclass(frozen=True)
class SongDetails(Song):
    """歌曲詳細資訊（/streams/{id}）"""
    description: str = field(default="", compare=False)
    views: int = field(default=0, compare=False)
    upload_date: str = field(default="", compare=False)


class PlayQueue:
    """
    播放佇列

    游標不變式：佇列非空時 0 <= current_index < size；佇列為空時為 -1。

    使用方式：
        queue = PlayQueue()
        queue.set_songs(results, start_index=2, shuffle=True)

        queue.next(RepeatMode.ALL)          # 下一首
        queue.previous(RepeatMode.OFF, 1.5) # 上一首（None 表示重新播放當前歌曲）
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._queue: List[Song] = []
        self._current_index: int = -1
        self._rng = rng or random.Random()

    # === 屬性 ===

    @property
    def is_empty(self) -> bool:
        """佇列是否為空"""
        return len(self._queue) == 0

    @property
    def size(self) -> int:
        """佇列中的歌曲數量"""
        return len(self._queue)

    @property
    def current_song(self) -> Optional[Song]:
        """游標所在的歌曲"""
        if self._current_index < 0 or self._current_index >= len(self._queue):
            return None
        return self._queue[self._current_index]

    @property
    def current_index(self) -> int:
        """游標（0-based，空佇列為 -1）"""
        return self._current_index

    @property
    def all_songs(self) -> List[Song]:
        """取得所有歌曲（只讀）"""
        return self._queue.copy()

    def index_of(self, song_id: str) -> int:
        """找出歌曲位置，不存在返回 -1"""
        for i, song in enumerate(self._queue):
            if song.id == song_id:
                return i
        return -1

    # === 新增/移除操作 ===

    def set_songs(self, songs: Iterable[Song], start_index: int = 0, shuffle: bool = False) -> None:
        """
        整個替換佇列

        重複 ID 只保留第一次出現的位置；start_index 會被限制在有效範圍內。

        Args:
            songs: 新的歌曲列表
            start_index: 起始歌曲（0-based）
            shuffle: 是否打亂（起始歌曲固定在第一首）
        """
        incoming = list(songs)
        if not incoming:
            self.clear()
            return

        start_index = max(0, min(start_index, len(incoming) - 1))
        start_id = incoming[start_index].id

        unique: List[Song] = []
        seen = set()
        for song in incoming:
            if song.id not in seen:
                seen.add(song.id)
                unique.append(song)

        self._queue = unique
        self._current_index = self.index_of(start_id)

        if shuffle:
            current = self._queue.pop(self._current_index)
            rest = self._queue
            self._rng.shuffle(rest)
            self._queue = [current] + rest
            self._current_index = 0

        logger.debug(
            f"已設定佇列: 共 {len(self._queue)} 首，從第 {self._current_index + 1} 首開始"
            f"{'（隨機）' if shuffle else ''}"
        )

    def add(self, song: Song) -> int:
        """
        加入歌曲並把游標移到該首

        若相同 ID 已存在，不重複加入，只移動游標。

        Returns:
            該歌曲在佇列中的位置（0-based）
        """
        existing = self.index_of(song.id)
        if existing >= 0:
            self._current_index = existing
            logger.debug(f"歌曲已在佇列中: {song.title}，移動到第 {existing + 1} 首")
            return existing

        self._queue.append(song)
        self._current_index = len(self._queue) - 1
        logger.debug(f"已新增歌曲: {song.title}，目前共 {len(self._queue)} 首")
        return self._current_index

    def remove_at(self, index: int) -> Optional[Song]:
        """
        移除指定位置的歌曲

        Args:
            index: 0-based 索引

        Returns:
            被移除的歌曲，若索引無效則返回 None
        """
        if index < 0 or index >= len(self._queue):
            return None

        removed = self._queue.pop(index)

        # 調整 current_index
        if len(self._queue) == 0:
            self._current_index = -1
        elif index < self._current_index:
            # 移除的在當前之前，索引減 1
            self._current_index -= 1
        elif index == self._current_index:
            # 移除的是當前歌曲
            if self._current_index >= len(self._queue):
                self._current_index = len(self._queue) - 1

        logger.debug(f"已移除歌曲: {removed.title}")
        return removed

    def remove(self, song_id: str) -> Optional[Song]:
        """通過 ID 移除歌曲"""
        return self.remove_at(self.index_of(song_id))

    def clear(self) -> int:
        """
        清空佇列

        Returns:
            被清空的歌曲數量
        """
        count = len(self._queue)
        self._queue = []
        self._current_index = -1
        logger.debug(f"已清空播放佇列，共移除 {count} 首歌曲")
        return count

    # === 導航操作 ===

    def next(self, repeat: RepeatMode = RepeatMode.OFF) -> Optional[Song]:
        """
        切換到下一首

        repeat=all：最後一首 → 第一首
        其他模式：最後一首 → None（游標不動）

        Returns:
            下一首歌曲，若已到結尾則返回 None
        """
        if len(self._queue) == 0:
            return None

        next_index = self._current_index + 1
        if next_index >= len(self._queue):
            if repeat != RepeatMode.ALL:
                return None
            next_index = 0

        self._current_index = next_index
        logger.debug(f"下一首: {self.current_song.title}")
        return self.current_song

    def previous(self, repeat: RepeatMode = RepeatMode.OFF, elapsed: float = 0) -> Optional[Song]:
        """
        切換到上一首

        已播放超過 3 秒時不換歌；在第一首時 repeat=all 會繞到最後一首。

        Args:
            repeat: 重複模式
            elapsed: 當前歌曲已播放秒數

        Returns:
            上一首歌曲；None 表示呼叫端應把當前歌曲倒回 0 秒（游標不動）
        """
        if len(self._queue) == 0:
            return None

        if elapsed > PREVIOUS_RESTART_THRESHOLD:
            return None

        prev_index = self._current_index - 1
        if prev_index < 0:
            if repeat != RepeatMode.ALL:
                return None
            prev_index = len(self._queue) - 1

        self._current_index = prev_index
        logger.debug(f"上一首: {self.current_song.title}")
        return self.current_song

    def jump_to(self, index: int) -> Optional[Song]:
        """
        跳轉到指定索引

        Args:
            index: 0-based 索引

        Returns:
            目標歌曲，若索引無效則返回 None
        """
        if index < 0 or index >= len(self._queue):
            logger.warning(f"跳轉失敗：無效的索引 {index}（共 {len(self._queue)} 首）")
            return None

        self._current_index = index
        logger.debug(f"跳轉到第 {index + 1} 首: {self.current_song.title}")
        return self.current_song

    def __len__(self) -> int:
        return len(self._queue)

    def __iter__(self) -> Iterator[Song]:
        return iter(self._queue)
