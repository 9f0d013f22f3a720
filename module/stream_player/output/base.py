"""
音訊輸出介面

整個程序只有一個音訊輸出：同一時間只能掛載一個來源，
換歌前必須先完全停止（暫停 + 倒回 0 秒）再掛載下一首。

輸出把播放事件交給唯一的 listener（通常是 PlaybackSession）。
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Awaitable, Callable, Optional

from loguru import logger

from ..utils.errors import ResourceError


class OutputEvent(str, Enum):
    """音訊輸出事件"""

    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"
    ERROR = "error"
    TIME_UPDATE = "timeupdate"


OutputListener = Callable[[OutputEvent, Optional[ResourceError]], Awaitable[None]]


class AudioOutput(ABC):
    """
    音訊輸出基類

    子類別必須實作 attach / play / pause / seek / set_volume / detach，
    並在狀態改變時呼叫 self._emit(...)
    """

    def __init__(self):
        self._listener: Optional[OutputListener] = None

    def set_listener(self, listener: Optional[OutputListener]) -> None:
        self._listener = listener

    async def _emit(self, event: OutputEvent, error: Optional[ResourceError] = None) -> None:
        """通知 listener（listener 的例外只記錄，不影響輸出本身）"""
        if self._listener is None:
            return
        try:
            await self._listener(event, error)
        except Exception as e:
            logger.exception(f"處理輸出事件 {event.value} 失敗: {e}")

    # === 狀態 ===

    @property
    @abstractmethod
    def position(self) -> float:
        """目前播放位置（秒）"""

    @property
    @abstractmethod
    def duration(self) -> Optional[float]:
        """來源總長度（秒），尚未得知時為 None"""

    @property
    @abstractmethod
    def is_paused(self) -> bool:
        """是否處於暫停（或尚未開始）"""

    # === 控制 ===

    @abstractmethod
    async def attach(self, url: str) -> None:
        """掛載新來源（不會自動開始播放）"""

    @abstractmethod
    async def play(self) -> None:
        """
        開始或恢復播放

        Raises:
            ResourceError: 無法啟動播放
        """

    @abstractmethod
    async def pause(self) -> None:
        """暫停"""

    @abstractmethod
    async def seek(self, position: float) -> None:
        """跳到指定秒數"""

    @abstractmethod
    async def set_volume(self, volume: int) -> None:
        """設定音量（0-100）"""

    @abstractmethod
    async def detach(self) -> None:
        """卸載來源並釋放資源"""
