"""
播放狀態型別

- SessionStatus: session 狀態機的狀態
- RepeatMode: 重複播放模式（off → all → one → off）
- PlayerSnapshot: get_state() 回傳的唯讀快照
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .queue import Song


class SessionStatus(str, Enum):
    """播放 session 狀態"""

    IDLE = "idle"
    RESOLVING = "resolving"
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"
    ERROR = "error"


class RepeatMode(str, Enum):
    """重複播放模式"""

    OFF = "off"
    ALL = "all"
    ONE = "one"

    def cycle(self) -> "RepeatMode":
        """循環到下一個模式：off → all → one → off"""
        order = [RepeatMode.OFF, RepeatMode.ALL, RepeatMode.ONE]
        return order[(order.index(self) + 1) % len(order)]

    @property
    def label(self) -> str:
        return {"off": "關閉", "all": "全部", "one": "單曲"}[self.value]

    @classmethod
    def parse(cls, value) -> "RepeatMode":
        """寬鬆解析（設定檔損毀時退回 OFF）"""
        try:
            return cls(value)
        except ValueError:
            return cls.OFF


def format_time(seconds) -> str:
    """
    格式化時間為 M:SS 或 H:MM:SS

    無效值（None、負數、非數字）一律顯示 0:00
    """
    try:
        seconds = int(float(seconds))
    except (ValueError, TypeError, OverflowError):
        return "0:00"
    if seconds < 0:
        return "0:00"

    if seconds >= 3600:
        hours = seconds // 3600
        minutes = (seconds % 3600) // 60
        secs = seconds % 60
        return f"{hours}:{minutes:02d}:{secs:02d}"
    else:
        minutes = seconds // 60
        secs = seconds % 60
        return f"{minutes}:{secs:02d}"


@dataclass(frozen=True)
class PlayerSnapshot:
    """播放器狀態快照（給 UI 讀取）"""

    song: Optional["Song"]
    status: SessionStatus
    is_playing: bool
    current_time: float
    duration: float
    volume: int
    shuffle: bool
    repeat: RepeatMode
    queue_length: int
    queue_index: int
    last_error: Optional[str] = None

    @property
    def progress_percentage(self) -> float:
        """播放進度百分比（0.0 - 100.0）"""
        if self.duration <= 0:
            return 0.0
        return min(100.0, (self.current_time / self.duration) * 100)

    @property
    def progress_display(self) -> str:
        """例如：「1:23 / 3:45」"""
        return f"{format_time(self.current_time)} / {format_time(self.duration)}"
