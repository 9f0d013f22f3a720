"""
串流音樂播放器模組

使用純 asyncio 架構，提供:
- 有時效、有上限的回應快取（持久化）
- 帶逾時、重試與過期判斷的串流解析
- 去重的播放佇列（隨機播放固定起始歌曲）
- 播放狀態機與限流的播放位置紀錄
- 自動 ffplay 管理
"""

# Core
from .core.queue import PlayQueue, Song, SongDetails
from .core.state import PlayerSnapshot, RepeatMode, SessionStatus, format_time
from .core.position import PositionStore
from .core.player import PlaybackSession

# Resolver
from .resolver.client import StreamResolver
from .resolver.parsing import StreamQuality
from .resolver.retry import RetryPolicy

# Storage
from .storage.store import JsonStore, StoreKey
from .storage.library import Library
from .storage.cache import ResponseCache

# Output
from .output.base import AudioOutput, OutputEvent
from .output.ffplay import FFplayOutput

# FFmpeg
from .ffmpeg.manager import FFmpegManager, get_ffplay_path

# Config
from .config import PlayerConfig, load_config

# Utils
from .utils.errors import (
    MusicError,
    NetworkError,
    NetworkTimeout,
    NoAudioStreamError,
    ResourceError,
    StorageError,
    StorageQuotaExceeded,
)
from .utils.decorators import handle_errors, log_operation

__all__ = [
    # Core
    "PlayQueue",
    "Song",
    "SongDetails",
    "PlayerSnapshot",
    "RepeatMode",
    "SessionStatus",
    "format_time",
    "PositionStore",
    "PlaybackSession",
    # Resolver
    "StreamResolver",
    "StreamQuality",
    "RetryPolicy",
    # Storage
    "JsonStore",
    "StoreKey",
    "Library",
    "ResponseCache",
    # Output
    "AudioOutput",
    "OutputEvent",
    "FFplayOutput",
    # FFmpeg
    "FFmpegManager",
    "get_ffplay_path",
    # Config
    "PlayerConfig",
    "load_config",
    # Utils
    "MusicError",
    "NetworkError",
    "NetworkTimeout",
    "NoAudioStreamError",
    "ResourceError",
    "StorageError",
    "StorageQuotaExceeded",
    "handle_errors",
    "log_operation",
]
