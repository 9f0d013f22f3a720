# Core module
from .queue import PlayQueue, Song, SongDetails
from .state import PlayerSnapshot, RepeatMode, SessionStatus, format_time
from .position import PositionStore, RateLimiter
from .player import PlaybackSession

__all__ = [
    "PlayQueue",
    "Song",
    "SongDetails",
    "PlayerSnapshot",
    "RepeatMode",
    "SessionStatus",
    "format_time",
    "PositionStore",
    "RateLimiter",
    "PlaybackSession",
]
