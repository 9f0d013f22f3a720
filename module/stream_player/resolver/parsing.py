"""
上游回應解析

上游資料只在這裡解析一次：
- 缺少的欄位套用預設值（Unknown Title / Unknown Artist / 0 / ""）
- 無法取得 ID 的項目直接丟棄
- 音訊串流依品質設定挑選位元率
"""

from enum import Enum
from typing import Any, List, Optional
from urllib.parse import parse_qs, urlparse

from loguru import logger

from ..constants import DEFAULT_ARTIST, DEFAULT_TITLE
from ..core.queue import Song, SongDetails
from ..utils.errors import NoAudioStreamError


class StreamQuality(str, Enum):
    """音訊品質設定"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value) -> "StreamQuality":
        """未知的設定值一律視為 medium"""
        try:
            return cls(value)
        except ValueError:
            return cls.MEDIUM


def _coerce_duration(value: Any) -> int:
    """處理 duration（確保轉為非負 int，無效值為 0）"""
    if not value:
        return 0
    try:
        return max(0, int(float(value)))
    except (ValueError, TypeError, OverflowError):
        # ValueError: 無效字串, TypeError: 無法轉換, OverflowError: inf/nan
        return 0


def _coerce_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (ValueError, TypeError, OverflowError):
        return 0


def _text(value: Any, default: str) -> str:
    return value if isinstance(value, str) and value else default


def extract_video_id(url: Any) -> Optional[str]:
    """
    從項目 URL 取出影片 ID

    例如：/watch?v=dQw4w9WgXcQ → dQw4w9WgXcQ
    """
    if not isinstance(url, str) or "v=" not in url:
        return None
    values = parse_qs(urlparse(url).query).get("v")
    if values and values[0]:
        return values[0]
    # 非標準格式：直接取 v= 之後到下一個 & 為止
    video_id = url.split("v=", 1)[1].split("&", 1)[0]
    return video_id or None


def parse_song(item: Any) -> Optional[Song]:
    """
    解析單一項目

    Returns:
        Song，非串流項目或沒有 ID 時返回 None
    """
    if not isinstance(item, dict) or item.get("type") != "stream":
        return None

    song_id = extract_video_id(item.get("url"))
    if not song_id:
        return None

    return Song(
        id=song_id,
        title=_text(item.get("title"), DEFAULT_TITLE),
        artist=_text(item.get("uploaderName"), DEFAULT_ARTIST),
        thumbnail=_text(item.get("thumbnail"), ""),
        duration=_coerce_duration(item.get("duration")),
    )


def parse_song_list(data: Any, key: str = "items", limit: Optional[int] = None) -> List[Song]:
    """
    解析搜尋 / 熱門 / 相關歌曲列表

    Args:
        data: 上游 JSON（物件中的 key 欄位，或直接是列表）
        key: 列表所在的欄位
        limit: 最多回傳幾首

    Returns:
        歌曲列表（壞掉的項目會被略過）
    """
    if isinstance(data, dict):
        items = data.get(key)
    else:
        items = data
    if not isinstance(items, list):
        return []

    songs = [song for song in (parse_song(item) for item in items) if song is not None]
    dropped = len(items) - len(songs)
    if dropped:
        logger.debug(f"略過 {dropped} 個無效項目")

    return songs[:limit] if limit is not None else songs


def parse_details(song_id: str, data: Any) -> SongDetails:
    """解析 /streams/{id} 的歌曲詳細資訊"""
    if not isinstance(data, dict):
        data = {}
    return SongDetails(
        id=song_id,
        title=_text(data.get("title"), DEFAULT_TITLE),
        artist=_text(data.get("uploader"), DEFAULT_ARTIST),
        thumbnail=_text(data.get("thumbnailUrl"), ""),
        duration=_coerce_duration(data.get("duration")),
        description=_text(data.get("description"), ""),
        views=_coerce_int(data.get("views")),
        upload_date=_text(data.get("uploadDate"), ""),
    )


def select_stream(song_id: str, streams: Any, quality: StreamQuality = StreamQuality.MEDIUM) -> str:
    """
    依品質挑選音訊串流

    - low: 最低位元率
    - high: 最高位元率
    - medium: 位元率由低到高排序後取 floor(n / 2)

    Raises:
        NoAudioStreamError: 沒有任何音訊串流
    """
    candidates = [
        s for s in (streams if isinstance(streams, list) else [])
        if isinstance(s, dict)
        and isinstance(s.get("mimeType"), str)
        and "audio" in s["mimeType"]
        and s.get("url")
    ]
    if not candidates:
        raise NoAudioStreamError(song_id)

    ordered = sorted(candidates, key=lambda s: _coerce_int(s.get("bitrate")))

    if quality == StreamQuality.LOW:
        chosen = ordered[0]
    elif quality == StreamQuality.HIGH:
        chosen = ordered[-1]
    else:
        chosen = ordered[len(ordered) // 2]

    logger.debug(f"選擇串流 {song_id}: quality={quality.value}, bitrate={chosen.get('bitrate')}")
    return chosen["url"]
