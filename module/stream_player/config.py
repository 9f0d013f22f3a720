"""
執行設定

從環境變數（main.py 會先以 python-dotenv 載入 .env）讀取設定，
缺少或格式錯誤時退回 constants.py 的預設值。
"""

import os
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from .constants import (
    API_BASE_URL,
    DATA_PATH,
    DEFAULT_REGION,
    STORAGE_QUOTA,
)


@dataclass
class PlayerConfig:
    """播放器執行設定"""

    api_base_url: str = API_BASE_URL
    data_path: Optional[str] = DATA_PATH   # None 表示只存在記憶體
    storage_quota: int = STORAGE_QUOTA
    region: str = DEFAULT_REGION
    ffplay_path: Optional[str] = None      # None 表示交給 FFmpegManager 尋找
    debug: bool = False


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"環境變數 {name} 不是整數: {value!r}，改用預設值 {default}")
        return default


def load_config() -> PlayerConfig:
    """
    從環境變數建立 PlayerConfig

    Returns:
        PlayerConfig 實例
    """
    return PlayerConfig(
        api_base_url=os.getenv("STREAM_PLAYER_API_URL", API_BASE_URL).rstrip("/"),
        data_path=os.getenv("STREAM_PLAYER_DATA_PATH", DATA_PATH) or None,
        storage_quota=_int_env("STREAM_PLAYER_STORAGE_QUOTA", STORAGE_QUOTA),
        region=os.getenv("STREAM_PLAYER_REGION", DEFAULT_REGION),
        ffplay_path=os.getenv("FFPLAY_PATH") or None,
        debug=os.getenv("DEBUG", "").lower() in ("true", "1", "yes"),
    )
