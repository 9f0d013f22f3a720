"""
串流播放器統一錯誤系統

所有錯誤都繼承自 MusicError，包含：
- message: 技術性錯誤訊息（給開發者 / log）
- user_message: 使用者友善的訊息（給 UI 顯示）

「過期請求」不是錯誤，解析器會直接回傳 None。
"""

from typing import Optional


class MusicError(Exception):
    """播放器錯誤基類"""

    def __init__(self, message: str, user_message: Optional[str] = None):
        self.message = message
        self.user_message = user_message or message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# ==================== 網路 ====================

class NetworkError(MusicError):
    """非 2xx 回應或傳輸失敗（可重試）"""

    def __init__(self, message: str, status: Optional[int] = None, url: Optional[str] = None):
        self.status = status
        self.url = url
        super().__init__(
            message=message,
            user_message="網路連線失敗，請稍後再試"
        )


class NetworkTimeout(NetworkError):
    """單次請求超時"""

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} timed out after {timeout}s")
        self.user_message = "連線逾時，請稍後再試"


class NoAudioStreamError(MusicError):
    """找不到符合條件的音訊串流"""

    def __init__(self, song_id: str):
        self.song_id = song_id
        super().__init__(
            message=f"No audio stream available for {song_id}",
            user_message="找不到可播放的音訊串流"
        )


# ==================== 播放 ====================

class ResourceError(MusicError):
    """
    音訊輸出資源錯誤（對當前歌曲是終止性的，不影響 session）

    code 可為：
    - aborted: 播放被中止
    - network: 串流下載中斷
    - decode: 解碼失敗
    - unsupported: 格式不支援 / 無法啟動播放器
    """

    CODE_MESSAGES = {
        "aborted": "播放已中止",
        "network": "串流連線中斷",
        "decode": "音訊解碼失敗",
        "unsupported": "不支援的音訊格式",
    }

    def __init__(self, message: str, code: str = "decode"):
        self.code = code if code in self.CODE_MESSAGES else "decode"
        super().__init__(message=message, user_message=self.CODE_MESSAGES[self.code])


# ==================== 儲存 ====================

class StorageError(MusicError):
    """持久化儲存寫入失敗"""

    def __init__(self, message: str, key: Optional[str] = None):
        self.key = key
        super().__init__(message=message, user_message="無法儲存資料")


class StorageQuotaExceeded(StorageError):
    """寫入後會超過儲存空間上限"""

    def __init__(self, key: str, size: int, quota: int):
        self.size = size
        self.quota = quota
        super().__init__(f"Writing {key!r} needs {size} bytes, quota is {quota}", key=key)

