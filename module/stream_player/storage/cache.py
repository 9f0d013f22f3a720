"""
網路回應快取

策略：
- 每筆資料記錄寫入時間，超過 TTL（預設 300 秒）就視為不存在
- 過期資料在讀取時才刪除（lazy expiry）
- 最多保留 MAX_CACHE 筆，滿了就刪掉「迭代順序第一筆」再寫入
  （依插入順序，不是 LRU：讀取不會更新順序，覆寫既有 key 也不會移到最後）

範例（max_entries=3）：
    快取：[a, b, c]
    set(d) → 刪除 a → [b, c, d]
    get(b) → 不改變順序
    set(e) → 刪除 b → [c, d, e]
"""

import time
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING

from loguru import logger

from ..constants import CACHE_TTL, MAX_CACHE
from .store import StoreKey

if TYPE_CHECKING:
    from .library import Library


class ResponseCache:
    """
    網路回應快取

    使用方式：
        cache = ResponseCache(library)

        results = cache.get("search_lofi_music_songs")
        if results is None:
            results = await fetch()
            cache.set("search_lofi_music_songs", results)
    """

    def __init__(
        self,
        library: "Library",
        ttl: float = CACHE_TTL,
        max_entries: int = MAX_CACHE,
        clock: Callable[[], float] = time.time,
    ):
        """
        初始化快取

        Args:
            library: 使用者資料庫（快取存在同一個儲存空間的 cache 鍵下）
            ttl: 存活時間（秒）
            max_entries: 最多幾筆
            clock: 取得目前時間（秒）的函式
        """
        self.library = library
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock

        logger.debug(f"ResponseCache 初始化: ttl={ttl}s, max_entries={max_entries}")

    def _entries(self) -> Dict[str, Any]:
        entries = self.library.store.get(StoreKey.CACHE, {})
        return entries if isinstance(entries, dict) else {}

    # === 讀寫 ===

    def get(self, key: str) -> Optional[Any]:
        """
        取得快取

        Returns:
            快取的值；不存在、已過期或資料損毀時返回 None
        """
        entries = self._entries()
        item = entries.get(key)
        if not isinstance(item, dict) or "data" not in item:
            return None

        try:
            stored_at = float(item.get("timestamp", 0))
        except (TypeError, ValueError):
            stored_at = 0.0

        if self._clock() - stored_at >= self.ttl:
            del entries[key]
            self.library.save(StoreKey.CACHE, entries)
            logger.debug(f"快取過期: {key}")
            return None

        return item["data"]

    def set(self, key: str, value: Any) -> bool:
        """
        寫入快取

        Returns:
            是否寫入成功（空間不足且壓縮後仍失敗時為 False）
        """
        entries = self._entries()

        if len(entries) >= self.max_entries:
            oldest = next(iter(entries))
            del entries[oldest]
            logger.debug(f"快取已滿，刪除最舊的: {oldest}")

        entries[key] = {"data": value, "timestamp": self._clock()}
        return self.library.save(StoreKey.CACHE, entries)

    def __len__(self) -> int:
        return len(self._entries())

    def clear(self) -> bool:
        """清空所有快取"""
        return self.library.save(StoreKey.CACHE, {})
