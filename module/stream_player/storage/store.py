"""
JSON 鍵值儲存

整份資料是一個 JSON 物件（key → value），可以寫入檔案或只放在記憶體。

寫入策略：
- 先序列化整份文件並檢查空間上限（超過就拋出 StorageQuotaExceeded）
- 寫到 <path>.tmp 再 os.replace，失敗時不會留下寫到一半的檔案
- 磁碟寫入成功後才更新記憶體中的資料

讀取策略：
- 檔案不存在或內容損毀時，視為空資料
"""

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

from ..utils.errors import StorageError, StorageQuotaExceeded


class StoreKey:
    """儲存空間的鍵"""
    PLAYLISTS = "playlists"
    HISTORY = "history"
    FAVORITES = "favorites"
    SETTINGS = "settings"
    CACHE = "cache"
    LAST_PLAYED = "last_played"


class JsonStore:
    """
    JSON 鍵值儲存

    使用方式：
        store = JsonStore("./data/store.json", quota=5 * 1024 * 1024)
        store.set("settings", {"volume": 80})
        store.get("settings", {})

        # 測試用：只在記憶體中
        store = JsonStore(None, quota=1024)
    """

    def __init__(self, path: Optional[str] = None, quota: Optional[int] = None):
        """
        初始化儲存

        Args:
            path: JSON 檔案路徑，None 表示只存在記憶體
            quota: 序列化後的最大位元組數，None 表示不限制
        """
        self.path = Path(path) if path else None
        self.quota = quota
        self._data: Dict[str, Any] = self._load()

        logger.debug(f"JsonStore 初始化: path={path}, quota={quota}, keys={list(self._data)}")

    # === 讀取 ===

    def get(self, key: str, default: Any = None) -> Any:
        """
        取得資料（回傳副本，修改不會影響儲存內容）
        """
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def __contains__(self, key: str) -> bool:
        return key in self._data

    @property
    def size(self) -> int:
        """目前序列化後的大小（bytes）"""
        return len(self._serialize(self._data))

    # === 寫入 ===

    def set(self, key: str, value: Any) -> None:
        """
        寫入資料

        Raises:
            StorageQuotaExceeded: 寫入後超過空間上限
            StorageError: 無法序列化或無法寫入檔案
        """
        candidate = dict(self._data)
        candidate[key] = value
        self._commit(key, candidate)

    def remove(self, key: str) -> None:
        """
        移除資料

        Raises:
            StorageError: 無法寫入檔案
        """
        if key not in self._data:
            return
        candidate = dict(self._data)
        del candidate[key]
        self._commit(key, candidate)

    # === 內部方法 ===

    def _commit(self, key: str, candidate: Dict[str, Any]) -> None:
        try:
            payload = self._serialize(candidate)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Cannot serialize {key!r}: {e}", key=key) from e

        if self.quota is not None and len(payload) > self.quota:
            raise StorageQuotaExceeded(key, len(payload), self.quota)

        if self.path is not None:
            tmp_path = self.path.with_name(self.path.name + ".tmp")
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path.write_bytes(payload)
                os.replace(tmp_path, self.path)
            except OSError as e:
                self._safe_delete(tmp_path)
                raise StorageError(f"Cannot write {self.path}: {e}", key=key) from e

        # 深拷貝，避免呼叫端之後修改傳入的物件
        self._data = json.loads(payload)

    @staticmethod
    def _serialize(data: Dict[str, Any]) -> bytes:
        return json.dumps(data, ensure_ascii=False).encode("utf-8")

    def _load(self) -> Dict[str, Any]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"讀取儲存檔失敗，改用空資料: {self.path} - {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"儲存檔格式錯誤（不是物件），改用空資料: {self.path}")
            return {}
        return data

    @staticmethod
    def _safe_delete(file: Path) -> None:
        """安全刪除檔案，失敗時僅記錄警告"""
        try:
            if file.exists():
                file.unlink()
        except OSError as e:
            logger.warning(f"刪除暫存檔失敗: {file} - {e}")
