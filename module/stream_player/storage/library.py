"""
使用者資料庫

建立在 JsonStore 之上，管理設定、播放紀錄、最愛、播放清單與上次播放位置。

空間不足時的處理（save）：
1. 壓縮一次：快取刪掉較舊的一半、播放紀錄截到 MAX_HISTORY // 2
2. 重試寫入一次（要寫入的快取或播放紀錄也套用同樣的壓縮）
3. 仍失敗就放棄這次寫入（回傳 False），不會中斷播放
"""

import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from ..constants import DEFAULT_SETTINGS, MAX_HISTORY
from ..utils.errors import StorageError, StorageQuotaExceeded
from .store import JsonStore, StoreKey


class Library:
    """
    使用者資料庫

    使用方式：
        library = Library(JsonStore("./data/store.json"))
        library.ensure_defaults()

        library.update_settings(volume=80)
        library.add_to_history(song)
    """

    def __init__(self, store: JsonStore, clock: Callable[[], float] = time.time):
        self.store = store
        self._clock = clock

    def ensure_defaults(self) -> None:
        """首次啟動時寫入預設值"""
        defaults = {
            StoreKey.SETTINGS: dict(DEFAULT_SETTINGS),
            StoreKey.PLAYLISTS: [],
            StoreKey.HISTORY: [],
            StoreKey.FAVORITES: [],
            StoreKey.CACHE: {},
        }
        for key, value in defaults.items():
            if key not in self.store:
                self.save(key, value)

    # === 寫入（含空間不足處理）===

    def save(self, key: str, value: Any) -> bool:
        """
        寫入資料，空間不足時壓縮後重試一次

        Returns:
            是否寫入成功（失敗代表這次資料遺失，不是錯誤）
        """
        try:
            self.store.set(key, value)
            return True
        except StorageQuotaExceeded as e:
            logger.warning(f"儲存空間不足，開始壓縮: {e.message}")
        except StorageError as e:
            logger.error(f"寫入失敗: {e.message}")
            return False

        self.compact()
        value = self._compacted(key, value)
        try:
            self.store.set(key, value)
            return True
        except StorageError as e:
            logger.warning(f"壓縮後仍無法寫入 {key!r}，放棄本次寫入: {e.message}")
            return False

    def compact(self) -> None:
        """刪掉較舊的一半快取，並把播放紀錄截短"""
        cache = self.store.get(StoreKey.CACHE, {})
        if isinstance(cache, dict) and cache:
            self._write_quietly(StoreKey.CACHE, self._halve_cache(cache))

        history = self.store.get(StoreKey.HISTORY, [])
        if isinstance(history, list) and len(history) > MAX_HISTORY // 2:
            self._write_quietly(StoreKey.HISTORY, history[:MAX_HISTORY // 2])

    def _compacted(self, key: str, value: Any) -> Any:
        """重試時傳入的快取或播放紀錄也要套用同樣的壓縮"""
        if key == StoreKey.CACHE and isinstance(value, dict):
            return self._halve_cache(value)
        if key == StoreKey.HISTORY and isinstance(value, list):
            return value[:MAX_HISTORY // 2]
        return value

    @staticmethod
    def _halve_cache(cache: Dict[str, Any]) -> Dict[str, Any]:
        keys = list(cache)
        return {key: cache[key] for key in keys[len(keys) // 2:]}

    def _write_quietly(self, key: str, value: Any) -> None:
        try:
            self.store.set(key, value)
        except StorageError as e:
            logger.warning(f"壓縮 {key!r} 時寫入失敗: {e.message}")

    def _get_list(self, key: str) -> List[Any]:
        value = self.store.get(key, [])
        return value if isinstance(value, list) else []

    # === 設定 ===

    def get_settings(self) -> Dict[str, Any]:
        """取得設定（缺少的欄位以預設值補上）"""
        stored = self.store.get(StoreKey.SETTINGS, {})
        settings = dict(DEFAULT_SETTINGS)
        if isinstance(stored, dict):
            settings.update(stored)
        return settings

    def get_setting(self, key: str) -> Any:
        return self.get_settings().get(key)

    def update_settings(self, **updates) -> bool:
        settings = self.get_settings()
        settings.update(updates)
        return self.save(StoreKey.SETTINGS, settings)

    # === 播放紀錄 ===

    def get_history(self) -> List[dict]:
        return self._get_list(StoreKey.HISTORY)

    def add_to_history(self, song) -> bool:
        """
        加入播放紀錄

        相同 ID 會先移除再放到最前面，超過 MAX_HISTORY 的舊紀錄會被丟棄。
        """
        history = [item for item in self.get_history() if isinstance(item, dict) and item.get("id") != song.id]
        entry = song.to_dict()
        entry["playedAt"] = int(self._clock() * 1000)
        history.insert(0, entry)
        return self.save(StoreKey.HISTORY, history[:MAX_HISTORY])

    def clear_history(self) -> bool:
        return self.save(StoreKey.HISTORY, [])

    # === 最愛 ===

    def get_favorites(self) -> List[dict]:
        return self._get_list(StoreKey.FAVORITES)

    def add_to_favorites(self, song) -> bool:
        favorites = self.get_favorites()
        if any(isinstance(item, dict) and item.get("id") == song.id for item in favorites):
            return True
        entry = song.to_dict()
        entry["addedAt"] = int(self._clock() * 1000)
        favorites.insert(0, entry)
        return self.save(StoreKey.FAVORITES, favorites)

    def remove_from_favorites(self, song_id: str) -> bool:
        favorites = [item for item in self.get_favorites() if isinstance(item, dict) and item.get("id") != song_id]
        return self.save(StoreKey.FAVORITES, favorites)

    def is_favorite(self, song_id: str) -> bool:
        return any(isinstance(item, dict) and item.get("id") == song_id for item in self.get_favorites())

    # === 播放清單 ===

    def get_playlists(self) -> List[dict]:
        return self._get_list(StoreKey.PLAYLISTS)

    def create_playlist(self, name: str) -> dict:
        """
        建立播放清單

        Returns:
            新播放清單（即使寫入失敗也會回傳，呼叫端可自行重試）
        """
        playlists = self.get_playlists()
        playlist = {
            "id": uuid.uuid4().hex,
            "name": name,
            "songs": [],
            "createdAt": int(self._clock() * 1000),
        }
        playlists.append(playlist)
        self.save(StoreKey.PLAYLISTS, playlists)
        logger.debug(f"已建立播放清單: {name}")
        return playlist

    def _find_playlist(self, playlists: List[dict], playlist_id: str) -> Optional[dict]:
        for playlist in playlists:
            if isinstance(playlist, dict) and playlist.get("id") == playlist_id:
                return playlist
        return None

    def add_to_playlist(self, playlist_id: str, song) -> bool:
        """加入歌曲到播放清單（已存在或清單不存在時返回 False）"""
        playlists = self.get_playlists()
        playlist = self._find_playlist(playlists, playlist_id)
        if playlist is None:
            return False
        songs = playlist.setdefault("songs", [])
        if any(isinstance(s, dict) and s.get("id") == song.id for s in songs):
            return False
        songs.append(song.to_dict())
        return self.save(StoreKey.PLAYLISTS, playlists)

    def remove_from_playlist(self, playlist_id: str, song_id: str) -> bool:
        playlists = self.get_playlists()
        playlist = self._find_playlist(playlists, playlist_id)
        if playlist is None:
            return False
        playlist["songs"] = [s for s in playlist.get("songs", []) if isinstance(s, dict) and s.get("id") != song_id]
        return self.save(StoreKey.PLAYLISTS, playlists)

    def delete_playlist(self, playlist_id: str) -> bool:
        playlists = [p for p in self.get_playlists() if isinstance(p, dict) and p.get("id") != playlist_id]
        return self.save(StoreKey.PLAYLISTS, playlists)

    # === 上次播放 ===

    def get_last_played(self) -> Optional[dict]:
        value = self.store.get(StoreKey.LAST_PLAYED)
        return value if isinstance(value, dict) else None

    def set_last_played(self, song, position: float) -> bool:
        return self.save(StoreKey.LAST_PLAYED, {
            "song": song.to_dict(),
            "position": position,
            "timestamp": int(self._clock() * 1000),
        })
