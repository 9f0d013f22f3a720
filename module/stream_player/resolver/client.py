"""
串流解析器

負責所有上游 API 請求：
- 搜尋、熱門、相關歌曲、搜尋建議
- 歌曲詳細資訊
- 依品質設定取得音訊串流 URL

共用規則：
- 每個請求都透過 RetryPolicy（15 秒超時、最多 3 次、線性退避）
- 搜尋 / 熱門 / 串流 URL 會寫入 ResponseCache，命中時完全不發請求
- 搜尋使用 RequestTracker：回應抵達時若已有更新的搜尋，回傳 None
"""

from typing import Any, Dict, List, Optional

import aiohttp
from loguru import logger

from ..constants import API_BASE_URL, DEFAULT_REGION, DEFAULT_SEARCH_FILTER, RELATED_LIMIT
from ..core.queue import Song, SongDetails
from ..storage.cache import ResponseCache
from ..utils.decorators import handle_errors
from ..utils.errors import NetworkError
from .parsing import StreamQuality, parse_details, parse_song_list, select_stream
from .retry import RetryPolicy
from .tracker import RequestTracker


class StreamResolver:
    """
    串流解析器

    使用方式：
        resolver = StreamResolver(cache, base_url="https://pipedapi.kavin.rocks")

        results = await resolver.search("lofi")   # None 表示已被更新的搜尋取代
        url = await resolver.stream_url(song.id, StreamQuality.HIGH)

        await resolver.close()
    """

    def __init__(
        self,
        cache: ResponseCache,
        base_url: str = API_BASE_URL,
        policy: Optional[RetryPolicy] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        初始化解析器

        Args:
            cache: 回應快取
            base_url: API 位址
            policy: 重試策略（預設 3 次 / 15 秒 / 線性退避）
            session: 外部提供的 aiohttp session（不提供則自行建立並在 close() 關閉）
        """
        self.cache = cache
        self.base_url = base_url.rstrip("/")
        self.policy = policy or RetryPolicy()
        self.tracker = RequestTracker()

        self._session = session
        self._owns_session = session is None

        logger.debug(f"StreamResolver 初始化: base_url={self.base_url}")

    # === HTTP ===

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers={"Content-Type": "application/json"})
            self._owns_session = True
        return self._session

    async def _fetch_json(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        """
        發出單次 GET 請求（不含重試）

        Raises:
            NetworkError: 非 2xx、傳輸失敗或回應不是 JSON
        """
        url = f"{self.base_url}{path}"
        session = self._get_session()
        try:
            async with session.get(url, params=params) as resp:
                if not 200 <= resp.status < 300:
                    raise NetworkError(f"HTTP {resp.status}: {resp.reason}", status=resp.status, url=url)
                return await resp.json(content_type=None)
        except aiohttp.ClientError as e:
            raise NetworkError(f"{type(e).__name__}: {e}", url=url) from e
        except ValueError as e:
            raise NetworkError(f"Invalid JSON from {url}: {e}", url=url) from e

    async def request(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        """帶重試的 GET 請求"""
        logger.debug(f"[API] GET {path} {params or ''}")
        return await self.policy.run(lambda: self._fetch_json(path, params), description=f"GET {path}")

    # === 公開方法 ===

    @handle_errors
    async def search(self, query: str, filter: str = DEFAULT_SEARCH_FILTER) -> Optional[List[Song]]:
        """
        搜尋歌曲

        Returns:
            歌曲列表；若回應抵達前已開始新的搜尋則返回 None（不是錯誤）
        """
        token = self.tracker.begin()

        cache_key = f"search_{query}_{filter}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug(f"搜尋命中快取: {query!r}")
            return self._songs_from_cache(cached)

        data = await self.request("/search", {"q": query, "filter": filter})
        results = parse_song_list(data)

        # 舊請求仍然寫入快取，只是結果不交給呼叫端
        self.cache.set(cache_key, [song.to_dict() for song in results])

        if not self.tracker.is_current(token):
            logger.debug(f"搜尋結果已過期，丟棄: {query!r}")
            return None

        logger.debug(f"搜尋完成: {query!r}，共 {len(results)} 首")
        return results

    @handle_errors
    async def trending(self, region: str = DEFAULT_REGION) -> List[Song]:
        """取得熱門歌曲"""
        cache_key = f"trending_{region}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return self._songs_from_cache(cached)

        data = await self.request("/trending", {"region": region})
        results = parse_song_list(data)
        self.cache.set(cache_key, [song.to_dict() for song in results])
        return results

    @handle_errors
    async def related(self, song_id: str) -> List[Song]:
        """取得相關歌曲（最多 10 首）"""
        data = await self.request(f"/streams/{song_id}")
        return parse_song_list(data, key="relatedStreams", limit=RELATED_LIMIT)

    @handle_errors
    async def details(self, song_id: str) -> SongDetails:
        """取得歌曲詳細資訊"""
        data = await self.request(f"/streams/{song_id}")
        return parse_details(song_id, data)

    @handle_errors
    async def stream_url(self, song_id: str, quality: StreamQuality = StreamQuality.MEDIUM) -> str:
        """
        取得音訊串流 URL

        Raises:
            NoAudioStreamError: 沒有符合的音訊串流
            NetworkError: 重試後仍失敗
        """
        quality = StreamQuality.parse(quality)
        cache_key = f"stream_{song_id}_{quality.value}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, str) and cached:
            logger.debug(f"串流 URL 命中快取: {song_id}")
            return cached

        data = await self.request(f"/streams/{song_id}")
        streams = data.get("audioStreams") if isinstance(data, dict) else None
        url = select_stream(song_id, streams, quality)

        self.cache.set(cache_key, url)
        return url

    async def suggestions(self, query: str) -> List[str]:
        """
        取得搜尋建議

        自動完成只是輔助功能，失敗時記錄後返回空列表
        """
        try:
            data = await self.request("/suggestions", {"query": query})
        except NetworkError as e:
            logger.warning(f"取得搜尋建議失敗: {e.message}")
            return []
        if not isinstance(data, list):
            return []
        return [item for item in data if isinstance(item, str)]

    # === 內部方法 ===

    @staticmethod
    def _songs_from_cache(rows: Any) -> List[Song]:
        if not isinstance(rows, list):
            return []
        return [song for song in (Song.from_dict(row) for row in rows) if song is not None]

    # === 清理 ===

    async def close(self) -> None:
        """關閉自行建立的 HTTP session"""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
        logger.debug("StreamResolver 已關閉")
