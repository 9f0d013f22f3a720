"""串流解析器與回應解析測試"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from module.stream_player.core.queue import SongDetails
from module.stream_player.resolver import RetryPolicy, StreamQuality, StreamResolver, select_stream
from module.stream_player.resolver.parsing import extract_video_id, parse_song, parse_song_list
from module.stream_player.utils.errors import NetworkError, NoAudioStreamError


def stream_item(video_id: str, **fields) -> dict:
    item = {
        "type": "stream",
        "url": f"/watch?v={video_id}",
        "title": f"Title {video_id}",
        "uploaderName": f"Uploader {video_id}",
        "thumbnail": f"https://img.example/{video_id}.jpg",
        "duration": 180,
    }
    item.update(fields)
    return item


AUDIO_STREAMS = [
    {"mimeType": "audio/webm", "bitrate": 128000, "url": "https://cdn.example/128"},
    {"mimeType": "video/mp4", "bitrate": 900000, "url": "https://cdn.example/video"},
    {"mimeType": "audio/mp4", "bitrate": 64000, "url": "https://cdn.example/64"},
    {"mimeType": "audio/webm", "bitrate": 256000, "url": "https://cdn.example/256"},
    {"mimeType": "audio/webm", "bitrate": 320000},
]


@pytest.fixture
def resolver(cache) -> StreamResolver:
    return StreamResolver(cache, base_url="https://api.example/", policy=RetryPolicy(sleep=AsyncMock()))


class TestParsing:
    """回應解析測試"""

    def test_extract_video_id(self) -> None:
        assert extract_video_id("/watch?v=dQw4w9WgXcQ") == "dQw4w9WgXcQ"
        assert extract_video_id("https://example.com/watch?list=x&v=abc&t=10") == "abc"
        assert extract_video_id("/channel/UC123") is None
        assert extract_video_id(None) is None

    def test_parse_song_defaults(self) -> None:
        """缺少欄位時套用預設值"""
        song = parse_song({"type": "stream", "url": "/watch?v=abc", "duration": -3})
        assert song.id == "abc"
        assert song.title == "Unknown Title"
        assert song.artist == "Unknown Artist"
        assert song.thumbnail == ""
        assert song.duration == 0

    def test_parse_song_rejects_non_streams(self) -> None:
        assert parse_song({"type": "channel", "url": "/channel/x"}) is None
        assert parse_song({"type": "stream", "url": "/playlist?list=1"}) is None
        assert parse_song("nonsense") is None

    def test_parse_song_list(self) -> None:
        data = {"items": [stream_item("a"), {"type": "playlist"}, stream_item("b")]}
        assert [song.id for song in parse_song_list(data)] == ["a", "b"]
        assert parse_song_list({"items": None}) == []
        assert parse_song_list("oops") == []

    def test_parse_song_list_limit(self) -> None:
        data = {"relatedStreams": [stream_item(f"r{i}") for i in range(15)]}
        assert len(parse_song_list(data, key="relatedStreams", limit=10)) == 10


class TestSelectStream:
    """依品質挑選串流"""

    def test_low(self) -> None:
        assert select_stream("x", AUDIO_STREAMS, StreamQuality.LOW) == "https://cdn.example/64"

    def test_medium(self) -> None:
        """三個可用音訊串流時取中間的"""
        assert select_stream("x", AUDIO_STREAMS, StreamQuality.MEDIUM) == "https://cdn.example/128"

    def test_high(self) -> None:
        assert select_stream("x", AUDIO_STREAMS, StreamQuality.HIGH) == "https://cdn.example/256"

    def test_medium_even_count(self) -> None:
        streams = AUDIO_STREAMS[:1] + AUDIO_STREAMS[2:3]
        assert select_stream("x", streams, StreamQuality.MEDIUM) == "https://cdn.example/128"

    def test_no_audio(self) -> None:
        with pytest.raises(NoAudioStreamError) as exc_info:
            select_stream("x", [AUDIO_STREAMS[1]], StreamQuality.HIGH)
        assert exc_info.value.song_id == "x"

        with pytest.raises(NoAudioStreamError):
            select_stream("x", None)

    def test_unknown_quality_is_medium(self) -> None:
        assert StreamQuality.parse("ultra") == StreamQuality.MEDIUM
        assert StreamQuality.parse("low") == StreamQuality.LOW


class TestSearch:
    """搜尋測試"""

    @pytest.mark.asyncio
    async def test_search_parses_and_caches(self, resolver, cache) -> None:
        resolver._fetch_json = AsyncMock(return_value={"items": [stream_item("a"), stream_item("b")]})

        results = await resolver.search("lofi")

        assert [song.id for song in results] == ["a", "b"]
        resolver._fetch_json.assert_awaited_once_with("/search", {"q": "lofi", "filter": "music_songs"})
        assert cache.get("search_lofi_music_songs")[0]["id"] == "a"

    @pytest.mark.asyncio
    async def test_cache_hit_skips_network(self, resolver) -> None:
        resolver._fetch_json = AsyncMock(return_value={"items": [stream_item("a")]})

        await resolver.search("lofi")
        again = await resolver.search("lofi")

        assert again[0].id == "a"
        assert again[0].title == "Title a"
        assert resolver._fetch_json.await_count == 1

    @pytest.mark.asyncio
    async def test_stale_search_returns_none(self, resolver, cache) -> None:
        """較舊的搜尋回應較晚抵達時被丟棄，但仍寫入快取"""
        gate = asyncio.Event()

        async def fetch(path, params):
            if params["q"] == "old":
                await gate.wait()
            return {"items": [stream_item(params["q"])]}

        resolver._fetch_json = AsyncMock(side_effect=fetch)

        old_task = asyncio.create_task(resolver.search("old"))
        await asyncio.sleep(0)

        newer = await resolver.search("new")
        gate.set()
        stale = await old_task

        assert [song.id for song in newer] == ["new"]
        assert stale is None
        assert cache.get("search_old_music_songs") is not None

    @pytest.mark.asyncio
    async def test_search_retries_then_fails(self, resolver) -> None:
        resolver._fetch_json = AsyncMock(side_effect=NetworkError("HTTP 502", status=502))

        with pytest.raises(NetworkError):
            await resolver.search("lofi")

        assert resolver._fetch_json.await_count == 3


class TestOtherEndpoints:
    """熱門 / 相關 / 詳細資訊 / 建議"""

    @pytest.mark.asyncio
    async def test_trending_cached_per_region(self, resolver) -> None:
        resolver._fetch_json = AsyncMock(return_value=[stream_item("t1")])

        first = await resolver.trending("TW")
        second = await resolver.trending("TW")

        assert first == second
        resolver._fetch_json.assert_awaited_once_with("/trending", {"region": "TW"})

    @pytest.mark.asyncio
    async def test_related_limited(self, resolver) -> None:
        resolver._fetch_json = AsyncMock(
            return_value={"relatedStreams": [stream_item(f"r{i}") for i in range(12)]}
        )

        related = await resolver.related("abc")

        assert len(related) == 10
        resolver._fetch_json.assert_awaited_once_with("/streams/abc", None)

    @pytest.mark.asyncio
    async def test_details(self, resolver) -> None:
        resolver._fetch_json = AsyncMock(return_value={
            "title": "Song",
            "uploader": "Band",
            "thumbnailUrl": "https://img.example/x.jpg",
            "duration": 245,
            "views": "1200",
            "uploadDate": "2024-01-01",
        })

        details = await resolver.details("abc")

        assert isinstance(details, SongDetails)
        assert details.id == "abc"
        assert details.artist == "Band"
        assert details.views == 1200
        assert details.description == ""

    @pytest.mark.asyncio
    async def test_suggestions_swallow_errors(self, resolver) -> None:
        """建議失敗時返回空列表"""
        resolver._fetch_json = AsyncMock(side_effect=NetworkError("down"))
        assert await resolver.suggestions("lo") == []

    @pytest.mark.asyncio
    async def test_suggestions_filters_non_strings(self, resolver) -> None:
        resolver._fetch_json = AsyncMock(return_value=["lofi", 3, "lofi beats"])
        assert await resolver.suggestions("lo") == ["lofi", "lofi beats"]


class TestStreamUrl:
    """串流 URL 解析"""

    @pytest.mark.asyncio
    async def test_quality_and_cache_key(self, resolver, cache) -> None:
        resolver._fetch_json = AsyncMock(return_value={"audioStreams": AUDIO_STREAMS})

        high = await resolver.stream_url("abc", StreamQuality.HIGH)
        low = await resolver.stream_url("abc", StreamQuality.LOW)
        high_again = await resolver.stream_url("abc", "high")

        assert high == high_again == "https://cdn.example/256"
        assert low == "https://cdn.example/64"
        assert resolver._fetch_json.await_count == 2
        assert cache.get("stream_abc_high") == "https://cdn.example/256"

    @pytest.mark.asyncio
    async def test_no_audio_stream(self, resolver) -> None:
        resolver._fetch_json = AsyncMock(return_value={"audioStreams": []})

        with pytest.raises(NoAudioStreamError):
            await resolver.stream_url("abc")

        assert resolver._fetch_json.await_count == 1

    @pytest.mark.asyncio
    async def test_close_without_session(self, resolver) -> None:
        await resolver.close()
