"""共用測試工具：假時鐘、假音訊輸出、假解析器與記憶體中的資料庫"""

import asyncio
from typing import Dict, List, Optional

import pytest

from module.stream_player.core.queue import Song
from module.stream_player.output.base import AudioOutput, OutputEvent
from module.stream_player.resolver.parsing import StreamQuality
from module.stream_player.storage import JsonStore, Library, ResponseCache
from module.stream_player.utils.errors import MusicError, ResourceError


class FakeClock:
    """手動推進的時鐘（秒）"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeOutput(AudioOutput):
    """記錄所有呼叫的音訊輸出"""

    def __init__(self):
        super().__init__()
        self.url: Optional[str] = None
        self.volume = 100
        self.calls: List = []
        self.fail_play: Optional[ResourceError] = None
        self._position = 0.0
        self._duration: Optional[float] = None
        self._paused = True

    @property
    def position(self) -> float:
        return self._position

    @property
    def duration(self) -> Optional[float]:
        return self._duration

    @property
    def is_paused(self) -> bool:
        return self._paused

    async def attach(self, url: str) -> None:
        self.calls.append(("attach", url))
        self.url = url
        self._position = 0.0
        self._paused = True

    async def play(self) -> None:
        self.calls.append("play")
        if self.fail_play is not None:
            raise self.fail_play
        self._paused = False
        await self._emit(OutputEvent.PLAYING)

    async def pause(self) -> None:
        self.calls.append("pause")
        if self._paused:
            return
        self._paused = True
        await self._emit(OutputEvent.PAUSED)

    async def seek(self, position: float) -> None:
        self.calls.append(("seek", position))
        self._position = max(0.0, position)

    async def set_volume(self, volume: int) -> None:
        self.volume = volume

    async def detach(self) -> None:
        self.calls.append("detach")
        self.url = None
        self._paused = True

    # 測試用：模擬來源事件
    async def finish(self) -> None:
        self._paused = True
        await self._emit(OutputEvent.ENDED)

    async def fail(self, error: ResourceError) -> None:
        self._paused = True
        await self._emit(OutputEvent.ERROR, error)


class FakeResolver:
    """只實作 stream_url 的解析器，可指定失敗或卡住的歌曲"""

    def __init__(self):
        self.failures: Dict[str, MusicError] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.calls: List = []

    async def stream_url(self, song_id: str, quality: StreamQuality = StreamQuality.MEDIUM) -> str:
        self.calls.append((song_id, quality))
        gate = self.gates.get(song_id)
        if gate is not None:
            await gate.wait()
        if song_id in self.failures:
            raise self.failures[song_id]
        return f"https://audio.example/{song_id}?q={quality.value}"


def make_song(song_id: str, duration: int = 200) -> Song:
    return Song(id=song_id, title=f"Song {song_id}", artist=f"Artist {song_id}", duration=duration)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> JsonStore:
    return JsonStore(None)


@pytest.fixture
def library(store: JsonStore, clock: FakeClock) -> Library:
    library = Library(store, clock=clock)
    library.ensure_defaults()
    return library


@pytest.fixture
def cache(library: Library, clock: FakeClock) -> ResponseCache:
    return ResponseCache(library, clock=clock)


@pytest.fixture
def songs() -> List[Song]:
    return [make_song(song_id) for song_id in "abcdefghij"]
