"""
FFplay 音訊輸出

使用 asyncio.create_subprocess_exec 執行 `ffplay -nodisp -autoexit`：
- 暫停 = 結束進程並記下位置；恢復 = 從記下的位置重新啟動
- 跳轉 = 以新位置重新啟動進程
- 進程自行以 0 結束（且不是我們要求的）= 自然播放完畢
- 進程以非 0 結束 = ResourceError

播放位置用時間戳計算而非累加，確保暫停/恢復後時間正確。
"""

import asyncio
import time
from typing import Callable, Optional, Set

from loguru import logger

from ..constants import FFPLAY_BINARY, TIME_UPDATE_INTERVAL, VOLUME_MAX, VOLUME_MIN
from ..utils.errors import ResourceError
from .base import AudioOutput, OutputEvent


class PlaybackClock:
    """
    精確追蹤播放位置

    使用方式：
        clock = PlaybackClock()
        clock.start(offset=30)   # 從 30 秒開始
        clock.position           # 例如：45.2
        clock.pause()            # 凍結位置
        clock.set(0)             # 跳到 0 秒
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._offset = 0.0
        self._start_time = 0.0
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def position(self) -> float:
        if not self._running:
            return self._offset
        return max(0.0, self._offset + self._clock() - self._start_time)

    def start(self, offset: float) -> None:
        self._offset = max(0.0, offset)
        self._start_time = self._clock()
        self._running = True

    def pause(self) -> None:
        if self._running:
            self._offset = self.position
            self._running = False

    def set(self, offset: float) -> None:
        self._offset = max(0.0, offset)
        if self._running:
            self._start_time = self._clock()

    def reset(self) -> None:
        self._offset = 0.0
        self._start_time = 0.0
        self._running = False


class FFplayOutput(AudioOutput):
    """
    以 ffplay 子進程實作的音訊輸出

    使用方式：
        output = FFplayOutput(ffplay_path="/usr/bin/ffplay")
        output.set_listener(session.handle_output_event)

        await output.attach(stream_url)
        await output.play()
    """

    # stderr 中出現這些字代表是網路問題而非解碼問題
    NETWORK_PATTERNS = ("connection", "http error", "timed out", "network", "i/o error")

    def __init__(
        self,
        ffplay_path: str = FFPLAY_BINARY,
        clock: Callable[[], float] = time.monotonic,
        tick_interval: float = TIME_UPDATE_INTERVAL,
    ):
        """
        初始化輸出

        Args:
            ffplay_path: ffplay 執行檔路徑
            clock: 單調時鐘（測試可注入）
            tick_interval: 播放中發送 TIME_UPDATE 的間隔（秒）
        """
        super().__init__()
        self.ffplay_path = ffplay_path
        self.tick_interval = tick_interval

        self._url: Optional[str] = None
        self._volume = VOLUME_MAX
        self._clock = PlaybackClock(clock)

        self._proc: Optional[asyncio.subprocess.Process] = None
        self._ticker: Optional[asyncio.Task] = None
        self._watchers: Set[asyncio.Task] = set()

        logger.debug(f"FFplayOutput 初始化: ffplay_path={ffplay_path}")

    # === 狀態 ===

    @property
    def position(self) -> float:
        return self._clock.position

    @property
    def duration(self) -> Optional[float]:
        # ffplay 不回報長度，由 session 使用歌曲資訊中的長度
        return None

    @property
    def is_paused(self) -> bool:
        return self._proc is None

    # === 控制 ===

    async def attach(self, url: str) -> None:
        await self._terminate()
        self._url = url
        self._clock.reset()
        logger.debug("已掛載新來源")

    async def play(self) -> None:
        if self._url is None:
            raise ResourceError("No source attached", code="aborted")
        if self._proc is not None:
            return

        await self._spawn(self._clock.position)
        await self._emit(OutputEvent.PLAYING)

    async def pause(self) -> None:
        if self._proc is None:
            return

        self._clock.pause()
        await self._terminate()
        logger.debug(f"已暫停於 {self._clock.position:.1f}s")
        await self._emit(OutputEvent.PAUSED)

    async def seek(self, position: float) -> None:
        position = max(0.0, position)
        if self._proc is None:
            self._clock.set(position)
            return

        await self._terminate()
        await self._spawn(position)
        logger.debug(f"已跳轉到 {position:.1f}s")

    async def set_volume(self, volume: int) -> None:
        # ffplay 只在啟動時讀取音量，下次啟動（恢復 / 跳轉 / 換歌）才會套用
        self._volume = max(VOLUME_MIN, min(VOLUME_MAX, int(volume)))

    async def detach(self) -> None:
        await self._terminate()
        self._url = None
        self._clock.reset()
        logger.debug("已卸載來源")

    # === 內部方法 ===

    async def _spawn(self, offset: float) -> None:
        args = [
            self.ffplay_path,
            "-nodisp",
            "-autoexit",
            "-loglevel", "error",
            "-volume", str(self._volume),
        ]
        if offset > 0:
            args += ["-ss", f"{offset:.3f}"]
        args.append(self._url)

        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            self._clock.set(offset)
            raise ResourceError(f"Cannot start ffplay: {e}", code="unsupported") from e

        self._proc = proc
        self._clock.start(offset)
        watcher = asyncio.create_task(self._watch(proc), name="ffplay_watch")
        self._watchers.add(watcher)
        watcher.add_done_callback(self._watchers.discard)
        self._ticker = asyncio.create_task(self._tick(), name="ffplay_tick")

    async def _terminate(self) -> None:
        """
        結束目前的進程

        先把 self._proc 清掉，_watch 看到進程已被替換就知道是手動停止
        """
        proc = self._proc
        self._proc = None
        self._cancel_ticker()

        if proc is None or proc.returncode is not None:
            return

        try:
            proc.terminate()
        except ProcessLookupError:
            return

        try:
            await asyncio.wait_for(proc.wait(), timeout=5)
        except asyncio.TimeoutError:
            logger.warning("ffplay 未在 5 秒內結束，強制終止")
            proc.kill()
            await proc.wait()

    def _cancel_ticker(self) -> None:
        if self._ticker is not None and not self._ticker.done():
            self._ticker.cancel()
        self._ticker = None

    async def _watch(self, proc: asyncio.subprocess.Process) -> None:
        """等待進程結束並判斷是自然結束還是錯誤"""
        _, stderr = await proc.communicate()

        # 手動停止（暫停 / 跳轉 / 換歌）
        if proc is not self._proc:
            return

        self._proc = None
        self._cancel_ticker()
        self._clock.pause()

        if proc.returncode == 0:
            logger.debug("ffplay 播放完畢")
            await self._emit(OutputEvent.ENDED)
            return

        message = stderr.decode(errors="replace").strip() or f"ffplay exited with code {proc.returncode}"
        lowered = message.lower()
        code = "network" if any(p in lowered for p in self.NETWORK_PATTERNS) else "decode"
        logger.error(f"ffplay 播放錯誤 ({code}): {message[:500]}")
        await self._emit(OutputEvent.ERROR, ResourceError(message, code=code))

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            await self._emit(OutputEvent.TIME_UPDATE)
