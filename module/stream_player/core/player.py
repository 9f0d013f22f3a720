"""
播放 session 核心

整合所有播放相關功能：
- 播放控制（播放、暫停、停止、上/下一首、跳轉、音量）
- 狀態機（idle / resolving / playing / paused / ended / error）
- 佇列管理（使用 PlayQueue）
- 串流解析（使用 StreamResolver）
- 播放位置與播放紀錄的持久化

狀態轉換：
    idle ──play()──▶ resolving ──成功──▶ playing ◀──toggle──▶ paused
                        │                  │
                        └──失敗──▶ error ──▶ 回到先前的穩定狀態
    playing/paused ──自然結束──▶ ended ──▶ 重播 / 下一首（resolving）/ idle
"""

import math
import random
from typing import Awaitable, Callable, Iterable, Optional, TYPE_CHECKING

from loguru import logger

from ..constants import VOLUME_MAX, VOLUME_MIN
from ..output.base import AudioOutput, OutputEvent
from ..resolver.parsing import StreamQuality
from ..resolver.tracker import RequestTracker
from ..utils.decorators import log_operation
from ..utils.errors import MusicError, ResourceError
from .position import PositionStore
from .queue import PlayQueue, Song
from .state import PlayerSnapshot, RepeatMode, SessionStatus

if TYPE_CHECKING:
    from ..resolver.client import StreamResolver
    from ..storage.library import Library


def clamp_volume(value, default: int = VOLUME_MAX) -> int:
    """把任意輸入限制在 0-100 的整數（無法解析時用 default，超出範圍依正負號取上下限）"""
    try:
        number = float(value)
    except OverflowError:
        # 超過 float 範圍的整數
        number = math.inf if value > 0 else -math.inf
    except (TypeError, ValueError):
        return default

    if math.isnan(number):
        return default
    if math.isinf(number):
        return VOLUME_MAX if number > 0 else VOLUME_MIN
    return max(VOLUME_MIN, min(VOLUME_MAX, int(round(number))))


class PlaybackSession:
    """
    播放 session 核心類別

    整個程序只建立一個，解析器、音訊輸出與資料庫都由外部注入。

    使用方式：
        session = PlaybackSession(
            resolver=resolver,
            output=FFplayOutput(ffplay_path),
            library=library,
            on_notice=show_toast,
        )

        session.set_queue(results, start_index=2)
        await session.play(results[2], add_to_queue=False)
        await session.toggle_play()
    """

    def __init__(
        self,
        resolver: "StreamResolver",
        output: AudioOutput,
        library: "Library",
        position_store: Optional[PositionStore] = None,
        rng: Optional[random.Random] = None,
        on_notice: Optional[Callable[[str], Awaitable[None]]] = None,
    ):
        """
        初始化播放 session

        Args:
            resolver: 串流解析器
            output: 音訊輸出（session 會成為它唯一的事件 listener）
            library: 使用者資料庫（設定、播放紀錄）
            position_store: 播放位置紀錄（預設以 library 建立）
            rng: 隨機播放用的亂數產生器
            on_notice: 需要顯示給使用者的訊息回調
        """
        self.resolver = resolver
        self.output = output
        self.library = library
        self.positions = position_store or PositionStore(library)
        self.queue = PlayQueue(rng=rng)

        self.status = SessionStatus.IDLE
        self.current_song: Optional[Song] = None
        self.last_error: Optional[str] = None

        self._on_notice = on_notice
        self._play_tracker = RequestTracker()

        settings = library.get_settings()
        self.volume = clamp_volume(settings.get("volume"))
        self.shuffle = bool(settings.get("shuffle"))
        self.repeat = RepeatMode.parse(settings.get("repeat"))

        output.set_listener(self.handle_output_event)

        logger.debug(
            f"PlaybackSession 初始化: volume={self.volume}, "
            f"shuffle={self.shuffle}, repeat={self.repeat.value}"
        )

    # === 屬性 ===

    @property
    def is_playing(self) -> bool:
        return self.status == SessionStatus.PLAYING

    @property
    def quality(self) -> StreamQuality:
        return StreamQuality.parse(self.library.get_setting("quality"))

    @property
    def position(self) -> float:
        """目前播放位置（秒）"""
        if self.current_song is None:
            return 0.0
        return self.output.position

    @property
    def duration(self) -> float:
        """目前歌曲長度（秒），輸出尚未回報時使用歌曲資訊，都沒有則為 0"""
        if self.current_song is None:
            return 0.0
        return self.output.duration or float(self.current_song.duration)

    # === 播放控制 ===

    async def play(self, song: Song, add_to_queue: bool = True) -> bool:
        """
        播放歌曲

        播放中也可以呼叫：會先完全停止目前的來源（暫停 + 倒回 0 秒）再切換。
        若解析完成前又呼叫了新的 play()，這次呼叫會直接放棄。

        Args:
            song: 要播放的歌曲
            add_to_queue: 是否加入佇列（已存在時只移動游標）

        Returns:
            是否成功開始播放
        """
        if not isinstance(song, Song):
            await self._notify("無效的歌曲")
            return False

        token = self._play_tracker.begin()
        previous_status = self.status
        self.status = SessionStatus.RESOLVING
        logger.debug(f"解析串流中: {song.title}")

        try:
            url = await self.resolver.stream_url(song.id, self.quality)
        except MusicError as e:
            if not self._play_tracker.is_current(token):
                return False
            self.status = SessionStatus.ERROR
            self.last_error = e.user_message
            await self._notify(f"播放失敗: {e.user_message}")
            self.status = self._stable_status(previous_status)
            return False

        if not self._play_tracker.is_current(token):
            logger.debug(f"播放請求已被取代，略過: {song.title}")
            return False

        # 換歌前記下舊歌的位置，並完全停止舊來源，避免聲音重疊
        if self.current_song is not None and self.current_song != song:
            self.positions.flush(self.current_song, self.output.position)
        await self._stop_output()

        self.current_song = song
        self.last_error = None
        if add_to_queue:
            self.queue.add(song)

        try:
            await self.output.attach(url)
            await self.output.set_volume(self.volume)
            await self.output.play()
        except ResourceError as e:
            if self._play_tracker.is_current(token):
                await self._handle_resource_error(e)
            return False

        if not self._play_tracker.is_current(token):
            return False

        self.status = SessionStatus.PLAYING
        self.library.add_to_history(song)
        logger.info(f"開始播放: {song.title} - {song.artist}")
        return True

    async def toggle_play(self) -> bool:
        """
        切換播放/暫停

        Returns:
            切換後是否為播放中
        """
        if self.current_song is None:
            await self._notify("尚未選擇歌曲")
            return False

        if self.status == SessionStatus.RESOLVING:
            return False

        if self.status == SessionStatus.PLAYING:
            await self.output.pause()
            self.status = SessionStatus.PAUSED
            logger.debug("已暫停")
            return False

        try:
            await self.output.play()
        except ResourceError as e:
            await self._handle_resource_error(e)
            return False

        self.status = SessionStatus.PLAYING
        logger.debug("已恢復")
        return True

    async def stop(self) -> None:
        """停止播放（保留目前歌曲，倒回 0 秒）"""
        self._play_tracker.begin()
        await self._stop_output()
        self.status = SessionStatus.IDLE
        logger.debug("已停止")

    async def seek(self, delta: float) -> None:
        """
        相對跳轉

        結果限制在 [0, duration]；長度未知時只限制下限
        """
        if self.current_song is None:
            return

        target = max(0.0, self.output.position + delta)
        duration = self.duration
        if duration > 0:
            target = min(target, duration)

        await self.output.seek(target)

    async def seek_to_percent(self, percent: float) -> None:
        """跳到指定百分比（長度未知時不動作）"""
        if self.current_song is None:
            return

        duration = self.duration
        if duration <= 0:
            return

        percent = max(0.0, min(100.0, float(percent)))
        await self.output.seek(percent / 100 * duration)

    async def adjust_volume(self, delta: int) -> int:
        """調整音量"""
        volume = await self.set_volume(self.volume + delta)
        await self._notify(f"音量: {volume}%")
        return volume

    async def set_volume(self, value: int) -> int:
        """
        設定音量（限制在 0-100，立即寫入設定）

        Returns:
            實際套用的音量
        """
        self.volume = clamp_volume(value, default=self.volume)
        self.library.update_settings(volume=self.volume)
        await self.output.set_volume(self.volume)
        return self.volume

    async def toggle_shuffle(self) -> bool:
        """切換隨機播放（下次 set_queue 時生效）"""
        self.shuffle = not self.shuffle
        self.library.update_settings(shuffle=self.shuffle)
        await self._notify(f"隨機播放: {'開啟' if self.shuffle else '關閉'}")
        return self.shuffle

    async def toggle_repeat(self) -> RepeatMode:
        """切換重複模式：off → all → one → off"""
        self.repeat = self.repeat.cycle()
        self.library.update_settings(repeat=self.repeat.value)
        await self._notify(f"重複模式: {self.repeat.label}")
        return self.repeat

    # === 佇列操作 ===

    def set_queue(self, songs: Iterable[Song], start_index: int = 0) -> Optional[Song]:
        """
        替換佇列（隨機播放開啟時，起始歌曲會排在第一首）

        Returns:
            游標所在的歌曲（不會自動開始播放）
        """
        self.queue.set_songs(songs, start_index, shuffle=self.shuffle)
        return self.queue.current_song

    def add_to_queue(self, song: Song) -> int:
        return self.queue.add(song)

    def remove_from_queue(self, index: int) -> Optional[Song]:
        return self.queue.remove_at(index)

    @log_operation("下一首")
    async def play_next(self) -> bool:
        """
        播放下一首

        Returns:
            是否成功切換
        """
        if self.queue.is_empty:
            return False

        song = self.queue.next(self.repeat)
        if song is None:
            await self._notify("已經是最後一首")
            return False

        return await self.play(song, add_to_queue=False)

    @log_operation("上一首")
    async def play_previous(self) -> bool:
        """
        播放上一首

        已播放超過 3 秒，或在第一首且沒有開啟全部重複時，改為從頭播放目前歌曲

        Returns:
            是否有動作
        """
        if self.queue.is_empty:
            return False

        song = self.queue.previous(self.repeat, self.output.position)
        if song is None:
            await self.output.seek(0)
            return True

        return await self.play(song, add_to_queue=False)

    # === 狀態查詢 ===

    def get_state(self) -> PlayerSnapshot:
        """取得播放器完整狀態"""
        return PlayerSnapshot(
            song=self.current_song,
            status=self.status,
            is_playing=self.is_playing,
            current_time=self.position,
            duration=self.duration,
            volume=self.volume,
            shuffle=self.shuffle,
            repeat=self.repeat,
            queue_length=self.queue.size,
            queue_index=self.queue.current_index,
            last_error=self.last_error,
        )

    # === 恢復 / 清理 ===

    @log_operation("恢復上次播放")
    async def resume_last_played(self) -> bool:
        """
        播放上次的歌曲並跳到上次的位置

        Returns:
            是否成功恢復
        """
        entry = self.positions.load()
        if entry is None:
            return False

        song, position = entry
        if not await self.play(song):
            return False

        if position > 0:
            await self.output.seek(position)
        return True

    async def destroy(self) -> None:
        """
        清理資源（程式結束時呼叫）

        解析器與資料庫由外部擁有，這裡不關閉
        """
        if self.current_song is not None:
            self.positions.flush(self.current_song, self.output.position)

        self._play_tracker.begin()
        await self._stop_output()
        await self.output.detach()
        self.output.set_listener(None)

        self.current_song = None
        self.queue.clear()
        self.status = SessionStatus.IDLE
        logger.info("PlaybackSession 已清理")

    # === 輸出事件 ===

    async def handle_output_event(self, event: OutputEvent, error: Optional[ResourceError] = None) -> None:
        """
        處理音訊輸出事件（由 AudioOutput 呼叫）
        """
        if event == OutputEvent.TIME_UPDATE:
            self.positions.record(self.current_song, self.output.position)

        elif event == OutputEvent.PLAYING:
            if self.current_song is not None and self.status != SessionStatus.RESOLVING:
                self.status = SessionStatus.PLAYING

        elif event == OutputEvent.PAUSED:
            if self.status == SessionStatus.PLAYING:
                self.status = SessionStatus.PAUSED

        elif event == OutputEvent.ENDED:
            await self._handle_song_end()

        elif event == OutputEvent.ERROR:
            await self._handle_resource_error(error or ResourceError("Unknown playback error"))

    # === 內部方法 ===

    async def _stop_output(self) -> None:
        """完全停止輸出：先暫停再倒回 0 秒（順序不可顛倒）"""
        await self.output.pause()
        await self.output.seek(0)

    def _stable_status(self, previous: SessionStatus) -> SessionStatus:
        """解析失敗後要回到的狀態（舊歌若還在播就繼續）"""
        if self.current_song is not None and not self.output.is_paused:
            return SessionStatus.PLAYING
        if self.current_song is not None and previous == SessionStatus.PAUSED:
            return SessionStatus.PAUSED
        return SessionStatus.IDLE

    async def _handle_song_end(self) -> None:
        """
        處理歌曲自然結束

        正在解析新歌時忽略（新的 play() 會接手）
        """
        if self.current_song is None or self.status == SessionStatus.RESOLVING:
            return

        self.status = SessionStatus.ENDED
        logger.debug(f"歌曲播放結束: {self.current_song.title}")

        if self.repeat == RepeatMode.ONE:
            await self.output.seek(0)
            try:
                await self.output.play()
            except ResourceError as e:
                await self._handle_resource_error(e)
                return
            self.status = SessionStatus.PLAYING
            return

        song = self.queue.next(self.repeat)
        if song is None:
            await self._stop_output()
            self.status = SessionStatus.IDLE
            logger.info("播放清單已結束")
            await self._notify("播放清單已結束")
            return

        await self.play(song, add_to_queue=False)

    async def _handle_resource_error(self, error: ResourceError) -> None:
        """
        音訊輸出錯誤：停止輸出、通知使用者，歌曲保留為最後已知的歌曲
        """
        logger.error(f"音訊輸出錯誤 ({error.code}): {error.message}")
        self.status = SessionStatus.ERROR
        self.last_error = error.user_message
        await self._stop_output()
        await self._notify(f"播放錯誤: {error.user_message}")
        self.status = SessionStatus.IDLE

    async def _notify(self, message: str) -> None:
        """
        安全執行通知回調
        """
        logger.info(f"[通知] {message}")
        if self._on_notice is None:
            return
        try:
            await self._on_notice(message)
        except Exception as e:
            logger.error(f"on_notice 回調執行失敗: {e}")
