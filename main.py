from loguru import logger

import asyncio
import sys
from dotenv import load_dotenv

from module.stream_player import (
    FFplayOutput,
    JsonStore,
    Library,
    PlaybackSession,
    PositionStore,
    ResponseCache,
    SessionStatus,
    StreamResolver,
    MusicError,
    PlayerConfig,
    get_ffplay_path,
    load_config,
)

version = "v1.0"

# ─────────────────────────────────────────────────────────
#  通知回調（終端機版本）
# ─────────────────────────────────────────────────────────

async def print_notice(message: str):
    print(f"🔔 {message}")

# ─────────────────────────────────────────────────────────
#  播放流程
# ─────────────────────────────────────────────────────────

async def run(config: PlayerConfig, query: str = None):
    """
    建立播放 session 並開始播放

    有指定搜尋字串時播放搜尋結果，否則恢復上次播放的位置
    """
    store = JsonStore(config.data_path, quota=config.storage_quota)
    library = Library(store)
    library.ensure_defaults()

    cache = ResponseCache(library)
    resolver = StreamResolver(cache, base_url=config.api_base_url)

    ffplay_path = await get_ffplay_path(config.ffplay_path)
    if not ffplay_path:
        logger.critical("❌ 找不到 ffplay，請安裝 FFmpeg 或設定 FFPLAY_PATH")
        await resolver.close()
        return

    session = PlaybackSession(
        resolver=resolver,
        output=FFplayOutput(ffplay_path),
        library=library,
        position_store=PositionStore(library),
        on_notice=print_notice,
    )

    try:
        if query:
            results = await resolver.search(query)
            if not results:
                logger.warning(f"[播放] 找不到符合的歌曲：{query}")
                return
            session.set_queue(results, start_index=0)
            await session.play(results[0], add_to_queue=False)
        elif not await session.resume_last_played():
            logger.info(f"[播放] 沒有上次播放的紀錄，改為播放熱門歌曲（{config.region}）")
            results = await resolver.trending(config.region)
            if not results:
                return
            session.set_queue(results, start_index=0)
            await session.play(results[0], add_to_queue=False)

        # 等到整個佇列播完
        while session.current_song is not None and session.status != SessionStatus.IDLE:
            await asyncio.sleep(1)
    except MusicError as e:
        logger.error(f"[播放] {e.message}")
    finally:
        await session.destroy()
        await resolver.close()

# ─────────────────────────────────────────────────────────
#  Loguru 記錄器設定
# ─────────────────────────────────────────────────────────

def set_logger(debug_mode: bool = False):
    """設定 Loguru 的輸出行為（終端機 & 檔案）"""
    logger.remove()

    # 終端輸出
    logger.add(sys.stdout, level="DEBUG" if debug_mode else "INFO", colorize=True)

    # 檔案輸出（每 7 天輪替，保留 30 天，自動壓縮）
    logger.add(
        "./logs/system.log",
        rotation="7 days",
        retention="30 days",
        encoding="UTF-8",
        compression="zip",
        level="INFO",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}"
    )

# ─────────────────────────────────────────────────────────
#  程式入口點
# ─────────────────────────────────────────────────────────

if __name__ == '__main__':
    load_dotenv()
    config = load_config()
    set_logger(config.debug)
    logger.info(f"[初始化] Stream Player {version}")

    query = " ".join(sys.argv[1:]) or None
    try:
        asyncio.run(run(config, query))
    except KeyboardInterrupt:
        logger.info("[結束] 已停止播放")
