"""
FFplay 執行檔管理器

優先順序：
1. 設定檔指定的路徑（FFPLAY_PATH）
2. 系統 PATH 中的 ffplay
3. 本地快取的 ffplay（之前下載過的）
4. 自動下載（從 GitHub BtbN/FFmpeg-Builds，壓縮檔內含 ffplay）
"""

import asyncio
import os
import platform
import shutil
import tarfile
import zipfile
from pathlib import Path
from typing import Optional

import aiohttp
from loguru import logger

from ..constants import FFPLAY_BINARY, FFPLAY_DOWNLOAD_ATTEMPTS, FFPLAY_DOWNLOAD_TIMEOUT


class FFmpegManager:
    """
    FFplay 管理器

    使用方式：
        manager = FFmpegManager()
        path = await manager.ensure_ffplay()
        # path 會是系統 PATH 中的 ffplay 或快取目錄中的絕對路徑
    """

    # GitHub BtbN/FFmpeg-Builds 下載 URL（穩定來源）
    DOWNLOAD_URLS = {
        "Windows": "https://github.com/BtbN/FFmpeg-Builds/releases/download/latest/ffmpeg-master-latest-win64-gpl.zip",
        "Linux": "https://github.com/BtbN/FFmpeg-Builds/releases/download/latest/ffmpeg-master-latest-linux64-gpl.tar.xz",
    }

    def __init__(self, cache_dir: str = None, binary: str = FFPLAY_BINARY):
        """
        初始化管理器

        Args:
            cache_dir: 快取目錄，預設為模組目錄下的 bin
            binary: 要尋找的執行檔名稱（不含副檔名）
        """
        self.cache_dir = Path(cache_dir) if cache_dir else Path(__file__).parent / "bin"
        self.binary = binary
        self._path: Optional[str] = None

    @property
    def executable_name(self) -> str:
        return f"{self.binary}.exe" if platform.system() == "Windows" else self.binary

    @property
    def path(self) -> Optional[str]:
        """已確認可用的路徑"""
        return self._path

    async def ensure_ffplay(self, configured: Optional[str] = None) -> Optional[str]:
        """
        確保 ffplay 可用，返回可執行路徑

        Args:
            configured: 設定檔指定的路徑（有效時直接使用）

        Returns:
            執行路徑，失敗返回 None
        """
        for source, candidate in (
            ("設定檔", configured),
            ("系統", shutil.which(self.binary)),
            ("快取", str(self.cache_dir / self.executable_name)),
        ):
            if candidate and await self._verify(candidate):
                logger.info(f"使用{source} {self.binary}: {candidate}")
                self._path = candidate
                return candidate

        logger.info(f"系統未安裝 {self.binary}，開始下載...")
        downloaded = await self._download()
        if downloaded:
            logger.info(f"{self.binary} 下載完成: {downloaded}")
            self._path = str(downloaded)
            return self._path

        logger.error(f"無法取得 {self.binary}")
        return None

    async def _verify(self, candidate: str) -> bool:
        """執行 `<binary> -version` 確認可用"""
        if not Path(candidate).exists() and shutil.which(candidate) is None:
            return False
        try:
            proc = await asyncio.create_subprocess_exec(
                candidate, "-version",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=10)
        except (OSError, asyncio.TimeoutError) as e:
            logger.debug(f"驗證 {candidate} 失敗: {e}")
            return False
        return proc.returncode == 0 and b"version" in stdout

    async def _download(self) -> Optional[Path]:
        """從 GitHub 下載並解壓出執行檔"""
        system = platform.system()
        if system not in self.DOWNLOAD_URLS:
            logger.error(f"不支援的作業系統: {system}")
            return None

        url = self.DOWNLOAD_URLS[system]
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        archive_path = self.cache_dir / ("ffmpeg.zip" if system == "Windows" else "ffmpeg.tar.xz")

        # 下載（帶重試）
        for attempt in range(1, FFPLAY_DOWNLOAD_ATTEMPTS + 1):
            try:
                await self._download_file(url, archive_path)
                break
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                logger.warning(f"下載失敗 (嘗試 {attempt}/{FFPLAY_DOWNLOAD_ATTEMPTS}): {e}")
                if attempt == FFPLAY_DOWNLOAD_ATTEMPTS:
                    return None
                await asyncio.sleep(attempt * 2)

        try:
            return await asyncio.to_thread(self._extract, archive_path, system)
        except (OSError, tarfile.TarError, zipfile.BadZipFile) as e:
            logger.error(f"解壓失敗: {e}")
            return None
        finally:
            if archive_path.exists():
                archive_path.unlink()

    async def _download_file(self, url: str, dest: Path) -> None:
        """非同步下載檔案"""
        logger.info("正在從 GitHub 下載 FFmpeg 套件（約 80-100MB，請稍候）...")

        timeout = aiohttp.ClientTimeout(total=FFPLAY_DOWNLOAD_TIMEOUT)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url) as resp:
                resp.raise_for_status()

                total = int(resp.headers.get("Content-Length", 0))
                downloaded = 0
                last_logged_percent = 0

                with open(dest, "wb") as f:
                    async for chunk in resp.content.iter_chunked(64 * 1024):
                        f.write(chunk)
                        downloaded += len(chunk)

                        # 只在 25%, 50%, 75% 輸出進度
                        if total:
                            percent = int(downloaded / total * 100)
                            if percent >= last_logged_percent + 25:
                                last_logged_percent = (percent // 25) * 25
                                logger.info(f"下載進度: {last_logged_percent}%")

                logger.info(f"下載完成: {downloaded / 1024 / 1024:.1f} MB")

    def _extract(self, archive: Path, system: str) -> Optional[Path]:
        """從壓縮檔取出執行檔（在執行緒中執行，避免阻塞事件循環）"""
        extract_dir = self.cache_dir / "extract_temp"
        extract_dir.mkdir(exist_ok=True)

        try:
            if system == "Windows":
                with zipfile.ZipFile(archive, "r") as zf:
                    zf.extractall(extract_dir)
            else:
                with tarfile.open(archive, "r:xz") as tf:
                    tf.extractall(extract_dir)

            name = self.executable_name
            for root, _dirs, files in os.walk(extract_dir):
                if name in files:
                    dest = self.cache_dir / name
                    shutil.move(str(Path(root) / name), str(dest))
                    if system != "Windows":
                        os.chmod(dest, 0o755)
                    return dest

            logger.error(f"在壓縮檔中找不到 {name}")
            return None
        finally:
            shutil.rmtree(extract_dir, ignore_errors=True)


_manager: Optional[FFmpegManager] = None


async def get_ffplay_path(configured: Optional[str] = None, cache_dir: str = None) -> Optional[str]:
    """
    便利函數：取得 ffplay 路徑

    使用方式：
        ffplay_path = await get_ffplay_path(config.ffplay_path)
    """
    global _manager

    if _manager is None:
        _manager = FFmpegManager(cache_dir=cache_dir)

    return await _manager.ensure_ffplay(configured)
