# FFmpeg module
from .manager import FFmpegManager, get_ffplay_path

__all__ = ["FFmpegManager", "get_ffplay_path"]
