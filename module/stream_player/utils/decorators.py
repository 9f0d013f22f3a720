"""
播放器裝飾器

- handle_errors: 統一記錄錯誤後重新拋出
- log_operation: 記錄操作的開始與結束
"""

from functools import wraps
from typing import Callable, TypeVar, ParamSpec
from loguru import logger

from .errors import MusicError

P = ParamSpec('P')
T = TypeVar('T')


def handle_errors(func: Callable[P, T]) -> Callable[P, T]:
    """
    裝飾器：統一處理錯誤並記錄

    MusicError 只記錄訊息，其他例外記錄完整 traceback，兩者都會重新拋出，
    由呼叫端決定如何回報給使用者。

    使用方式：
        @handle_errors
        async def stream_url(self, song_id):
            ...
    """
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except MusicError as e:
            logger.error(f"[{func.__name__}] 播放器錯誤: {e.message}")
            raise
        except Exception as e:
            logger.exception(f"[{func.__name__}] 未預期錯誤: {e}")
            raise

    return wrapper


def log_operation(operation_name: str = None):
    """
    裝飾器：記錄操作的開始和結束

    使用方式：
        @log_operation("下一首")
        async def play_next(self):
            ...
    """
    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        name = operation_name or func.__name__

        @wraps(func)
        async def wrapper(*args, **kwargs):
            logger.debug(f"開始: {name}")
            try:
                result = await func(*args, **kwargs)
                logger.debug(f"完成: {name} -> {result!r}")
                return result
            except Exception as e:
                logger.error(f"失敗: {name} - {e}")
                raise

        return wrapper
    return decorator
