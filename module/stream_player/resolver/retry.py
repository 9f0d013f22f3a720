"""
重試策略

所有網路請求共用同一個策略物件：
- 每次嘗試都有獨立的超時（asyncio.wait_for）
- 超時或 NetworkError 會重試，等待時間線性遞增（attempt × step）
- 最後一次仍失敗就把錯誤拋給呼叫端
- 等待只暫停這個請求，不阻塞事件循環
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from ..constants import REQUEST_BACKOFF_STEP, REQUEST_MAX_ATTEMPTS, REQUEST_TIMEOUT
from ..utils.errors import NetworkError, NetworkTimeout

T = TypeVar("T")


def linear_backoff(step: float = REQUEST_BACKOFF_STEP) -> Callable[[int], float]:
    """第 n 次失敗後等待 n * step 秒"""
    def backoff(attempt: int) -> float:
        return attempt * step
    return backoff


@dataclass(frozen=True)
class RetryPolicy:
    """
    重試策略

    使用方式：
        policy = RetryPolicy(max_attempts=3, timeout=15.0)
        data = await policy.run(lambda: fetch("/trending"), "/trending")
    """

    max_attempts: int = REQUEST_MAX_ATTEMPTS
    timeout: float = REQUEST_TIMEOUT
    backoff: Callable[[int], float] = field(default_factory=linear_backoff)
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    async def run(self, operation: Callable[[], Awaitable[T]], description: str = "request") -> T:
        """
        執行操作並依策略重試

        Args:
            operation: 每次嘗試都會呼叫一次，回傳新的 coroutine
            description: 記錄用的名稱

        Raises:
            NetworkTimeout: 最後一次嘗試超時
            NetworkError: 最後一次嘗試失敗
        """
        attempts = max(1, self.max_attempts)

        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.wait_for(operation(), timeout=self.timeout)
            except asyncio.TimeoutError:
                error = NetworkTimeout(description, self.timeout)
            except NetworkError as e:
                error = e

            if attempt == attempts:
                logger.error(f"{description} 失敗（已嘗試 {attempts} 次）: {error.message}")
                raise error

            delay = self.backoff(attempt)
            logger.warning(f"{description} 失敗 (嘗試 {attempt}/{attempts})，{delay:.1f}s 後重試: {error.message}")
            await self.sleep(delay)
