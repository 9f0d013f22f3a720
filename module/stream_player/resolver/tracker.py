"""
請求世代追蹤

每次發出新請求前呼叫 begin() 取得 token，回應抵達時用 is_current(token)
判斷是否已經有更新的請求。沒有取消機制：舊請求照常完成，只是結果被丟棄
（最後一個請求勝出）。begin / is_current 都是同步的，在單執行緒事件循環中
不需要鎖。
"""

from typing import NewType

RequestToken = NewType("RequestToken", int)


class RequestTracker:
    """單調遞增的請求世代計數器"""

    def __init__(self):
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def begin(self) -> RequestToken:
        """開始新請求，之前拿到的 token 全部失效"""
        self._generation += 1
        return RequestToken(self._generation)

    def is_current(self, token: RequestToken) -> bool:
        """token 是否仍是最新的請求"""
        return token == self._generation
