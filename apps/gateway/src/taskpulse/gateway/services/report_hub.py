"""ReportHub -- 内存中报告广播器

作为 Collector 的 ReportSink：保存最近一个 tick 的快照，
并把每个 tick 的报告推送给所有订阅者（每个订阅者一个 asyncio.Queue）。
订阅者队列已满时丢弃该订阅者，不阻塞 Collector。
"""

import asyncio
from collections.abc import Hashable

from taskpulse.core.models import TaskReport


class ReportHub:
    """报告广播器 -- 基于 asyncio.Queue 的发布/订阅模式"""

    def __init__(self, queue_maxsize: int = 100) -> None:
        self._subscribers: set[asyncio.Queue] = set()
        self._queue_maxsize = queue_maxsize
        self._latest: list[TaskReport] = []
        self._ticks = 0

    @property
    def latest(self) -> list[TaskReport]:
        """最近一个 tick 的全部报告"""
        return self._latest

    @property
    def ticks(self) -> int:
        return self._ticks

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def find(self, task_id: str) -> TaskReport | None:
        """按字符串形式的 task_id 查找最近快照中的任务报告"""
        for report in self._latest:
            if _id_matches(report.task_id, task_id):
                return report
        return None

    async def subscribe(self) -> asyncio.Queue:
        """订阅报告流

        Returns:
            asyncio.Queue 实例，每个 tick 的报告列表会被推送到此队列
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        self._subscribers.add(queue)
        return queue

    async def unsubscribe(self, queue: asyncio.Queue) -> None:
        """取消订阅"""
        self._subscribers.discard(queue)

    def emit(self, reports: list[TaskReport]) -> None:
        """ReportSink 接口：保存快照并广播"""
        self._latest = reports
        self._ticks += 1

        dead_queues = []
        for queue in self._subscribers:
            try:
                queue.put_nowait(reports)
            except asyncio.QueueFull:
                dead_queues.append(queue)

        # 清理已满的队列
        for q in dead_queues:
            self._subscribers.discard(q)


def _id_matches(task_id: Hashable, raw: str) -> bool:
    return str(task_id) == raw
