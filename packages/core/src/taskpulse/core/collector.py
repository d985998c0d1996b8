"""Collector -- 任务统计聚合器

单消费者：独占 task_id -> TaskStats 映射表，不需要加锁。
每个 tick：
1. 非阻塞排空事件通道，按接收顺序逐条应用状态迁移规则
2. 对每个任务生成一条报告并交给所有 sink
3. 配置了保留时长时，淘汰 CLOSE 超过保留时长的任务
4. 若通道已关闭且已排空，退出主循环

事件级错误（未知任务、未匹配的 EXIT、时钟回拨）只记录日志和计数，不会终止主循环。
"""

import asyncio
from collections.abc import Callable, Hashable, Mapping, Sequence
from datetime import datetime, timedelta
from types import MappingProxyType

import structlog

from .channel import EventReceiver
from .config import CollectorConfig
from .exceptions import ChannelClosedError, ChannelEmptyError
from .models.enums import EventKind
from .models.event import TaskEvent, utc_now
from .models.task import CollectorStats, TaskReport, TaskStats, clamped_interval
from .sinks import LogReportSink, ReportSink

log = structlog.get_logger()


class Collector:
    """按固定周期排空事件、更新统计并输出报告"""

    def __init__(
        self,
        events: EventReceiver,
        config: CollectorConfig | None = None,
        sinks: Sequence[ReportSink] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Args:
            events: 事件通道接收端
            config: Collector 配置，None 时使用默认值
            sinks: 报告输出目标，None 时使用 LogReportSink
            clock: 淘汰判断使用的时钟
        """
        self._events = events
        self._config = config or CollectorConfig()
        self._sinks: list[ReportSink] = list(sinks) if sinks is not None else [LogReportSink()]
        self._clock = clock
        self._tasks: dict[Hashable, TaskStats] = {}
        self._stats = CollectorStats()

    @property
    def config(self) -> CollectorConfig:
        return self._config

    @property
    def tasks(self) -> Mapping[Hashable, TaskStats]:
        """只读视图，映射表只允许 Collector 自身修改"""
        return MappingProxyType(self._tasks)

    @property
    def stats(self) -> CollectorStats:
        return self._stats.model_copy()

    async def run(self) -> None:
        """主循环：唯一的挂起点是等待下一个 tick

        首个 tick 立即执行，之后按固定频率触发；落后时不补发积压的 tick。
        """
        loop = asyncio.get_running_loop()
        interval = self._config.tick_interval_s
        next_tick = loop.time()

        try:
            while True:
                if self.tick():
                    log.debug("event_channel_closed_collector_terminating")
                    return

                next_tick += interval
                delay = next_tick - loop.time()
                if delay < 0:
                    next_tick = loop.time()
                    delay = 0
                await asyncio.sleep(delay)
        finally:
            self._events.close()

    def tick(self) -> bool:
        """执行一次 排空 -> 报告 -> 淘汰

        Returns:
            True 表示通道已关闭并排空，主循环应退出
        """
        closed = self.drain()
        reports = self.produce_report()
        for sink in self._sinks:
            sink.emit(reports)
        self.evict_closed()
        self._stats.ticks += 1
        return closed

    def drain(self) -> bool:
        """非阻塞排空通道

        Returns:
            True 表示所有发送端已关闭且积压已排空
        """
        while True:
            try:
                event = self._events.try_recv()
            except ChannelEmptyError:
                return False
            except ChannelClosedError:
                return True
            self.apply(event)

    def apply(self, event: TaskEvent) -> bool:
        """应用单个事件

        Returns:
            True 表示事件已应用，False 表示事件被跳过
        """
        if event.kind == EventKind.SPAWN:
            stats = self._tasks.get(event.task_id)
            if stats is None:
                stats = self._tasks[event.task_id] = TaskStats()
            stats.fields = event.fields
            stats.created_at = event.ts
            stats.active = True
            self._stats.events_applied += 1
            return True

        stats = self._tasks.get(event.task_id)
        if stats is None:
            # SPAWN 可能因通道满而被丢弃，属于预期内的数据缺失
            self._stats.unknown_task_events += 1
            log.warning("unknown_task_event", kind=event.kind, task_id=event.task_id)
            return False

        if event.kind == EventKind.ENTER:
            if stats.poll_depth == 0:
                stats.last_poll_started_at = event.ts
                if stats.first_poll_at is None:
                    stats.first_poll_at = event.ts
                stats.poll_count += 1
            stats.poll_depth += 1

        elif event.kind == EventKind.EXIT:
            if stats.poll_depth == 0:
                self._stats.unmatched_exits += 1
                log.warning("unmatched_task_exit", task_id=event.task_id)
                return False
            stats.poll_depth -= 1
            if stats.poll_depth == 0 and stats.last_poll_started_at is not None:
                busy, anomaly = clamped_interval(stats.last_poll_started_at, event.ts)
                if anomaly:
                    self._record_clock_anomaly(event, stats.last_poll_started_at)
                stats.busy_time += busy

        elif event.kind == EventKind.CLOSE:
            stats.active = False
            stats.closed_at = event.ts
            if stats.created_at is not None and event.ts < stats.created_at:
                self._record_clock_anomaly(event, stats.created_at)

        self._stats.events_applied += 1
        return True

    def produce_report(self) -> list[TaskReport]:
        """只读生成报告，不修改任何统计，同一状态下重复调用结果相同"""
        return [
            TaskReport.from_stats(task_id, stats)
            for task_id, stats in self._tasks.items()
        ]

    def evict_closed(self) -> int:
        """淘汰 CLOSE 时间早于保留窗口的任务

        Returns:
            本次淘汰的任务数
        """
        retention_s = self._config.closed_task_retention_s
        if retention_s is None:
            return 0

        retention = timedelta(seconds=retention_s)
        now = self._clock()
        expired = [
            task_id
            for task_id, stats in self._tasks.items()
            if not stats.active
            and stats.closed_at is not None
            and clamped_interval(stats.closed_at, now)[0] >= retention
        ]
        for task_id in expired:
            del self._tasks[task_id]

        if expired:
            self._stats.evicted_tasks += len(expired)
            log.debug("closed_tasks_evicted", count=len(expired), remaining=len(self._tasks))
        return len(expired)

    def _record_clock_anomaly(self, event: TaskEvent, reference: datetime) -> None:
        self._stats.clock_anomalies += 1
        log.warning(
            "clock_anomaly",
            kind=event.kind,
            task_id=event.task_id,
            event_ts=event.ts.isoformat(),
            reference_ts=reference.isoformat(),
        )
