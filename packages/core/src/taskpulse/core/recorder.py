"""MetricsRecorder -- 生命周期入口

组装 事件通道 + 事件源 + Collector：
- start(): 启动 Collector 主循环，返回 asyncio.Task 句柄
- run(): 启动（如尚未启动）并等待主循环结束；主循环故障以 CollectorError 抛出
- close(): 关闭 recorder 自身持有的发送端，这是唯一的停止信号

埋点侧只拿到 source；Collector 故障不会传播到被观测的任务中。
"""

import asyncio
from collections.abc import Callable, Sequence
from datetime import datetime

import structlog

from .channel import EventSender, channel
from .collector import Collector
from .config import CollectorConfig
from .exceptions import CollectorError
from .models.event import utc_now
from .models.task import ChannelStats, CollectorStats
from .sinks import ReportSink
from .source import TaskEventSource

log = structlog.get_logger()


class MetricsRecorder:
    """任务指标记录器"""

    def __init__(
        self,
        config: CollectorConfig | None = None,
        sinks: Sequence[ReportSink] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Args:
            config: Collector 配置，None 时使用默认值
            sinks: 报告输出目标，None 时使用 LogReportSink
            clock: 事件时间戳与淘汰判断共用的时钟
        """
        self._config = config or CollectorConfig()
        sender, receiver = channel(self._config.queue_capacity)
        self._sender = sender
        self._receiver = receiver
        self._source = TaskEventSource(sender, clock=clock)
        self._collector = Collector(receiver, config=self._config, sinks=sinks, clock=clock)
        self._handle: asyncio.Task | None = None

    @property
    def config(self) -> CollectorConfig:
        return self._config

    @property
    def source(self) -> TaskEventSource:
        return self._source

    @property
    def collector(self) -> Collector:
        return self._collector

    @property
    def handle(self) -> asyncio.Task | None:
        return self._handle

    @property
    def running(self) -> bool:
        return self._handle is not None and not self._handle.done()

    @property
    def channel_stats(self) -> ChannelStats:
        return self._receiver.stats

    @property
    def collector_stats(self) -> CollectorStats:
        return self._collector.stats

    def sender(self) -> EventSender:
        """为额外的生产者（例如其他线程）clone 一个发送端，用完需 close()"""
        return self._sender.clone()

    def start(self) -> asyncio.Task:
        """在当前事件循环中启动 Collector 主循环（幂等）"""
        if self._handle is None:
            self._handle = asyncio.get_running_loop().create_task(
                self._run_collector(),
                name="taskpulse-collector",
            )
            log.info(
                "collector_started",
                queue_capacity=self._config.queue_capacity,
                tick_interval_s=self._config.tick_interval_s,
                closed_task_retention_s=self._config.closed_task_retention_s,
            )
        return self._handle

    async def run(self) -> None:
        """等待主循环结束

        Raises:
            CollectorError: 主循环内部故障
        """
        await self.start()

    def close(self) -> None:
        """关闭 recorder 持有的发送端；其余 clone 出去的发送端关闭后主循环排空退出"""
        self._sender.close()

    async def _run_collector(self) -> None:
        try:
            await self._collector.run()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.exception("collector_failed", error=str(e))
            raise CollectorError(e) from e
        log.info("collector_stopped", **self._collector.stats.model_dump())
