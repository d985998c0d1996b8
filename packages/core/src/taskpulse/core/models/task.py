"""Task 统计模型

TaskStats 是事件流的物化视图，由 Collector 独占并就地修改。
TaskReport 是每个 tick 对外输出的只读快照。
"""

from collections.abc import Hashable
from datetime import datetime, timedelta

from pydantic import BaseModel, Field

ZERO = timedelta(0)


def clamped_interval(start: datetime, end: datetime) -> tuple[timedelta, bool]:
    """计算 end - start，负值截断为 0

    Returns:
        (interval, anomaly) -- anomaly=True 表示时钟回拨被截断
    """
    interval = end - start
    if interval < ZERO:
        return ZERO, True
    return interval, False


class TaskStats(BaseModel):
    """单个任务的运行统计

    不变量：
    - poll_depth >= 0
    - busy_time 单调不减
    - total_time 仅在 created_at 与 closed_at 同时存在时定义
    """

    fields: str = Field(default="", description="SPAWN 时捕获的元数据")
    active: bool = Field(default=False, description="SPAWN 后为 True，CLOSE 后为 False")
    poll_depth: int = Field(default=0, ge=0, description="未匹配的 ENTER 数量（支持嵌套）")
    poll_count: int = Field(default=0, ge=0, description="空闲 -> 运行 的次数")
    created_at: datetime | None = Field(default=None, description="SPAWN 时间")
    first_poll_at: datetime | None = Field(default=None, description="首次运行开始时间")
    last_poll_started_at: datetime | None = Field(
        default=None,
        description="最近一次从空闲开始运行的时间",
    )
    busy_time: timedelta = Field(default=ZERO, description="累计运行时长")
    closed_at: datetime | None = Field(default=None, description="CLOSE 时间")

    @property
    def total_time(self) -> timedelta | None:
        """closed_at - created_at，任一端缺失时为 None"""
        if self.created_at is None or self.closed_at is None:
            return None
        interval, _ = clamped_interval(self.created_at, self.closed_at)
        return interval


class TaskReport(BaseModel):
    """单个任务在某个 tick 的报告记录"""

    task_id: Hashable = Field(description="任务标识")
    active: bool = Field(description="是否仍在运行")
    total_time: timedelta | None = Field(default=None, description="总生命周期")
    busy_time: timedelta = Field(default=ZERO, description="累计运行时长")
    poll_count: int = Field(default=0, description="运行次数")
    fields: str = Field(default="", description="SPAWN 元数据")

    @classmethod
    def from_stats(cls, task_id: Hashable, stats: TaskStats) -> "TaskReport":
        return cls(
            task_id=task_id,
            active=stats.active,
            total_time=None if stats.active else stats.total_time,
            busy_time=stats.busy_time,
            poll_count=stats.poll_count,
            fields=stats.fields,
        )


class CollectorStats(BaseModel):
    """Collector 自身的计数器（异常事件统计）"""

    ticks: int = 0
    events_applied: int = 0
    unknown_task_events: int = 0
    unmatched_exits: int = 0
    clock_anomalies: int = 0
    evicted_tasks: int = 0


class ChannelStats(BaseModel):
    """事件通道的计数器"""

    sent: int = 0
    dropped_full: int = 0
    dropped_closed: int = 0
