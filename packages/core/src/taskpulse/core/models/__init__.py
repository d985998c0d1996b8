"""taskpulse Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import EventKind
from .event import TaskEvent, utc_now
from .task import (
    ZERO,
    ChannelStats,
    CollectorStats,
    TaskReport,
    TaskStats,
    clamped_interval,
)

__all__ = [
    # 枚举
    "EventKind",
    # Event
    "TaskEvent",
    "utc_now",
    # Task
    "TaskStats",
    "TaskReport",
    "clamped_interval",
    "ZERO",
    # 计数器
    "CollectorStats",
    "ChannelStats",
]
