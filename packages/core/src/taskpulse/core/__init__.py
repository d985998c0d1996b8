"""taskpulse Core -- 任务运行时指标聚合

packages/core 的公开接口导出。
"""

# 数据模型
from .models import (
    ChannelStats,
    CollectorStats,
    EventKind,
    TaskEvent,
    TaskReport,
    TaskStats,
)

# 通道
from .channel import DEFAULT_QUEUE_CAPACITY, EventReceiver, EventSender, channel

# 核心组件
from .collector import Collector
from .instrument import AsyncioInstrumentation, format_task_fields
from .recorder import MetricsRecorder
from .sinks import LogReportSink, MemoryReportSink, ReportSink
from .source import EventSource, TaskEventSource

# 配置
from .config import CollectorConfig, load_collector_config

# 异常
from .exceptions import (
    ChannelClosedError,
    ChannelEmptyError,
    CollectorError,
    TaskPulseError,
)

__all__ = [
    "EventKind",
    "TaskEvent",
    "TaskStats",
    "TaskReport",
    "CollectorStats",
    "ChannelStats",
    "DEFAULT_QUEUE_CAPACITY",
    "EventSender",
    "EventReceiver",
    "channel",
    "Collector",
    "AsyncioInstrumentation",
    "format_task_fields",
    "MetricsRecorder",
    "ReportSink",
    "LogReportSink",
    "MemoryReportSink",
    "EventSource",
    "TaskEventSource",
    "CollectorConfig",
    "load_collector_config",
    "TaskPulseError",
    "ChannelEmptyError",
    "ChannelClosedError",
    "CollectorError",
]
