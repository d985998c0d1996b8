"""packages/core 测试配置 -- 通道 / Collector fixture"""

import pytest
from taskpulse.core.channel import EventReceiver, EventSender, channel
from taskpulse.core.collector import Collector
from taskpulse.core.config import CollectorConfig
from taskpulse.core.sinks import MemoryReportSink


@pytest.fixture
def memory_sink() -> MemoryReportSink:
    """记录每个 tick 报告的 sink"""
    return MemoryReportSink()


@pytest.fixture
def event_channel() -> tuple[EventSender, EventReceiver]:
    """默认容量的事件通道"""
    return channel()


@pytest.fixture
def collector(event_channel, memory_sink, fake_clock) -> Collector:
    """不淘汰已结束任务的 Collector"""
    _, receiver = event_channel
    return Collector(
        receiver,
        config=CollectorConfig(closed_task_retention_s=None),
        sinks=[memory_sink],
        clock=fake_clock,
    )


@pytest.fixture
def sender(event_channel) -> EventSender:
    return event_channel[0]
