"""集成测试共享 fixture"""

from collections.abc import AsyncGenerator

import pytest_asyncio
from taskpulse.core import (
    AsyncioInstrumentation,
    CollectorConfig,
    MemoryReportSink,
    MetricsRecorder,
)


@pytest_asyncio.fixture
async def instrumented_recorder() -> AsyncGenerator[tuple[MetricsRecorder, MemoryReportSink], None]:
    """已启动并为当前事件循环安装埋点的 recorder"""
    sink = MemoryReportSink()
    recorder = MetricsRecorder(
        CollectorConfig(tick_interval_s=0.01, closed_task_retention_s=None, queue_capacity=10_000),
        sinks=[sink],
    )
    recorder.start()
    instrumentation = AsyncioInstrumentation(recorder.source)
    instrumentation.install()

    yield recorder, sink

    instrumentation.uninstall()
    recorder.close()
    await recorder.run()
