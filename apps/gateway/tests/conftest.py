"""apps/gateway 测试配置 -- FastAPI app + httpx AsyncClient fixture"""

from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from taskpulse.core import CollectorConfig, MetricsRecorder
from taskpulse.gateway.services.report_hub import ReportHub


@pytest_asyncio.fixture
async def app(fake_clock):
    """创建测试用 FastAPI app 实例（手动初始化，绕过 lifespan）"""
    from taskpulse.gateway.main import create_app

    application = create_app()
    report_hub = ReportHub()
    recorder = MetricsRecorder(
        CollectorConfig(tick_interval_s=0.01, closed_task_retention_s=None),
        sinks=[report_hub],
        clock=fake_clock,
    )
    application.state.report_hub = report_hub
    application.state.recorder = recorder

    yield application

    recorder.close()
    if recorder.handle is not None:
        await recorder.run()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
