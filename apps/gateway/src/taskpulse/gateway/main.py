"""FastAPI 应用主文件

app 创建 + lifespan 管理：MetricsRecorder 启动/关闭 + 事件循环埋点 + 路由注册。
网关以自身事件循环为观测对象，通过 HTTP 暴露任务指标。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from taskpulse.core import (
    AsyncioInstrumentation,
    CollectorError,
    LogReportSink,
    MetricsRecorder,
    load_collector_config,
)
from taskpulse.core.config import instrument_loop_enabled
from taskpulse.core.logging_config import setup_logging

from .middleware.logging_mw import LoggingMiddleware
from .routes import health, metrics
from .services.report_hub import ReportHub

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时拉起 Collector，关闭时排空并等待其退出"""
    config = load_collector_config()
    report_hub = ReportHub()
    recorder = MetricsRecorder(config, sinks=[LogReportSink(), report_hub])
    recorder.start()

    app.state.report_hub = report_hub
    app.state.recorder = recorder

    # Collector 启动之后再安装埋点，避免观测自身
    instrumentation = AsyncioInstrumentation(recorder.source)
    if instrument_loop_enabled():
        instrumentation.install()
    app.state.instrumentation = instrumentation

    yield

    # 关闭：卸载埋点 -> 关闭发送端 -> 等待 Collector 排空退出
    instrumentation.uninstall()
    recorder.close()
    try:
        await recorder.run()
    except CollectorError as e:
        log.error("collector_shutdown_failed", error=str(e))


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="taskpulse Gateway",
        version="0.1.0",
        description="taskpulse 任务运行时指标 API",
        lifespan=lifespan,
    )

    app.add_middleware(LoggingMiddleware)

    # 初始化日志
    setup_logging()

    # 注册路由
    app.include_router(metrics.router, tags=["metrics"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
