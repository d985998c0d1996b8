"""依赖注入模块 -- 通过 FastAPI Depends 注入 recorder 与 ReportHub

实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Request
from taskpulse.core import MetricsRecorder

from .services.report_hub import ReportHub


def get_recorder(request: Request) -> MetricsRecorder:
    """从 app.state 获取 MetricsRecorder 实例"""
    return request.app.state.recorder


def get_report_hub(request: Request) -> ReportHub:
    """从 app.state 获取 ReportHub 实例"""
    return request.app.state.report_hub
