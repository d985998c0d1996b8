"""LoggingMiddleware -- 请求级日志

为每个 HTTP 请求生成 request_id，并与请求到达时 ReportHub 已发布的 tick 序号
一起绑定到 structlog contextvars。响应头携带 X-Request-ID 与 X-Report-Tick，
客户端可据此把轮询结果与 SSE 推送对齐。单任务查询额外记录 task_id。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID


def _report_tick(request: Request) -> int | None:
    report_hub = getattr(request.app.state, "report_hub", None)
    if report_hub is None:
        return None
    return report_hub.ticks


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求级日志中间件 -- request_id + 报告 tick"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = str(ULID())
        report_tick = _report_tick(request)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            report_tick=report_tick,
        )

        log = structlog.get_logger()
        await log.adebug("request_started")

        response = await call_next(request)

        # 路由匹配之后 scope 中才有 path_params
        extra = {}
        task_id = request.scope.get("path_params", {}).get("task_id")
        if task_id is not None:
            extra["task_id"] = task_id
        await log.ainfo(
            "request_completed",
            status_code=response.status_code,
            **extra,
        )

        response.headers["X-Request-ID"] = request_id
        if report_tick is not None:
            response.headers["X-Report-Tick"] = str(report_tick)
        return response
