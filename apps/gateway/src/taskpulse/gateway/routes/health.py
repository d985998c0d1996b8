"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，Collector 主循环存活时返回 200，否则 503。
"""

import structlog
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查 -- 验证 Collector 主循环与事件通道状态

    检查项：
    1. collector: 主循环是否仍在运行
    2. queue_capacity: 通道容量
    3. dropped_events: 已丢弃事件数（满 + 关闭）
    """
    checks = {}
    all_ok = True

    recorder = getattr(request.app.state, "recorder", None)
    if recorder is None:
        checks["collector"] = "error: recorder not initialized"
        all_ok = False
    elif recorder.running:
        checks["collector"] = "ok"
    else:
        handle = recorder.handle
        if handle is not None and handle.done() and not handle.cancelled() and handle.exception():
            checks["collector"] = f"error: {handle.exception()}"
            log.warning("collector_not_ready", error=str(handle.exception()))
        else:
            checks["collector"] = "stopped"
        all_ok = False

    if recorder is not None:
        channel_stats = recorder.channel_stats
        checks["queue_capacity"] = recorder.config.queue_capacity
        checks["dropped_events"] = channel_stats.dropped_full + channel_stats.dropped_closed

    status_code = 200 if all_ok else 503
    status_text = "ready" if all_ok else "not_ready"

    return JSONResponse(
        status_code=status_code,
        content={
            "status": status_text,
            "checks": checks,
        },
    )
