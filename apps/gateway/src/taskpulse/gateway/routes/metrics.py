"""任务指标路由

GET /api/metrics: 最近一个 tick 的全部任务报告 + 通道/Collector 计数器。
GET /api/metrics/stream: SSE 实时推送每个 tick 的报告，空闲时心跳保活。
GET /api/metrics/{task_id}: 单个任务的最近报告。
"""

import asyncio
import json

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse
from starlette.responses import JSONResponse
from taskpulse.core.config import REPORT_STREAM_HEARTBEAT_S
from taskpulse.core.models import ChannelStats, CollectorStats, TaskReport

from ..deps import get_recorder, get_report_hub

router = APIRouter()


class TaskMetrics(BaseModel):
    """单个任务的指标（时长以秒表示）"""

    task_id: str
    active: bool
    total_time_s: float | None
    busy_time_s: float
    poll_count: int
    fields: str


class MetricsResponse(BaseModel):
    """指标快照响应"""

    tick: int
    tasks: list[TaskMetrics]
    channel: ChannelStats
    collector: CollectorStats


def _to_metrics(report: TaskReport) -> TaskMetrics:
    return TaskMetrics(
        task_id=str(report.task_id),
        active=report.active,
        total_time_s=(
            report.total_time.total_seconds() if report.total_time is not None else None
        ),
        busy_time_s=report.busy_time.total_seconds(),
        poll_count=report.poll_count,
        fields=report.fields,
    )


@router.get("/api/metrics", response_model=MetricsResponse)
async def get_metrics(
    recorder=Depends(get_recorder),
    report_hub=Depends(get_report_hub),
):
    """查询最近一个 tick 的指标快照"""
    return MetricsResponse(
        tick=report_hub.ticks,
        tasks=[_to_metrics(r) for r in report_hub.latest],
        channel=recorder.channel_stats,
        collector=recorder.collector_stats,
    )


@router.get("/api/metrics/stream")
async def stream_metrics(report_hub=Depends(get_report_hub)):
    """SSE 报告流端点：每个 tick 推送一个 report 事件"""

    async def event_generator():
        queue = await report_hub.subscribe()
        try:
            while True:
                try:
                    reports = await asyncio.wait_for(
                        queue.get(), timeout=REPORT_STREAM_HEARTBEAT_S
                    )
                    data = [_to_metrics(r).model_dump() for r in reports]
                    yield {
                        "event": "report",
                        "data": json.dumps(data, ensure_ascii=False),
                    }
                except TimeoutError:
                    # 心跳保活
                    yield {"comment": "heartbeat"}
        finally:
            await report_hub.unsubscribe(queue)

    return EventSourceResponse(event_generator())


@router.get("/api/metrics/{task_id}", response_model=TaskMetrics)
async def get_task_metrics(
    task_id: str,
    report_hub=Depends(get_report_hub),
):
    """查询单个任务的最近报告"""
    report = report_hub.find(task_id)
    if report is None:
        return JSONResponse(
            status_code=404,
            content={
                "error": {
                    "code": "TASK_NOT_FOUND",
                    "message": f"Task with id {task_id} is not tracked",
                }
            },
        )
    return _to_metrics(report)
