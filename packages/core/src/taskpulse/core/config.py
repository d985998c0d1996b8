"""CollectorConfig -- Collector 配置加载

从环境变量加载配置，无效值记录 warning 后回退到默认值，不阻塞启动。
"""

import os

import structlog
from pydantic import BaseModel, Field

from .channel import DEFAULT_QUEUE_CAPACITY

log = structlog.get_logger()

DEFAULT_TICK_INTERVAL_S: float = 1.0
DEFAULT_CLOSED_TASK_RETENTION_S: float | None = None


class CollectorConfig(BaseModel):
    """Collector 配置

    环境变量:
        TASKPULSE_QUEUE_CAPACITY: 通道容量（默认 100）
        TASKPULSE_TICK_INTERVAL_S: 排空/报告周期（秒，默认 1.0）
        TASKPULSE_CLOSED_TASK_RETENTION_S: 已结束任务保留时长（秒，默认不淘汰，"none" 同样表示永不淘汰）
    """

    queue_capacity: int = Field(
        default=DEFAULT_QUEUE_CAPACITY,
        ge=1,
        description="最大在途事件数",
    )
    tick_interval_s: float = Field(
        default=DEFAULT_TICK_INTERVAL_S,
        gt=0,
        description="排空与报告周期（秒）",
    )
    closed_task_retention_s: float | None = Field(
        default=DEFAULT_CLOSED_TASK_RETENTION_S,
        ge=0,
        description="任务 CLOSE 后保留多久再从映射表淘汰，None（默认）表示永不淘汰",
    )


def _parse_float(env_var: str, val: str, fallback: float | None) -> float | None:
    try:
        return float(val)
    except ValueError:
        log.warning(
            "invalid_collector_config",
            env_var=env_var,
            value=val,
            fallback=fallback,
        )
        return fallback


def load_collector_config() -> CollectorConfig:
    """从环境变量加载 Collector 配置

    环境变量映射:
        TASKPULSE_QUEUE_CAPACITY -> queue_capacity
        TASKPULSE_TICK_INTERVAL_S -> tick_interval_s
        TASKPULSE_CLOSED_TASK_RETENTION_S -> closed_task_retention_s

    Returns:
        CollectorConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("TASKPULSE_QUEUE_CAPACITY"):
        try:
            capacity = int(val)
        except ValueError:
            capacity = 0
        if capacity >= 1:
            kwargs["queue_capacity"] = capacity
        else:
            log.warning(
                "invalid_collector_config",
                env_var="TASKPULSE_QUEUE_CAPACITY",
                value=val,
                fallback=DEFAULT_QUEUE_CAPACITY,
            )

    if val := os.environ.get("TASKPULSE_TICK_INTERVAL_S"):
        interval = _parse_float("TASKPULSE_TICK_INTERVAL_S", val, DEFAULT_TICK_INTERVAL_S)
        if interval is not None and interval > 0:
            kwargs["tick_interval_s"] = interval
        else:
            log.warning(
                "invalid_collector_config",
                env_var="TASKPULSE_TICK_INTERVAL_S",
                value=val,
                fallback=DEFAULT_TICK_INTERVAL_S,
            )

    if val := os.environ.get("TASKPULSE_CLOSED_TASK_RETENTION_S"):
        if val.strip().lower() == "none":
            kwargs["closed_task_retention_s"] = None
        else:
            retention = _parse_float(
                "TASKPULSE_CLOSED_TASK_RETENTION_S", val, DEFAULT_CLOSED_TASK_RETENTION_S
            )
            if retention is not None and retention >= 0:
                kwargs["closed_task_retention_s"] = retention
            elif retention is not None:
                log.warning(
                    "invalid_collector_config",
                    env_var="TASKPULSE_CLOSED_TASK_RETENTION_S",
                    value=val,
                    fallback=DEFAULT_CLOSED_TASK_RETENTION_S,
                )

    return CollectorConfig(**kwargs)


def instrument_loop_enabled() -> bool:
    """网关是否为自身事件循环安装埋点（TASKPULSE_INSTRUMENT_LOOP，默认 true）"""
    return os.environ.get("TASKPULSE_INSTRUMENT_LOOP", "true").lower() == "true"


# 报告流 SSE 心跳间隔（秒）
REPORT_STREAM_HEARTBEAT_S: int = int(
    os.environ.get("TASKPULSE_REPORT_STREAM_HEARTBEAT_S", "15")
)
