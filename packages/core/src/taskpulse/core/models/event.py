"""Event Domain Model -- 任务生命周期事件

事件不可变（frozen），只描述某个任务的一次状态迁移。
task_id 为外部分配的不透明标识，只要求可比较、可哈希。
fields 仅 SPAWN 事件携带，其余事件必须为空。
"""

from collections.abc import Hashable
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import EventKind


def utc_now() -> datetime:
    """默认时钟：当前 UTC 墙钟时间"""
    return datetime.now(UTC)


class TaskEvent(BaseModel):
    """TaskEvent 数据模型

    四种事件：SPAWN / ENTER / EXIT / CLOSE。
    每个事件携带 task_id 与时间戳，SPAWN 额外携带 fields。
    """

    model_config = ConfigDict(frozen=True)

    kind: EventKind = Field(description="事件类型")
    task_id: Hashable = Field(description="任务标识（不透明，可哈希）")
    ts: datetime = Field(description="事件时间戳（墙钟）")
    fields: str = Field(default="", description="创建时捕获的描述性元数据，仅 SPAWN 使用")

    @model_validator(mode="after")
    def _fields_only_on_spawn(self) -> "TaskEvent":
        if self.kind != EventKind.SPAWN and self.fields:
            raise ValueError(f"fields 仅允许出现在 spawn 事件上，当前为 {self.kind}")
        return self

    @classmethod
    def spawn(cls, task_id: Any, fields: str = "", ts: datetime | None = None) -> "TaskEvent":
        return cls(kind=EventKind.SPAWN, task_id=task_id, ts=ts or utc_now(), fields=fields)

    @classmethod
    def enter(cls, task_id: Any, ts: datetime | None = None) -> "TaskEvent":
        return cls(kind=EventKind.ENTER, task_id=task_id, ts=ts or utc_now())

    @classmethod
    def exit(cls, task_id: Any, ts: datetime | None = None) -> "TaskEvent":
        return cls(kind=EventKind.EXIT, task_id=task_id, ts=ts or utc_now())

    @classmethod
    def close(cls, task_id: Any, ts: datetime | None = None) -> "TaskEvent":
        return cls(kind=EventKind.CLOSE, task_id=task_id, ts=ts or utc_now())
