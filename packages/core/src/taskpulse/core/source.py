"""事件源接口

定义埋点侧消费的四个生命周期调用，使用 Protocol 实现结构化子类型。
Collector 不依赖任何具体埋点框架的类型，只消费 TaskEvent。
"""

from collections.abc import Callable, Hashable
from datetime import datetime
from typing import Protocol

from .channel import EventSender
from .models.event import TaskEvent, utc_now


class EventSource(Protocol):
    """事件源接口 -- 每个调用都打上当前时间戳并产生对应事件"""

    def on_spawn(self, task_id: Hashable, fields: str) -> TaskEvent:
        """任务创建"""
        ...

    def on_enter(self, task_id: Hashable) -> TaskEvent:
        """任务被调度到 worker 上开始运行"""
        ...

    def on_exit(self, task_id: Hashable) -> TaskEvent:
        """任务让出 worker"""
        ...

    def on_close(self, task_id: Hashable) -> TaskEvent:
        """任务结束"""
        ...


class TaskEventSource:
    """基于 EventSender 的事件源实现

    所有调用都不阻塞；通道满或已关闭时事件被丢弃，调用方不受影响。
    """

    def __init__(
        self,
        sender: EventSender,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._sender = sender
        self._clock = clock

    @property
    def sender(self) -> EventSender:
        return self._sender

    def on_spawn(self, task_id: Hashable, fields: str = "") -> TaskEvent:
        return self._emit(TaskEvent.spawn(task_id, fields, ts=self._clock()))

    def on_enter(self, task_id: Hashable) -> TaskEvent:
        return self._emit(TaskEvent.enter(task_id, ts=self._clock()))

    def on_exit(self, task_id: Hashable) -> TaskEvent:
        return self._emit(TaskEvent.exit(task_id, ts=self._clock()))

    def on_close(self, task_id: Hashable) -> TaskEvent:
        return self._emit(TaskEvent.close(task_id, ts=self._clock()))

    def _emit(self, event: TaskEvent) -> TaskEvent:
        self._sender.send(event)
        return event
