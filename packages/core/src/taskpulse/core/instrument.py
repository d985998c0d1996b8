"""asyncio 埋点 -- 基于 task factory 的事件源驱动

install(loop) 之后，该事件循环上创建的每个 asyncio.Task：
- 创建时发送 SPAWN（fields 为任务名与协程名）
- 每次被调度执行一步（send/throw）前后发送 ENTER / EXIT
- 完成（含取消、异常）时发送 CLOSE

埋点自身的任何异常只记录日志，不影响被观测的协程。
应在 MetricsRecorder.start() 之后再 install()，避免 Collector 观测自身。

Python 3.12 的 loop.create_task 在 task factory 返回之后才设置任务名，
此时未携带 name 的任务推迟到第一步执行前（或完成时）才发送 SPAWN，
created_at 因此记录为首次调度的时间。
"""

import asyncio
import itertools
import sys
from collections.abc import Coroutine
from typing import Any

import structlog

from .source import EventSource

log = structlog.get_logger()

# 3.13 起 create_task 把 name 透传给 task factory
_FACTORY_RECEIVES_NAME = sys.version_info >= (3, 13)


def format_task_fields(coro: Any, name: str | None = None) -> str:
    """格式化任务创建时捕获的元数据"""
    coro_name = (
        getattr(coro, "__qualname__", None)
        or getattr(coro, "__name__", None)
        or type(coro).__name__
    )
    if name:
        return f"name={name} coro={coro_name}"
    return f"coro={coro_name}"


class _InstrumentedCoroutine(Coroutine):
    """包装原始协程：每一步执行前后发送 ENTER / EXIT"""

    def __init__(self, coro: Coroutine, instrumentation: "AsyncioInstrumentation", task_id: int) -> None:
        self._coro = coro
        self._instrumentation = instrumentation
        self._task_id = task_id
        self._spawned = False
        self._task: asyncio.Task | None = None
        self._default_name: str | None = None

    @property
    def spawned(self) -> bool:
        return self._spawned

    def spawn(self, name: str | None = None) -> None:
        self._spawned = True
        self._task = None
        self._instrumentation._emit(
            "on_spawn", self._task_id, format_task_fields(self._coro, name)
        )

    def defer_spawn(self, task: asyncio.Task) -> None:
        """记录任务默认名；之后名字若被 create_task 改写，即为调用方指定的名字"""
        self._task = task
        self._default_name = task.get_name()

    def _ensure_spawned(self) -> None:
        if self._spawned:
            return
        name = None
        if self._task is not None and self._task.get_name() != self._default_name:
            name = self._task.get_name()
        self.spawn(name)

    def on_done(self, _task: asyncio.Task) -> None:
        self._ensure_spawned()
        self._instrumentation._emit("on_close", self._task_id)

    def send(self, value):
        self._ensure_spawned()
        entered = self._instrumentation._emit("on_enter", self._task_id)
        try:
            return self._coro.send(value)
        finally:
            if entered:
                self._instrumentation._emit("on_exit", self._task_id)

    def throw(self, typ, val=None, tb=None):
        self._ensure_spawned()
        entered = self._instrumentation._emit("on_enter", self._task_id)
        try:
            if val is None and tb is None:
                return self._coro.throw(typ)
            return self._coro.throw(typ, val, tb)
        finally:
            if entered:
                self._instrumentation._emit("on_exit", self._task_id)

    def close(self):
        return self._coro.close()

    def __await__(self):
        return (yield from self._coro.__await__())


class AsyncioInstrumentation:
    """通过 loop.set_task_factory 为事件循环安装埋点"""

    def __init__(self, source: EventSource) -> None:
        self._source = source
        self._ids = itertools.count(1)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._previous_factory = None

    @property
    def installed(self) -> bool:
        return self._loop is not None

    def install(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """为事件循环安装 task factory（已安装时报错）"""
        if self._loop is not None:
            raise RuntimeError("AsyncioInstrumentation 已安装")
        loop = loop or asyncio.get_running_loop()
        self._previous_factory = loop.get_task_factory()
        loop.set_task_factory(self._task_factory)
        self._loop = loop
        log.info("asyncio_instrumentation_installed")

    def uninstall(self) -> None:
        """恢复安装前的 task factory（幂等）"""
        if self._loop is None:
            return
        self._loop.set_task_factory(self._previous_factory)
        self._loop = None
        self._previous_factory = None
        log.info("asyncio_instrumentation_uninstalled")

    def _task_factory(self, loop: asyncio.AbstractEventLoop, coro: Coroutine, **kwargs):
        task_id = next(self._ids)
        wrapped = _InstrumentedCoroutine(coro, self, task_id)
        if _FACTORY_RECEIVES_NAME or "name" in kwargs:
            # eager task 会在构造函数内执行第一步，SPAWN 必须先于 Task 构造发送
            wrapped.spawn(kwargs.get("name"))

        try:
            if self._previous_factory is not None:
                task = self._previous_factory(loop, wrapped, **kwargs)
            else:
                task = asyncio.Task(wrapped, loop=loop, **kwargs)
        except BaseException:
            if wrapped.spawned:
                self._emit("on_close", task_id)
            raise

        if not wrapped.spawned:
            wrapped.defer_spawn(task)
        task.add_done_callback(wrapped.on_done)
        return task

    def _emit(self, method: str, *args) -> bool:
        try:
            getattr(self._source, method)(*args)
        except Exception as e:
            log.error("instrumentation_emit_failed", method=method, error=str(e))
            return False
        return True
