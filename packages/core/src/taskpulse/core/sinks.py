"""报告输出接口

Collector 每个 tick 调用一次 emit()，传入每个被跟踪任务的一条记录。
序列化方式由具体 sink 决定。
"""

from typing import Protocol

import structlog

from .models.task import TaskReport

log = structlog.get_logger()


class ReportSink(Protocol):
    """报告输出接口"""

    def emit(self, reports: list[TaskReport]) -> None:
        """接收一个 tick 的全部任务报告（同步，不允许挂起）"""
        ...


class LogReportSink:
    """以结构化日志输出报告：运行中任务一行 task_running，已结束任务一行 task_inactive"""

    def __init__(self, logger=None) -> None:
        self._log = logger or log

    def emit(self, reports: list[TaskReport]) -> None:
        for report in reports:
            if report.active:
                self._log.info(
                    "task_running",
                    task_id=report.task_id,
                    poll_count=report.poll_count,
                    busy_time_s=report.busy_time.total_seconds(),
                )
            else:
                self._log.info(
                    "task_inactive",
                    task_id=report.task_id,
                    total_time_s=(
                        report.total_time.total_seconds()
                        if report.total_time is not None
                        else None
                    ),
                    busy_time_s=report.busy_time.total_seconds(),
                    poll_count=report.poll_count,
                )


class MemoryReportSink:
    """在内存中保留每个 tick 的报告，供测试与嵌入式调用方读取"""

    def __init__(self) -> None:
        self.ticks: list[list[TaskReport]] = []

    @property
    def latest(self) -> list[TaskReport]:
        return self.ticks[-1] if self.ticks else []

    def emit(self, reports: list[TaskReport]) -> None:
        self.ticks.append(reports)
