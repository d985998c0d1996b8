"""枚举定义

包含 EventKind 生命周期事件类型。
"""

from enum import StrEnum


class EventKind(StrEnum):
    """任务生命周期事件类型"""

    SPAWN = "spawn"
    ENTER = "enter"
    EXIT = "exit"
    CLOSE = "close"
