"""taskpulse 异常体系

事件级错误（丢弃、未知任务、时钟回拨）一律本地记录日志后继续，
只有 Collector 主循环自身的故障会以 CollectorError 向外传播。
"""


class TaskPulseError(Exception):
    """taskpulse 基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 调用方是否可以继续使用当前组件
        """
        super().__init__(message)
        self.recoverable = recoverable


class ChannelEmptyError(TaskPulseError):
    """通道暂时为空，稍后再试"""

    def __init__(self) -> None:
        super().__init__("事件通道为空", recoverable=True)


class ChannelClosedError(TaskPulseError):
    """所有发送端已关闭且积压事件已排空

    接收端收到此异常后不会再有新事件。
    """

    def __init__(self) -> None:
        super().__init__("事件通道已关闭", recoverable=False)


class CollectorError(TaskPulseError):
    """Collector 主循环异常终止

    包装主循环内的原始异常，由 MetricsRecorder.run() 抛给启动方。
    """

    def __init__(self, original_error: BaseException) -> None:
        """
        Args:
            original_error: 导致主循环终止的原始异常
        """
        super().__init__(
            f"Collector 主循环异常终止: {original_error!r}",
            recoverable=False,
        )
        self.original_error = original_error
