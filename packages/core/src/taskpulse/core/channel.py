"""事件通道 -- 有界、多生产者 / 单消费者

生产者（埋点调用点）可能位于任意线程或任意事件循环中，
因此底层使用线程安全的 queue.Queue，而不是 asyncio.Queue。

发送端约定：send() 在任何状态下都不阻塞调用方。
- 有空位：立即入队
- 队列已满：丢弃新事件，记录 warning
- 接收端已关闭：丢弃事件，记录 error，不尝试重连

所有发送端 close() 之后，接收端在排空积压事件后收到 ChannelClosedError。
"""

import queue
import threading

import structlog

from .exceptions import ChannelClosedError, ChannelEmptyError
from .models.event import TaskEvent
from .models.task import ChannelStats

log = structlog.get_logger()

DEFAULT_QUEUE_CAPACITY = 100


class _ChannelState:
    """发送端与接收端共享的通道状态"""

    def __init__(self, capacity: int) -> None:
        self.queue: queue.Queue[TaskEvent] = queue.Queue(maxsize=capacity)
        self.capacity = capacity
        self.lock = threading.Lock()
        self.senders = 0
        self.receiver_closed = False
        self.stats = ChannelStats()


class EventSender:
    """事件发送端 -- 可 clone 出多个句柄，全部 close 后通道关闭"""

    def __init__(self, state: _ChannelState) -> None:
        self._state = state
        self._closed = False
        with state.lock:
            state.senders += 1

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: TaskEvent) -> bool:
        """非阻塞发送

        Args:
            event: 要发送的事件

        Returns:
            True 表示已入队，False 表示事件被丢弃
        """
        state = self._state

        if self._closed or state.receiver_closed:
            with state.lock:
                state.stats.dropped_closed += 1
            log.error(
                "event_dropped_receiver_closed" if state.receiver_closed else "event_dropped_sender_closed",
                kind=event.kind,
                task_id=event.task_id,
            )
            return False

        try:
            state.queue.put_nowait(event)
        except queue.Full:
            with state.lock:
                state.stats.dropped_full += 1
            log.warning(
                "event_dropped_queue_full",
                kind=event.kind,
                task_id=event.task_id,
                capacity=state.capacity,
            )
            return False

        with state.lock:
            state.stats.sent += 1
        return True

    def clone(self) -> "EventSender":
        """为另一个生产者创建新的发送句柄"""
        if self._closed:
            raise ChannelClosedError()
        return EventSender(self._state)

    def close(self) -> None:
        """释放发送句柄（幂等）"""
        if self._closed:
            return
        self._closed = True
        with self._state.lock:
            self._state.senders -= 1
            remaining = self._state.senders
        if remaining == 0:
            log.debug("event_channel_senders_closed")


class EventReceiver:
    """事件接收端 -- 只能被单个消费者（Collector）持有"""

    def __init__(self, state: _ChannelState) -> None:
        self._state = state

    @property
    def capacity(self) -> int:
        return self._state.capacity

    @property
    def pending(self) -> int:
        """当前积压事件数（近似值）"""
        return self._state.queue.qsize()

    @property
    def stats(self) -> ChannelStats:
        with self._state.lock:
            return self._state.stats.model_copy()

    def try_recv(self) -> TaskEvent:
        """非阻塞接收

        Raises:
            ChannelEmptyError: 当前无事件，但仍有发送端存活
            ChannelClosedError: 所有发送端已关闭且积压已排空
        """
        state = self._state
        try:
            return state.queue.get_nowait()
        except queue.Empty:
            pass

        with state.lock:
            senders_alive = state.senders > 0
        if senders_alive:
            raise ChannelEmptyError()

        # 最后一个发送端可能在上次检查之后才完成入队
        try:
            return state.queue.get_nowait()
        except queue.Empty:
            raise ChannelClosedError() from None

    def close(self) -> None:
        """消费者退出，后续发送全部丢弃"""
        with self._state.lock:
            self._state.receiver_closed = True


def channel(capacity: int = DEFAULT_QUEUE_CAPACITY) -> tuple[EventSender, EventReceiver]:
    """创建有界事件通道

    Args:
        capacity: 最大积压事件数

    Returns:
        (sender, receiver)
    """
    if capacity < 1:
        raise ValueError(f"capacity 必须 >= 1，当前为 {capacity}")
    state = _ChannelState(capacity)
    return EventSender(state), EventReceiver(state)
