"""事件通道测试

测试内容：
1. 有空位时立即入队，按发送顺序接收
2. 队列满时丢弃新事件，不阻塞
3. 接收端关闭后发送被丢弃
4. 所有发送端关闭后，先排空积压再报告关闭
5. 多线程并发发送
"""

import threading
import time

import pytest
from taskpulse.core.channel import channel
from taskpulse.core.exceptions import ChannelClosedError, ChannelEmptyError
from taskpulse.core.models import TaskEvent


class TestSend:
    """发送端测试"""

    def test_send_and_receive_in_order(self, at):
        sender, receiver = channel(10)
        events = [TaskEvent.enter(1, ts=at(i)) for i in range(3)]
        for event in events:
            assert sender.send(event) is True

        assert [receiver.try_recv() for _ in range(3)] == events
        assert receiver.stats.sent == 3

    def test_full_queue_drops_new_event(self, at):
        """队列满：丢弃新事件，保留已入队事件"""
        sender, receiver = channel(2)
        first = TaskEvent.spawn(1, ts=at(0))
        second = TaskEvent.enter(1, ts=at(1))
        third = TaskEvent.exit(1, ts=at(2))

        assert sender.send(first) is True
        assert sender.send(second) is True
        assert sender.send(third) is False

        assert receiver.try_recv() == first
        assert receiver.try_recv() == second
        with pytest.raises(ChannelEmptyError):
            receiver.try_recv()
        assert receiver.stats.dropped_full == 1

    def test_send_on_full_queue_returns_quickly(self, at):
        """队列满时发送在有限时间内返回"""
        sender, _ = channel(1)
        sender.send(TaskEvent.enter(1, ts=at(0)))

        start = time.monotonic()
        for i in range(1000):
            assert sender.send(TaskEvent.enter(1, ts=at(i))) is False
        assert time.monotonic() - start < 5

    def test_send_after_receiver_closed_is_dropped(self, at):
        sender, receiver = channel(10)
        receiver.close()

        assert sender.send(TaskEvent.enter(1, ts=at(0))) is False
        assert receiver.stats.dropped_closed == 1

    def test_send_after_sender_closed_is_dropped(self, at):
        sender, receiver = channel(10)
        keep_alive = sender.clone()
        sender.close()

        assert sender.send(TaskEvent.enter(1, ts=at(0))) is False
        assert receiver.stats.dropped_closed == 1
        keep_alive.close()

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            channel(0)


class TestClose:
    """关闭语义测试"""

    def test_empty_while_senders_alive(self):
        _, receiver = channel(10)
        with pytest.raises(ChannelEmptyError):
            receiver.try_recv()

    def test_pending_events_delivered_before_closed(self, at):
        sender, receiver = channel(10)
        event = TaskEvent.close(1, ts=at(0))
        sender.send(event)
        sender.close()

        assert receiver.try_recv() == event
        with pytest.raises(ChannelClosedError):
            receiver.try_recv()

    def test_closed_only_after_all_clones_closed(self, at):
        sender, receiver = channel(10)
        other = sender.clone()
        sender.close()

        with pytest.raises(ChannelEmptyError):
            receiver.try_recv()

        other.close()
        with pytest.raises(ChannelClosedError):
            receiver.try_recv()

    def test_close_is_idempotent(self):
        sender, receiver = channel(10)
        other = sender.clone()
        sender.close()
        sender.close()

        # 重复 close 不应误减其他发送端的计数
        with pytest.raises(ChannelEmptyError):
            receiver.try_recv()
        other.close()

    def test_clone_after_close_rejected(self):
        sender, _ = channel(10)
        sender.close()
        with pytest.raises(ChannelClosedError):
            sender.clone()


class TestConcurrentProducers:
    """多线程生产者测试"""

    def test_threads_never_block_and_counts_add_up(self, at):
        sender, receiver = channel(50)
        per_thread = 200
        threads = []

        def produce(task_id: int, handle) -> None:
            for i in range(per_thread):
                handle.send(TaskEvent.enter(task_id, ts=at(i)))
            handle.close()

        for task_id in range(4):
            handle = sender.clone()
            threads.append(threading.Thread(target=produce, args=(task_id, handle)))
        sender.close()

        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)
            assert not thread.is_alive()

        received = []
        while True:
            try:
                received.append(receiver.try_recv())
            except ChannelClosedError:
                break

        stats = receiver.stats
        assert stats.sent == len(received)
        assert stats.sent + stats.dropped_full == 4 * per_thread
        assert len(received) <= 4 * per_thread

    def test_per_producer_order_preserved(self, at):
        sender, receiver = channel(1000)
        handle = sender.clone()

        def produce() -> None:
            for i in range(100):
                handle.send(TaskEvent.enter(9, ts=at(i)))
            handle.close()

        thread = threading.Thread(target=produce)
        thread.start()
        thread.join(timeout=10)
        sender.close()

        timestamps = []
        while True:
            try:
                timestamps.append(receiver.try_recv().ts)
            except ChannelClosedError:
                break
        assert timestamps == sorted(timestamps)
        assert len(timestamps) == 100
