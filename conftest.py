"""全局 pytest 配置 -- 固定时间基准 + 可控时钟 fixture"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest

T0 = datetime(2026, 1, 1, tzinfo=UTC)


class FakeClock:
    """可手动推进的时钟，替代 datetime.now(UTC)"""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def at() -> Callable[[float], datetime]:
    """at(5) -> 基准时间之后 5 秒"""

    def _at(seconds: float) -> datetime:
        return T0 + timedelta(seconds=seconds)

    return _at


@pytest.fixture
def fake_clock() -> FakeClock:
    """从基准时间开始的可控时钟"""
    return FakeClock()
