"""日志 Sink 测试公共夹具"""

import asyncio
import time
from datetime import datetime

import pytest

from antcode_logsink.domain.models import LogEvent, SubmitOutcome
from antcode_logsink.transport.base import TransportBase


class FakeTransport(TransportBase):
    """
    记录每次提交的假传输层

    outcomes 中的结果按顺序消费（可以是 SubmitOutcome 或异常），
    用完之后全部接收；fail_always 为 True 时每次都失败。
    """

    def __init__(self):
        self.calls: list[list[str]] = []
        self.outcomes: list = []
        self.fail_always = False
        self.delay = 0.0
        self.closed = False

    async def submit(self, stream, records):
        self.calls.append(list(records))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_always:
            raise ConnectionError("远端不可用")
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        return SubmitOutcome.accepted()

    async def close(self):
        self.closed = True

    @property
    def received(self) -> list[str]:
        return [record for call in self.calls for record in call]


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def make_event():
    def _make(message: str = "hello", level: str = "INFO", **kwargs) -> LogEvent:
        return LogEvent(timestamp=datetime(2024, 1, 2, 3, 4, 5), level=level, message=message, **kwargs)

    return _make


@pytest.fixture
def wait_until():
    def _wait(predicate, timeout: float = 5.0, interval: float = 0.01) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return _wait
