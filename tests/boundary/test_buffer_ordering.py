"""
Property-Based Test: 持久化缓冲有序且不重复

*For any* 记录序列、批次上限和文件大小上限：
- 传输层始终成功时，发送器按写入顺序把每条记录恰好发送一次
- 发送中途更换发送器（模拟重启）不影响上述结论
"""

import asyncio
import json
import tempfile
from datetime import datetime
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from antcode_logsink.buffer import BufferWriter
from antcode_logsink.domain.enums import CycleResult
from antcode_logsink.domain.models import LogRecord, SubmitOutcome
from antcode_logsink.shipping.shipper import LogShipper
from antcode_logsink.transport.base import TransportBase


class RecordingTransport(TransportBase):
    """记录所有提交的传输层"""

    def __init__(self):
        self.received: list[str] = []

    async def submit(self, stream, records):
        self.received.extend(records)
        return SubmitOutcome.accepted()


message_strategy = st.text(
    alphabet=st.characters(whitelist_categories=("L", "N", "P", "S", "Z")),
    min_size=0,
    max_size=80,
)


async def _ship_all(shippers: list[LogShipper], cycles_each: int) -> None:
    for index, shipper in enumerate(shippers):
        last = index == len(shippers) - 1
        for _ in range(cycles_each if not last else 10_000):
            if await shipper.ship_once() == CycleResult.EMPTY:
                break


class TestBufferOrdering:
    """缓冲顺序性质测试"""

    @pytest.mark.pbt
    @settings(max_examples=50, deadline=None)
    @given(
        messages=st.lists(message_strategy, min_size=0, max_size=60),
        batch_limit=st.integers(min_value=1, max_value=7),
        file_limit=st.integers(min_value=20, max_value=400),
        restart_after=st.integers(min_value=0, max_value=5),
    )
    def test_ordered_exactly_once(self, messages, batch_limit, file_limit, restart_after):
        """测试有序且恰好一次"""
        with tempfile.TemporaryDirectory() as tmpdir:
            base = Path(tmpdir) / "buf"
            writer = BufferWriter(base, file_size_limit_bytes=file_limit, clock=lambda: datetime(2024, 1, 2))
            expected = []
            for i, message in enumerate(messages):
                data = json.dumps({"i": i, "m": message})
                expected.append(data)
                assert writer.append(LogRecord(data))
            writer.close()

            transport = RecordingTransport()
            shippers = [
                LogShipper("prop-logs", transport, writer.file_set, batch_posting_limit=batch_limit)
                for _ in range(2)
            ]
            asyncio.run(_ship_all(shippers, restart_after))

            assert transport.received == expected
