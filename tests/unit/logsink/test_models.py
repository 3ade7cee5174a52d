"""
日志 Sink 域模型单元测试
"""

import json
import logging
import sys
from datetime import datetime

import pytest
from loguru import logger

from antcode_logsink.domain import (
    Batch,
    BufferPosition,
    ConfigurationError,
    LogEvent,
    LogRecord,
    SinkClosedError,
    SubmitOutcome,
    SubmitStatus,
)


class TestLogRecord:
    """日志记录测试"""

    def test_to_line(self):
        """测试序列化为一行"""
        record = LogRecord(data='{"m": "你好"}')
        assert record.to_line() == '{"m": "你好"}\n'.encode("utf-8")

    def test_lone_surrogate_escaped(self):
        """测试孤立代理字符以 JSON 转义写出，读回后还原"""
        record = LogEvent(timestamp=datetime(2024, 1, 2), level="INFO", message="file \udcff name").to_record()
        line = record.to_line()

        assert b"\\udcff" in line
        assert json.loads(LogRecord.from_line(line).data)["message"] == "file \udcff name"

    def test_from_line(self):
        """测试去掉行尾"""
        assert LogRecord.from_line(b'{"a": 1}\r\n').data == '{"a": 1}'


class TestLogEvent:
    """日志事件测试"""

    def test_level_no_from_name(self):
        """测试按级别名补全级别数值"""
        event = LogEvent(timestamp=datetime.now(), level="warning", message="x")
        assert event.level_no == 30

    def test_to_record_single_line(self):
        """测试多行消息序列化后仍是一行"""
        event = LogEvent(
            timestamp=datetime(2024, 1, 2),
            level="ERROR",
            message="第一行\n第二行",
            extra={"run_id": "run-001", "obj": object()},
        )
        record = event.to_record()

        assert "\n" not in record.data
        data = json.loads(record.data)
        assert data["message"] == "第一行\n第二行"
        assert data["level"] == "ERROR"
        assert data["extra"]["run_id"] == "run-001"
        assert isinstance(data["extra"]["obj"], str)

    def test_from_loguru(self):
        """测试从 loguru record 构建"""
        records = []
        handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
        try:
            logger.bind(run_id="run-002").warning("磁盘空间不足")
        finally:
            logger.remove(handler_id)

        event = LogEvent.from_loguru(records[0])
        assert event.level == "WARNING"
        assert event.level_no == 30
        assert event.message == "磁盘空间不足"
        assert event.extra == {"run_id": "run-002"}
        assert event.function == "test_from_loguru"
        assert event.exception is None

    def test_from_logging_with_exception(self):
        """测试从标准库记录构建，包含异常堆栈"""
        try:
            raise ValueError("坏数据")
        except ValueError:
            exc_info = sys.exc_info()

        record = logging.LogRecord("app.db", logging.ERROR, __file__, 10, "查询失败 %s", ("users",), exc_info)
        event = LogEvent.from_logging(record)

        assert event.message == "查询失败 users"
        assert event.logger == "app.db"
        assert event.level_no == logging.ERROR
        assert "ValueError: 坏数据" in event.exception


class TestBatch:
    """批次测试"""

    def _batch(self) -> Batch:
        start = BufferPosition("buf-20240102.jsonl", 0)
        records = [LogRecord(f"r{i}") for i in range(3)]
        positions = [BufferPosition("buf-20240102.jsonl", 3 * (i + 1)) for i in range(3)]
        return Batch(start=start, records=records, positions=positions)

    def test_position_after(self):
        """测试前缀之后的位置"""
        batch = self._batch()
        assert batch.position_after(0) == batch.start
        assert batch.position_after(2).offset == 6
        assert batch.position_after(10) == batch.end
        assert batch.end.offset == 9

    def test_empty_batch(self):
        """测试空批次"""
        batch = Batch(start=None)
        assert batch.is_empty
        assert batch.end is None
        assert len(batch) == 0


class TestBufferPosition:
    """缓冲位置测试"""

    def test_dict_roundtrip(self):
        """测试字典转换"""
        position = BufferPosition("buf-20240102_001.jsonl", 128)
        assert BufferPosition.from_dict(position.to_dict()) == position


class TestSubmitOutcome:
    """提交结果测试"""

    def test_accepted(self):
        """测试全部接收"""
        outcome = SubmitOutcome.accepted()
        assert outcome.is_success
        assert outcome.accepted_prefix(5) == 5

    def test_partial_prefix(self):
        """测试部分接收只算连续前缀"""
        outcome = SubmitOutcome.partial([3, 1], reason="Throttled")
        assert outcome.status == SubmitStatus.PARTIAL
        assert outcome.rejected == (1, 3)
        assert outcome.accepted_prefix(5) == 1

    def test_partial_without_rejections_is_accepted(self):
        """测试没有被拒记录时视为全部接收"""
        assert SubmitOutcome.partial([]).is_success

    def test_failed(self):
        """测试请求失败"""
        outcome = SubmitOutcome.failed("HTTP 503")
        assert not outcome.is_success
        assert outcome.accepted_prefix(5) == 0
        assert outcome.reason == "HTTP 503"


class TestErrors:
    """错误类型测试"""

    def test_configuration_error(self):
        """测试配置错误"""
        error = ConfigurationError("stream_name 不能为空", field="stream_name")
        assert error.code == "CONFIGURATION_ERROR"
        assert error.field == "stream_name"
        assert error.to_dict()["message"] == "stream_name 不能为空"

    def test_sink_closed_error(self):
        """测试 Sink 已关闭错误"""
        with pytest.raises(SinkClosedError) as exc_info:
            raise SinkClosedError()
        assert exc_info.value.code == "SINK_CLOSED"
