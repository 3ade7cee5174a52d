"""
持久化 Sink 集成测试

写入器、后台发送器与假传输层一起运行
"""

import json

import pytest

from antcode_logsink.config import SinkOptions
from antcode_logsink.domain.errors import ConfigurationError
from antcode_logsink.sinks import DirectSink, DurableSink, create_sink


def _options(tmp_path, **kwargs) -> SinkOptions:
    kwargs.setdefault("stream_name", "app-logs")
    kwargs.setdefault("buffer_base_filename", str(tmp_path / "buffer" / "app"))
    kwargs.setdefault("buffer_log_shipping_interval", 0.05)
    kwargs.setdefault("backoff_base_delay", 0.05)
    kwargs.setdefault("backoff_max_delay", 0.2)
    kwargs.setdefault("shutdown_timeout", 2.0)
    return SinkOptions(**kwargs)


def _messages(records) -> list[str]:
    return [json.loads(r)["message"] for r in records]


class TestCreateSink:
    """Sink 工厂测试"""

    def test_durable_selected(self, tmp_path, transport):
        """测试设置缓冲路径时创建持久化 Sink"""
        with create_sink(_options(tmp_path), transport) as sink:
            assert isinstance(sink, DurableSink)

    def test_direct_selected(self, tmp_path, transport):
        """测试未设置缓冲路径时创建直发 Sink"""
        with create_sink(_options(tmp_path, buffer_base_filename=None), transport) as sink:
            assert isinstance(sink, DirectSink)

    def test_missing_transport(self, tmp_path):
        """测试缺少传输层立即失败"""
        with pytest.raises(ConfigurationError) as exc_info:
            create_sink(_options(tmp_path), None)
        assert exc_info.value.field == "transport"

    def test_invalid_options(self, tmp_path, transport):
        """测试配置错误在构造时抛出"""
        with pytest.raises(ConfigurationError):
            create_sink(_options(tmp_path, stream_name=""), transport)
        with pytest.raises(ConfigurationError):
            create_sink(_options(tmp_path, batch_posting_limit=0), transport)


class TestDurableSink:
    """持久化 Sink 端到端测试"""

    def test_ships_in_order(self, tmp_path, transport, make_event, wait_until):
        """测试事件按顺序发送"""
        sink = create_sink(_options(tmp_path, batch_posting_limit=4), transport)
        try:
            for i in range(10):
                assert sink.emit(make_event(f"m{i}"))
            assert wait_until(lambda: len(transport.received) == 10)
        finally:
            sink.close()

        assert _messages(transport.received) == [f"m{i}" for i in range(10)]
        assert transport.closed

    def test_severity_filter(self, tmp_path, transport, make_event, wait_until):
        """测试低于最小级别的事件不落盘"""
        sink = create_sink(_options(tmp_path, minimum_level="ERROR"), transport)
        try:
            sink.emit(make_event("info", level="INFO"))
            sink.emit(make_event("error", level="ERROR"))
        finally:
            sink.close()

        assert _messages(transport.received) == ["error"]

    def test_outage_then_restart(self, tmp_path, transport, make_event, wait_until):
        """测试远端不可用时日志留在磁盘，重启后按顺序补发"""
        transport.fail_always = True
        sink = create_sink(_options(tmp_path), transport)
        try:
            for i in range(3):
                sink.emit(make_event(f"m{i}"))
            assert wait_until(lambda: len(transport.calls) >= 2)
        finally:
            sink.close()

        stats = sink.get_stats()
        assert stats["shipper"]["pending_bytes"] > 0
        assert stats["shipper"]["cursor"] is None

        recovered = type(transport)()
        sink = create_sink(_options(tmp_path), recovered)
        try:
            assert wait_until(lambda: len(recovered.received) == 3)
        finally:
            sink.close()

        assert _messages(recovered.received) == ["m0", "m1", "m2"]

    def test_lone_surrogate_message(self, tmp_path, transport, make_event):
        """测试含孤立代理字符的消息不会让 emit 抛出，并原样发送"""
        sink = create_sink(_options(tmp_path), transport)
        try:
            assert sink.emit(make_event("file \udcff name"))
        finally:
            sink.close()

        assert _messages(transport.received) == ["file \udcff name"]
        assert sink.get_stats()["writer"]["records_dropped"] == 0

    def test_close_is_idempotent(self, tmp_path, transport, make_event):
        """测试重复关闭"""
        sink = create_sink(_options(tmp_path), transport)
        sink.emit(make_event("once"))
        sink.close()
        sink.close()

        assert sink.closed
        assert _messages(transport.received) == ["once"]
        assert sink.emit(make_event("after")) is False

    def test_stats(self, tmp_path, transport, make_event, wait_until):
        """测试统计信息"""
        sink = create_sink(_options(tmp_path), transport)
        try:
            sink.emit(make_event("a"))
            assert wait_until(lambda: sink.get_stats()["shipper"]["records_sent"] == 1)
            stats = sink.get_stats()
            assert stats["mode"] == "durable"
            assert stats["writer"]["records_written"] == 1
        finally:
            sink.close()
