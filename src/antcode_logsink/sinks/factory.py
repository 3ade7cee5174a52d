"""
Sink 工厂

设置了 buffer_base_filename 时创建持久化 Sink，否则创建直发 Sink。
"""

from collections.abc import Callable

from antcode_logsink.config import SinkOptions
from antcode_logsink.domain.errors import ConfigurationError, LogSinkError
from antcode_logsink.sinks.base import LogEventSink
from antcode_logsink.sinks.direct import DirectSink
from antcode_logsink.sinks.durable import DurableSink
from antcode_logsink.transport.base import TransportBase


def create_sink(
    options: SinkOptions,
    transport: TransportBase,
    on_batch_sent: Callable[[int, bool], None] | None = None,
    on_send_error: Callable[[LogSinkError], None] | None = None,
) -> LogEventSink:
    """
    创建 Sink

    配置错误在这里立即抛出 ConfigurationError，不会留到后台线程。

    Args:
        options: Sink 配置
        transport: 传输层实例
        on_batch_sent: 批次发送完成回调 (条数, 是否成功)
        on_send_error: 发送失败回调

    Returns:
        DurableSink 或 DirectSink
    """
    if options is None:
        raise ConfigurationError("options 不能为空")
    options.validate()

    if transport is None:
        raise ConfigurationError("transport 不能为空", field="transport")

    sink_cls = DurableSink if options.durable else DirectSink
    return sink_cls(
        options,
        transport,
        on_batch_sent=on_batch_sent,
        on_send_error=on_send_error,
    )
