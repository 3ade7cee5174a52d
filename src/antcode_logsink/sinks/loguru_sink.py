"""
loguru 适配

    sink = create_sink(options, transport)
    logger.add(LoguruSink(sink), filter=LoguruSink.accepts)

或者直接使用 install(options, transport)。
"""

from loguru import logger as default_logger

from antcode_logsink.config import SinkOptions
from antcode_logsink.domain.models import LogEvent
from antcode_logsink.sinks.base import LogEventSink
from antcode_logsink.sinks.factory import create_sink
from antcode_logsink.transport.base import TransportBase

# 本包自身的诊断日志不进入 Sink，避免自我反馈
OWN_LOGGER_PREFIX = "antcode_logsink"


class LoguruSink:
    """
    loguru sink 对象

    loguru 在 logger.remove() 时调用 stop()。不提供 flush()：
    loguru 会在每次 write 之后调用它。
    """

    def __init__(self, sink: LogEventSink):
        self.sink = sink

    @staticmethod
    def accepts(record: dict) -> bool:
        """loguru filter：排除本包自身的日志"""
        name = record.get("name") or ""
        return not name.startswith(OWN_LOGGER_PREFIX)

    def write(self, message) -> None:
        record = message.record
        if not self.accepts(record):
            return
        self.sink.emit(LogEvent.from_loguru(record))

    def stop(self) -> None:
        self.sink.close()


def install(
    options: SinkOptions,
    transport: TransportBase,
    logger=default_logger,
) -> tuple[int, LogEventSink]:
    """
    创建 Sink 并注册到 loguru

    Returns:
        (handler_id, sink)，logger.remove(handler_id) 会关闭 Sink
    """
    sink = create_sink(options, transport)
    handler_id = logger.add(
        LoguruSink(sink),
        level=options.minimum_level_no,
        filter=LoguruSink.accepts,
        format="{message}",
        catch=True,
    )
    return handler_id, sink
