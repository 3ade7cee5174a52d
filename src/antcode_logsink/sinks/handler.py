"""
标准库 logging 适配
"""

import logging

from antcode_logsink.domain.models import LogEvent
from antcode_logsink.sinks.base import LogEventSink
from antcode_logsink.sinks.loguru_sink import OWN_LOGGER_PREFIX


class LogShipperHandler(logging.Handler):
    """
    把标准库日志记录交给 LogEventSink 的 Handler

    用法:
        sink = create_sink(options, transport)
        logging.getLogger().addHandler(LogShipperHandler(sink))
    """

    def __init__(self, sink: LogEventSink, level: int = logging.NOTSET, close_sink: bool = True):
        super().__init__(level)
        self.sink = sink
        self.close_sink = close_sink  # close() 时是否一并关闭 Sink

    def emit(self, record: logging.LogRecord) -> None:
        if record.name.startswith(OWN_LOGGER_PREFIX):
            return
        try:
            # 设置了 formatter 时消息取格式化结果
            message = self.format(record) if self.formatter else record.getMessage()
            self.sink.emit(LogEvent.from_logging(record, message))
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        if self.close_sink and self.sink is not None:
            self.sink.close()
        super().close()
