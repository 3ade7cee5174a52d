"""
AntCode 日志 Sink

把日志事件批量发送到远端流服务：
- 持久化模式：先写本地缓冲文件，后台按游标发送，崩溃或断网后按序补发
- 直发模式：内存队列批量发送，失败即丢弃

    from antcode_logsink import SinkOptions, HttpTransport, install

    options = SinkOptions(stream_name="app-logs", buffer_base_filename="/var/log/app/buffer")
    install(options, HttpTransport.from_options("https://logs.example.com/put-records", options))
"""

from antcode_logsink.config import SinkOptions
from antcode_logsink.domain import (
    ConfigurationError,
    LogEvent,
    LogRecord,
    LogSinkError,
    SubmitOutcome,
    TransportError,
)
from antcode_logsink.logging import setup_logging
from antcode_logsink.sinks import (
    DirectSink,
    DurableSink,
    LogEventSink,
    LoguruSink,
    LogShipperHandler,
    create_sink,
    install,
)
from antcode_logsink.transport import HttpTransport, TransportBase

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "SinkOptions",
    "LogEvent",
    "LogRecord",
    "SubmitOutcome",
    "LogSinkError",
    "ConfigurationError",
    "TransportError",
    "LogEventSink",
    "DurableSink",
    "DirectSink",
    "create_sink",
    "LoguruSink",
    "install",
    "LogShipperHandler",
    "TransportBase",
    "HttpTransport",
    "setup_logging",
]
