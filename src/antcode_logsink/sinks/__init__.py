"""
Sink 实现与日志框架适配
"""

from antcode_logsink.sinks.base import LogEventSink
from antcode_logsink.sinks.direct import DirectSink
from antcode_logsink.sinks.durable import DurableSink
from antcode_logsink.sinks.factory import create_sink
from antcode_logsink.sinks.handler import LogShipperHandler
from antcode_logsink.sinks.loguru_sink import LoguruSink, install

__all__ = [
    "LogEventSink",
    "DirectSink",
    "DurableSink",
    "create_sink",
    "LoguruSink",
    "install",
    "LogShipperHandler",
]
