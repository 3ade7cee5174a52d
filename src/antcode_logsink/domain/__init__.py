"""
日志 Sink 域层
"""

from antcode_logsink.domain.enums import (
    LEVEL_NUMBERS,
    CycleResult,
    ShipperState,
    SubmitStatus,
)
from antcode_logsink.domain.errors import (
    BufferWriteError,
    ConfigurationError,
    CursorError,
    LogSinkError,
    SinkClosedError,
    TransportError,
)
from antcode_logsink.domain.models import (
    Batch,
    BufferPosition,
    LogEvent,
    LogRecord,
    SubmitOutcome,
)

__all__ = [
    # Enums
    "LEVEL_NUMBERS",
    "CycleResult",
    "ShipperState",
    "SubmitStatus",
    # Errors
    "LogSinkError",
    "ConfigurationError",
    "BufferWriteError",
    "CursorError",
    "TransportError",
    "SinkClosedError",
    # Models
    "Batch",
    "BufferPosition",
    "LogEvent",
    "LogRecord",
    "SubmitOutcome",
]
