"""
日志 Sink 域错误定义
"""

from typing import Any


class LogSinkError(Exception):
    """日志 Sink 基础错误"""

    def __init__(
        self,
        message: str,
        code: str = "LOGSINK_ERROR",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(LogSinkError):
    """配置错误（构造 Sink 时立即抛出）"""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code="CONFIGURATION_ERROR", details=details)
        self.field = field


class BufferWriteError(LogSinkError):
    """本地缓冲写入错误"""

    def __init__(
        self,
        message: str,
        path: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code="BUFFER_WRITE_ERROR", details=details)
        self.path = path


class CursorError(LogSinkError):
    """发送游标读写错误"""

    def __init__(
        self,
        message: str,
        path: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code="CURSOR_ERROR", details=details)
        self.path = path


class TransportError(LogSinkError):
    """传输层错误"""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        retryable: bool = True,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code="TRANSPORT_ERROR", details=details)
        self.operation = operation
        self.retryable = retryable


class TimeoutError(TransportError):
    """发送超时"""

    def __init__(
        self,
        message: str,
        timeout_seconds: float | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, operation="submit", retryable=True, details=details)
        self.code = "TIMEOUT_ERROR"
        self.timeout_seconds = timeout_seconds


class SinkClosedError(LogSinkError):
    """Sink 已关闭"""

    def __init__(self, message: str = "Sink 已关闭"):
        super().__init__(message, code="SINK_CLOSED")
