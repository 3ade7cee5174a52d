"""
异常工具
"""

import asyncio

from antcode_logsink.domain.errors import (
    BufferWriteError,
    LogSinkError,
    TimeoutError,
    TransportError,
)


def map_exception(e: BaseException, operation: str | None = None) -> LogSinkError:
    """将标准异常映射为 LogSinkError"""
    if isinstance(e, LogSinkError):
        return e

    if isinstance(e, asyncio.TimeoutError):
        return TimeoutError(str(e) or "发送超时")

    if isinstance(e, ConnectionError):
        return TransportError(str(e), operation=operation, retryable=True)

    if isinstance(e, OSError) and operation != "submit":
        return BufferWriteError(str(e), path=getattr(e, "filename", None))

    return TransportError(f"{type(e).__name__}: {e}", operation=operation)
