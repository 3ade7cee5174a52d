"""
Sink 抽象基类

两种实现共享同一套外部行为：按最小级别过滤、序列化、幂等关闭。
emit 总是在宿主线程中同步执行，不会抛出异常，也不会等待网络 I/O。
"""

import atexit
import threading
import weakref
from abc import ABC, abstractmethod

from antcode_logsink.config import SinkOptions
from antcode_logsink.domain.models import LogEvent, LogRecord

# 尚未关闭的 Sink，进程退出时逐个关闭（弱引用，不阻止回收）
_open_sinks: "weakref.WeakSet[LogEventSink]" = weakref.WeakSet()


def _close_open_sinks() -> None:
    for sink in list(_open_sinks):
        sink.close()


atexit.register(_close_open_sinks)


class LogEventSink(ABC):
    """
    日志事件 Sink 基类

    子类实现 _emit_record（接收已过滤并序列化的记录）和 _close。
    """

    def __init__(self, options: SinkOptions):
        self.options = options
        self.stream_name = options.stream_name
        self._minimum_level_no = options.minimum_level_no
        self._closed = False
        self._close_lock = threading.Lock()

        # 统计
        self._events_received = 0
        self._events_filtered = 0
        self._events_unserializable = 0

        # 进程退出时尽力发送
        _open_sinks.add(self)

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: LogEvent) -> bool:
        """
        接收一条日志事件

        Returns:
            事件是否被接受（被过滤、已关闭或写入失败时为 False）
        """
        if self._closed:
            return False

        self._events_received += 1
        if event.level_no < self._minimum_level_no:
            self._events_filtered += 1
            return False

        try:
            record = event.to_record()
        except (TypeError, ValueError):
            self._events_unserializable += 1
            return False

        return self._emit_record(record)

    @abstractmethod
    def _emit_record(self, record: LogRecord) -> bool:
        """处理一条已序列化的记录"""
        ...

    def close(self) -> None:
        """关闭 Sink（可重复调用）"""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        _open_sinks.discard(self)
        self._close()

    @abstractmethod
    def _close(self) -> None:
        ...

    def __enter__(self) -> "LogEventSink":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def get_stats(self) -> dict:
        return {
            "stream_name": self.stream_name,
            "closed": self._closed,
            "events_received": self._events_received,
            "events_filtered": self._events_filtered,
            "events_unserializable": self._events_unserializable,
        }
