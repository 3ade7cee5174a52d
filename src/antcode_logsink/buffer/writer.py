"""
持久化缓冲写入器

在宿主线程中同步追加日志记录到滚动的本地文件（一条一行），
由后台发送器独立读取。写入失败只丢弃当前记录，绝不影响宿主的日志调用。
"""

import os
import threading
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import BinaryIO

from antcode_logsink.buffer.files import BufferFile, BufferFileSet
from antcode_logsink.domain.models import LogRecord


class BufferWriter:
    """
    缓冲写入器

    - 持有唯一的追加句柄，所有写入和轮转都在同一把锁内完成，
      因此不会有记录被拆到两个文件里
    - 文件超过大小上限或日期变化时轮转
    - 重新打开的文件若以半条记录结尾（上次进程在写入中途崩溃），
      不再向其追加，而是直接滚动到下一个序号
    """

    def __init__(
        self,
        base_filename: str | Path,
        file_size_limit_bytes: int | None = None,
        sync_on_write: bool = False,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        初始化缓冲写入器

        Args:
            base_filename: 缓冲文件基础路径（不含日期和扩展名）
            file_size_limit_bytes: 单个文件大小上限，None 表示不限制
            sync_on_write: 每次写入后 fsync
            clock: 当前时间来源，用于按日期轮转
        """
        self._files = BufferFileSet(base_filename)
        self._size_limit = file_size_limit_bytes
        self._sync_on_write = sync_on_write
        self._clock = clock or datetime.now

        self._lock = threading.Lock()
        self._handle: BinaryIO | None = None
        self._current: BufferFile | None = None
        self._current_size = 0
        self._closed = False

        # 统计
        self._records_written = 0
        self._bytes_written = 0
        self._records_dropped = 0
        self._rotations = 0

        # 待上报的失败（由后台线程取走并记录日志）
        self._unreported_failures = 0
        self._last_error: str | None = None

    @property
    def file_set(self) -> BufferFileSet:
        return self._files

    def append(self, record: LogRecord) -> bool:
        """
        追加一条记录

        Returns:
            是否写入成功（失败时记录被丢弃）
        """
        with self._lock:
            if self._closed:
                self._records_dropped += 1
                return False

            try:
                line = record.to_line()
                self._ensure_file(len(line))
                self._handle.write(line)
                self._handle.flush()
                if self._sync_on_write:
                    os.fsync(self._handle.fileno())
            except (OSError, ValueError) as e:
                self._records_dropped += 1
                self._unreported_failures += 1
                self._last_error = f"{type(e).__name__}: {e}"
                # 句柄状态未知，下次写入时重新打开
                self._close_handle()
                return False

            self._current_size += len(line)
            self._records_written += 1
            self._bytes_written += len(line)
            return True

    def pop_failures(self) -> tuple[int, str | None]:
        """取走上次调用以来的写入失败数和最后一个错误"""
        with self._lock:
            count, error = self._unreported_failures, self._last_error
            self._unreported_failures = 0
            return count, error

    def close(self) -> None:
        """关闭写入器"""
        with self._lock:
            if self._handle is not None:
                try:
                    self._handle.flush()
                    os.fsync(self._handle.fileno())
                except OSError:
                    pass
            self._close_handle()
            self._closed = True

    def _ensure_file(self, incoming: int) -> None:
        """确保有可写的当前文件，必要时轮转（需持有锁）"""
        today = self._clock().strftime("%Y%m%d")

        if self._handle is not None and self._current is not None:
            if today > self._current.date:
                self._close_handle()
                self._open_latest(today)
                self._rotations += 1
            elif (
                self._size_limit is not None
                and self._current_size > 0
                and self._current_size + incoming > self._size_limit
            ):
                date, sequence = self._current.date, self._current.sequence + 1
                self._close_handle()
                self._open(date, sequence)
                self._rotations += 1

        if self._handle is None:
            self._open_latest(today)

    def _open_latest(self, today: str) -> None:
        """打开最新的缓冲文件继续追加，不可追加时滚动到下一个序号"""
        self._files.directory.mkdir(parents=True, exist_ok=True)

        existing = self._files.list_files()
        latest = existing[-1] if existing else None

        # 时钟回拨时沿用已有的最大日期，保证新文件排在已有文件之后
        if latest is None or today > latest.date:
            self._open(today, 0)
            return

        size = latest.size()
        appendable = _ends_at_record_boundary(latest.path) and (
            self._size_limit is None or size < self._size_limit
        )
        if appendable:
            self._open(latest.date, latest.sequence, size)
        else:
            self._open(latest.date, latest.sequence + 1)

    def _open(self, date: str, sequence: int, size: int | None = None) -> None:
        path = self._files.path_for(date, sequence)
        path.parent.mkdir(parents=True, exist_ok=True)
        self._handle = open(path, "ab")
        self._current = BufferFile(date=date, sequence=sequence, path=path)
        self._current_size = size if size is not None else path.stat().st_size

    def _close_handle(self) -> None:
        if self._handle is not None:
            try:
                self._handle.close()
            except OSError:
                pass
            self._handle = None

    def get_stats(self) -> dict:
        """获取统计信息"""
        return {
            "current_file": str(self._current.path) if self._current else None,
            "current_size": self._current_size,
            "records_written": self._records_written,
            "bytes_written": self._bytes_written,
            "records_dropped": self._records_dropped,
            "rotations": self._rotations,
            "last_error": self._last_error,
            "closed": self._closed,
        }


def _ends_at_record_boundary(path: Path) -> bool:
    """文件为空或以换行结尾"""
    try:
        with open(path, "rb") as f:
            f.seek(0, os.SEEK_END)
            if f.tell() == 0:
                return True
            f.seek(-1, os.SEEK_END)
            return f.read(1) == b"\n"
    except FileNotFoundError:
        return True
