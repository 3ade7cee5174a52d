"""
日志 Sink 域模型定义

LogEvent 是日志框架交给 Sink 的结构化事件，LogRecord 是它落盘/发送时的
不透明序列化形式（一条 JSON，一行）。
"""

import json
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from antcode_logsink.domain.enums import LEVEL_NUMBERS, SubmitStatus


@dataclass(frozen=True)
class LogRecord:
    """序列化后的日志记录（不可变）"""

    data: str

    def to_line(self) -> bytes:
        """序列化为一行（孤立代理字符以转义形式写出）"""
        return self.data.encode("utf-8", errors="backslashreplace") + b"\n"

    @classmethod
    def from_line(cls, line: bytes) -> "LogRecord":
        """从一行反序列化"""
        return cls(data=line.rstrip(b"\r\n").decode("utf-8", errors="replace"))


@dataclass
class LogEvent:
    """
    日志事件

    日志框架产生的一条结构化事件，在进入任一路径之前先按级别过滤，
    再序列化为 LogRecord。
    """

    timestamp: datetime
    level: str
    message: str
    level_no: int = 0
    logger: str = ""
    function: str = ""
    line: int = 0
    process: int | None = None
    thread: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)
    exception: str | None = None

    def __post_init__(self):
        if not self.level_no:
            self.level_no = LEVEL_NUMBERS.get(self.level.upper(), 0)

    @classmethod
    def from_loguru(cls, record: dict[str, Any]) -> "LogEvent":
        """从 loguru record 构建"""
        exception = None
        if record.get("exception"):
            exc_type, exc_value, exc_tb = record["exception"]
            exception = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))

        process = record.get("process")
        thread = record.get("thread")
        return cls(
            timestamp=record["time"],
            level=record["level"].name,
            level_no=record["level"].no,
            message=record["message"],
            logger=record.get("name") or "",
            function=record.get("function") or "",
            line=record.get("line") or 0,
            process=process.id if process is not None else None,
            thread=thread.id if thread is not None else None,
            extra=dict(record.get("extra") or {}),
            exception=exception,
        )

    @classmethod
    def from_logging(cls, record: Any, message: str | None = None) -> "LogEvent":
        """从标准库 logging.LogRecord 构建"""
        exception = None
        if record.exc_info and record.exc_info[0] is not None:
            exception = "".join(traceback.format_exception(*record.exc_info))

        return cls(
            timestamp=datetime.fromtimestamp(record.created).astimezone(),
            level=record.levelname,
            level_no=record.levelno,
            message=message if message is not None else record.getMessage(),
            logger=record.name,
            function=record.funcName or "",
            line=record.lineno or 0,
            process=record.process,
            thread=record.thread,
            exception=exception,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level,
            "message": self.message,
            "logger": self.logger,
            "function": self.function,
            "line": self.line,
            "process": self.process,
            "thread": self.thread,
            "extra": self.extra,
            "exception": self.exception,
        }

    def to_record(self) -> LogRecord:
        """序列化为 LogRecord（JSON 会转义换行，保证一条一行）"""
        return LogRecord(data=json.dumps(self.to_dict(), ensure_ascii=False, default=str))


@dataclass(frozen=True)
class BufferPosition:
    """缓冲文件中的位置：(文件名, 字节偏移)，偏移总是落在记录边界上"""

    file: str
    offset: int = 0

    def to_dict(self) -> dict:
        return {"file": self.file, "offset": self.offset}

    @classmethod
    def from_dict(cls, data: dict) -> "BufferPosition":
        return cls(file=str(data["file"]), offset=int(data["offset"]))


@dataclass
class Batch:
    """
    发送批次

    从游标之后连续读取的一组记录。positions[i] 是第 i 条记录之后的位置，
    部分成功时据此把游标推进到已接收前缀的末尾。
    """

    start: BufferPosition | None
    records: list[LogRecord] = field(default_factory=list)
    positions: list[BufferPosition] = field(default_factory=list)
    has_more: bool = False

    def __len__(self) -> int:
        return len(self.records)

    @property
    def is_empty(self) -> bool:
        return not self.records

    @property
    def end(self) -> BufferPosition | None:
        """整批之后的位置"""
        return self.positions[-1] if self.positions else self.start

    def position_after(self, count: int) -> BufferPosition | None:
        """前 count 条记录之后的位置"""
        if count <= 0:
            return self.start
        return self.positions[min(count, len(self.positions)) - 1]


@dataclass(frozen=True)
class SubmitOutcome:
    """远端提交结果"""

    status: SubmitStatus
    rejected: tuple[int, ...] = ()
    reason: str = ""

    @classmethod
    def accepted(cls) -> "SubmitOutcome":
        return cls(status=SubmitStatus.ACCEPTED)

    @classmethod
    def partial(cls, rejected, reason: str = "") -> "SubmitOutcome":
        indices = tuple(sorted(set(int(i) for i in rejected)))
        if not indices:
            return cls.accepted()
        return cls(status=SubmitStatus.PARTIAL, rejected=indices, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> "SubmitOutcome":
        return cls(status=SubmitStatus.FAILED, reason=reason)

    @property
    def is_success(self) -> bool:
        return self.status == SubmitStatus.ACCEPTED

    def accepted_prefix(self, total: int) -> int:
        """从批次开头起连续被接收的记录数"""
        if self.status == SubmitStatus.ACCEPTED:
            return total
        if self.status == SubmitStatus.FAILED:
            return 0
        return max(0, min(self.rejected[0], total))
