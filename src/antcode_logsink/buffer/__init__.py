"""
持久化缓冲

- 写入器：宿主线程同步追加，按大小/日期轮转
- 游标：记录已确认发送的位置，原子覆盖写
- 读取器：从游标开始按创建顺序读取完整记录
"""

from antcode_logsink.buffer.cursor import CursorStore
from antcode_logsink.buffer.files import BUFFER_SUFFIX, CURSOR_SUFFIX, BufferFile, BufferFileSet
from antcode_logsink.buffer.reader import BatchReader
from antcode_logsink.buffer.writer import BufferWriter

__all__ = [
    "BufferWriter",
    "CursorStore",
    "BatchReader",
    "BufferFile",
    "BufferFileSet",
    "BUFFER_SUFFIX",
    "CURSOR_SUFFIX",
]
