"""
缓冲文件集合

缓冲文件命名为 <base>-<YYYYMMDD>.jsonl，同一天内的后续文件为
<base>-<YYYYMMDD>_<NNN>.jsonl。文件按 (日期, 序号) 排序，即创建顺序。
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from antcode_logsink.domain.models import BufferPosition

BUFFER_SUFFIX = ".jsonl"
CURSOR_SUFFIX = ".bookmark"


@dataclass(frozen=True, order=True)
class BufferFile:
    """一个缓冲文件"""

    date: str
    sequence: int
    path: Path = field(compare=False)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def sort_key(self) -> tuple[str, int]:
        return (self.date, self.sequence)

    def size(self) -> int:
        try:
            return self.path.stat().st_size
        except FileNotFoundError:
            return 0


class BufferFileSet:
    """
    某个 base 文件名下的全部缓冲文件

    写入器用它生成新文件名，读取器和发送器用它按创建顺序枚举文件、
    比较位置先后以及清理已发送完的文件。
    """

    def __init__(self, base_filename: str | Path):
        base = Path(base_filename)
        self.directory = base.parent if str(base.parent) else Path(".")
        self.prefix = base.name
        self.cursor_path = self.directory / f"{self.prefix}{CURSOR_SUFFIX}"
        self._pattern = re.compile(
            rf"^{re.escape(self.prefix)}-(\d{{8}})(?:_(\d{{3,}}))?{re.escape(BUFFER_SUFFIX)}$"
        )

    def file_name(self, date: str, sequence: int = 0) -> str:
        if sequence == 0:
            return f"{self.prefix}-{date}{BUFFER_SUFFIX}"
        return f"{self.prefix}-{date}_{sequence:03d}{BUFFER_SUFFIX}"

    def path_for(self, date: str, sequence: int = 0) -> Path:
        return self.directory / self.file_name(date, sequence)

    def parse(self, name: str) -> BufferFile | None:
        """解析文件名，不属于本集合时返回 None"""
        match = self._pattern.match(name)
        if not match:
            return None
        date, sequence = match.group(1), int(match.group(2) or 0)
        return BufferFile(date=date, sequence=sequence, path=self.directory / name)

    def list_files(self) -> list[BufferFile]:
        """按创建顺序列出所有缓冲文件"""
        if not self.directory.exists():
            return []

        files = []
        with os.scandir(self.directory) as entries:
            for entry in entries:
                if not entry.is_file():
                    continue
                buffer_file = self.parse(entry.name)
                if buffer_file is not None:
                    files.append(buffer_file)
        files.sort()
        return files

    def position_key(self, position: BufferPosition) -> tuple[str, int, int]:
        """位置排序键，无法解析的文件名排在最前"""
        buffer_file = self.parse(position.file)
        if buffer_file is None:
            return ("", -1, position.offset)
        return (buffer_file.date, buffer_file.sequence, position.offset)

    def pending_bytes(self, position: BufferPosition | None) -> int:
        """游标之后尚未发送的字节数"""
        total = 0
        for buffer_file in self.list_files():
            size = buffer_file.size()
            if position is None:
                total += size
                continue
            key = buffer_file.sort_key
            cursor_key = self.position_key(position)[:2]
            if key > cursor_key:
                total += size
            elif key == cursor_key:
                total += max(0, size - position.offset)
        return total

    def prune_shipped(self, position: BufferPosition) -> int:
        """删除游标所在文件之前（已全部发送）的文件"""
        cursor_key = self.position_key(position)[:2]
        removed = 0
        for buffer_file in self.list_files():
            if buffer_file.sort_key >= cursor_key:
                break
            try:
                buffer_file.path.unlink()
                removed += 1
                logger.debug(f"已删除发送完成的缓冲文件: {buffer_file.path}")
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"删除缓冲文件失败 {buffer_file.path}: {e}")
        return removed
