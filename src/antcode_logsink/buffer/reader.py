"""
批次读取器

从游标位置开始按创建顺序扫描缓冲文件，读取完整的记录行组成批次。
"""

import aiofiles
from loguru import logger

from antcode_logsink.buffer.files import BufferFile, BufferFileSet
from antcode_logsink.domain.models import Batch, BufferPosition, LogRecord

READ_CHUNK_SIZE = 64 * 1024


class BatchReader:
    """
    批次读取器

    - 已读完的文件直接跳过，跨文件边界继续读取
    - 最新文件末尾没有换行的半条记录视为"尚未写完"，留到下次再读
    - 旧文件（已轮转）末尾的半条记录永远不会被补全，跳过并告警一次
    - 没有待发送记录时返回空批次
    """

    def __init__(
        self,
        file_set: BufferFileSet,
        batch_posting_limit: int,
        chunk_size: int = READ_CHUNK_SIZE,
    ):
        self._files = file_set
        self._limit = batch_posting_limit
        self._chunk_size = chunk_size
        self._warned_fragments: set[str] = set()

    async def read_batch(self, position: BufferPosition | None) -> Batch:
        """
        读取下一批次

        Args:
            position: 游标位置，None 表示从最早的缓冲文件开头读取

        Returns:
            最多 batch_posting_limit 条记录的批次
        """
        batch = Batch(start=position)
        files = self._files.list_files()
        if not files:
            return batch

        index, offset = self._locate(files, position)

        while index < len(files) and len(batch) < self._limit:
            is_last = index == len(files) - 1
            finished = await self._read_file(files[index], offset, batch, is_last)
            if not finished or is_last:
                break
            index += 1
            offset = 0

        batch.has_more = len(batch) >= self._limit
        return batch

    def pending_bytes(self, position: BufferPosition | None) -> int:
        """游标之后的积压字节数"""
        return self._files.pending_bytes(position)

    def _locate(
        self,
        files: list[BufferFile],
        position: BufferPosition | None,
    ) -> tuple[int, int]:
        """定位游标所在文件的下标和偏移"""
        if position is None:
            return 0, 0

        for index, buffer_file in enumerate(files):
            if buffer_file.name == position.file:
                return index, position.offset

        # 游标文件已被删除：从其后的第一个文件开头继续
        cursor_key = self._files.position_key(position)[:2]
        for index, buffer_file in enumerate(files):
            if buffer_file.sort_key > cursor_key:
                return index, 0
        return len(files), 0

    async def _read_file(
        self,
        buffer_file: BufferFile,
        offset: int,
        batch: Batch,
        is_last: bool,
    ) -> bool:
        """
        从单个文件读取记录追加到批次

        Returns:
            是否已读到文件末尾（False 表示因批次已满而停止）
        """
        try:
            f = await aiofiles.open(buffer_file.path, "rb")
        except FileNotFoundError:
            return True

        pending = bytearray()
        pos = offset
        try:
            await f.seek(offset)
            while len(batch) < self._limit:
                chunk = await f.read(self._chunk_size)
                if not chunk:
                    break
                pending.extend(chunk)
                pos = self._take_lines(buffer_file, pending, pos, batch)
        finally:
            await f.close()

        if len(batch) >= self._limit:
            return False

        if pending and not is_last and buffer_file.name not in self._warned_fragments:
            self._warned_fragments.add(buffer_file.name)
            logger.warning(
                f"缓冲文件 {buffer_file.name} 末尾有 {len(pending)} 字节不完整记录，已跳过"
            )
        return True

    def _take_lines(
        self,
        buffer_file: BufferFile,
        pending: bytearray,
        pos: int,
        batch: Batch,
    ) -> int:
        """从缓冲区切出完整行，返回最后一条完整行之后的偏移"""
        while len(batch) < self._limit:
            newline = pending.find(b"\n")
            if newline == -1:
                break
            line = bytes(pending[: newline + 1])
            del pending[: newline + 1]
            pos += len(line)
            if not line.strip():
                continue
            batch.records.append(LogRecord.from_line(line))
            batch.positions.append(BufferPosition(file=buffer_file.name, offset=pos))
        return pos
