"""
发送游标存储

以一个很小的文件持久化 (文件名, 字节偏移)，记录已确认发送到的位置。
每次更新整体覆盖：写临时文件 → fsync → 原子替换 → fsync 目录，
save 返回之前游标一定已落盘。
"""

import contextlib
import json
import os
from pathlib import Path

import aiofiles
import aiofiles.os
from loguru import logger

from antcode_logsink.buffer.files import BufferFileSet
from antcode_logsink.domain.errors import CursorError
from antcode_logsink.domain.models import BufferPosition


class CursorStore:
    """发送游标存储"""

    def __init__(self, file_set: BufferFileSet, path: str | Path | None = None):
        """
        初始化游标存储

        Args:
            file_set: 游标所指向的缓冲文件集合（用于比较位置先后）
            path: 游标文件路径，默认 <base>.bookmark
        """
        self._files = file_set
        self._path = Path(path) if path else file_set.cursor_path
        self._tmp_path = self._path.with_name(self._path.name + ".tmp")
        self._position: BufferPosition | None = None
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def position(self) -> BufferPosition | None:
        """最近一次加载或保存的位置"""
        return self._position

    async def load(self) -> BufferPosition | None:
        """
        加载游标

        Returns:
            已保存的位置；没有游标文件时返回 None（从最早的缓冲文件开头发送）
        """
        if not await aiofiles.os.path.exists(self._path):
            self._position = None
            self._loaded = True
            return None

        try:
            async with aiofiles.open(self._path, "r", encoding="utf-8") as f:
                data = json.loads(await f.read())
            self._position = BufferPosition.from_dict(data)
            if self._position.offset < 0:
                raise ValueError(f"偏移为负: {self._position.offset}")
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"游标文件无法解析，将从最早的缓冲文件开始发送 {self._path}: {e}")
            self._position = None

        self._loaded = True
        return self._position

    async def save(self, position: BufferPosition) -> bool:
        """
        保存游标（返回前已持久化）

        Returns:
            是否写入；试图把游标往回移动时拒绝写入并返回 False

        Raises:
            CursorError: 写入失败
        """
        if not self._loaded:
            await self.load()

        if self._position is not None:
            if self._files.position_key(position) < self._files.position_key(self._position):
                logger.warning(
                    f"拒绝回退游标: {self._position.file}@{self._position.offset} -> "
                    f"{position.file}@{position.offset}"
                )
                return False
            if position == self._position:
                return True

        data = json.dumps(position.to_dict())
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(self._tmp_path, "w", encoding="utf-8") as f:
                await f.write(data)
                await f.flush()
                os.fsync(f.fileno())
            await aiofiles.os.replace(self._tmp_path, self._path)
            self._fsync_directory()
        except OSError as e:
            raise CursorError(f"保存游标失败: {e}", path=str(self._path)) from e

        self._position = position
        return True

    def _fsync_directory(self) -> None:
        """fsync 所在目录，确保替换本身落盘（部分平台不支持，忽略）"""
        with contextlib.suppress(OSError):
            fd = os.open(str(self._path.parent), os.O_RDONLY)
            try:
                os.fsync(fd)
            finally:
                os.close(fd)
