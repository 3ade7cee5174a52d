"""
日志发送器

后台周期任务：按游标读取批次 → 发送 → 根据结果推进游标或退避重试。

状态流转：
    IDLE --定时--> READING --空批次--> IDLE
    READING --> SENDING --全部成功--> IDLE（批次满则立即再读）
    SENDING --全部/部分失败--> BACKOFF --延迟--> READING
    任意状态 --stop()--> DISPOSED（尽力发送剩余日志后关闭传输层）

投递语义为至少一次：部分成功时游标只推进到已接收的最长前缀，
从第一条被拒记录开始的整段都会在下次重发。
"""

import asyncio
from collections.abc import Callable

from loguru import logger

from antcode_logsink.buffer.cursor import CursorStore
from antcode_logsink.buffer.files import BufferFileSet
from antcode_logsink.buffer.reader import BatchReader
from antcode_logsink.buffer.writer import BufferWriter
from antcode_logsink.domain.enums import CycleResult, ShipperState
from antcode_logsink.domain.errors import LogSinkError
from antcode_logsink.domain.models import Batch, BufferPosition, SubmitOutcome
from antcode_logsink.shipping.backoff import BackoffConfig, ExponentialBackoff
from antcode_logsink.shipping.loop import BackgroundLoop
from antcode_logsink.transport.base import TransportBase
from antcode_logsink.utils.exceptions import map_exception


class LogShipper:
    """
    持久化缓冲的发送器

    只读取缓冲文件、只写游标；运行在自己的后台线程和事件循环中，
    任何发送错误都不会传播到宿主线程，只通过日志和回调可见。
    """

    def __init__(
        self,
        stream_name: str,
        transport: TransportBase,
        file_set: BufferFileSet,
        batch_posting_limit: int = 500,
        shipping_interval: float = 8.0,
        send_timeout: float = 30.0,
        backoff_config: BackoffConfig | None = None,
        retain_shipped_files: bool = False,
        shutdown_timeout: float = 10.0,
        writer: BufferWriter | None = None,
        on_batch_sent: Callable[[int, bool], None] | None = None,
        on_send_error: Callable[[LogSinkError], None] | None = None,
    ):
        """
        初始化发送器

        Args:
            stream_name: 目标流名称
            transport: 传输层实例
            file_set: 缓冲文件集合
            batch_posting_limit: 每批最大记录数
            shipping_interval: 轮询间隔（秒）
            send_timeout: 单次发送超时（秒）
            backoff_config: 失败退避配置
            retain_shipped_files: 是否保留已发送完的缓冲文件
            shutdown_timeout: 关闭时尽力发送的时间上限（秒）
            writer: 缓冲写入器，用于上报宿主线程中的写入失败
            on_batch_sent: 批次发送完成回调 (条数, 是否成功)
            on_send_error: 发送失败回调
        """
        self.stream_name = stream_name
        self._transport = transport
        self._files = file_set
        self._reader = BatchReader(file_set, batch_posting_limit)
        self._cursor = CursorStore(file_set)
        self._backoff = ExponentialBackoff(backoff_config)
        self._shipping_interval = shipping_interval
        self._send_timeout = send_timeout
        self._retain_shipped_files = retain_shipped_files
        self._shutdown_timeout = shutdown_timeout
        self._writer = writer
        self._on_batch_sent = on_batch_sent
        self._on_send_error = on_send_error

        self._runner = BackgroundLoop(f"logsink-shipper-{stream_name}")
        self._state = ShipperState.IDLE
        self._cursor_loaded = False
        self._retry_delay = 0.0
        self._last_batch_full = False

        # 统计
        self._batches_sent = 0
        self._records_sent = 0
        self._failed_attempts = 0
        self._records_rejected = 0
        self._files_pruned = 0
        self._last_error: str | None = None

    @property
    def state(self) -> ShipperState:
        return self._state

    @property
    def backoff(self) -> ExponentialBackoff:
        return self._backoff

    @property
    def cursor(self) -> BufferPosition | None:
        """当前已确认的发送位置"""
        return self._cursor.position

    def start(self) -> None:
        """启动后台发送线程"""
        if self._state == ShipperState.DISPOSED:
            return
        self._runner.start(self._run)
        logger.debug(f"[{self.stream_name}] 发送器已启动")

    def wake(self) -> None:
        """立即触发一次发送周期"""
        self._runner.wake()

    def stop(self) -> None:
        """停止发送器：取消等待，尽力发送剩余日志，释放传输层"""
        if self._state == ShipperState.DISPOSED:
            return

        if self._runner.is_alive and not self._runner.stop(self._shutdown_timeout + self._send_timeout):
            # 后台线程仍在运行，状态由其退出时设置
            logger.warning(f"[{self.stream_name}] 发送器未在超时内停止，剩余日志留在缓冲中")
            return

        self._state = ShipperState.DISPOSED
        logger.debug(f"[{self.stream_name}] 发送器已停止")

    async def ship_once(self) -> CycleResult:
        """
        执行一次发送周期

        Returns:
            EMPTY（无待发送日志）/ SHIPPED（整批成功）/ FAILED（全部或部分失败）
        """
        self._report_writer_failures()

        self._state = ShipperState.READING
        if not self._cursor_loaded:
            await self._cursor.load()
            self._cursor_loaded = True

        batch = await self._reader.read_batch(self._cursor.position)
        if batch.is_empty:
            self._state = ShipperState.IDLE
            self._last_batch_full = False
            return CycleResult.EMPTY

        self._state = ShipperState.SENDING
        outcome, error = await self._submit(batch)

        accepted = outcome.accepted_prefix(len(batch))
        if accepted > 0:
            try:
                await self._advance(batch.position_after(accepted))
            except LogSinkError as e:
                # 游标未落盘：本批次会被重发（至少一次）
                outcome, error = SubmitOutcome.failed(e.message), e
                accepted = 0

        if outcome.is_success:
            self._backoff.reset()
            self._batches_sent += 1
            self._records_sent += len(batch)
            self._last_batch_full = batch.has_more
            self._state = ShipperState.IDLE
            self._notify_batch_sent(len(batch), True)
            return CycleResult.SHIPPED

        self._records_sent += accepted
        self._records_rejected += len(batch) - accepted
        self._failed_attempts += 1
        self._last_error = outcome.reason or (error.message if error else None)
        self._retry_delay = self._backoff.next_delay()
        self._state = ShipperState.BACKOFF

        logger.warning(
            f"[{self.stream_name}] 日志批次发送失败 "
            f"(accepted={accepted}/{len(batch)}, failures={self._backoff.retry_count}), "
            f"{self._retry_delay:.1f}s 后重试: {self._last_error}"
        )
        self._notify_batch_sent(len(batch), False)
        self._notify_send_error(error or LogSinkError(self._last_error or "发送失败", code="SUBMIT_REJECTED"))
        return CycleResult.FAILED

    async def _submit(self, batch: Batch) -> tuple[SubmitOutcome, LogSinkError | None]:
        """发送批次，任何异常都转换为失败结果"""
        records = [record.data for record in batch.records]
        try:
            outcome = await asyncio.wait_for(
                self._transport.submit(self.stream_name, records),
                timeout=self._send_timeout,
            )
        except Exception as e:
            error = map_exception(e, operation="submit")
            return SubmitOutcome.failed(error.message), error
        return outcome, None

    async def _advance(self, position: BufferPosition | None) -> None:
        """推进并持久化游标，随后清理已发送完的文件"""
        if position is None:
            return
        saved = await self._cursor.save(position)
        if saved and not self._retain_shipped_files:
            self._files_pruned += self._files.prune_shipped(position)

    async def _run(self) -> None:
        """后台主循环"""
        try:
            while not self._runner.stopping:
                try:
                    result = await self.ship_once()
                except Exception as e:
                    logger.error(f"[{self.stream_name}] 发送周期异常: {e}")
                    self._last_error = str(e)
                    self._retry_delay = self._backoff.next_delay()
                    self._state = ShipperState.BACKOFF
                    result = CycleResult.FAILED

                if self._runner.stopping:
                    break

                if result == CycleResult.FAILED:
                    await self._runner.sleep(self._retry_delay)
                elif result == CycleResult.SHIPPED and self._last_batch_full:
                    continue
                else:
                    self._state = ShipperState.IDLE
                    await self._runner.sleep(self._shipping_interval)

            await self._final_flush()
        finally:
            await self._close_transport()
            self._state = ShipperState.DISPOSED

    async def _final_flush(self) -> None:
        """关闭前尽力发送剩余日志，遇到失败或超时即放弃"""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._shutdown_timeout

        while loop.time() < deadline:
            try:
                result = await self.ship_once()
            except Exception as e:
                logger.error(f"[{self.stream_name}] 关闭前发送失败: {e}")
                return
            if result != CycleResult.SHIPPED:
                break

        pending = self._reader.pending_bytes(self._cursor.position)
        if pending:
            logger.info(f"[{self.stream_name}] 关闭时仍有 {pending} 字节待发送，将在下次启动后继续")

    async def _close_transport(self) -> None:
        try:
            await self._transport.close()
        except Exception as e:
            logger.warning(f"[{self.stream_name}] 关闭传输层失败: {e}")

    def _report_writer_failures(self) -> None:
        if self._writer is None:
            return
        count, error = self._writer.pop_failures()
        if count:
            logger.warning(f"[{self.stream_name}] 缓冲写入失败，已丢弃 {count} 条日志: {error}")

    def _notify_batch_sent(self, count: int, success: bool) -> None:
        if self._on_batch_sent:
            try:
                self._on_batch_sent(count, success)
            except Exception as e:
                logger.error(f"[{self.stream_name}] 批次回调异常: {e}")

    def _notify_send_error(self, error: LogSinkError) -> None:
        if self._on_send_error:
            try:
                self._on_send_error(error)
            except Exception as e:
                logger.error(f"[{self.stream_name}] 错误回调异常: {e}")

    def get_stats(self) -> dict:
        """获取统计信息"""
        position = self._cursor.position
        return {
            "stream_name": self.stream_name,
            "state": self._state.value,
            "cursor": position.to_dict() if position else None,
            "pending_bytes": self._reader.pending_bytes(position),
            "batches_sent": self._batches_sent,
            "records_sent": self._records_sent,
            "records_rejected": self._records_rejected,
            "failed_attempts": self._failed_attempts,
            "consecutive_failures": self._backoff.retry_count,
            "files_pruned": self._files_pruned,
            "last_error": self._last_error,
        }
