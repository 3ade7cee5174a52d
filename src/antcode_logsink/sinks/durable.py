"""
持久化 Sink

宿主线程把记录追加到本地缓冲文件，后台发送器按游标读取并发送。
进程崩溃或远端长时间不可用时日志留在磁盘上，恢复后按顺序补发。
"""

from collections.abc import Callable

from loguru import logger

from antcode_logsink.buffer.writer import BufferWriter
from antcode_logsink.config import SinkOptions
from antcode_logsink.domain.errors import ConfigurationError, LogSinkError
from antcode_logsink.domain.models import LogRecord
from antcode_logsink.shipping.backoff import BackoffConfig
from antcode_logsink.shipping.shipper import LogShipper
from antcode_logsink.sinks.base import LogEventSink
from antcode_logsink.transport.base import TransportBase


class DurableSink(LogEventSink):
    """
    持久化 Sink

    写入器和发送器一起创建、一起释放：关闭时先停止写入，
    再让发送器尽力发送剩余日志，最后释放传输层。
    """

    def __init__(
        self,
        options: SinkOptions,
        transport: TransportBase,
        on_batch_sent: Callable[[int, bool], None] | None = None,
        on_send_error: Callable[[LogSinkError], None] | None = None,
    ):
        if not options.buffer_base_filename:
            raise ConfigurationError(
                "持久化模式需要 buffer_base_filename", field="buffer_base_filename"
            )
        if transport is None:
            raise ConfigurationError("transport 不能为空", field="transport")

        super().__init__(options)

        self._writer = BufferWriter(
            options.buffer_base_filename,
            file_size_limit_bytes=options.buffer_file_size_limit_bytes,
            sync_on_write=options.sync_on_write,
        )
        self._shipper = LogShipper(
            stream_name=options.stream_name,
            transport=transport,
            file_set=self._writer.file_set,
            batch_posting_limit=options.batch_posting_limit,
            shipping_interval=options.buffer_log_shipping_interval,
            send_timeout=options.send_timeout,
            backoff_config=BackoffConfig(
                base_delay=options.backoff_base_delay,
                max_delay=options.backoff_max_delay,
                multiplier=options.backoff_multiplier,
                jitter=options.backoff_jitter,
            ),
            retain_shipped_files=options.retain_shipped_files,
            shutdown_timeout=options.shutdown_timeout,
            writer=self._writer,
            on_batch_sent=on_batch_sent,
            on_send_error=on_send_error,
        )
        self._shipper.start()

        logger.info(
            f"[{self.stream_name}] 持久化 Sink 已启动: buffer={options.buffer_base_filename}"
        )

    @property
    def writer(self) -> BufferWriter:
        return self._writer

    @property
    def shipper(self) -> LogShipper:
        return self._shipper

    def _emit_record(self, record: LogRecord) -> bool:
        return self._writer.append(record)

    def _close(self) -> None:
        self._writer.close()
        self._shipper.stop()
        logger.info(f"[{self.stream_name}] 持久化 Sink 已关闭")

    def get_stats(self) -> dict:
        stats = super().get_stats()
        stats["mode"] = "durable"
        stats["writer"] = self._writer.get_stats()
        stats["shipper"] = self._shipper.get_stats()
        return stats
