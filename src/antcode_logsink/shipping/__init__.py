"""
后台发送

- LogShipper：持久化缓冲的读取-发送-推进游标循环
- ExponentialBackoff：失败退避
- BackgroundLoop：承载后台事件循环的守护线程
"""

from antcode_logsink.shipping.backoff import BackoffConfig, ExponentialBackoff
from antcode_logsink.shipping.loop import BackgroundLoop
from antcode_logsink.shipping.shipper import LogShipper

__all__ = [
    "BackoffConfig",
    "ExponentialBackoff",
    "BackgroundLoop",
    "LogShipper",
]
