"""
传输层

- TransportBase：提交批次的抽象接口
- HttpTransport：基于 httpx 的实现
"""

from antcode_logsink.transport.base import TransportBase
from antcode_logsink.transport.http import HttpTransport

__all__ = [
    "TransportBase",
    "HttpTransport",
]
