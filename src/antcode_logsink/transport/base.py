"""
传输层抽象基类

远端接收端对本模块是黑盒：接收一个流名称和一批序列化记录，
返回全部接收 / 部分接收（被拒记录下标）/ 请求失败三种结果之一。
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from antcode_logsink.domain.models import SubmitOutcome


class TransportBase(ABC):
    """
    传输层抽象基类

    submit 在发送器的后台事件循环中调用；实现可以直接抛出异常，
    调用方会统一视为失败并退避重试。
    """

    @property
    def protocol_name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def submit(self, stream: str, records: Sequence[str]) -> SubmitOutcome:
        """
        提交一批记录

        Args:
            stream: 目标流名称
            records: 按顺序排列的序列化记录

        Returns:
            提交结果
        """
        ...

    async def close(self) -> None:
        """释放连接等资源"""
        return None
