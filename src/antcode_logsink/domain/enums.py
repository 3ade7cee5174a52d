"""
日志 Sink 域枚举定义
"""

from enum import Enum


class SubmitStatus(str, Enum):
    """远端提交结果"""

    ACCEPTED = "accepted"        # 全部接收
    PARTIAL = "partial"          # 部分接收
    FAILED = "failed"            # 请求失败


class ShipperState(str, Enum):
    """发送循环状态"""

    IDLE = "idle"                # 等待下一次定时
    READING = "reading"          # 读取批次
    SENDING = "sending"          # 发送中
    BACKOFF = "backoff"          # 失败退避
    DISPOSED = "disposed"        # 已释放（终态）


class CycleResult(str, Enum):
    """单次发送周期结果"""

    EMPTY = "empty"              # 没有待发送日志
    SHIPPED = "shipped"          # 整批发送成功
    FAILED = "failed"            # 全部或部分失败


# loguru 内置级别，数值与 loguru 保持一致
LEVEL_NUMBERS: dict[str, int] = {
    "TRACE": 5,
    "DEBUG": 10,
    "INFO": 20,
    "SUCCESS": 25,
    "WARNING": 30,
    "ERROR": 40,
    "CRITICAL": 50,
}
