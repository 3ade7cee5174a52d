"""
指数退避

连续失败次数决定下一次重试的等待时间，任意一次成功后归零。
"""

import random
from dataclasses import dataclass


@dataclass
class BackoffConfig:
    """退避配置"""
    base_delay: float = 1.0
    max_delay: float = 60.0
    multiplier: float = 2.0
    jitter: float = 0.0        # 0 时延迟序列单调不减


class ExponentialBackoff:
    """指数退避"""

    def __init__(self, config: BackoffConfig | None = None):
        self._config = config or BackoffConfig()
        self._retry_count = 0

    @property
    def retry_count(self) -> int:
        """连续失败次数"""
        return self._retry_count

    def reset(self) -> None:
        self._retry_count = 0

    def next_delay(self) -> float:
        """记录一次失败并返回应等待的时间"""
        delay = self.get_delay_for_attempt(self._retry_count)
        self._retry_count += 1

        if self._config.jitter:
            delay *= 1.0 + random.random() * self._config.jitter
        return min(delay, self._config.max_delay)

    def get_delay_for_attempt(self, attempt: int) -> float:
        """获取指定尝试次数的延迟（不改变状态）"""
        # 指数过大时直接取上限，避免浮点溢出
        if attempt > 1000:
            return self._config.max_delay
        delay = self._config.base_delay * (self._config.multiplier ** attempt)
        return min(delay, self._config.max_delay)
