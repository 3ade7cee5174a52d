"""
日志 Sink 配置模块

支持三种来源：关键字参数、环境变量（LOGSINK_*，会先加载 .env）、YAML 文件。
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from loguru import logger

from antcode_logsink.domain.enums import LEVEL_NUMBERS
from antcode_logsink.domain.errors import ConfigurationError

ENV_PREFIX = "LOGSINK_"

DEFAULT_BATCH_POSTING_LIMIT = 500
DEFAULT_BUFFER_FILE_SIZE_LIMIT_BYTES = 10 * 1024 * 1024   # 10MB 触发轮转
DEFAULT_BUFFER_LOG_SHIPPING_INTERVAL = 8.0
DEFAULT_PERIOD = 2.0
DEFAULT_SEND_TIMEOUT = 30.0

_ENV_LOADED = False


def _load_env_file(env_path: str | Path | None = None) -> None:
    """加载 .env 环境变量（仅一次）"""
    global _ENV_LOADED
    if _ENV_LOADED:
        return
    _ENV_LOADED = True

    path = Path(env_path) if env_path else Path.cwd() / ".env"
    if path.exists():
        load_dotenv(path, override=False)


def _get_env_value(*keys: str) -> str | None:
    """按优先顺序读取环境变量"""
    for key in keys:
        value = os.getenv(key)
        if value is not None and value != "":
            return value
    return None


def _parse_bool(value: str) -> bool:
    return value.lower() in ("1", "true", "yes", "on")


def _parse_optional_int(value: str) -> int | None:
    if value.lower() in ("none", "null", "unlimited"):
        return None
    return int(value)


def _normalize_path(path_value: str) -> str:
    """展开 ~ 和环境变量"""
    return os.path.expandvars(os.path.expanduser(str(path_value))).strip()


@dataclass
class SinkOptions:
    """
    日志 Sink 配置

    设置 buffer_base_filename 即启用持久化模式（先落盘，再由后台发送），
    否则使用内存批量直发模式。
    """

    # 目标流
    stream_name: str = ""
    shard_count: int | None = None

    # 持久化缓冲
    buffer_base_filename: str | None = None
    buffer_file_size_limit_bytes: int | None = DEFAULT_BUFFER_FILE_SIZE_LIMIT_BYTES
    sync_on_write: bool = False              # 每次写入都 fsync（更可靠但慢）
    retain_shipped_files: bool = False       # 保留已发送完的缓冲文件

    # 批次与节奏
    batch_posting_limit: int = DEFAULT_BATCH_POSTING_LIMIT
    buffer_log_shipping_interval: float = DEFAULT_BUFFER_LOG_SHIPPING_INTERVAL
    period: float = DEFAULT_PERIOD
    queue_limit: int = 10000                 # 直发模式内存队列上限

    # 过滤
    minimum_level: str = "TRACE"

    # 发送与退避
    send_timeout: float = DEFAULT_SEND_TIMEOUT
    backoff_base_delay: float = 1.0
    backoff_max_delay: float = 60.0
    backoff_multiplier: float = 2.0
    backoff_jitter: float = 0.0

    # 关闭
    shutdown_timeout: float = 10.0

    def __post_init__(self):
        if self.buffer_base_filename:
            self.buffer_base_filename = _normalize_path(self.buffer_base_filename)
        self.minimum_level = str(self.minimum_level).upper()

    @property
    def durable(self) -> bool:
        """是否启用持久化模式"""
        return bool(self.buffer_base_filename)

    @property
    def minimum_level_no(self) -> int:
        return LEVEL_NUMBERS[self.minimum_level]

    def validate(self) -> "SinkOptions":
        """校验配置，失败时抛出 ConfigurationError"""
        if not self.stream_name or not str(self.stream_name).strip():
            raise ConfigurationError("stream_name 不能为空", field="stream_name")

        if self.buffer_base_filename is not None and not self.buffer_base_filename.strip():
            raise ConfigurationError(
                "持久化模式需要有效的 buffer_base_filename", field="buffer_base_filename"
            )

        if self.minimum_level not in LEVEL_NUMBERS:
            raise ConfigurationError(
                f"未知的日志级别: {self.minimum_level}", field="minimum_level"
            )

        positive_ints = {
            "batch_posting_limit": self.batch_posting_limit,
            "queue_limit": self.queue_limit,
        }
        if self.shard_count is not None:
            positive_ints["shard_count"] = self.shard_count
        if self.buffer_file_size_limit_bytes is not None:
            positive_ints["buffer_file_size_limit_bytes"] = self.buffer_file_size_limit_bytes
        for name, value in positive_ints.items():
            if not isinstance(value, int) or value <= 0:
                raise ConfigurationError(f"{name} 必须是正整数: {value!r}", field=name)

        positive_floats = {
            "buffer_log_shipping_interval": self.buffer_log_shipping_interval,
            "period": self.period,
            "send_timeout": self.send_timeout,
            "backoff_base_delay": self.backoff_base_delay,
            "backoff_max_delay": self.backoff_max_delay,
            "shutdown_timeout": self.shutdown_timeout,
        }
        for name, value in positive_floats.items():
            if value <= 0:
                raise ConfigurationError(f"{name} 必须大于 0: {value!r}", field=name)

        if self.backoff_max_delay < self.backoff_base_delay:
            raise ConfigurationError(
                "backoff_max_delay 不能小于 backoff_base_delay", field="backoff_max_delay"
            )
        if self.backoff_multiplier < 1.0:
            raise ConfigurationError("backoff_multiplier 不能小于 1", field="backoff_multiplier")
        if not 0.0 <= self.backoff_jitter < 1.0:
            raise ConfigurationError("backoff_jitter 必须在 [0, 1) 之间", field="backoff_jitter")

        return self

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SinkOptions":
        """从字典创建，忽略未知字段"""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"忽略未知的 Sink 配置项: {sorted(unknown)}")
        return cls(**{key: value for key, value in data.items() if key in known})

    @classmethod
    def from_yaml(cls, path: str | Path) -> "SinkOptions":
        """从 YAML 文件加载"""
        config_path = Path(path)
        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"读取配置文件失败 {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"配置文件格式错误: {config_path}")

        # 支持顶层 logsink: 段
        section = data.get("logsink", data)
        return cls.from_dict(section)

    @classmethod
    def from_env(
        cls,
        prefix: str = ENV_PREFIX,
        env_file: str | Path | None = None,
        **overrides: Any,
    ) -> "SinkOptions":
        """
        从环境变量加载

        Args:
            prefix: 环境变量前缀
            env_file: .env 文件路径，默认当前目录下的 .env
            overrides: 优先级最高的显式参数
        """
        _load_env_file(env_file)

        data: dict[str, Any] = {}
        for f in fields(cls):
            raw = _get_env_value(f"{prefix}{f.name.upper()}")
            if raw is None:
                continue
            try:
                data[f.name] = _convert_env(f.name, raw)
            except ValueError as e:
                raise ConfigurationError(
                    f"环境变量 {prefix}{f.name.upper()} 无效: {raw!r}", field=f.name
                ) from e

        data.update(overrides)
        return cls(**data)


_INT_FIELDS = {"batch_posting_limit", "queue_limit"}
_OPTIONAL_INT_FIELDS = {"shard_count", "buffer_file_size_limit_bytes"}
_BOOL_FIELDS = {"sync_on_write", "retain_shipped_files"}
_FLOAT_FIELDS = {
    "buffer_log_shipping_interval",
    "period",
    "send_timeout",
    "backoff_base_delay",
    "backoff_max_delay",
    "backoff_multiplier",
    "backoff_jitter",
    "shutdown_timeout",
}


def _convert_env(name: str, raw: str) -> Any:
    if name in _INT_FIELDS:
        return int(raw)
    if name in _OPTIONAL_INT_FIELDS:
        return _parse_optional_int(raw)
    if name in _BOOL_FIELDS:
        return _parse_bool(raw)
    if name in _FLOAT_FIELDS:
        return float(raw)
    return raw
