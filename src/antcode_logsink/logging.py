"""日志配置模块

供宿主程序初始化 loguru 控制台/文件输出；本包自身的诊断日志也走这里的格式。
"""

import os
import sys

from loguru import logger

# 日志格式
CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logging(
    level: str | None = None,
    log_file_path: str | None = None,
) -> None:
    """初始化日志系统

    会移除 loguru 已有的 handler，已安装的 Sink 需要在此之后重新 install。

    Args:
        level: 日志级别，默认读取 LOGSINK_LOG_LEVEL，缺省为 INFO
        log_file_path: 日志文件路径，为空时只输出到控制台
    """
    logger.remove()

    log_level = (level or os.getenv("LOGSINK_LOG_LEVEL") or "INFO").upper()

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=log_level,
        colorize=True,
    )

    if log_file_path:
        log_dir = os.path.dirname(log_file_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        logger.add(
            log_file_path,
            format=FILE_FORMAT,
            level=log_level,
            rotation="500 MB",
            retention="30 days",
            encoding="utf-8",
            enqueue=True,
        )

    logger.debug(f"日志初始化完成: level={log_level}, file={log_file_path or '-'}")
