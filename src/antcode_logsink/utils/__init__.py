"""
工具函数
"""

from antcode_logsink.utils.exceptions import map_exception

__all__ = [
    "map_exception",
]
