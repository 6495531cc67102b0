"""childwatch 环境变量配置管理。

环境变量:
    CW_DRAIN_TIMEOUT: 子进程退出后等待管道读到 EOF 的时间（秒）
        - 默认 1.0 秒，限制在 0-30 秒范围
        - 孙进程继承了管道时，超时后不再等待，直接发送终止通知

    CW_PIPE_BUFFER_LIMIT: 每个读管道最多缓存的字节数
        - 默认 1048576 (1 MiB)，最小 4096
        - 达到上限后暂停读取，直到调用方消费数据

    CW_READ_CHUNK: 每次从管道读取的字节数
        - 默认 4096

    CW_NEW_SESSION: 是否总是在新会话中启动子进程
        - true/1/yes = 开启
        - false/0/no = 关闭 (默认，仅 ExecFlags.MAKE_GROUP_LEADER 时开启)

    CW_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (日志输出到临时文件)
        - false/0/no = 关闭 (默认，日志输出到 stderr)
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = ["Config", "load_config", "get_config", "reload_config"]

DEFAULT_DRAIN_TIMEOUT = 1.0
DEFAULT_PIPE_BUFFER_LIMIT = 1024 * 1024
DEFAULT_READ_CHUNK = 4096
MIN_PIPE_BUFFER_LIMIT = 4096


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_drain_timeout(value: str | None) -> float:
    """解析管道排空超时环境变量。"""
    if not value:
        return DEFAULT_DRAIN_TIMEOUT
    try:
        timeout = float(value)
        return max(0.0, min(timeout, 30.0))  # 限制在 0-30 秒范围
    except ValueError:
        return DEFAULT_DRAIN_TIMEOUT


def _parse_positive_int(value: str | None, default: int, minimum: int = 1) -> int:
    """解析正整数环境变量，无效值返回默认值。"""
    if not value:
        return default
    try:
        return max(minimum, int(value))
    except ValueError:
        return default


@dataclass
class Config:
    """childwatch 配置。

    Attributes:
        drain_timeout: 退出后等待管道 EOF 的时间（秒）
        pipe_buffer_limit: 每个读管道的缓存上限（字节）
        read_chunk: 每次读取的字节数
        new_session: 是否总是在新会话中启动子进程
        log_debug: 日志调试模式（输出到临时文件）
        log_file: 日志文件路径（当 log_debug=True 时自动设置）
    """

    drain_timeout: float = DEFAULT_DRAIN_TIMEOUT
    pipe_buffer_limit: int = DEFAULT_PIPE_BUFFER_LIMIT
    read_chunk: int = DEFAULT_READ_CHUNK
    new_session: bool = False
    log_debug: bool = False
    log_file: str | None = None

    def __repr__(self) -> str:
        return (
            f"Config(drain_timeout={self.drain_timeout}, "
            f"pipe_buffer_limit={self.pipe_buffer_limit}, "
            f"read_chunk={self.read_chunk}, "
            f"new_session={self.new_session}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def _generate_log_file_path() -> str:
    """生成日志文件路径。

    Returns:
        临时目录下的日志文件绝对路径
    """
    log_dir = Path(tempfile.gettempdir()) / "childwatch"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"childwatch_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """从环境变量加载配置。"""
    log_debug = _parse_bool(os.environ.get("CW_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        drain_timeout=_parse_drain_timeout(os.environ.get("CW_DRAIN_TIMEOUT")),
        pipe_buffer_limit=_parse_positive_int(
            os.environ.get("CW_PIPE_BUFFER_LIMIT"),
            DEFAULT_PIPE_BUFFER_LIMIT,
            minimum=MIN_PIPE_BUFFER_LIMIT,
        ),
        read_chunk=_parse_positive_int(
            os.environ.get("CW_READ_CHUNK"),
            DEFAULT_READ_CHUNK,
        ),
        new_session=_parse_bool(os.environ.get("CW_NEW_SESSION"), default=False),
        log_debug=log_debug,
        log_file=log_file,
    )


# 全局配置实例（延迟加载）
_config: Config | None = None


def get_config() -> Config:
    """获取全局配置实例。"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """重新加载配置（用于测试）。"""
    global _config
    _config = load_config()
    return _config
