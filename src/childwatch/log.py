"""childwatch 日志配置。

默认输出到 stderr（INFO）；CW_LOG_DEBUG 开启时输出到临时文件（DEBUG）。
只调整 childwatch 命名空间的级别，第三方库保持 WARNING。
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping

from .config import Config, get_config

__all__ = ["configure_logging", "JsonSerializingFormatter", "LOG_FORMAT"]

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class JsonSerializingFormatter(logging.Formatter):
    """尝试将日志参数中的对象 JSON 序列化。"""

    def format(self, record: logging.LogRecord) -> str:
        if isinstance(record.args, Mapping) and "%(" not in str(record.msg):
            # LogRecord 会把单个 dict 参数展开为 record.args 本身
            try:
                record.args = (json.dumps(dict(record.args), ensure_ascii=False, default=str),)
            except (TypeError, ValueError):
                pass
        if record.args and isinstance(record.args, tuple):
            new_args = []
            for arg in record.args:
                try:
                    if hasattr(arg, "model_dump"):
                        # Pydantic 模型（如 ProcessEvent）
                        new_args.append(json.dumps(arg.model_dump(), ensure_ascii=False))
                    elif isinstance(arg, dict):
                        new_args.append(json.dumps(arg, ensure_ascii=False, default=str))
                    else:
                        new_args.append(arg)
                except (TypeError, ValueError):
                    new_args.append(arg)
            record.args = tuple(new_args)
        return super().format(record)


def configure_logging(config: Config | None = None) -> logging.Handler:
    """配置日志输出。

    Args:
        config: 配置（默认使用全局配置）

    Returns:
        安装的 handler
    """
    config = config or get_config()

    handler: logging.Handler
    if config.log_debug and config.log_file:
        # LOG_DEBUG 模式：输出到临时文件
        handler = logging.FileHandler(config.log_file, encoding="utf-8")
        handler.setFormatter(JsonSerializingFormatter(LOG_FORMAT))
        log_level = logging.DEBUG
    else:
        # 默认模式：输出到 stderr
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_level = logging.INFO

    # 配置 root logger（第三方库）为 WARNING，减少噪音
    logging.basicConfig(
        level=logging.WARNING,
        handlers=[handler],
    )
    # 只对 childwatch 命名空间启用详细日志
    logging.getLogger("childwatch").setLevel(log_level)

    return handler
