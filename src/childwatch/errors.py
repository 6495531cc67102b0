"""childwatch 异常类。"""

from __future__ import annotations

from collections.abc import Sequence

__all__ = [
    "ChildwatchError",
    "SpawnError",
    "ProcessStateError",
]


class ChildwatchError(Exception):
    """childwatch 基础异常。"""
    pass


class SpawnError(ChildwatchError):
    """子进程创建失败（可执行文件不存在、权限不足、资源耗尽等）。

    Attributes:
        argv: 尝试启动的命令
        cause: 底层异常（OSError，或参数非法时的 ValueError）
    """

    def __init__(self, argv: Sequence[str], cause: OSError | ValueError) -> None:
        self.argv = list(argv)
        self.cause = cause
        super().__init__(f"Failed to spawn {self.argv[0] if self.argv else '?'}: {cause}")


class ProcessStateError(ChildwatchError):
    """违反进程句柄的使用约定（重复绑定、重复安装管道、等待未启动的句柄）。"""
    pass
