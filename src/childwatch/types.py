"""childwatch 常量与类型定义。

定义启动标志、kill 结果、优先级范围和进程描述等公共类型。
"""

from __future__ import annotations

import signal
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum, IntEnum, IntFlag
from pathlib import Path

__all__ = [
    "ExecFlags",
    "ProcessFlags",
    "KillFlags",
    "KillError",
    "ProcessState",
    "ProcessSpec",
    "ID_ANY",
    "PRIORITY_MIN",
    "PRIORITY_DEFAULT",
    "PRIORITY_MAX",
    "SIGNONE",
    "END_PROCESS",
    "is_valid_signal",
]

# 事件 ID：未指定
ID_ANY = -1

# 优先级范围（0 最低，100 最高，50 对应系统默认）
PRIORITY_MIN = 0
PRIORITY_DEFAULT = 50
PRIORITY_MAX = 100

# 信号 0 只做存在性检查，不投递任何信号
SIGNONE = 0

# 终止事件类型
END_PROCESS = "end_process"


class ExecFlags(IntFlag):
    """execute() 的启动标志。

    - ASYNC: 立即返回 pid，终止时异步通知
    - SYNC: 等待子进程退出并返回退出码
    - MAKE_GROUP_LEADER: 子进程成为新会话/进程组的组长
    """

    ASYNC = 0
    SYNC = 1
    MAKE_GROUP_LEADER = 4


class ProcessFlags(IntFlag):
    """Process 构造标志。"""

    DEFAULT = 0
    REDIRECT = 1


class KillFlags(IntFlag):
    """kill() 的作用范围。

    - NOCHILDREN: 只向指定进程发送信号
    - CHILDREN: 向该进程所在的进程组发送信号
    """

    NOCHILDREN = 0
    CHILDREN = 1


class KillError(IntEnum):
    """kill() 的结果。

    NO_PROCESS 通常是良性的：进程已经退出并被回收。
    """

    OK = 0
    BAD_SIGNAL = 1
    ACCESS_DENIED = 2
    NO_PROCESS = 3
    ERROR = 4


class ProcessState(str, Enum):
    """进程句柄的状态。

    UNBOUND -> RUNNING -> TERMINATED，不可逆。
    """

    UNBOUND = "unbound"
    RUNNING = "running"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class ProcessSpec:
    """Specification for a child process to launch.

    Attributes:
        argv: Command line arguments (first element is the executable)
        cwd: Working directory for the process (None = inherit parent)
        env: Environment variables (None = inherit parent)
    """

    argv: list[str]
    cwd: Path | None = None
    env: Mapping[str, str] | None = None

    def __post_init__(self) -> None:
        if not self.argv:
            raise ValueError("ProcessSpec.argv must not be empty")


def is_valid_signal(sig: int) -> bool:
    """检查信号编号在当前平台上是否有效。"""
    if sig == SIGNONE:
        return True
    return sig in signal.valid_signals()
