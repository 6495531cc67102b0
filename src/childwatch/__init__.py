"""childwatch - 异步子进程控制器。

启动外部程序，可选地将 stdin/stdout/stderr 重定向为进程内的流，
并在子进程退出时发出一次性终止通知（包含退出码）。

环境变量:
    CW_DRAIN_TIMEOUT: 退出后等待管道 EOF 的时间 (默认 1.0s)
    CW_PIPE_BUFFER_LIMIT: 每个读管道的缓存上限 (默认 1 MiB)
    CW_NEW_SESSION: 总是在新会话中启动子进程 (默认 false)
    CW_LOG_DEBUG: 日志输出到临时文件 (默认 false)

用法:
    process = await Process.open("sh -c 'echo hi'")
    print(await process.get_input_stream().read())
    print(await process.wait())
"""

__version__ = "0.1.0"

from .errors import ChildwatchError, ProcessStateError, SpawnError
from .events import ProcessEvent
from .launcher import execute, open_process
from .log import configure_logging
from .process import Process
from .registry import ProcessRegistry, get_registry
from .types import (
    ID_ANY,
    PRIORITY_DEFAULT,
    PRIORITY_MAX,
    PRIORITY_MIN,
    ExecFlags,
    KillError,
    KillFlags,
    ProcessFlags,
    ProcessSpec,
    ProcessState,
)

__all__ = [
    "__version__",
    "configure_logging",
    "ChildwatchError",
    "ExecFlags",
    "ID_ANY",
    "KillError",
    "KillFlags",
    "PRIORITY_DEFAULT",
    "PRIORITY_MAX",
    "PRIORITY_MIN",
    "Process",
    "ProcessEvent",
    "ProcessFlags",
    "ProcessRegistry",
    "ProcessSpec",
    "ProcessState",
    "ProcessStateError",
    "SpawnError",
    "execute",
    "get_registry",
    "open_process",
]
