"""进程注册表模块。

维护进程级别唯一的 pid -> Process 映射：
- 启动器（launcher）在子进程创建成功后登记
- 回收器（reaper）在终止通知发出后注销

注册表持有句柄的强引用，因此 detach() 之后的句柄在终止通知之前保持有效。
调用方代码不应直接修改注册表。
"""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Dict, Optional

from .types import KillError

if TYPE_CHECKING:
    from .process import Process

__all__ = ["ProcessRegistry", "get_registry"]

logger = logging.getLogger(__name__)


class ProcessRegistry:
    """活动子进程的注册表。

    提供：
    - 子进程登记和注销（仅限 launcher/reaper）
    - 批量发送信号
    - 活动状态查询

    线程安全：所有操作由内部锁保护。

    Example:
        ```python
        registry = get_registry()

        # 检查状态
        if len(registry):
            print(f"Running: {registry.active_count}")

        # 程序退出前终止所有子进程
        signalled = registry.kill_all()
        print(f"Signalled {signalled} children")
        ```
    """

    def __init__(self) -> None:
        """初始化进程注册表。"""
        self._lock = threading.Lock()
        self._processes: Dict[int, "Process"] = {}
        self._on_empty_callbacks: list[Callable[[], None]] = []

    def register(self, process: "Process") -> None:
        """登记已绑定 pid 的进程句柄（仅由 launcher 调用）。

        Args:
            process: 已绑定 pid 的进程句柄

        Raises:
            ValueError: 如果句柄未绑定，或 pid 已被其他句柄占用
        """
        pid = process.get_pid()
        if not pid:
            raise ValueError("Cannot register a process without a pid")

        with self._lock:
            existing = self._processes.get(pid)
            if existing is not None and existing is not process:
                raise ValueError(f"Process {pid} already registered")
            self._processes[pid] = process

        logger.debug(f"Registered process: {process!r}")

    def unregister(self, pid: int) -> bool:
        """注销进程（仅由 reaper 在终止通知之后调用）。

        Args:
            pid: 进程 ID

        Returns:
            是否成功注销（进程存在则返回 True）
        """
        with self._lock:
            process = self._processes.pop(pid, None)
            became_empty = process is not None and not self._processes
            callbacks = list(self._on_empty_callbacks) if became_empty else []

        if process is None:
            return False

        logger.debug(f"Unregistered process: {process!r}")

        # 如果注册表变空，触发回调
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning(f"Error in on_empty callback: {e}")

        return True

    def get(self, pid: int) -> Optional["Process"]:
        """获取进程句柄。

        Args:
            pid: 进程 ID

        Returns:
            进程句柄，如果不存在则返回 None
        """
        with self._lock:
            return self._processes.get(pid)

    def kill_all(self, sig: int = signal.SIGTERM) -> int:
        """向所有仍在运行的子进程发送信号。

        Args:
            sig: 信号编号

        Returns:
            成功发送信号的进程数量
        """
        signalled = 0
        for process in self.list_active():
            if process.terminate(sig) == KillError.OK:
                signalled += 1

        if signalled > 0:
            logger.info(f"Sent signal {sig} to {signalled} child process(es)")

        return signalled

    @property
    def active_count(self) -> int:
        """获取仍在运行的进程数量。"""
        return len(self.list_active())

    def list_active(self) -> list["Process"]:
        """列出所有仍在运行的进程（按 pid 排序）。"""
        with self._lock:
            processes = list(self._processes.values())
        active = [p for p in processes if p.is_running()]
        return sorted(active, key=lambda p: p.get_pid())

    def add_on_empty_callback(self, callback: Callable[[], None]) -> None:
        """添加注册表变空时的回调。

        Args:
            callback: 无参数的回调函数
        """
        with self._lock:
            self._on_empty_callbacks.append(callback)

    def remove_on_empty_callback(self, callback: Callable[[], None]) -> None:
        """移除注册表变空时的回调。

        Args:
            callback: 要移除的回调函数
        """
        with self._lock:
            if callback in self._on_empty_callbacks:
                self._on_empty_callbacks.remove(callback)

    def __len__(self) -> int:
        """返回注册表中的进程数量。"""
        with self._lock:
            return len(self._processes)

    def __contains__(self, pid: int) -> bool:
        """检查 pid 是否在注册表中。"""
        with self._lock:
            return pid in self._processes


# 全局注册表实例
_registry: ProcessRegistry | None = None
_registry_lock = threading.Lock()


def get_registry() -> ProcessRegistry:
    """获取全局注册表实例。"""
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = ProcessRegistry()
        return _registry
