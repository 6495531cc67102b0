"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from unittest import mock

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from childwatch.config import reload_config  # noqa: E402
from childwatch.registry import ProcessRegistry  # noqa: E402

# 测试用子进程脚本
FAKE_CHILD = Path(__file__).parent / "fixtures" / "fake_child.py"


@pytest.fixture(autouse=True)
def clean_config():
    """每个测试使用不含 CW_* 变量的默认配置。"""
    env = {k: v for k, v in os.environ.items() if not k.startswith("CW_")}
    with mock.patch.dict(os.environ, env, clear=True):
        reload_config()
        yield
    reload_config()


@pytest.fixture
def registry() -> ProcessRegistry:
    """独立的进程注册表，避免测试之间互相影响。"""
    return ProcessRegistry()


@pytest.fixture
def fake_child() -> list[str]:
    """启动测试子进程的命令前缀。"""
    return [sys.executable, str(FAKE_CHILD)]
