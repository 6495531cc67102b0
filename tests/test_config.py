"""Config 模块测试。

测试 CW_* 环境变量解析和配置管理。
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest import mock

import pytest

from childwatch.config import (
    DEFAULT_DRAIN_TIMEOUT,
    DEFAULT_PIPE_BUFFER_LIMIT,
    DEFAULT_READ_CHUNK,
    MIN_PIPE_BUFFER_LIMIT,
    Config,
    get_config,
    load_config,
    reload_config,
)


class TestDefaults:
    """测试默认值。"""

    def test_defaults_without_environment(self):
        """未设置环境变量时使用默认值。"""
        config = load_config()
        assert config.drain_timeout == DEFAULT_DRAIN_TIMEOUT
        assert config.pipe_buffer_limit == DEFAULT_PIPE_BUFFER_LIMIT
        assert config.read_chunk == DEFAULT_READ_CHUNK
        assert config.new_session is False
        assert config.log_debug is False
        assert config.log_file is None

    def test_dataclass_defaults_match_loader(self):
        """dataclass 默认值与 load_config 一致。"""
        assert Config() == load_config()


class TestDrainTimeout:
    """测试管道排空超时解析。"""

    def test_valid_value(self):
        with mock.patch.dict(os.environ, {"CW_DRAIN_TIMEOUT": "2.5"}):
            assert load_config().drain_timeout == 2.5

    def test_clamped_to_maximum(self):
        """超过 30 秒被限制。"""
        with mock.patch.dict(os.environ, {"CW_DRAIN_TIMEOUT": "100"}):
            assert load_config().drain_timeout == 30.0

    def test_negative_clamped_to_zero(self):
        with mock.patch.dict(os.environ, {"CW_DRAIN_TIMEOUT": "-1"}):
            assert load_config().drain_timeout == 0.0

    def test_invalid_value_uses_default(self):
        with mock.patch.dict(os.environ, {"CW_DRAIN_TIMEOUT": "soon"}):
            assert load_config().drain_timeout == DEFAULT_DRAIN_TIMEOUT


class TestIntegerValues:
    """测试整数配置解析。"""

    def test_pipe_buffer_limit(self):
        with mock.patch.dict(os.environ, {"CW_PIPE_BUFFER_LIMIT": "65536"}):
            assert load_config().pipe_buffer_limit == 65536

    def test_pipe_buffer_limit_minimum(self):
        """小于下限时使用下限。"""
        with mock.patch.dict(os.environ, {"CW_PIPE_BUFFER_LIMIT": "10"}):
            assert load_config().pipe_buffer_limit == MIN_PIPE_BUFFER_LIMIT

    def test_read_chunk_invalid(self):
        with mock.patch.dict(os.environ, {"CW_READ_CHUNK": "big"}):
            assert load_config().read_chunk == DEFAULT_READ_CHUNK

    def test_read_chunk_zero_becomes_one(self):
        with mock.patch.dict(os.environ, {"CW_READ_CHUNK": "0"}):
            assert load_config().read_chunk == 1


class TestParseBool:
    """测试布尔值解析。"""

    @pytest.mark.parametrize("value", ["true", "True", "TRUE", "1", "yes", "on"])
    def test_truthy_values(self, value: str):
        with mock.patch.dict(os.environ, {"CW_NEW_SESSION": value}):
            assert load_config().new_session is True

    @pytest.mark.parametrize("value", ["false", "0", "no", "off", ""])
    def test_falsy_values(self, value: str):
        with mock.patch.dict(os.environ, {"CW_NEW_SESSION": value}):
            assert load_config().new_session is False


class TestLogDebug:
    """测试日志调试模式。"""

    def test_log_file_created_in_temp_dir(self):
        with mock.patch.dict(os.environ, {"CW_LOG_DEBUG": "1"}):
            config = load_config()
        assert config.log_debug is True
        assert config.log_file is not None
        log_path = Path(config.log_file)
        assert log_path.parent.name == "childwatch"
        assert log_path.name.startswith("childwatch_debug_")
        assert log_path.parent.exists()


class TestGlobalConfig:
    """测试全局配置实例。"""

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_reload_config_picks_up_changes(self):
        with mock.patch.dict(os.environ, {"CW_DRAIN_TIMEOUT": "3"}):
            config = reload_config()
            assert config.drain_timeout == 3.0
            assert get_config() is config

    def test_repr(self):
        text = repr(Config())
        assert text.startswith("Config(")
        assert "drain_timeout=1.0" in text
