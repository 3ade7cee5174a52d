"""
Sink 配置单元测试
"""

import pytest

from antcode_logsink.config import SinkOptions
from antcode_logsink.domain.errors import ConfigurationError


class TestSinkOptionsDefaults:
    """默认配置测试"""

    def test_default_config(self):
        """测试默认值"""
        options = SinkOptions(stream_name="app-logs")

        assert options.batch_posting_limit == 500
        assert options.buffer_log_shipping_interval == 8.0
        assert options.period == 2.0
        assert options.buffer_file_size_limit_bytes == 10 * 1024 * 1024
        assert options.minimum_level == "TRACE"
        assert options.durable is False

    def test_durable_when_buffer_set(self, tmp_path):
        """测试设置缓冲路径即启用持久化"""
        options = SinkOptions(stream_name="app-logs", buffer_base_filename=str(tmp_path / "buf"))
        assert options.durable is True

    def test_level_normalized(self):
        """测试级别名大小写"""
        options = SinkOptions(stream_name="app-logs", minimum_level="warning")
        assert options.minimum_level == "WARNING"
        assert options.minimum_level_no == 30


class TestSinkOptionsValidate:
    """配置校验测试"""

    def test_valid(self):
        """测试合法配置返回自身"""
        options = SinkOptions(stream_name="app-logs")
        assert options.validate() is options

    def test_missing_stream_name(self):
        """测试缺少流名称"""
        with pytest.raises(ConfigurationError) as exc_info:
            SinkOptions().validate()
        assert exc_info.value.field == "stream_name"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("batch_posting_limit", 0),
            ("queue_limit", -1),
            ("shard_count", 0),
            ("buffer_file_size_limit_bytes", 0),
            ("period", 0),
            ("buffer_log_shipping_interval", -1.0),
            ("send_timeout", 0),
            ("backoff_jitter", 1.5),
            ("backoff_multiplier", 0.5),
            ("minimum_level", "VERBOSE"),
        ],
    )
    def test_invalid_values(self, field, value):
        """测试非法数值"""
        options = SinkOptions(stream_name="app-logs", **{field: value})
        with pytest.raises(ConfigurationError) as exc_info:
            options.validate()
        assert exc_info.value.field == field

    def test_max_delay_below_base(self):
        """测试退避上限小于初始值"""
        options = SinkOptions(stream_name="app-logs", backoff_base_delay=10, backoff_max_delay=5)
        with pytest.raises(ConfigurationError):
            options.validate()

    def test_unlimited_file_size(self):
        """测试不限制文件大小"""
        options = SinkOptions(stream_name="app-logs", buffer_file_size_limit_bytes=None)
        options.validate()


class TestSinkOptionsSources:
    """配置来源测试"""

    def test_from_env(self, monkeypatch, tmp_path):
        """测试从环境变量加载"""
        monkeypatch.setenv("LOGSINK_STREAM_NAME", "env-logs")
        monkeypatch.setenv("LOGSINK_BATCH_POSTING_LIMIT", "50")
        monkeypatch.setenv("LOGSINK_PERIOD", "0.5")
        monkeypatch.setenv("LOGSINK_RETAIN_SHIPPED_FILES", "true")
        monkeypatch.setenv("LOGSINK_BUFFER_FILE_SIZE_LIMIT_BYTES", "none")
        monkeypatch.setenv("LOGSINK_BUFFER_BASE_FILENAME", str(tmp_path / "buf"))

        options = SinkOptions.from_env(env_file=tmp_path / "missing.env")

        assert options.stream_name == "env-logs"
        assert options.batch_posting_limit == 50
        assert options.period == 0.5
        assert options.retain_shipped_files is True
        assert options.buffer_file_size_limit_bytes is None
        assert options.durable is True

    def test_from_env_overrides(self, monkeypatch):
        """测试显式参数优先于环境变量"""
        monkeypatch.setenv("LOGSINK_STREAM_NAME", "env-logs")
        options = SinkOptions.from_env(stream_name="explicit")
        assert options.stream_name == "explicit"

    def test_from_env_invalid(self, monkeypatch):
        """测试无效的环境变量"""
        monkeypatch.setenv("LOGSINK_BATCH_POSTING_LIMIT", "many")
        with pytest.raises(ConfigurationError) as exc_info:
            SinkOptions.from_env()
        assert exc_info.value.field == "batch_posting_limit"

    def test_from_yaml_section(self, tmp_path):
        """测试从 YAML 的 logsink 段加载"""
        path = tmp_path / "logsink.yaml"
        path.write_text(
            "logsink:\n"
            "  stream_name: yaml-logs\n"
            "  batch_posting_limit: 20\n"
            "  minimum_level: info\n",
            encoding="utf-8",
        )

        options = SinkOptions.from_yaml(path)

        assert options.stream_name == "yaml-logs"
        assert options.batch_posting_limit == 20
        assert options.minimum_level == "INFO"

    def test_from_yaml_missing(self, tmp_path):
        """测试配置文件不存在"""
        with pytest.raises(ConfigurationError):
            SinkOptions.from_yaml(tmp_path / "missing.yaml")

    def test_from_dict_ignores_unknown(self):
        """测试忽略未知字段"""
        options = SinkOptions.from_dict({"stream_name": "dict-logs", "colour": "blue"})
        assert options.stream_name == "dict-logs"
        assert "colour" not in options.to_dict()
