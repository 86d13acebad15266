"""Tests for configuration defaults, validation, and environment loading."""

import pytest

from smartlog.config import Config, LogConfig, QueryConfig
from smartlog.errors import ConfigError
from smartlog.truncation import NonObjectPolicy


class TestDefaults:
    def test_config_defaults(self):
        cfg = Config()
        assert cfg.service_name == "smartlog"
        assert cfg.redact_keys == []
        assert cfg.skip_paths == []
        assert cfg.log.compression == "gzip"
        assert cfg.query.identity_field == "ID"
        assert cfg.query.log_result_max_bytes == 0

    def test_query_level_is_normalized(self):
        assert QueryConfig(level="WARN").level == "warn"

    def test_non_object_policy_coerced_from_string(self):
        assert QueryConfig(non_object_policy="placeholder").non_object_policy is NonObjectPolicy.PLACEHOLDER


class TestValidation:
    def test_unknown_compression(self):
        with pytest.raises(ConfigError, match="compression"):
            LogConfig(compression="zip")

    def test_unknown_query_level(self):
        with pytest.raises(ConfigError, match="query.level"):
            QueryConfig(level="verbose")

    def test_unknown_non_object_policy(self):
        with pytest.raises(ConfigError, match="non_object_policy"):
            QueryConfig(non_object_policy="drop")

    def test_unknown_console_level(self):
        with pytest.raises(ConfigError, match="console_level"):
            LogConfig(console_level="LOUD")

    def test_non_positive_max_size(self):
        with pytest.raises(ConfigError):
            LogConfig(max_size_mb=0)


class TestFromEnv:
    def test_empty_environment_gives_defaults(self):
        assert Config.from_env({}) == Config()

    def test_reads_prefixed_values(self):
        environ = {
            "SMARTLOG_SERVICE_NAME": "orders",
            "SMARTLOG_ENV": "prod",
            "SMARTLOG_REDACT_KEYS": "Authorization, password ,,api_key",
            "SMARTLOG_SKIP_PATHS": "/healthz,/metrics",
            "SMARTLOG_LOG_PATH": "/var/log/orders.log",
            "SMARTLOG_LOG_MAX_SIZE_MB": "10",
            "SMARTLOG_LOG_COMPRESSION": "none",
            "SMARTLOG_LOG_CONSOLE": "false",
            "SMARTLOG_QUERY_LEVEL": "warn",
            "SMARTLOG_QUERY_SLOW_THRESHOLD_MS": "50",
            "SMARTLOG_QUERY_LOG_RESULT": "yes",
            "SMARTLOG_QUERY_RESULT_MAX_BYTES": "512",
            "SMARTLOG_QUERY_NON_OBJECT_POLICY": "placeholder",
        }
        cfg = Config.from_env(environ)
        assert cfg.service_name == "orders"
        assert cfg.env == "prod"
        assert cfg.redact_keys == ["Authorization", "password", "api_key"]
        assert cfg.skip_paths == ["/healthz", "/metrics"]
        assert cfg.log.filename == "/var/log/orders.log"
        assert cfg.log.max_size_mb == 10
        assert cfg.log.compression == "none"
        assert cfg.log.console is False
        assert cfg.query.level == "warn"
        assert cfg.query.slow_query_threshold_ms == 50
        assert cfg.query.log_query_result is True
        assert cfg.query.log_result_max_bytes == 512
        assert cfg.query.non_object_policy is NonObjectPolicy.PLACEHOLDER

    def test_custom_prefix(self):
        cfg = Config.from_env({"APP_SERVICE_NAME": "billing"}, prefix="APP_")
        assert cfg.service_name == "billing"

    def test_empty_log_path_disables_file_sink(self):
        assert Config.from_env({"SMARTLOG_LOG_PATH": ""}).log.filename == ""

    def test_bad_integer(self):
        with pytest.raises(ConfigError, match="SMARTLOG_LOG_MAX_BACKUPS"):
            Config.from_env({"SMARTLOG_LOG_MAX_BACKUPS": "three"})

    def test_bad_boolean(self):
        with pytest.raises(ConfigError, match="SMARTLOG_QUERY_LOG_RESULT"):
            Config.from_env({"SMARTLOG_QUERY_LOG_RESULT": "maybe"})
