"""Tests for configuration loading and limit validation."""

import json
import os
import pytest
from unittest.mock import patch


class TestClientLimits:
    def test_default_profiles_are_valid(self):
        from assistant.common.config import default_limits, validate_limits
        limits = default_limits()
        validate_limits(limits)
        for profile in limits.values():
            assert profile.max_scan >= profile.max_files

    def test_widget_is_tighter_than_assistant(self):
        from assistant.common.config import default_limits
        limits = default_limits()
        widget, assistant = limits["widget"], limits["assistant"]
        assert widget.max_files < assistant.max_files
        assert widget.max_total_chars < assistant.max_total_chars
        assert widget.top_k < assistant.top_k

    def test_scan_below_files_rejected(self):
        from assistant.common.config import ClientLimits, ConfigError
        limits = ClientLimits(max_files=10, max_depth=1, max_scan=5,
                              max_total_chars=100, per_doc_chars=50, top_k=3)
        with pytest.raises(ConfigError, match="max_scan"):
            limits.validate("widget")

    @pytest.mark.parametrize("field_name", ["max_files", "max_depth", "max_total_chars", "top_k"])
    def test_non_positive_rejected(self, field_name):
        from assistant.common.config import default_limits, ConfigError
        limits = default_limits()["assistant"]
        setattr(limits, field_name, 0)
        with pytest.raises(ConfigError, match=field_name):
            limits.validate("assistant")

    def test_missing_profile_rejected(self):
        from assistant.common.config import default_limits, validate_limits, ConfigError
        limits = default_limits()
        del limits["widget"]
        with pytest.raises(ConfigError, match="widget"):
            validate_limits(limits)


class TestClientKind:
    def test_only_widget_literal_selects_widget(self):
        from assistant.common.config import resolve_client_kind
        assert resolve_client_kind("widget") == "widget"
        assert resolve_client_kind("assistant") == "assistant"
        assert resolve_client_kind("WIDGET") == "assistant"
        assert resolve_client_kind(None) == "assistant"

    def test_max_doc_chars_is_largest_budget(self):
        from assistant.common.config import AssistantConfig
        cfg = AssistantConfig()
        assert cfg.max_doc_chars == max(l.per_doc_chars for l in cfg.limits.values())


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path):
        from assistant.common.config import load_config
        with patch("assistant.common.config.CONFIG_PATH", tmp_path / "missing.json"), \
             patch.dict(os.environ, {}, clear=True):
            cfg = load_config()
        assert cfg.box.api_base_url == "https://api.box.com/2.0"
        assert cfg.extraction.max_file_bytes == 5 * 1024 * 1024
        assert cfg.cache.redis_url == ""

    def test_file_overlays_limits(self, tmp_path):
        from assistant.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({
            "box": {"root_folder_id": 42},
            "limits": {"widget": {"max_files": 2, "top_k": 4}},
            "request_timeout_seconds": 10,
        }))
        with patch("assistant.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, {}, clear=True):
            cfg = load_config()
        assert cfg.box.root_folder_id == "42"
        assert cfg.limits["widget"].max_files == 2
        assert cfg.limits["widget"].top_k == 4
        # untouched fields keep their defaults
        assert cfg.limits["widget"].max_scan == 40
        assert cfg.request_timeout_seconds == 10

    def test_invalid_limits_in_file_raise(self, tmp_path):
        from assistant.common.config import load_config, ConfigError
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"limits": {"assistant": {"max_scan": 1}}}))
        with patch("assistant.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigError):
                load_config()

    def test_unknown_limit_key_raises(self, tmp_path):
        from assistant.common.config import load_config, ConfigError
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"limits": {"widget": {"maxFiles": 3}}}))
        with patch("assistant.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigError, match="unknown keys"):
                load_config()

    def test_malformed_file_falls_back_to_defaults(self, tmp_path):
        from assistant.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text("{not json")
        with patch("assistant.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, {}, clear=True):
            cfg = load_config()
        assert cfg.limits["assistant"].max_files == 8

    def test_env_overrides(self, tmp_path):
        from assistant.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"box": {"access_token": "file-token"}}))
        env = {
            "BOX_ACCESS_TOKEN": "env-token",
            "BOX_CLIENT_FOLDERS_PARENT_ID": "999",
            "REDIS_URL": "redis://localhost:6379/0",
            "ASSISTANT_OCR_ENABLED": "false",
            "ASSISTANT_MAX_FILE_BYTES": "1024",
        }
        with patch("assistant.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, env, clear=True):
            cfg = load_config()
        assert cfg.box.access_token == "env-token"
        assert cfg.box.root_folder_id == "999"
        assert cfg.cache.redis_url == "redis://localhost:6379/0"
        assert cfg.extraction.ocr_enabled is False
        assert cfg.extraction.max_file_bytes == 1024

    @pytest.mark.parametrize("name, value", [
        ("ASSISTANT_MAX_FILE_BYTES", "5MB"),
        ("ASSISTANT_PORT", "http"),
        ("ASSISTANT_REQUEST_TIMEOUT", "soon"),
    ])
    def test_malformed_env_number_raises_config_error(self, tmp_path, name, value):
        from assistant.common.config import load_config, ConfigError
        with patch("assistant.common.config.CONFIG_PATH", tmp_path / "missing.json"), \
             patch.dict(os.environ, {name: value}, clear=True):
            with pytest.raises(ConfigError, match=name):
                load_config()

    @pytest.mark.parametrize("section", ["limits", "box", "server"])
    def test_non_mapping_section_raises_config_error(self, tmp_path, section):
        from assistant.common.config import load_config, ConfigError
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({section: ["not", "a", "mapping"]}))
        with patch("assistant.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigError, match=section):
                load_config()

    def test_non_object_file_raises_config_error(self, tmp_path):
        from assistant.common.config import load_config, ConfigError
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps([1, 2, 3]))
        with patch("assistant.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigError, match="JSON object"):
                load_config()
