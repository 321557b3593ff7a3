"""Unit tests for kubeutil configuration."""

from __future__ import annotations

import pytest
import yaml

from kubeutil.config import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_TOKEN_TIMEOUT,
    KubeutilConfig,
    load_config,
    save_config,
    unset_config,
    validate_value,
)
from kubeutil.errors import ConfigError
from kubeutil.kubectl import Kubectl


class TestKubeutilConfig:
    """Tests for KubeutilConfig dataclass."""

    def test_default_values(self):
        """Test default configuration values."""
        config = KubeutilConfig()
        assert config.kubectl == "kubectl"
        assert config.kubeconfig is None
        assert config.token_timeout == DEFAULT_TOKEN_TIMEOUT == 120
        assert config.poll_interval == DEFAULT_POLL_INTERVAL == 2.0
        assert config.get_source("kubectl") == "default"

    def test_kubectl_from_config(self):
        """Test Kubectl picks up binary and kubeconfig."""
        config = KubeutilConfig(kubectl="/opt/bin/kubectl", kubeconfig="/tmp/kind.yaml")
        kubectl = Kubectl.from_config(config)
        assert kubectl.command("get", "ns").args == (
            "/opt/bin/kubectl",
            "--kubeconfig",
            "/tmp/kind.yaml",
            "get",
            "ns",
        )


class TestValidateValue:
    """Tests for validate_value."""

    def test_converts_types(self):
        assert validate_value("token_timeout", "300") == 300
        assert validate_value("poll_interval", "0.5") == 0.5
        assert validate_value("log_level", "DEBUG") == "debug"
        assert validate_value("kubeconfig", "/tmp/kind.yaml") == "/tmp/kind.yaml"

    @pytest.mark.parametrize(
        "key,value,message",
        [
            ("token_timeout", "soon", "token_timeout must be an integer"),
            ("token_timeout", "0", "token_timeout must be positive"),
            ("poll_interval", "-1", "poll_interval must be positive"),
            ("log_level", "loud", "log_level must be one of"),
            ("server", "x", "Unknown config key 'server'"),
        ],
    )
    def test_rejects_invalid(self, key, value, message):
        with pytest.raises(ConfigError, match=message):
            validate_value(key, value)


class TestLoadConfig:
    """Tests for load_config precedence."""

    def test_defaults_without_file(self, isolated_config):
        """Test defaults apply when no file or env is present."""
        config = load_config()
        assert config.token_timeout == DEFAULT_TOKEN_TIMEOUT
        assert all(config.get_source(k) == "default" for k in config.to_dict())

    def test_config_file(self, isolated_config):
        """Test values are read from the config file."""
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text("kubeconfig: /tmp/kind.yaml\ntoken_timeout: 300\n")

        config = load_config()

        assert config.kubeconfig == "/tmp/kind.yaml"
        assert config.token_timeout == 300
        assert config.get_source("token_timeout") == "config file"
        assert config.get_source("kubectl") == "default"

    def test_env_overrides_file(self, isolated_config, monkeypatch):
        """Test environment variables win over the config file."""
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text("poll_interval: 5\n")
        monkeypatch.setenv("KUBEUTIL_POLL_INTERVAL", "0.5")

        config = load_config()

        assert config.poll_interval == 0.5
        assert config.get_source("poll_interval") == "environment"

    def test_invalid_values_are_skipped(self, isolated_config, monkeypatch):
        """Test bad values keep the default."""
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text("token_timeout: soon\n")
        monkeypatch.setenv("KUBEUTIL_POLL_INTERVAL", "fast")

        config = load_config()

        assert config.token_timeout == DEFAULT_TOKEN_TIMEOUT
        assert config.poll_interval == DEFAULT_POLL_INTERVAL

    def test_unreadable_file_is_skipped(self, isolated_config):
        """Test a file that is not a mapping is ignored."""
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text("- just\n- a list\n")

        assert load_config().kubectl == "kubectl"


class TestSaveConfig:
    """Tests for save_config / unset_config."""

    def test_save_creates_file(self, isolated_config):
        save_config("token_timeout", "300")

        assert yaml.safe_load(isolated_config.read_text()) == {"token_timeout": 300}

    def test_save_keeps_other_keys(self, isolated_config):
        save_config("kubectl", "/opt/bin/kubectl")
        save_config("log_level", "info")

        assert yaml.safe_load(isolated_config.read_text()) == {
            "kubectl": "/opt/bin/kubectl",
            "log_level": "info",
        }

    def test_save_rejects_invalid(self, isolated_config):
        with pytest.raises(ConfigError):
            save_config("token_timeout", "soon")
        assert not isolated_config.exists()

    def test_unset(self, isolated_config):
        save_config("kubectl", "/opt/bin/kubectl")

        assert unset_config("kubectl") is True
        assert unset_config("kubectl") is False
        assert yaml.safe_load(isolated_config.read_text()) == {}

    def test_unset_without_file(self, isolated_config):
        assert unset_config("kubectl") is False

    def test_save_on_broken_yaml(self, isolated_config):
        """Test a YAML syntax error surfaces as ConfigError and the file is left alone."""
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text("kubectl: [unclosed\n")

        with pytest.raises(ConfigError, match="cannot read") as exc_info:
            save_config("kubectl", "kc")

        assert isinstance(exc_info.value.__cause__, yaml.YAMLError)
        assert isolated_config.read_text() == "kubectl: [unclosed\n"

    def test_unset_on_non_mapping_file(self, isolated_config):
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text("- just\n- a list\n")

        with pytest.raises(ConfigError, match="must contain a mapping"):
            unset_config("kubectl")


def test_load_skips_broken_yaml(isolated_config):
    """Test load_config falls back to defaults on a YAML syntax error."""
    isolated_config.parent.mkdir(parents=True)
    isolated_config.write_text("kubectl: [unclosed\n")

    assert load_config().kubectl == "kubectl"
