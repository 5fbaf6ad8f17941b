"""Tests for configuration loading and management."""

from pathlib import Path

import pytest

from storekit_service.config import Config, ConfigurationError, get_config, reload_config, reset_config

REPO_CONFIG = Path(__file__).resolve().parents[2] / "config" / "storekit.yaml"


@pytest.fixture
def config():
    """Create a Config instance from the repository's storekit.yaml."""
    return Config(str(REPO_CONFIG))


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("CONFIG_PATH", raising=False)
    monkeypatch.delenv("STOREKIT_SHARED_SECRET", raising=False)
    reset_config()
    yield
    reset_config()


class TestConfigurationLoading:
    """Test basic configuration loading."""

    def test_config_loads_successfully(self, config):
        """Test that the shipped configuration loads without errors."""
        assert config.config_path.exists()
        assert config.settings is not None

    def test_endpoints(self, config):
        """Test that both verification endpoints are configured."""
        assert config.production_url == "https://buy.itunes.apple.com/verifyReceipt"
        assert config.sandbox_url == "https://sandbox.itunes.apple.com/verifyReceipt"
        assert config.timeout_seconds > 0

    def test_receipt_path_relative_to_config_file(self, config):
        """Test that a relative receipt path is resolved against the config directory."""
        assert config.receipt_path == REPO_CONFIG.parent / "../receipt/sandboxReceipt"
        assert config.receipt_path.is_absolute()


class TestConfigurationSources:
    """Test where configuration comes from."""

    def test_env_var_path(self, tmp_path, monkeypatch):
        """Test that CONFIG_PATH is used when no path is given."""
        path = tmp_path / "custom.yaml"
        path.write_text("verify_receipt:\n  timeout_seconds: 5\n", encoding="utf-8")
        monkeypatch.setenv("CONFIG_PATH", str(path))

        config = Config()

        assert config.config_path == path
        assert config.timeout_seconds == 5

    def test_defaults_for_missing_sections(self, tmp_path):
        """Test that omitted sections fall back to defaults."""
        path = tmp_path / "minimal.yaml"
        path.write_text("shared_secret: abc\n", encoding="utf-8")

        config = Config(str(path))

        assert config.shared_secret == "abc"
        assert config.settings.logging.level == "INFO"
        assert config.settings.verify_receipt.exclude_old_transactions is False
        assert config.receipt_path == tmp_path / "receipt" / "sandboxReceipt"

    def test_shared_secret_env_override(self, tmp_path, monkeypatch):
        """Test that STOREKIT_SHARED_SECRET takes precedence over the file."""
        path = tmp_path / "secret.yaml"
        path.write_text("shared_secret: from-file\n", encoding="utf-8")
        monkeypatch.setenv("STOREKIT_SHARED_SECRET", "from-env")

        assert Config(str(path)).shared_secret == "from-env"

    def test_singleton(self):
        """Test that get_config returns the same instance."""
        first = get_config(str(REPO_CONFIG))
        second = get_config()

        assert first is second


class TestConfigurationErrors:
    """Test invalid configuration."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            Config(str(tmp_path / "missing.yaml"))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="empty"):
            Config(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("verify_receipt: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="YAML"):
            Config(str(path))

    def test_validation_failure(self, tmp_path):
        path = tmp_path / "invalid.yaml"
        path.write_text("verify_receipt:\n  timeout_seconds: -1\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="validation"):
            Config(str(path))


class TestReload:
    """Test reloading configuration from disk."""

    def test_reload_config_picks_up_changes(self, tmp_path):
        path = tmp_path / "storekit.yaml"
        path.write_text("verify_receipt:\n  timeout_seconds: 5\n", encoding="utf-8")
        config = get_config(str(path))

        path.write_text("verify_receipt:\n  timeout_seconds: 12\n", encoding="utf-8")
        reload_config()

        assert get_config() is config
        assert config.timeout_seconds == 12
