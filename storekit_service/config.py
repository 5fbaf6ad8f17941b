"""Configuration management - loads storekit.yaml and environment variables."""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from storekit_service.models import StoreKitSettings


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


class Config:
    """Application configuration loader and manager.

    Loads storekit.yaml and provides validated access to:
    - Receipt verification endpoints and timeouts
    - Local receipt location
    - Shared secret
    - Logging settings
    """

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to storekit.yaml file. If not provided, uses CONFIG_PATH env var
                        or defaults to ./config/storekit.yaml
        """
        self._config_path = self._resolve_config_path(config_path)
        self._settings: Optional[StoreKitSettings] = None
        self._load_config()

    def _resolve_config_path(self, config_path: Optional[str]) -> Path:
        """Resolve configuration file path from argument, env var, or default."""
        if config_path:
            return Path(config_path)

        env_path = os.getenv("CONFIG_PATH")
        if env_path:
            return Path(env_path)

        return Path("config/storekit.yaml")

    def _load_config(self) -> None:
        """Load and validate storekit.yaml configuration."""
        if not self._config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {self._config_path}\n"
                f"Please create config/storekit.yaml or set CONFIG_PATH environment variable"
            )

        try:
            with open(self._config_path, encoding="utf-8") as f:
                raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML configuration: {e}") from e

        if not raw_config:
            raise ConfigurationError(f"Configuration file is empty: {self._config_path}")

        try:
            self._settings = StoreKitSettings(**raw_config)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    @property
    def settings(self) -> StoreKitSettings:
        """Get validated settings."""
        if self._settings is None:
            raise ConfigurationError("Configuration not loaded")
        return self._settings

    @property
    def config_path(self) -> Path:
        """Get path to configuration file."""
        return self._config_path

    @property
    def production_url(self) -> str:
        return self.settings.verify_receipt.production_url

    @property
    def sandbox_url(self) -> str:
        return self.settings.verify_receipt.sandbox_url

    @property
    def timeout_seconds(self) -> float:
        """Get HTTP timeout for verification requests."""
        return self.settings.verify_receipt.timeout_seconds

    @property
    def receipt_path(self) -> Path:
        """Get path of the locally cached receipt.

        Relative paths are resolved against the configuration file's directory.
        """
        path = Path(self.settings.receipt.path)
        if not path.is_absolute():
            path = self._config_path.parent / path
        return path

    @property
    def shared_secret(self) -> Optional[str]:
        """Get the shared secret.

        The STOREKIT_SHARED_SECRET environment variable takes precedence over the file.
        """
        return os.getenv("STOREKIT_SHARED_SECRET") or self.settings.shared_secret

    def reload(self) -> None:
        """Reload configuration from disk."""
        self._load_config()


# Global configuration instance
_config_instance: Optional[Config] = None


def get_config(config_path: Optional[str] = None) -> Config:
    """Get global configuration instance (singleton).

    Args:
        config_path: Optional path to configuration file (only used on first call)

    Returns:
        Config instance
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config(config_path)
    return _config_instance


def reload_config() -> None:
    """Reload global configuration from disk."""
    global _config_instance
    if _config_instance:
        _config_instance.reload()
    else:
        _config_instance = Config()


def reset_config() -> None:
    """Drop the global configuration instance (for testing)."""
    global _config_instance
    _config_instance = None
