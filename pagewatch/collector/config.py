"""Configuration system for page collectors.

This module provides configuration management for collector settings,
including YAML loading, validation, and environment-specific overrides.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigurationError
from .storage import DEFAULT_MAX_RETAINED

ENV_VAR = "PAGEWATCH_ENV"


class CollectorConfig(BaseModel):
    """Root configuration for page collectors."""

    environment: str = Field(default="production", description="Environment name")
    max_retained: int = Field(
        default=DEFAULT_MAX_RETAINED,
        ge=1,
        description="Navigation windows kept per page"
    )
    collect_issues: bool = Field(
        default=True,
        description="Subscribe to DevTools audit issues"
    )
    enable_audits: bool = Field(
        default=True,
        description="Send Audits.enable on the DevTools session"
    )
    environments: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        description="Environment-specific overrides"
    )

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v):
        valid_environments = {'production', 'staging', 'development', 'test'}
        if v not in valid_environments:
            raise ValueError(f"Environment must be one of: {valid_environments}")
        return v

    def resolved(self) -> "CollectorConfig":
        """Return a copy with the active environment's overrides applied."""
        overrides = self.environments.get(self.environment, {})
        if not overrides:
            return self
        data = self.model_dump()
        data.update(overrides)
        return CollectorConfig(**data)


class CollectorConfigManager:
    """Manager for collector configuration loading and caching."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to collector config YAML file. Defaults to config/collector.yaml
        """
        if config_path is None:
            project_root = Path(__file__).parent.parent.parent
            config_path = project_root / "config" / "collector.yaml"

        self.config_path = Path(config_path)
        self._config: Optional[CollectorConfig] = None
        self._loaded_env: Optional[str] = None

    def load_config(self, force_reload: bool = False) -> CollectorConfig:
        """Load configuration from YAML file.

        A missing file yields the default configuration.

        Args:
            force_reload: Force reload even if already cached

        Returns:
            Loaded and validated configuration with overrides applied

        Raises:
            ConfigurationError: If the YAML or its values are invalid
        """
        current_env = os.environ.get(ENV_VAR, 'production')

        if self._config is not None and not force_reload and current_env == self._loaded_env:
            return self._config

        config_data: Dict[str, Any] = {}
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}", str(self.config_path))

        if not isinstance(config_data, dict):
            raise ConfigurationError("Configuration root must be a mapping", str(self.config_path))

        if current_env != 'production':
            config_data['environment'] = current_env

        try:
            self._config = CollectorConfig(**config_data).resolved()
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed: {e}", str(self.config_path))

        self._loaded_env = current_env
        return self._config

    @property
    def config(self) -> CollectorConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            return self.load_config()
        return self._config


_config_manager: Optional[CollectorConfigManager] = None


def get_config(config_path: Optional[Union[str, Path]] = None) -> CollectorConfigManager:
    """Get global collector configuration manager.

    Args:
        config_path: Path to config file (only used on first call)
    """
    global _config_manager
    if _config_manager is None:
        _config_manager = CollectorConfigManager(config_path)
    return _config_manager
