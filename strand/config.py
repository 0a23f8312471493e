"""
Configuration management for strand.

Precedence: explicit arguments > env vars (STRAND_*) > config.yaml > defaults

Config file: $STRAND_CONFIG, else $XDG_CONFIG_HOME/strand/config.yaml,
else ~/.config/strand/config.yaml

Example config.yaml:

    plugin_dir: ~/.vim/pack/strand/start
    concurrency: 8
    plugins:
      - tpope/vim-surround
      - gitlab@someone/some-plugin:v1.2
      - Git: cespare/vim-toml
      - Archive: https://example.com/plugin.tar.gz
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from strand.core.resolver import resolve
from strand.lib.logger import DEFAULT_LOG_FORMAT
from strand.models.plugin import PluginSpec, parse_plugin_entry

logger = logging.getLogger(__name__)

ENV_PREFIX = "STRAND_"

# Keys known to `strand config set` and `strand config get`
CONFIG_KEYS = {"plugin_dir", "concurrency", "timeout", "log_level", "log_format", "plugins"}


def get_config_dir() -> Path:
    """Directory holding config.yaml."""
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    base = Path(xdg).expanduser() if xdg else Path.home() / ".config"
    return base / "strand"


def get_config_path() -> Path:
    """Path of the config file, honouring $STRAND_CONFIG."""
    override = os.environ.get("STRAND_CONFIG", "")
    if override:
        return Path(override).expanduser()
    return get_config_dir() / "config.yaml"


def _load_yaml_config(config_file: Optional[Path] = None) -> dict[str, Any]:
    """Load config.yaml. Missing or unreadable files yield an empty dict."""
    config_file = config_file or get_config_path()
    if not config_file.exists():
        return {}
    try:
        with open(config_file) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            logger.warning(f"config.yaml is not a mapping, ignoring: {config_file}")
            return {}
        return data
    except (yaml.YAMLError, OSError) as e:
        logger.warning(f"Error loading {config_file}: {e}")
        return {}


def save_yaml_config(data: dict[str, Any], config_file: Optional[Path] = None) -> Path:
    """Write config values to config.yaml."""
    config_file = config_file or get_config_path()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, "w") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    return config_file


class Settings(BaseSettings):
    """strand configuration."""

    plugin_dir: Path = Field(description="Directory plugins are installed into")
    plugins: list[PluginSpec] = Field(
        default_factory=list,
        description="Plugins to install on every run",
    )

    # Network
    concurrency: int = Field(
        default=8,
        ge=1,
        description="Maximum number of plugins installed at the same time",
    )
    timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")

    # Logging
    log_level: str = Field(default="WARNING", description="Log level")
    log_format: str = Field(
        default=DEFAULT_LOG_FORMAT,
        description="Log format string",
    )

    model_config = {
        "env_prefix": ENV_PREFIX,
        "extra": "ignore",
    }

    @model_validator(mode="before")
    @classmethod
    def _inject_yaml_config(cls, data: Any) -> Any:
        """Inject config.yaml values as fallbacks below env vars."""
        if not isinstance(data, dict):
            data = {}

        yaml_config = _load_yaml_config()

        for key, value in yaml_config.items():
            if key not in data or data[key] is None:
                env_val = os.environ.get(f"{ENV_PREFIX}{key.upper()}")
                if env_val is None:
                    data[key] = value

        return data

    @field_validator("plugin_dir", mode="before")
    @classmethod
    def _expand_plugin_dir(cls, v: Any) -> Any:
        if isinstance(v, (str, Path)):
            return Path(v).expanduser()
        return v

    @field_validator("plugins", mode="before")
    @classmethod
    def _parse_plugins(cls, v: Any) -> Any:
        if v is None:
            return []
        if not isinstance(v, list):
            raise ValueError("plugins must be a list")
        return [parse_plugin_entry(entry) for entry in v]

    @model_validator(mode="after")
    def _check_unique_destinations(self) -> "Settings":
        seen: dict[str, str] = {}
        for spec in self.plugins:
            dest_name = resolve(spec).dest_name
            if dest_name in seen:
                raise ValueError(
                    f"plugins {seen[dest_name]} and {spec} would both install "
                    f"into '{dest_name}/'"
                )
            seen[dest_name] = str(spec)
        return self


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance, loading it on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Reload settings from the environment and config file."""
    global _settings
    _settings = Settings()
    return _settings
