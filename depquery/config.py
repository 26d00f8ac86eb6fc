"""
Configuration management for depquery.

Provides a hierarchical configuration system with sensible defaults.
Supports both global (~/.config/depquery/config.toml) and local
(depquery.toml) configurations.
"""
import os
import tomli
import tomli_w
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, field, asdict


def user_config_path() -> Path:
    return Path.home() / ".config" / "depquery" / "config.toml"


@dataclass
class DepQueryConfig:
    """
    depquery configuration with sensible defaults.

    Configuration hierarchy (highest to lowest priority):
    1. Command-line arguments
    2. Environment variables (DEPQUERY_*)
    3. Explicit config file (--config)
    4. Local config file (./depquery.toml or ./.depqueryrc)
    5. User config file (~/.config/depquery/config.toml)
    6. System defaults
    """

    # Target graph
    graph_file: str = field(default="depquery.yaml")
    build_file_name: str = field(default="BUCK")

    # Output defaults
    output_format: str = field(default="list")
    sort_output: str = field(default="label")
    pretty_json: bool = field(default=True)
    json_indent: int = field(default=2)

    # Performance
    num_threads: int = field(default=4)  # universe population workers

    # Advanced
    log_level: str = field(default="WARNING")

    @classmethod
    def load(cls, config_file: Optional[Path] = None) -> "DepQueryConfig":
        """
        Load configuration from files and environment.

        Args:
            config_file: Specific config file to load (applied after the
                user and local files)

        Returns:
            Merged configuration object
        """
        config = cls()

        user_path = user_config_path()
        if user_path.exists():
            config._merge(cls._load_toml(user_path))

        # First local file found wins
        local_paths = [
            Path.cwd() / "depquery.toml",
            Path.cwd() / ".depqueryrc",
        ]
        for path in local_paths:
            if path.exists():
                config._merge(cls._load_toml(path))
                break

        if config_file and config_file.exists():
            config._merge(cls._load_toml(config_file))

        config._apply_env_vars()
        config._expand_paths()

        return config

    @staticmethod
    def _load_toml(path: Path) -> Dict[str, Any]:
        """Load TOML configuration file."""
        with open(path, "rb") as f:
            return tomli.load(f)

    def _merge(self, data: Dict[str, Any]):
        """Merge configuration data into this instance; unknown keys are ignored."""
        for key, value in data.items():
            if hasattr(self, key):
                setattr(self, key, value)

    def _apply_env_vars(self):
        """Apply environment variables with DEPQUERY_ prefix."""
        prefix = "DEPQUERY_"
        for key, value in os.environ.items():
            if key.startswith(prefix):
                config_key = key[len(prefix):].lower()
                if hasattr(self, config_key):
                    current_value = getattr(self, config_key)
                    if isinstance(current_value, bool):
                        setattr(self, config_key, value.lower() in ("true", "1", "yes"))
                    elif isinstance(current_value, int):
                        setattr(self, config_key, int(value))
                    else:
                        setattr(self, config_key, value)

    def _expand_paths(self):
        """Expand ~ and environment variables in paths."""
        value = self.graph_file
        if isinstance(value, str):
            self.graph_file = os.path.expanduser(os.path.expandvars(value))

    @property
    def json_indent_or_none(self) -> Optional[int]:
        """Indentation for JSON output, None when pretty printing is off."""
        return self.json_indent if self.pretty_json else None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def save(self, path: Optional[Path] = None):
        """
        Save current configuration to TOML file.

        Args:
            path: Path to save to (defaults to user config)
        """
        if path is None:
            path = user_config_path()

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "wb") as f:
            tomli_w.dump(asdict(self), f)


# Global configuration instance
_config: Optional[DepQueryConfig] = None


def get_config(reload: bool = False, config_file: Optional[Path] = None) -> DepQueryConfig:
    """
    Get the global configuration instance.

    Args:
        reload: Force reload configuration from files
        config_file: Specific config file to load

    Returns:
        Global configuration instance
    """
    global _config
    if _config is None or reload:
        _config = DepQueryConfig.load(config_file)
    return _config


def init_config(config_file: Optional[Path] = None, **kwargs) -> DepQueryConfig:
    """
    Initialize configuration with command-line overrides.

    Args:
        config_file: Explicit config file; forces a reload when given
        **kwargs: Configuration overrides; None values are ignored

    Returns:
        Configured instance
    """
    config = get_config(reload=config_file is not None, config_file=config_file)

    for key, value in kwargs.items():
        if hasattr(config, key) and value is not None:
            setattr(config, key, value)

    return config
