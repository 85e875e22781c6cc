"""Cache configuration management."""

import json
import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional

from fcache.validation import to_interval

DEFAULT_PREFIX = "fcache"
DEFAULT_REFRESH_SECONDS = 5.0


@dataclass
class CacheConfig:
    """Configuration for a file cache root.

    Attributes:
        cache_dir: Persistent root directory. If None, a temporary directory
            is created for the cache and deleted once it is no longer used.
        prefix: Name prefix of the temporary directory
        refresh_interval: Default refresh interval in seconds (5 seconds)
    """

    cache_dir: Optional[Path] = None
    prefix: str = DEFAULT_PREFIX
    refresh_interval: float = DEFAULT_REFRESH_SECONDS

    def __post_init__(self):
        """Ensure cache_dir is an expanded Path object."""
        if self.cache_dir is not None:
            self.cache_dir = Path(self.cache_dir).expanduser()

    @property
    def refresh_timedelta(self) -> timedelta:
        return to_interval(self.refresh_interval)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "CacheConfig":
        """Load configuration from file.

        Args:
            config_path: Path to config file. If None, uses default location.

        Returns:
            CacheConfig instance
        """
        if config_path is None:
            config_path = default_config_path()

        if not config_path.exists():
            return cls()

        with open(config_path, "r") as f:
            data = json.load(f)

        return cls(**data)

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to file.

        Args:
            config_path: Path to config file. If None, uses default location.
        """
        if config_path is None:
            config_path = default_config_path()

        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "cache_dir": str(self.cache_dir) if self.cache_dir else None,
            "prefix": self.prefix,
            "refresh_interval": self.refresh_interval,
        }

        with open(config_path, "w") as f:
            json.dump(data, f, indent=2)

    @classmethod
    def from_env(cls) -> "CacheConfig":
        """Create configuration from environment variables.

        Environment variables:
            FCACHE_DIR: Cache directory path
            FCACHE_PREFIX: Temporary directory prefix
            FCACHE_REFRESH_INTERVAL: Default refresh interval in seconds

        Returns:
            CacheConfig instance
        """
        config = cls()

        if os.getenv("FCACHE_DIR"):
            config.cache_dir = Path(os.getenv("FCACHE_DIR")).expanduser()

        if os.getenv("FCACHE_PREFIX"):
            config.prefix = os.getenv("FCACHE_PREFIX")

        if os.getenv("FCACHE_REFRESH_INTERVAL"):
            config.refresh_interval = float(os.getenv("FCACHE_REFRESH_INTERVAL"))

        return config


def default_config_path() -> Path:
    return Path.home() / ".config" / "fcache" / "config.json"


# Global cache configuration instance
_global_config: Optional[CacheConfig] = None


def get_global_config() -> CacheConfig:
    """Get global cache configuration.

    Returns:
        Global CacheConfig instance
    """
    global _global_config
    if _global_config is None:
        # Config file wins over the environment when present
        if default_config_path().exists():
            _global_config = CacheConfig.load()
        else:
            _global_config = CacheConfig.from_env()
    return _global_config


def set_global_config(config: Optional[CacheConfig]) -> None:
    """Set global cache configuration.

    Args:
        config: CacheConfig instance to use globally, or None to reload
    """
    global _global_config
    _global_config = config
