"""User configuration management."""

from pathlib import Path
from typing import Any

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # Fallback for older Python

from dupectl.core.cache import DEFAULT_CACHE_PATH
from dupectl.core.digest import CHUNK_SIZE, DEFAULT_ALGORITHMS
from dupectl.core.index import MATCH_ALL


class Config:
    """User configuration manager."""

    def __init__(self, config_dir: Path | None = None):
        """Initialize config with defaults."""
        self.config_dir = config_dir or Path.home() / ".config" / "dupectl"
        self.config_file = self.config_dir / "config.toml"
        self.error: str | None = None
        self._config = self._load_config()

    @staticmethod
    def defaults() -> dict[str, Any]:
        return {
            "engine": {
                "workers": 0,
                "chunk_size": CHUNK_SIZE,
                "algorithms": list(DEFAULT_ALGORITHMS),
                "primary": "",
                "match": MATCH_ALL,
            },
            "cache": {
                "enabled": True,
                "path": str(DEFAULT_CACHE_PATH),
            },
            "scan": {
                "recursive": True,
                "archives": True,
            },
        }

    def _load_config(self) -> dict[str, Any]:
        """Load config from file or return defaults."""
        defaults = self.defaults()

        if not self.config_file.exists():
            return defaults

        try:
            with open(self.config_file, "rb") as f:
                user_config = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            # Keep going on defaults; commands can surface the error
            self.error = f"{self.config_file}: {e}"
            return defaults

        return self._merge_configs(defaults, user_config)

    def _merge_configs(self, defaults: dict, user: dict) -> dict:
        """Recursively merge user config into defaults."""
        result = defaults.copy()
        for key, value in user.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value
        return result

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """Get a config value."""
        return self._config.get(section, {}).get(key, default)

    def effective(self) -> dict[str, Any]:
        """Return the merged settings in use, defaults included."""
        return {section: dict(values) for section, values in self._config.items() if isinstance(values, dict)}

    def create_example_config(self) -> None:
        """Create an example config file."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        algorithms = ", ".join(f'"{name}"' for name in DEFAULT_ALGORITHMS)

        example = f"""# dupectl configuration file
# Location: ~/.config/dupectl/config.toml

[engine]
# Concurrent hash computations (0 = half the CPU cores)
workers = 0

# Bytes read per chunk; every algorithm is fed each chunk before the next read
chunk_size = {CHUNK_SIZE}

# Digest algorithms computed for every file
algorithms = [{algorithms}]

# Algorithm used by match = "primary" (empty = first of algorithms)
primary = ""

# "all": every algorithm must agree; "primary": only the primary one
match = "{MATCH_ALL}"

[cache]
# Reuse fingerprints of files whose size and mtime are unchanged
enabled = true
path = '{DEFAULT_CACHE_PATH}'

[scan]
# Scan directories recursively by default
recursive = true

# Also fingerprint the members of zip archives
archives = true
"""

        with open(self.config_file, "w") as f:
            f.write(example)


# Global config instance
_config = None


def get_config() -> Config:
    """Get the global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Drop the cached instance so the next get_config() re-reads the file."""
    global _config
    _config = None
