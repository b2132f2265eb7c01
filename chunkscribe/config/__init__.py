"""YAML configuration loader for ChunkScribe."""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)


DEFAULTS: Dict[str, Any] = {
    "storage": {
        "data_directory": "data",
        "audio_extension": "webm",
    },
    "transcript": {
        "nominal_chunk_ms": 5000,
    },
    "server": {
        "host": "127.0.0.1",
        "port": 8787,
    },
    "sessions": {
        "page_size": 50,
        "cleanup_max_age_hours": 1,
    },
    "polling": {
        "interval_seconds": 2.0,
        "max_attempts": 30,
    },
    "usage": {
        "model": "gemini-1.5-pro",
        "input_token_cost": 0.0025 / 1000,
        "output_token_cost": 0.01 / 1000,
        "audio_seconds_per_token": 0.4,
        "chars_per_output_token": 4,
    },
    "logging": {
        "level": "INFO",
        "console_output": True,
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


class ChunkScribeConfig:
    """ChunkScribe configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, the built-in
                        defaults are used and relative paths resolve against
                        the current directory.
        """
        self.config_file = Path(config_path) if config_path else None

        if self.config_file is None:
            logger.info("No configuration file given, using defaults")
            self.config = copy.deepcopy(DEFAULTS)
            self._resolve_paths(self.config, Path.cwd())
            return

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    @classmethod
    def from_dict(cls, values: Dict[str, Any], base_dir: Optional[str] = None) -> "ChunkScribeConfig":
        """Build a configuration from an in-memory mapping layered over the defaults."""
        instance = cls.__new__(cls)
        instance.config_file = None
        instance.config = _merge(copy.deepcopy(DEFAULTS), copy.deepcopy(values))
        instance._resolve_paths(instance.config, Path(base_dir) if base_dir else Path.cwd())
        return instance

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if not loaded:
            raise ValueError("Configuration file is empty")
        if not isinstance(loaded, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")

        config = _merge(copy.deepcopy(DEFAULTS), loaded)
        self._resolve_paths(config, self.config_file.parent)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any], config_dir: Path) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        storage = config.setdefault('storage', {})
        data_dir = storage.get('data_directory', 'data')
        if not os.path.isabs(data_dir):
            data_dir = str(config_dir / data_dir)
        storage['data_directory'] = data_dir

        db_path = storage.get('database_path') or str(Path(data_dir) / "chunkscribe.db")
        if not os.path.isabs(db_path):
            db_path = str(config_dir / db_path)
        storage['database_path'] = db_path

        log_config = config.setdefault('logging', {})
        log_path = log_config.get('file_path') or str(Path(data_dir) / "logs" / "chunkscribe.log")
        if not os.path.isabs(log_path):
            log_path = str(config_dir / log_path)
        log_config['file_path'] = log_path

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'transcript.nominal_chunk_ms').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'server.port')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_data_directory(self) -> str:
        """Get data directory path."""
        return str(Path(self.get('storage.data_directory', 'data')).absolute())

    def get_database_path(self) -> str:
        """Get SQLite database file path."""
        return str(Path(self.get('storage.database_path')).absolute())

    def get_nominal_chunk_ms(self) -> int:
        """Get the nominal chunk duration used for timestamp synthesis."""
        value = int(self.get('transcript.nominal_chunk_ms', 5000))
        if value <= 0:
            raise ValueError(f"transcript.nominal_chunk_ms must be positive, got {value}")
        return value
