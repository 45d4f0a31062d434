"""
Configuration Management

Loads YAML configuration files from the config directory and layers
environment overrides (from the process environment or a .env file)
on top. Supports dot-notation access and reloading.
"""

import os
from pathlib import Path
from typing import Dict, Any, Optional, Mapping

import yaml
import structlog
from dotenv import load_dotenv

logger = structlog.get_logger(__name__)

DEFAULT_CONFIG_DIR = Path(__file__).parent.parent / "config"
DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"

DEFAULTS: Dict[str, Any] = {
    'database': {
        'url': f"sqlite:///{DEFAULT_DATA_DIR}/campus_parking.db",
        'timeoutSeconds': 10,
        'maxTransactionAttempts': 5,
    },
    'sanctions': {
        'suspensionWorkingDays': 30,
        'timezone': 'UTC',
    },
    'renewal': {
        'defaultExtensionDays': 365,
        'maxExtensionDays': 3650,
    },
    'maintenance': {
        'enabled': False,
        'intervalSeconds': 3600,
        'batchSize': 450,
    },
    'logging': {
        'environment': 'development',
        'level': 'INFO',
    },
}

# Environment variable -> (dotted key, converter)
ENV_OVERRIDES = {
    'DATABASE_URL': ('database.url', str),
    'LOG_LEVEL': ('logging.level', str),
    'APP_ENV': ('logging.environment', str),
    'MAINTENANCE_INTERVAL': ('maintenance.intervalSeconds', float),
    'MAINTENANCE_ENABLED': ('maintenance.enabled', lambda v: v.strip().lower() in ('1', 'true', 'yes', 'on')),
}


def _merge(base: Dict[str, Any], extra: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge extra into a copy of base"""
    merged = dict(base)
    for key, value in extra.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigManager:
    """
    Manage application configuration from YAML files and environment

    Provides:
    - Built-in defaults for every recognised setting
    - Load all *.yaml files of the config directory (one section per file)
    - Environment overrides (DATABASE_URL, LOG_LEVEL, ...)
    - Dot notation access: config.get('sanctions.suspensionWorkingDays')
    - Reload capability
    """

    def __init__(self, config_dir: Optional[str] = None, env: Optional[Mapping[str, str]] = None):
        """
        Initialize configuration manager

        Args:
            config_dir: Path to config directory (default: backend/config)
            env: Environment mapping used for overrides (default: os.environ
                 after loading .env)
        """
        self.config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
        if env is None:
            load_dotenv()
            env = os.environ
        self._env = env

        self.configs: Dict[str, Any] = {}
        self._load_all_configs()

    def _load_all_configs(self):
        """Load defaults, YAML files and environment overrides"""
        self.configs = _merge({}, DEFAULTS)

        if self.config_dir.exists():
            for yaml_file in sorted(self.config_dir.glob("*.yaml")):
                with open(yaml_file, 'r') as f:
                    section = yaml.safe_load(f) or {}
                if not isinstance(section, dict):
                    raise ValueError(f"Config file {yaml_file.name} must contain a mapping")
                name = yaml_file.stem
                self.configs[name] = _merge(self.configs.get(name, {}), section)
                logger.debug("config_file_loaded", file=yaml_file.name)
        else:
            logger.info("config_dir_missing", config_dir=str(self.config_dir))

        for env_name, (key, convert) in ENV_OVERRIDES.items():
            raw = self._env.get(env_name)
            if raw is not None and raw != "":
                self.set(key, convert(raw))

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by dot notation key

        Examples:
            config.get('database.url')
            config.get('maintenance.intervalSeconds', 3600)
        """
        value = self.configs
        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def get_database_config(self) -> Dict[str, Any]:
        """Get database configuration section"""
        return self.configs.get('database', {})

    def get_sanction_config(self) -> Dict[str, Any]:
        """Get sanction policy configuration section"""
        return self.configs.get('sanctions', {})

    def get_renewal_config(self) -> Dict[str, Any]:
        """Get renewal configuration section"""
        return self.configs.get('renewal', {})

    def get_maintenance_config(self) -> Dict[str, Any]:
        """Get maintenance scheduler configuration section"""
        return self.configs.get('maintenance', {})

    def get_logging_config(self) -> Dict[str, Any]:
        """Get logging configuration section"""
        return self.configs.get('logging', {})

    def reload(self):
        """Reload all configuration files"""
        logger.info("config_reloading")
        self.configs.clear()
        self._load_all_configs()

    def set(self, key: str, value: Any):
        """
        Set a configuration value (runtime only, not persisted)

        Args:
            key: Dot-separated key path
            value: Value to set
        """
        keys = key.split('.')
        config = self.configs

        for k in keys[:-1]:
            if not isinstance(config.get(k), dict):
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value
