"""Configuration management for synchronization runs."""

import json
import os
import yaml
from typing import Dict, Any, Optional
import logging

from ..exceptions import ConfigurationError
from ..models.core import SyncConfig


logger = logging.getLogger(__name__)

# Environment variable -> SyncConfig field
ENV_VARS = {
    'ANAPAY_USERNAME': 'anapay_username',
    'ANAPAY_PASSWORD': 'anapay_password',
    'POCKETSMITH_TOKEN': 'pocketsmith_token',
    'NUM_TRANSACTIONS': 'num_transactions',
    'SENTRY_DSN': 'sentry_dsn',
}

DEDUP_STRATEGIES = ('reference', 'memo')

STRING_FIELDS = ['anapay_username', 'anapay_password', 'pocketsmith_token',
                 'account_name', 'institution_name', 'currency_code',
                 'sentry_dsn', 'log_directory', 'dedup_strategy']
POSITIVE_INT_FIELDS = ['num_transactions', 'page_size', 'repeat_threshold', 'request_timeout']


class ConfigManager:
    """Builds a SyncConfig from a config file, the environment and explicit overrides.

    Precedence, lowest to highest: defaults, config file, environment
    variables, overrides (usually CLI flags).
    """

    def __init__(self, config_path: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        """Initialize configuration manager

        Args:
            config_path: Path to configuration file. If None, searches for default locations.
            environ: Environment mapping, defaults to os.environ
        """
        self.config_path = config_path
        self.environ = os.environ if environ is None else environ
        self._config_cache: Optional[SyncConfig] = None

    def load_config(self, overrides: Optional[Dict[str, Any]] = None,
                    force_reload: bool = False) -> SyncConfig:
        """Load the sync configuration

        Args:
            overrides: Values taking precedence over file and environment; None values are ignored
            force_reload: Force reload from file even if cached

        Returns:
            SyncConfig instance

        Raises:
            ConfigurationError: If the config file or a value is invalid
        """
        if self._config_cache is not None and not force_reload and not overrides:
            return self._config_cache

        data = self._load_config_file()
        data.update(self._load_environment())
        if overrides:
            data.update({k: v for k, v in overrides.items() if v is not None})

        self._validate_config_data(data)

        known = set(SyncConfig.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        for key in unknown:
            logger.warning(f"Unknown configuration key: {key}")

        self._config_cache = SyncConfig(**{k: v for k, v in data.items() if k in known})
        logger.debug(f"Configuration loaded from {self.config_path or 'defaults'}")
        return self._config_cache

    def _load_config_file(self) -> Dict[str, Any]:
        """Load configuration from file

        Returns:
            Dictionary with configuration data or empty dict if no file found
        """
        config_file = self._find_config_file()

        if not config_file or not os.path.exists(config_file):
            if self.config_path:
                raise ConfigurationError(f"Configuration file not found: {self.config_path}")
            logger.info("No configuration file found, using defaults")
            return {}

        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                if config_file.endswith('.json'):
                    data = json.load(f)
                elif config_file.endswith(('.yml', '.yaml')):
                    data = yaml.safe_load(f)
                else:
                    raise ConfigurationError(f"Unsupported config file format: {config_file}")
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Error reading configuration file {config_file}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration must be a dictionary")

        logger.info(f"Configuration loaded from {config_file}")
        return data

    def _find_config_file(self) -> Optional[str]:
        """Find configuration file in standard locations"""
        if self.config_path:
            return self.config_path

        search_paths = [
            'anapay_sync.yml',
            'anapay_sync.yaml',
            'anapay_sync.json',
            'config/anapay_sync.yml',
            'config/anapay_sync.yaml',
            'config/anapay_sync.json',
            os.path.expanduser('~/.anapay_sync/config.yml'),
            os.path.expanduser('~/.anapay_sync/config.json'),
        ]

        for path in search_paths:
            if os.path.exists(path):
                return path

        return None

    def _load_environment(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for env_var, key in ENV_VARS.items():
            value = self.environ.get(env_var)
            if not value:
                continue
            if key in POSITIVE_INT_FIELDS:
                try:
                    value = int(value)
                except ValueError as e:
                    raise ConfigurationError(f"{env_var} must be an integer, got '{value}'") from e
            data[key] = value
        return data

    def _validate_config_data(self, data: Dict[str, Any]) -> None:
        """Validate configuration values

        Raises:
            ConfigurationError: If a value has the wrong type or is out of range
        """
        for key in STRING_FIELDS:
            if key in data and data[key] is not None and not isinstance(data[key], str):
                raise ConfigurationError(f"{key} must be a string")

        for key in POSITIVE_INT_FIELDS:
            if key in data:
                value = data[key]
                if isinstance(value, bool) or not isinstance(value, int):
                    raise ConfigurationError(f"{key} must be an integer")
                if value < 1:
                    raise ConfigurationError(f"{key} must be at least 1")

        strategy = data.get('dedup_strategy')
        if strategy is not None and strategy not in DEDUP_STRATEGIES:
            raise ConfigurationError(
                f"dedup_strategy must be one of {', '.join(DEDUP_STRATEGIES)}, got '{strategy}'"
            )

    def validate_credentials(self, config: SyncConfig) -> None:
        """Check that everything needed to talk to both services is present

        Raises:
            ConfigurationError: Naming the first missing credential
        """
        required = [
            ('anapay_username', "Anapay username is required. Set via --username or ANAPAY_USERNAME"),
            ('anapay_password', "Anapay password is required. Set via --password or ANAPAY_PASSWORD"),
            ('pocketsmith_token', "Pocketsmith token is required. Set via --token or POCKETSMITH_TOKEN"),
        ]
        for key, message in required:
            if not getattr(config, key):
                raise ConfigurationError(message, field=key)

    def save_config_template(self, output_path: str) -> None:
        """Generate and save a configuration file template

        Args:
            output_path: Path where to save the template
        """
        template = {
            "anapay_username": "",
            "anapay_password": "",
            "pocketsmith_token": "",
            "num_transactions": 100,
            "dedup_strategy": "reference",
            "account_name": "ANA Pay",
            "institution_name": "ANA Pay",
            "currency_code": "jpy",
            "request_timeout": 30,
            "sentry_dsn": "",
            "log_directory": "logs",
        }

        output_dir = os.path.dirname(output_path)
        if output_dir:
            os.makedirs(output_dir, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8') as f:
            if output_path.endswith(('.yml', '.yaml')):
                yaml.dump(template, f, default_flow_style=False, indent=2, sort_keys=False)
            else:
                json.dump(template, f, indent=2)

        logger.info(f"Configuration template saved to {output_path}")

    def reset_config(self) -> None:
        """Reset configuration cache, forcing reload on next access"""
        self._config_cache = None
