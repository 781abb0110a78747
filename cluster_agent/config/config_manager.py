"""
Configuration Manager module for the cluster agent.
"""
import copy
import json
import os
from typing import Any, Dict, Mapping, Optional

from cluster_agent.errors import ConfigurationError
from cluster_agent.protocol import DispatchLayout
from cluster_agent.utils import get_logger

logger = get_logger(__name__)

ENV_PREFIX = "CLUSTER_AGENT_"

DEFAULT_CONFIG: Dict[str, Any] = {
    "agent": {
        "config_version": 1,
        "start_in_home": True,
        "shutdown_join_timeout_sec": 5.0,
    },
    "server": {
        "host": "127.0.0.1",
        "port": 12038,
    },
    "listener": {
        "host": "0.0.0.0",
        "port": 12345,
        "backlog": 30,
        "dispatch_layout": DispatchLayout.INPUT_FIRST.value,
    },
    "executor": {
        "shell": "/bin/sh",
        "encoding": "utf-8",
    },
    "connection": {
        "read_timeout_sec": None,
    },
    "logging": {
        "console_level": "WARNING",
        "file_level": "DEBUG",
        "file_path": None,
    },
}

# Environment variable suffix -> (key path, converter)
ENV_OVERRIDES = {
    "SERVER_HOST": ("server.host", str),
    "SERVER_PORT": ("server.port", int),
    "LISTEN_HOST": ("listener.host", str),
    "LISTEN_PORT": ("listener.port", int),
    "DISPATCH_LAYOUT": ("listener.dispatch_layout", str),
    "SHELL": ("executor.shell", str),
    "READ_TIMEOUT": ("connection.read_timeout_sec", float),
    "LOG_LEVEL": ("logging.console_level", str),
    "LOG_FILE": ("logging.file_path", str),
}


def _merge(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


class ConfigManager:
    """
    Loads and manages agent configuration.

    Values are layered: built-in defaults, then the optional JSON file, then
    ``CLUSTER_AGENT_*`` environment variables, then explicit overrides passed
    by the command line.
    """
    CURRENT_CONFIG_VERSION = 1

    def __init__(self, config_path: Optional[str] = None,
                 overrides: Optional[Dict[str, Any]] = None,
                 environ: Optional[Mapping[str, str]] = None):
        """
        :param config_path: Path to a JSON configuration file, or None for defaults only
        :type config_path: Optional[str]
        :param overrides: Dot-path keys to values, applied last (None values are ignored)
        :type overrides: Optional[Dict[str, Any]]
        :param environ: Environment to read overrides from (defaults to os.environ)
        :type environ: Optional[Mapping[str, str]]
        :raises ConfigurationError: If the file cannot be read or a value is invalid
        """
        self._config_path = config_path
        self._config_data: Dict[str, Any] = copy.deepcopy(DEFAULT_CONFIG)

        if self._config_path is not None:
            _merge(self._config_data, self._load_config())
            logger.info(f"Configuration loaded from: {self._config_path}")
        self._apply_environment(os.environ if environ is None else environ)
        for key_path, value in (overrides or {}).items():
            if value is not None:
                self.set(key_path, value)

        self._validate_config()

    def _load_config(self) -> Dict[str, Any]:
        """
        Loads the configuration data from the JSON file.

        :raises ConfigurationError: If the file is missing, unreadable or not a JSON object
        """
        if not os.path.exists(self._config_path):
            raise ConfigurationError(f"Configuration file not found: {self._config_path}")

        try:
            with open(self._config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in configuration file {self._config_path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Could not read configuration file {self._config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError("Configuration file content is not a valid JSON object.")
        return data

    def _apply_environment(self, environ: Mapping[str, str]):
        for suffix, (key_path, converter) in ENV_OVERRIDES.items():
            raw = environ.get(ENV_PREFIX + suffix)
            if raw is None or raw == "":
                continue
            try:
                self.set(key_path, converter(raw))
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {ENV_PREFIX + suffix}: {raw!r}") from e
            logger.debug(f"Configuration '{key_path}' overridden from environment.")

    def _validate_config(self):
        """
        Validates the values the agent cannot run without.

        :raises ConfigurationError: If a required value is missing or invalid
        """
        for key_path in ("server.port", "listener.port"):
            port = self.get(key_path)
            if not isinstance(port, int) or isinstance(port, bool) or not 0 <= port <= 65535:
                raise ConfigurationError(f"Invalid '{key_path}': {port!r}. Must be an integer between 0 and 65535.")

        server_host = self.get("server.host")
        if not isinstance(server_host, str) or not server_host:
            raise ConfigurationError("Invalid 'server.host' configuration: Must be a non-empty string.")

        backlog = self.get("listener.backlog")
        if not isinstance(backlog, int) or backlog < 0:
            raise ConfigurationError(f"Invalid 'listener.backlog': {backlog!r}.")

        layout = self.get("listener.dispatch_layout")
        try:
            DispatchLayout(layout)
        except ValueError:
            allowed = ', '.join(item.value for item in DispatchLayout)
            raise ConfigurationError(f"Invalid 'listener.dispatch_layout': {layout!r}. Expected one of: {allowed}.")

        timeout = self.get("connection.read_timeout_sec")
        if timeout is not None and (not isinstance(timeout, (int, float)) or timeout <= 0):
            raise ConfigurationError(f"Invalid 'connection.read_timeout_sec': {timeout!r}.")

        join_timeout = self.get("agent.shutdown_join_timeout_sec")
        if isinstance(join_timeout, bool) or not isinstance(join_timeout, (int, float)) or join_timeout <= 0:
            raise ConfigurationError(f"Invalid 'agent.shutdown_join_timeout_sec': {join_timeout!r}. Must be a positive number.")

        config_version = self.get('agent.config_version')
        if isinstance(config_version, int) and config_version > self.CURRENT_CONFIG_VERSION:
            logger.warning(f"Configuration file version (v{config_version}) is newer than the supported "
                           f"version (v{self.CURRENT_CONFIG_VERSION}). Unknown keys are ignored.")

        logger.debug("Configuration validation passed.")

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Retrieves a configuration value using a dot-separated key path.

        :param key_path: The dot-separated path to the configuration key
        :type key_path: str
        :param default: The default value to return if the key is not found
        :type default: Any
        :return: The configuration value or the default value
        :rtype: Any
        """
        value: Any = self._config_data
        for key in key_path.split('.'):
            if not isinstance(value, dict) or key not in value:
                logger.debug(f"Configuration key not found: '{key_path}'. Returning default: {default}")
                return default
            value = value[key]
        return value

    def set(self, key_path: str, value: Any):
        """
        Sets a configuration value, creating intermediate sections as needed.
        """
        keys = key_path.split('.')
        section = self._config_data
        for key in keys[:-1]:
            section = section.setdefault(key, {})
        section[keys[-1]] = value

    @property
    def all_config(self) -> Dict[str, Any]:
        """
        Returns a copy of the entire configuration dictionary.
        """
        return copy.deepcopy(self._config_data)
