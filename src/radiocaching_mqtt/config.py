"""Configuration loader for the radiocaching MQTT tracker."""

import logging
import os
from typing import Any, Dict, Optional

import yaml

from .models import LocationConfig, MQTTConfig


logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


class Config:
    """Application configuration manager."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to config file. If None, uses default locations.
        """
        self.config_path = config_path or self._find_config_file()
        self._data: Dict[str, Any] = {}
        self.load()

    def _find_config_file(self) -> str:
        """
        Find the configuration file in default locations.

        Returns:
            Path to config file

        Raises:
            ConfigError: If no config file is found
        """
        # Search locations in order of priority
        search_paths = [
            "config.yaml",
            "config.yml",
            os.path.expanduser("~/.config/radiocaching-mqtt/config.yaml"),
            "/etc/radiocaching-mqtt/config.yaml",
        ]

        for path in search_paths:
            if os.path.isfile(path):
                logger.info(f"Found config file at: {path}")
                return path

        raise ConfigError(
            f"No configuration file found. Searched: {', '.join(search_paths)}"
        )

    def load(self) -> None:
        """
        Load configuration from file.

        Raises:
            ConfigError: If config file cannot be loaded or is invalid
        """
        try:
            logger.info(f"Loading configuration from: {self.config_path}")
            with open(self.config_path, "r", encoding="utf-8") as f:
                self._data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise ConfigError(f"Config file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file: {e}")
        except Exception as e:
            raise ConfigError(f"Failed to load config: {e}")

        self._validate()

    def _validate(self) -> None:
        """
        Validate the configuration data.

        Raises:
            ConfigError: If configuration is invalid
        """
        if not isinstance(self._data, dict):
            raise ConfigError("Config file must contain a mapping at the top level")

        team = self._data.get("team")
        if not isinstance(team, dict) or "number" not in team:
            raise ConfigError("Missing required 'team.number' in config")

        number = team["number"]
        if isinstance(number, bool) or not isinstance(number, int) or number <= 0:
            raise ConfigError(f"'team.number' must be a positive integer, got {number!r}")

        policy = self.get("worker.policy", "latest")
        if policy not in ("latest", "fifo"):
            raise ConfigError(f"'worker.policy' must be 'latest' or 'fifo', got {policy!r}")

        for section in ("mqtt", "location", "dose_rate", "worker", "logging"):
            if not isinstance(self._data.get(section) or {}, dict):
                raise ConfigError(f"'{section}' section must be a mapping")

        location = self._data.get("location") or {}
        port = location.get("port")
        if port is not None and not isinstance(port, str):
            raise ConfigError(f"'location.port' must be a device path, got {port!r}")

        if location.get("source", "serial") == "serial" and port and port.startswith("/dev/"):
            if not os.path.exists(port):
                logger.warning(f"GPS port {port} does not exist (yet)")

    def get_team_number(self) -> int:
        """Get the search team number."""
        return self._data["team"]["number"]

    def get_logging_config(self) -> Dict[str, Any]:
        """
        Get logging configuration.

        Returns:
            Dictionary with logging settings
        """
        return self._data.get(
            "logging",
            {
                "level": "INFO",
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        )

    def get_mqtt_config(self) -> MQTTConfig:
        """
        Get MQTT configuration.

        Returns:
            MQTTConfig object

        Raises:
            ConfigError: If a value is out of range
        """
        mqtt_data = self._data.get("mqtt") or {}
        defaults = MQTTConfig()
        try:
            return MQTTConfig(
                enabled=mqtt_data.get("enabled", True),
                broker=mqtt_data.get("broker", defaults.broker),
                port=mqtt_data.get("port", defaults.port),
                tls=mqtt_data.get("tls", True),
                ca_certs=mqtt_data.get("ca_certs") or None,
                username=mqtt_data.get("username") or None,
                password=mqtt_data.get("password") or None,
                client_id_prefix=mqtt_data.get("client_id_prefix", defaults.client_id_prefix),
                topic_template=mqtt_data.get("topic_template", defaults.topic_template),
                qos=mqtt_data.get("qos", defaults.qos),
                keepalive=mqtt_data.get("keepalive", defaults.keepalive),
                connect_timeout=mqtt_data.get("connect_timeout", defaults.connect_timeout),
                publish_timeout=mqtt_data.get("publish_timeout", defaults.publish_timeout),
                best_effort=mqtt_data.get("best_effort", True),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid 'mqtt' section: {e}") from e

    def get_location_config(self) -> LocationConfig:
        """
        Get location source configuration.

        Returns:
            LocationConfig object

        Raises:
            ConfigError: If a value is out of range
        """
        location_data = self._data.get("location") or {}
        try:
            return LocationConfig(
                source=location_data.get("source", "serial"),
                port=location_data.get("port"),
                baudrate=location_data.get("baudrate", 9600),
                timeout=location_data.get("timeout", 1.0),
                interval=location_data.get("interval", 10.0),
                static_positions=[
                    (float(lat), float(lon))
                    for lat, lon in location_data.get("static_positions", [])
                ],
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid 'location' section: {e}") from e

    def get_dose_rate(self) -> float:
        """
        Get the configured dose rate in µSv/h.

        Returns:
            Dose rate

        Raises:
            ConfigError: If the value is not a number
        """
        dose_data = self._data.get("dose_rate") or {}
        try:
            return float(dose_data.get("value", 0.12))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid 'dose_rate' section: {e}") from e

    def get_worker_policy(self) -> str:
        """Get the publish backpressure policy ('latest' or 'fifo')."""
        return self.get("worker.policy", "latest")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value by key.

        Args:
            key: Configuration key (supports dot notation, e.g., 'mqtt.broker')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        value = self._data

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        return value if value is not None else default

    def __getitem__(self, key: str) -> Any:
        """Get configuration value using dictionary syntax."""
        value = self.get(key)
        if value is None:
            raise KeyError(f"Configuration key not found: {key}")
        return value

    def __repr__(self) -> str:
        """String representation of config."""
        return f"Config(path={self.config_path})"
