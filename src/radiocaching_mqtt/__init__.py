"""Radiocaching MQTT tracker.

Publishes the GPS position and dose rate of a radiation reconnaissance
team to an MQTT broker so the command post can follow it live.
"""

__version__ = "0.1.0"

from .config import Config, ConfigError
from .location import GPSConnectionError, LocationSourceError, SerialGPSSource, StaticLocationSource
from .models import ConnectionState, LocationConfig, MQTTConfig, PositionFix, TelemetryMessage
from .payload import build_message, build_payload

__all__ = [
    "PositionFix",
    "TelemetryMessage",
    "ConnectionState",
    "MQTTConfig",
    "LocationConfig",
    "build_message",
    "build_payload",
    "SerialGPSSource",
    "StaticLocationSource",
    "LocationSourceError",
    "GPSConnectionError",
    "Config",
    "ConfigError",
]
