"""Domain models for position fixes, telemetry messages and configuration."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class PositionFix:
    """A single GPS position sample with its capture time."""

    latitude: float
    longitude: float
    captured_at_millis: int

    def __post_init__(self):
        """Validate the coordinates."""
        if not math.isfinite(self.latitude) or not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"Latitude must be within [-90, 90], got {self.latitude}")
        if not math.isfinite(self.longitude) or not -180.0 <= self.longitude <= 180.0:
            raise ValueError(
                f"Longitude must be within [-180, 180], got {self.longitude}"
            )

    def __str__(self) -> str:
        """Human-readable string representation."""
        return f"Lat: {self.latitude:.5f}, Lon: {self.longitude:.5f}"


@dataclass(frozen=True)
class TelemetryMessage:
    """Telemetry message as published to the team topic."""

    latitude: float
    longitude: float
    timestamp_millis: int
    dose_rate: float  # µSv/h

    def to_dict(self) -> dict:
        """
        Convert message to dictionary for JSON serialization.

        Field names are fixed, the command post consumes them as-is.

        Returns:
            Dictionary representation
        """
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": self.timestamp_millis,
            "dose_rate": self.dose_rate,
        }


class ConnectionState(Enum):
    """State of the broker session owned by the publish channel."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


@dataclass
class MQTTConfig:
    """Configuration for MQTT connection and publishing."""

    enabled: bool = True
    broker: str = "broker.hivemq.com"
    port: int = 8883
    tls: bool = True
    ca_certs: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    client_id_prefix: str = "radiocaching"
    topic_template: str = "radiocaching/ff/search_teams/{team}/coordinates"
    qos: int = 1
    keepalive: int = 60
    connect_timeout: float = 10.0
    publish_timeout: float = 10.0
    best_effort: bool = True

    def __post_init__(self):
        """Validate the configuration."""
        if self.port <= 0 or self.port > 65535:
            raise ValueError(f"Port must be between 1 and 65535, got {self.port}")
        if self.qos not in (0, 1, 2):
            raise ValueError(f"QoS must be 0, 1, or 2, got {self.qos}")
        if self.keepalive <= 0:
            raise ValueError(f"Keepalive must be positive, got {self.keepalive}")
        if self.connect_timeout <= 0:
            raise ValueError(
                f"Connect timeout must be positive, got {self.connect_timeout}"
            )
        if self.publish_timeout <= 0:
            raise ValueError(
                f"Publish timeout must be positive, got {self.publish_timeout}"
            )
        if "{team}" not in self.topic_template:
            raise ValueError(
                f"Topic template must contain '{{team}}', got {self.topic_template}"
            )

    def get_topic(self, team_number: int) -> str:
        """
        Construct the coordinates topic for a team.

        Args:
            team_number: Search team number

        Returns:
            Full topic path
        """
        return self.topic_template.format(team=team_number)


@dataclass
class LocationConfig:
    """Configuration for the GPS location source."""

    source: str = "serial"
    port: Optional[str] = None
    baudrate: int = 9600
    timeout: float = 1.0
    interval: float = 10.0
    static_positions: List[Tuple[float, float]] = field(default_factory=list)

    def __post_init__(self):
        """Validate the configuration."""
        if self.source not in ("serial", "static"):
            raise ValueError(f"Location source must be 'serial' or 'static', got {self.source}")
        if self.source == "serial" and not self.port:
            raise ValueError("Serial location source requires a port")
        if self.source == "static" and not self.static_positions:
            raise ValueError("Static location source requires at least one position")
        if self.baudrate <= 0:
            raise ValueError(f"Baudrate must be positive, got {self.baudrate}")
        if self.timeout <= 0:
            raise ValueError(f"Timeout must be positive, got {self.timeout}")
        if self.interval < 0:
            raise ValueError(f"Interval must be non-negative, got {self.interval}")
