"""MQTT channel and publishing functionality for team position telemetry."""

from .client import ChannelError, ConnectError, DisconnectError, PublishChannel, PublishError
from .publisher import TelemetryPublisher

__all__ = [
    "PublishChannel",
    "TelemetryPublisher",
    "ChannelError",
    "ConnectError",
    "PublishError",
    "DisconnectError",
]
