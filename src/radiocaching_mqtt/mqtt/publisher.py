"""MQTT publisher for search team position telemetry."""

import logging
from typing import Optional

from ..dose_rate import DoseRateSource
from ..models import MQTTConfig, PositionFix
from ..payload import build_payload
from ..status import TrackerStatus
from .client import ChannelError, DisconnectError, PublishChannel

logger = logging.getLogger(__name__)


class TelemetryPublisher:
    """
    Publishes position fixes of one search team.

    Each fix is paired with the current dose rate, serialized and sent to
    the team's coordinates topic. In best-effort mode channel errors are
    logged and the fix is dropped; otherwise they are re-raised.
    """

    def __init__(
        self,
        channel: PublishChannel,
        config: MQTTConfig,
        team_number: int,
        dose_rate_source: DoseRateSource,
        status: Optional[TrackerStatus] = None,
    ):
        """
        Initialize telemetry publisher.

        Args:
            channel: Publish channel (connected lazily)
            config: MQTT configuration
            team_number: Search team number used in the topic
            dose_rate_source: Source of the dose rate reported with each fix
            status: Status board to keep up to date, created if None
        """
        self.channel = channel
        self.config = config
        self.team_number = team_number
        self.dose_rate_source = dose_rate_source
        self.status = status or TrackerStatus(team_number)
        self.topic = config.get_topic(team_number)
        self.published_count = 0
        self.failed_count = 0

        self.channel.set_on_connect_callback(lambda: self.status.set_connected(True))
        self.channel.set_on_disconnect_callback(lambda: self.status.set_connected(False))

        logger.info(f"Telemetry publisher initialized for topic: {self.topic}")

    def publish_fix(self, fix: PositionFix) -> bool:
        """
        Publish a position fix together with the current dose rate.

        Args:
            fix: Position fix to publish

        Returns:
            True if the broker acknowledged the message, False if it was
            dropped in best-effort mode

        Raises:
            ChannelError: If the publish failed and best-effort mode is off
        """
        dose_rate = self.dose_rate_source.read()
        self.status.record_fix(fix, dose_rate)
        payload = build_payload(fix, dose_rate)

        try:
            self.channel.publish(self.topic, payload, qos=self.config.qos)
        except ChannelError as e:
            self.failed_count += 1
            self.status.set_connected(False)
            if not self.config.best_effort:
                raise
            logger.error(f"Failed to publish position ({fix}): {e}")
            return False

        self.published_count += 1
        self.status.set_connected(True)
        logger.debug(f"Published position: {fix}, dose rate={dose_rate}")
        return True

    def shutdown(self) -> None:
        """Disconnect the channel, logging instead of raising on failure."""
        logger.info("Shutting down telemetry publisher...")
        try:
            self.channel.shutdown()
        except DisconnectError as e:
            logger.error(f"Failed to disconnect cleanly: {e}")
        finally:
            self.status.set_connected(False)
        logger.info(
            f"Telemetry publisher stopped "
            f"(published={self.published_count}, failed={self.failed_count})"
        )
