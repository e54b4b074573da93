"""Unit tests for TelemetryPublisher and TrackerStatus."""

import json

import pytest

from radiocaching_mqtt.dose_rate import ConstantDoseRate
from radiocaching_mqtt.models import MQTTConfig, PositionFix
from radiocaching_mqtt.mqtt.client import ConnectError, PublishChannel
from radiocaching_mqtt.mqtt.publisher import TelemetryPublisher
from radiocaching_mqtt.status import TrackerStatus


def make_publisher(config, team_number=2, dose_rate=0.12):
    channel = PublishChannel(config)
    return TelemetryPublisher(
        channel=channel,
        config=config,
        team_number=team_number,
        dose_rate_source=ConstantDoseRate(dose_rate),
    )


class TestTelemetryPublisher:
    """Tests for TelemetryPublisher."""

    def test_topic(self, mqtt_config):
        """Test the topic is derived from the team number."""
        publisher = make_publisher(mqtt_config, team_number=3)
        assert publisher.topic == "radiocaching/ff/search_teams/3/coordinates"

    def test_publish_fix(self, fake_broker, mqtt_config):
        """Test a fix is published with the dose rate at QoS 1."""
        publisher = make_publisher(mqtt_config)
        fix = PositionFix(52.515, 13.405, 1700000000000)

        assert publisher.publish_fix(fix) is True

        topic, payload, qos = fake_broker.published[0]
        assert topic == "radiocaching/ff/search_teams/2/coordinates"
        assert qos == 1
        data = json.loads(payload)
        assert data["latitude"] == 52.515
        assert data["longitude"] == 13.405
        assert data["dose_rate"] == 0.12
        assert publisher.published_count == 1

    def test_publish_updates_status(self, fake_broker, mqtt_config):
        """Test a successful publish marks the status connected."""
        publisher = make_publisher(mqtt_config)
        publisher.publish_fix(PositionFix(52.515, 13.405, 0))

        assert publisher.status.connected is True
        assert publisher.status.coordinates == "Lat: 52.51500, Lon: 13.40500"

    def test_best_effort_swallows_refused_handshake(self, fake_broker, mqtt_config):
        """Test a refused broker is logged, not raised, in best-effort mode."""
        fake_broker.connect_rc = 5
        publisher = make_publisher(mqtt_config)

        assert publisher.publish_fix(PositionFix(52.515, 13.405, 0)) is False

        assert not publisher.channel.is_connected()
        assert publisher.status.connected is False
        assert publisher.failed_count == 1
        assert fake_broker.published == []

    def test_best_effort_logs_failure(self, fake_broker, mqtt_config, caplog):
        """Test the dropped fix is logged as an error."""
        fake_broker.ack_publishes = False
        publisher = make_publisher(mqtt_config)

        with caplog.at_level("ERROR"):
            publisher.publish_fix(PositionFix(52.515, 13.405, 0))

        assert "Failed to publish position" in caplog.text

    def test_strict_mode_raises(self, fake_broker):
        """Test errors propagate when best-effort mode is off."""
        fake_broker.connect_rc = 5
        config = MQTTConfig(connect_timeout=0.05, best_effort=False)
        publisher = make_publisher(config)

        with pytest.raises(ConnectError):
            publisher.publish_fix(PositionFix(52.515, 13.405, 0))

        assert publisher.status.connected is False

    def test_status_reflects_lost_connection(self, fake_broker, mqtt_config):
        """Test a broker drop flips the status to not connected."""
        publisher = make_publisher(mqtt_config)
        publisher.publish_fix(PositionFix(52.515, 13.405, 0))
        assert publisher.status.connected is True

        fake_broker.last_client.drop()
        assert publisher.status.connected is False

    def test_no_retry(self, fake_broker, mqtt_config):
        """Test a failed publish is not retried."""
        fake_broker.ack_publishes = False
        publisher = make_publisher(mqtt_config)
        publisher.publish_fix(PositionFix(52.515, 13.405, 0))
        assert len(fake_broker.published) == 1

    def test_shutdown(self, fake_broker, mqtt_config):
        """Test shutdown disconnects the channel."""
        publisher = make_publisher(mqtt_config)
        publisher.publish_fix(PositionFix(52.515, 13.405, 0))
        client = fake_broker.last_client

        publisher.shutdown()

        assert client.disconnect_calls == 1
        assert publisher.status.connected is False

    def test_shutdown_swallows_disconnect_error(self, fake_broker, mqtt_config):
        """Test a failing disconnect does not escape shutdown."""
        publisher = make_publisher(mqtt_config)
        publisher.publish_fix(PositionFix(52.515, 13.405, 0))

        def boom():
            raise OSError("socket closed")

        fake_broker.last_client.disconnect = boom
        publisher.shutdown()
        assert not publisher.channel.is_connected()

    def test_shutdown_without_connection(self, fake_broker, mqtt_config):
        """Test shutdown before any publish is a no-op."""
        publisher = make_publisher(mqtt_config)
        publisher.shutdown()
        assert fake_broker.clients == []


class TestTrackerStatus:
    """Tests for TrackerStatus."""

    def test_initial_render(self):
        """Test the summary before the first fix."""
        lines = TrackerStatus(1).render()
        assert lines == [
            "Strahlen-Spürtrupp: 1",
            "Dosisleistung: -",
            "GPS Koordinaten: Lat: -, Lon: -",
            "Letzter Zeitpunkt: -",
            "Verbunden mit Server: Nein!",
        ]

    def test_render_after_fix(self):
        """Test the summary after a fix and successful connect."""
        status = TrackerStatus(1)
        status.record_fix(PositionFix(52.515, 13.405, 0), 0.12)
        status.set_connected(True)

        lines = status.render()
        assert lines[1] == "Dosisleistung: 0.120 uSv/h"
        assert lines[2] == "GPS Koordinaten: Lat: 52.51500, Lon: 13.40500"
        assert lines[3] != "Letzter Zeitpunkt: -"
        assert lines[4] == "Verbunden mit Server: Ja"

    def test_string_representation(self):
        """Test the one-line form joins all lines."""
        assert "Strahlen-Spürtrupp: 4" in str(TrackerStatus(4))


class TestConstantDoseRate:
    """Tests for ConstantDoseRate."""

    def test_read(self):
        """Test the configured value is returned."""
        assert ConstantDoseRate(89.6).read() == 89.6

    def test_default(self):
        """Test the default dose rate."""
        assert ConstantDoseRate().read() == 0.12

    def test_negative_raises_error(self):
        """Test negative values are rejected."""
        with pytest.raises(ValueError, match="non-negative"):
            ConstantDoseRate(-1.0)
