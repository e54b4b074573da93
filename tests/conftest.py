"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import paho.mqtt.client as mqtt
import pytest

# Add the src directory to sys.path so that 'radiocaching_mqtt' can be imported
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from radiocaching_mqtt.models import MQTTConfig  # noqa: E402


class FakeMessageInfo:
    """Stand-in for paho's MQTTMessageInfo."""

    def __init__(self, rc=mqtt.MQTT_ERR_SUCCESS, published=True, wait_exc=None):
        self.rc = rc
        self._published = published
        self._wait_exc = wait_exc
        self.wait_timeout = None

    def wait_for_publish(self, timeout=None):
        self.wait_timeout = timeout
        if self._wait_exc is not None:
            raise self._wait_exc

    def is_published(self):
        return self._published


class FakeMqttClient:
    """Minimal fake paho-mqtt client; CONNACK is delivered inside connect()."""

    def __init__(self, broker, **kwargs):
        self.broker = broker
        self.kwargs = kwargs
        self.on_connect = None
        self.on_disconnect = None
        self.tls = None
        self.auth = None
        self.connect_args = None
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.loop_running = False
        self.loop_stop_calls = 0
        self.connect_timeout = 5.0
        self.published = []

    def tls_set(self, ca_certs=None):
        self.tls = {"ca_certs": ca_certs}

    def username_pw_set(self, username, password=None):
        self.auth = (username, password)

    def connect(self, host, port, keepalive=60):
        self.connect_calls += 1
        self.connect_args = (host, port, keepalive)
        if self.broker.connect_exc is not None:
            raise self.broker.connect_exc
        if self.broker.send_connack and self.on_connect:
            self.on_connect(self, None, {}, self.broker.connect_rc, None)
            if self.broker.drop_after_connack:
                self.drop()

    def loop_start(self):
        self.loop_running = True

    def loop_stop(self):
        self.loop_stop_calls += 1
        self.loop_running = False

    def disconnect(self):
        self.disconnect_calls += 1

    def publish(self, topic, payload, qos=0, retain=False):
        self.published.append((topic, payload, qos, retain))
        self.broker.published.append((topic, payload, qos))
        info = FakeMessageInfo(
            rc=self.broker.publish_rc,
            published=self.broker.ack_publishes,
            wait_exc=self.broker.wait_exc,
        )
        self.broker.infos.append(info)
        return info

    def drop(self, reason_code=7):
        """Simulate the broker closing the connection."""
        self.on_disconnect(self, None, {}, reason_code, None)


class FakeBroker:
    """Creates fake clients and holds the behavior they simulate."""

    def __init__(self):
        self.clients = []
        self.published = []
        self.infos = []
        self.connect_rc = 0
        self.connect_exc = None
        self.send_connack = True
        self.drop_after_connack = False
        self.publish_rc = mqtt.MQTT_ERR_SUCCESS
        self.ack_publishes = True
        self.wait_exc = None

    def factory(self, *args, **kwargs):
        client = FakeMqttClient(self, **kwargs)
        self.clients.append(client)
        return client

    @property
    def connect_calls(self):
        return sum(client.connect_calls for client in self.clients)

    @property
    def last_client(self):
        return self.clients[-1]


@pytest.fixture
def fake_broker(monkeypatch):
    """Replace paho's Client with a fake bound to a controllable broker."""
    broker = FakeBroker()
    monkeypatch.setattr(mqtt, "Client", broker.factory)
    return broker


@pytest.fixture
def mqtt_config():
    """MQTT configuration with short timeouts for tests."""
    return MQTTConfig(
        broker="broker.test",
        port=8883,
        connect_timeout=0.05,
        publish_timeout=0.05,
    )
