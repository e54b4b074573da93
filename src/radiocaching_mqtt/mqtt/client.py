"""Publish channel owning the single MQTT session to the broker."""

import logging
import threading
import time
import uuid
from typing import Callable, Optional

import paho.mqtt.client as mqtt

from ..models import ConnectionState, MQTTConfig


logger = logging.getLogger(__name__)


class ChannelError(Exception):
    """Base exception for publish channel errors."""

    pass


class ConnectError(ChannelError):
    """Raised when the TLS or MQTT handshake with the broker fails."""

    pass


class PublishError(ChannelError):
    """Raised when a message is not acknowledged by the broker."""

    pass


class DisconnectError(ChannelError):
    """Raised when the orderly disconnect fails."""

    pass


def make_client_id(prefix: str) -> str:
    """Build a client identifier unique to this process instance."""
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


class PublishChannel:
    """
    Owns at most one outbound MQTT session and publishes over it.

    Connection is lazy: ``publish`` connects first when needed. There is no
    background reconnect and no retry; every failure is raised to the caller
    as a ``ChannelError`` subclass. The paho client is never handed out.
    """

    def __init__(self, config: MQTTConfig, client_id: Optional[str] = None):
        """
        Initialize the publish channel.

        Args:
            config: MQTT configuration
            client_id: Client identifier, generated from the prefix if None
        """
        self.config = config
        self.client_id = client_id or make_client_id(config.client_id_prefix)
        self._client: Optional[mqtt.Client] = None
        self._state = ConnectionState.DISCONNECTED
        self._lock = threading.RLock()
        self._connack = threading.Event()
        self._connack_rc = None
        self._dropped = False
        self._on_connect_callback: Optional[Callable] = None
        self._on_disconnect_callback: Optional[Callable] = None

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    def is_connected(self) -> bool:
        """Check if the channel holds a live broker session."""
        return self._state is ConnectionState.CONNECTED

    def ensure_connected(self) -> None:
        """
        Connect to the broker unless already connected.

        Blocks for the TLS and MQTT handshake, up to ``connect_timeout``.

        Raises:
            ConnectError: If the connection cannot be established. The
                channel stays disconnected.
        """
        with self._lock:
            if self._state is ConnectionState.CONNECTED:
                return

            # drop a session the broker already closed on us
            self._discard_client()

            logger.info(
                f"Connecting to MQTT broker at {self.config.broker}:{self.config.port} "
                f"as {self.client_id}"
            )
            client = self._create_client()
            self._client = client
            self._connack.clear()
            self._connack_rc = None
            self._dropped = False

            try:
                client.connect(
                    self.config.broker,
                    self.config.port,
                    keepalive=self.config.keepalive,
                )
                client.loop_start()
            except Exception as e:
                self._discard_client()
                raise ConnectError(f"Failed to connect to MQTT broker: {e}") from e

            if not self._connack.wait(self.config.connect_timeout):
                self._discard_client()
                raise ConnectError(
                    f"Connection timeout after {self.config.connect_timeout}s"
                )

            if self._connack_rc != 0:
                rc = self._connack_rc
                self._discard_client()
                raise ConnectError(f"Broker refused connection (reason code {rc})")

            if self._dropped or self._client is not client:
                self._discard_client()
                raise ConnectError("Connection lost right after handshake")

            self._state = ConnectionState.CONNECTED
            logger.info("Successfully connected to MQTT broker")

    def publish(self, topic: str, payload: bytes, qos: Optional[int] = None) -> None:
        """
        Publish a message and wait for the broker acknowledgment.

        Args:
            topic: MQTT topic
            payload: Message payload
            qos: Quality of Service level, defaults to the configured one

        Raises:
            ConnectError: If the lazy connect fails
            PublishError: If the message is not acknowledged
        """
        if qos is None:
            qos = self.config.qos

        with self._lock:
            self.ensure_connected()

            try:
                info = self._client.publish(topic, payload, qos=qos, retain=False)
            except Exception as e:
                raise PublishError(f"Failed to publish message: {e}") from e

            if info.rc != mqtt.MQTT_ERR_SUCCESS:
                if info.rc == mqtt.MQTT_ERR_NO_CONN:
                    self._state = ConnectionState.DISCONNECTED
                raise PublishError(
                    f"Failed to publish to {topic}: {mqtt.error_string(info.rc)}"
                )

            try:
                info.wait_for_publish(timeout=self.config.publish_timeout)
            except (RuntimeError, ValueError) as e:
                raise PublishError(f"Failed to publish to {topic}: {e}") from e

            if not info.is_published():
                raise PublishError(
                    f"Publish to {topic} not acknowledged within "
                    f"{self.config.publish_timeout}s"
                )

            logger.debug(f"Published to {topic} (QoS {qos}, {len(payload)} bytes)")

    def shutdown(self) -> None:
        """
        Disconnect from the broker.

        No-op when already disconnected.

        Raises:
            DisconnectError: If the orderly disconnect fails. The channel is
                disconnected afterwards either way.
        """
        with self._lock:
            client = self._client
            was_connected = self._state is ConnectionState.CONNECTED
            self._client = None
            self._state = ConnectionState.DISCONNECTED

            if client is None:
                return

            logger.info("Disconnecting from MQTT broker")
            try:
                if was_connected:
                    client.disconnect()
                client.loop_stop()
            except Exception as e:
                raise DisconnectError(f"Failed to disconnect from MQTT broker: {e}") from e

    def set_on_connect_callback(self, callback: Callable) -> None:
        """
        Set callback to be called when connection is established.

        Args:
            callback: Callback function (no arguments)
        """
        self._on_connect_callback = callback

    def set_on_disconnect_callback(self, callback: Callable) -> None:
        """
        Set callback to be called when connection is lost.

        Args:
            callback: Callback function (no arguments)
        """
        self._on_disconnect_callback = callback

    def _create_client(self) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.client_id,
            clean_session=True,
            protocol=mqtt.MQTTv311,
        )
        client.connect_timeout = self.config.connect_timeout
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect

        if self.config.tls:
            client.tls_set(ca_certs=self.config.ca_certs)

        if self.config.username:
            client.username_pw_set(self.config.username, self.config.password)

        return client

    def _discard_client(self) -> None:
        """Tear down the current client without raising."""
        client = self._client
        self._client = None
        self._state = ConnectionState.DISCONNECTED
        if client is None:
            return
        try:
            client.disconnect()
            client.loop_stop()
        except Exception as e:
            logger.debug(f"Ignoring error while discarding MQTT client: {e}")

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        """
        Internal callback for CONNACK.

        Args:
            client: MQTT client instance
            userdata: User data
            flags: Connection flags
            reason_code: CONNACK reason code
            properties: MQTT v5 properties (unused)
        """
        if client is not self._client or self._connack.is_set():
            return

        self._connack_rc = reason_code
        self._connack.set()

        if reason_code == 0:
            logger.info("MQTT connection established")
            if self._on_connect_callback:
                try:
                    self._on_connect_callback()
                except Exception as e:
                    logger.error(f"Error in on_connect callback: {e}")
        else:
            logger.error(f"MQTT connection failed with code {reason_code}")

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        """
        Internal callback for disconnection events.

        Args:
            client: MQTT client instance
            userdata: User data
            flags: Disconnect flags
            reason_code: Disconnect reason code
            properties: MQTT v5 properties (unused)
        """
        if client is not self._client:
            return

        self._dropped = True
        self._state = ConnectionState.DISCONNECTED
        if reason_code == 0:
            logger.info("MQTT disconnected (clean)")
        else:
            logger.warning(f"MQTT disconnected unexpectedly (code {reason_code})")
            # stop paho's network loop so it cannot reconnect on its own,
            # the next publish reconnects with a fresh client
            client.loop_stop()

        if self._on_disconnect_callback:
            try:
                self._on_disconnect_callback()
            except Exception as e:
                logger.error(f"Error in on_disconnect callback: {e}")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.shutdown()
        return False
