"""MQTT bus client shared by telemetry intake and alert publishing."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

import paho.mqtt.client as mqtt

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, bytes], None]


class TelemetryBus:
    """Single MQTT connection for the process.

    Responsibilities:
    - Connect / disconnect to the broker (paho network loop thread)
    - Subscribe to the telemetry topic on every (re)connect
    - Hand inbound messages to the handler
    - Publish outbound messages (alerts)
    """

    def __init__(
        self,
        broker_host: str = "localhost",
        broker_port: int = 1883,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client_id: str = "health-ingest",
        telemetry_topic: str = "telemetry/in",
        client_factory: Optional[Callable[[str], mqtt.Client]] = None,
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.username = username
        self.password = password
        self.client_id = f"{client_id}-{int(time.time())}"
        self.telemetry_topic = telemetry_topic

        self._client_factory = client_factory or self._default_client
        self._client: Optional[mqtt.Client] = None
        self._connected = False
        self._message_handler: Optional[MessageHandler] = None
        self._connect_count = 0

    def set_message_handler(self, handler: MessageHandler) -> None:
        self._message_handler = handler

    @staticmethod
    def _default_client(client_id: str) -> mqtt.Client:
        return mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            protocol=mqtt.MQTTv311,
            clean_session=True,
        )

    def connect(self, wait_seconds: float = 5.0) -> bool:
        """Connects and starts the network loop. Waits up to
        ``wait_seconds`` for the CONNACK."""
        try:
            self._client = self._client_factory(self.client_id)
            self._client.on_connect = self._on_connect
            self._client.on_disconnect = self._on_disconnect
            self._client.on_message = self._on_message
            self._client.reconnect_delay_set(min_delay=1, max_delay=30)

            if self.username and self.password:
                self._client.username_pw_set(self.username, self.password)

            logger.info("[MQTT] Connecting to %s:%d", self.broker_host, self.broker_port)
            self._client.connect(self.broker_host, self.broker_port, keepalive=60)
            self._client.loop_start()
        except (OSError, ValueError) as e:
            logger.error("[MQTT] Connection failed: %s", e)
            return False

        deadline = time.monotonic() + wait_seconds
        while time.monotonic() < deadline:
            if self._connected:
                return True
            time.sleep(0.1)

        logger.error("[MQTT] Connection timeout")
        return False

    def unsubscribe(self) -> None:
        """Stops inbound telemetry while keeping the connection for publishing."""
        if self._client is not None and self._connected:
            self._client.unsubscribe(self.telemetry_topic)
            logger.info("[MQTT] Unsubscribed from %s", self.telemetry_topic)

    def disconnect(self) -> None:
        if self._client:
            try:
                self._client.loop_stop()
                self._client.disconnect()
            except (OSError, RuntimeError) as e:
                logger.warning("[MQTT] Disconnect error: %s", e)
        self._connected = False

    def publish(self, topic: str, payload: bytes, qos: int = 1) -> bool:
        """Hands a message to the client. False when not connected or the
        client rejects it."""
        if not self._connected or self._client is None:
            return False
        info = self._client.publish(topic, payload, qos=qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.warning("[MQTT] Publish rejected topic=%s rc=%s", topic, info.rc)
            return False
        return True

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code == 0:
            self._connected = True
            self._connect_count += 1
            logger.info("[MQTT] Connected to broker")
            client.subscribe(self.telemetry_topic, qos=1)
            logger.info("[MQTT] Subscribed to %s", self.telemetry_topic)
        else:
            self._connected = False
            logger.error("[MQTT] Connection refused: %s", reason_code)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        self._connected = False
        logger.warning("[MQTT] Disconnected (%s)", reason_code)

    def _on_message(self, client, userdata, msg):
        if self._message_handler:
            self._message_handler(msg.topic, msg.payload)

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def reconnect_count(self) -> int:
        return max(0, self._connect_count - 1)
