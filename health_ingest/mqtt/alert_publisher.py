"""Health alert publishing back to the originating device.

Delivery contract: best effort, at most once from the pipeline's point
of view. When the bus is connected the alert is handed to the client at
QoS 1 (acknowledged); when it is not, the alert is logged and dropped.
There is no outbox and no retry.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol

import orjson
from prometheus_client import Counter

from ..domain.reading import AlertMessage
from ..errors import AlertDropped

logger = logging.getLogger(__name__)

ALERTS_TOTAL = Counter(
    "telemetry_alerts_total",
    "Health alerts by publish status",
    ["status"],  # delivered, dropped
)

ALERT_QOS = 1


class PublishStatus(str, Enum):
    DELIVERED = "delivered"
    DROPPED = "dropped"


class AlertBus(Protocol):
    @property
    def is_connected(self) -> bool: ...

    def publish(self, topic: str, payload: bytes, qos: int = 1) -> bool: ...


class AlertPublisher:
    """Publishes :class:`AlertMessage` on ``<prefix>/<deviceId>``."""

    def __init__(self, bus: AlertBus, topic_prefix: str = "telemetry/alert"):
        self._bus = bus
        self._topic_prefix = topic_prefix.rstrip("/")

    def topic_for(self, device_id: str) -> str:
        return f"{self._topic_prefix}/{device_id}"

    def publish(self, device_id: str, alert: AlertMessage) -> PublishStatus:
        """Never raises; a lost alert is reported as DROPPED."""
        topic = self.topic_for(device_id)
        try:
            self._send(topic, alert, device_id)
        except AlertDropped as e:
            logger.error("[ALERT] Dropped device=%s topic=%s: %s", device_id, topic, e)
            ALERTS_TOTAL.labels(status=PublishStatus.DROPPED.value).inc()
            return PublishStatus.DROPPED

        logger.warning(
            "[ALERT] %s published device=%s spo2=%s heartRate=%s",
            alert.alert, device_id, alert.spo2, alert.heart_rate,
        )
        ALERTS_TOTAL.labels(status=PublishStatus.DELIVERED.value).inc()
        return PublishStatus.DELIVERED

    def _send(self, topic: str, alert: AlertMessage, device_id: str) -> None:
        if not self._bus.is_connected:
            raise AlertDropped("not connected", device_id=device_id)
        try:
            accepted = self._bus.publish(topic, orjson.dumps(alert.to_payload()), qos=ALERT_QOS)
        except (OSError, ValueError, RuntimeError) as e:
            raise AlertDropped(f"publish error: {e}", device_id=device_id) from e
        if not accepted:
            raise AlertDropped("publish rejected by client", device_id=device_id)
