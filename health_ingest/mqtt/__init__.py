"""MQTT transport for telemetry intake and alerts.

- bus.py: shared paho-mqtt connection
- validators.py: envelope and decrypted payload validation
- alert_publisher.py: HEALTH_WARNING alerts back to devices
"""

from .alert_publisher import AlertPublisher, PublishStatus
from .bus import TelemetryBus
from .validators import HealthPayload, RawEnvelope, parse_envelope, parse_health_payload

__all__ = [
    "AlertPublisher",
    "HealthPayload",
    "PublishStatus",
    "RawEnvelope",
    "TelemetryBus",
    "parse_envelope",
    "parse_health_payload",
]
