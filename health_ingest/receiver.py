"""Telemetry receiver: wires bus, codec, ledger, alerts and intake.

Start order: ledger gateway -> dispatcher -> bus. On stop the bus stops
taking telemetry first, queued work is drained while alerts can still be
published, then the bus disconnects and the gateway is closed.
"""

from __future__ import annotations

import logging
from typing import Optional

from health_common.config import Settings, get_settings

from .crypto.codec import CryptoCodec
from .errors import IdentityNotFoundError
from .ledger.contract import LedgerContract
from .ledger.gateway import LedgerGateway
from .ledger.memory_contract import InMemoryLedgerContract
from .ledger.rest_contract import RestLedgerContract
from .ledger.wallet import FileSystemWallet
from .mqtt.alert_publisher import AlertPublisher
from .mqtt.bus import TelemetryBus
from .pipeline.dispatcher import DeviceOrderedDispatcher
from .pipeline.intake import TelemetryIntake
from .pipeline.thresholds import ThresholdEvaluator
from .resilience.dead_letter import DeadLetterQueue
from .resilience.retry import RetryConfig, RetryExecutor

logger = logging.getLogger(__name__)

MEMORY_LEDGER_URL = "memory://"


def build_contract(settings: Settings) -> LedgerContract:
    if settings.ledger_url.startswith(MEMORY_LEDGER_URL):
        logger.warning("[RECEIVER] Using in-memory ledger (development only)")
        return InMemoryLedgerContract()
    return RestLedgerContract(
        base_url=settings.ledger_url,
        channel=settings.ledger_channel,
        chaincode=settings.ledger_chaincode,
        timeout_seconds=settings.ledger_timeout_seconds,
    )


def build_gateway(settings: Settings, contract: Optional[LedgerContract] = None) -> LedgerGateway:
    return LedgerGateway(
        contract=contract or build_contract(settings),
        wallet=FileSystemWallet(settings.wallet_path),
        identity=settings.ledger_identity,
        retry=RetryExecutor(RetryConfig(max_attempts=max(1, settings.ledger_retry_attempts))),
    )


class TelemetryReceiver:
    """Owns every long-lived resource of the ingestion pipeline."""

    def __init__(
        self,
        settings: Settings,
        bus: Optional[TelemetryBus] = None,
        gateway: Optional[LedgerGateway] = None,
        dlq: Optional[DeadLetterQueue] = None,
    ):
        self._settings = settings
        self._running = False

        self.codec = CryptoCodec(settings.aes_key)
        self.wallet = FileSystemWallet(settings.wallet_path)
        self.gateway = gateway or build_gateway(settings)
        self.bus = bus or TelemetryBus(
            broker_host=settings.mqtt_host,
            broker_port=settings.mqtt_port,
            username=settings.mqtt_username,
            password=settings.mqtt_password,
            client_id=settings.mqtt_client_id,
            telemetry_topic=settings.telemetry_topic,
        )
        if dlq is None:
            dlq = DeadLetterQueue.from_url(settings.redis_url if settings.dlq_enabled else None)
        self.dlq = dlq
        self.dispatcher = DeviceOrderedDispatcher(
            num_workers=settings.intake_num_workers,
            max_queue_size=settings.intake_queue_size,
        )
        self.publisher = AlertPublisher(self.bus, topic_prefix=settings.alert_topic_prefix)
        self.intake = TelemetryIntake(
            codec=self.codec,
            ledger=self.gateway,
            publisher=self.publisher,
            evaluator=ThresholdEvaluator(settings.spo2_min, settings.heart_rate_min),
            dlq=self.dlq,
            dispatcher=self.dispatcher,
        )
        self.bus.set_message_handler(self.intake.on_message)

    def start(self) -> bool:
        """Starts the pipeline. The ledger connection is opened eagerly so a
        missing identity is reported at startup; messages are still
        accepted and dropped at the write stage until it is fixed."""
        try:
            self.gateway.connect()
        except IdentityNotFoundError as e:
            logger.error("[RECEIVER] Ledger unavailable at startup: %s", e)

        self.dispatcher.start()
        connected = self.bus.connect()
        self._running = True
        if connected:
            logger.info("[RECEIVER] Started successfully")
        else:
            logger.error("[RECEIVER] Bus not connected; paho will keep retrying")
        return connected

    def stop(self) -> None:
        self._running = False
        self.bus.unsubscribe()
        self.dispatcher.stop(drain=True)
        self.bus.disconnect()
        self.gateway.close()
        self.dlq.close()
        logger.info("[RECEIVER] Stopped. %s", self.intake.stats)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def stats(self) -> dict:
        return {
            "running": self._running,
            "connected": self.bus.is_connected,
            "reconnect_count": self.bus.reconnect_count,
            "broker": f"{self.bus.broker_host}:{self.bus.broker_port}",
            "topic": self.bus.telemetry_topic,
            "intake": self.intake.stats.to_dict(),
            "dispatcher": self.dispatcher.metrics,
            "ledger": self.gateway.stats,
            "dlq": self.dlq.stats,
        }

    def health_check(self) -> dict:
        return {
            "healthy": self._running and self.bus.is_connected and self.gateway.is_connected,
            "running": self._running,
            "connected": self.bus.is_connected,
            "ledger_connected": self.gateway.is_connected,
            "dlq_enabled": self.dlq.enabled,
            "messages_received": self.intake.stats.received,
            "messages_dropped": self.intake.stats.dropped,
        }


# Singleton
_receiver: Optional[TelemetryReceiver] = None


def get_receiver() -> Optional[TelemetryReceiver]:
    return _receiver


def start_receiver(settings: Optional[Settings] = None) -> TelemetryReceiver:
    global _receiver

    if _receiver is None:
        _receiver = TelemetryReceiver(settings or get_settings())
        _receiver.start()
    return _receiver


def stop_receiver() -> None:
    global _receiver

    if _receiver is not None:
        _receiver.stop()
        _receiver = None
