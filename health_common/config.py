from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Key burned into the device firmware. Devices zero-pad plaintext to the
# block size and encrypt with AES-128-ECB.
DEFAULT_AES_KEY_HEX = "2B7E151628AED2A6ABF7126AF58B3C1F"


def _default_env_file() -> str:
    repo_root = Path(__file__).resolve().parents[1]
    return str(repo_root / ".env")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    mqtt_host: str
    mqtt_port: int
    mqtt_username: Optional[str]
    mqtt_password: Optional[str]
    mqtt_client_id: str
    telemetry_topic: str
    alert_topic_prefix: str

    aes_key_hex: str

    ledger_url: str
    ledger_channel: str
    ledger_chaincode: str
    ledger_identity: str
    ledger_timeout_seconds: float
    ledger_retry_attempts: int
    wallet_path: str

    intake_num_workers: int
    intake_queue_size: int

    redis_url: Optional[str]
    dlq_enabled: bool

    auth_username: str
    auth_password: str

    spo2_min: float
    heart_rate_min: float

    @property
    def aes_key(self) -> bytes:
        return bytes.fromhex(self.aes_key_hex)


def get_settings() -> Settings:
    # Load env file (if present) but still allow overriding via real environment variables.
    env_file = os.getenv("HEALTH_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    return Settings(
        mqtt_host=os.getenv("MQTT_BROKER_HOST", "localhost"),
        mqtt_port=int(os.getenv("MQTT_BROKER_PORT", "1883")),
        mqtt_username=os.getenv("MQTT_USERNAME") or None,
        mqtt_password=os.getenv("MQTT_PASSWORD") or None,
        mqtt_client_id=os.getenv("MQTT_CLIENT_ID", "health-ingest"),
        telemetry_topic=os.getenv("MQTT_TELEMETRY_TOPIC", "telemetry/in"),
        alert_topic_prefix=os.getenv("MQTT_ALERT_TOPIC_PREFIX", "telemetry/alert"),
        aes_key_hex=os.getenv("TELEMETRY_AES_KEY_HEX", DEFAULT_AES_KEY_HEX),
        ledger_url=os.getenv("LEDGER_GATEWAY_URL", "http://localhost:4000"),
        ledger_channel=os.getenv("LEDGER_CHANNEL", "mychannel"),
        ledger_chaincode=os.getenv("LEDGER_CHAINCODE", "basic"),
        ledger_identity=os.getenv("LEDGER_IDENTITY", "esp32"),
        ledger_timeout_seconds=float(os.getenv("LEDGER_TIMEOUT_SECONDS", "10")),
        ledger_retry_attempts=int(os.getenv("LEDGER_RETRY_ATTEMPTS", "3")),
        wallet_path=os.getenv("WALLET_PATH", "./wallet"),
        intake_num_workers=int(os.getenv("INTAKE_NUM_WORKERS", "4")),
        intake_queue_size=int(os.getenv("INTAKE_QUEUE_SIZE", "1000")),
        redis_url=os.getenv("REDIS_URL") or None,
        dlq_enabled=_env_bool("DLQ_ENABLED", "true"),
        auth_username=os.getenv("AUTH_USERNAME", "esp32"),
        auth_password=os.getenv("AUTH_PASSWORD", "esp32pw"),
        spo2_min=float(os.getenv("SPO2_MIN", "90")),
        heart_rate_min=float(os.getenv("HEART_RATE_MIN", "60")),
    )
