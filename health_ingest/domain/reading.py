"""Domain models for health telemetry."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Union

Number = Union[int, float]

HEALTH_WARNING = "HEALTH_WARNING"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def make_asset_id(device_id: str, received_at: datetime) -> str:
    """``<deviceId>_<epoch millis>``.

    Two readings of one device inside the same millisecond share an id;
    the ledger rejects the second CreateAsset.
    """
    if received_at.tzinfo is None:
        received_at = received_at.replace(tzinfo=timezone.utc)
    millis = (received_at - _EPOCH) // timedelta(milliseconds=1)
    return f"{device_id}_{millis}"


@dataclass(frozen=True)
class DecryptedReading:
    """Plaintext reading recovered from one bus message."""

    device_id: str
    spo2: Number
    heart_rate: Number
    received_at: datetime = field(default_factory=utc_now)

    @property
    def asset_id(self) -> str:
        return make_asset_id(self.device_id, self.received_at)


@dataclass(frozen=True)
class LedgerAsset:
    asset_id: str
    owner: str
    spo2: Number
    heart_rate: Number

    def to_dict(self) -> dict:
        return {
            "assetId": self.asset_id,
            "owner": self.owner,
            "spo2": self.spo2,
            "heartRate": self.heart_rate,
        }


@dataclass(frozen=True)
class AlertMessage:
    spo2: Number
    heart_rate: Number
    alert: str = HEALTH_WARNING

    def to_payload(self) -> dict:
        return {
            "alert": self.alert,
            "spo2": self.spo2,
            "heartRate": self.heart_rate,
        }
