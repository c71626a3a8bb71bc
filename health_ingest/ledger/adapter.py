"""Adapter for asset records read back from the ledger.

The chaincode marshals records with Go-style field names (``SPO2``,
``HeartRate``, ``Owner``, ``ID``) while other writers use camelCase.
Both are accepted here so the pipeline only ever sees :class:`LedgerAsset`.
"""

from __future__ import annotations

from typing import Any, Optional

from ..domain.reading import LedgerAsset, Number

_FIELD_ALIASES = {
    "asset_id": ("ID", "id", "assetId", "AssetID"),
    "owner": ("Owner", "owner"),
    "spo2": ("SPO2", "spo2", "SpO2"),
    "heart_rate": ("HeartRate", "heartRate"),
}


class MalformedAssetRecord(ValueError):
    pass


def _pick(record: dict, field: str) -> Any:
    for key in _FIELD_ALIASES[field]:
        if key in record and record[key] is not None:
            return record[key]
    return None


def _to_number(value: Any, field: str) -> Number:
    if isinstance(value, bool):
        raise MalformedAssetRecord(f"{field} is not numeric: {value!r}")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str) and "_" not in value:
        try:
            return int(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError:
            pass
    raise MalformedAssetRecord(f"{field} is not numeric: {value!r}")


def normalize_asset_record(record: Any, asset_id: Optional[str] = None) -> LedgerAsset:
    """Maps a raw ledger record to :class:`LedgerAsset`.

    ``asset_id`` is used when the record does not carry its own id.

    Raises:
        MalformedAssetRecord: not an object, or spo2 / heart rate missing
            or not numeric.
    """
    if not isinstance(record, dict):
        raise MalformedAssetRecord(f"Expected object, got {type(record).__name__}")

    spo2 = _pick(record, "spo2")
    heart_rate = _pick(record, "heart_rate")
    if spo2 is None or heart_rate is None:
        raise MalformedAssetRecord(f"Missing SPO2/HeartRate in {sorted(record)}")

    record_id = _pick(record, "asset_id")
    owner = _pick(record, "owner")
    return LedgerAsset(
        asset_id=str(record_id if record_id is not None else asset_id or ""),
        owner=str(owner) if owner is not None else "",
        spo2=_to_number(spo2, "spo2"),
        heart_rate=_to_number(heart_rate, "heartRate"),
    )
