from __future__ import annotations

import json
import threading
from typing import Optional

from .contract import (
    CREATE_ASSET,
    LIST_ASSETS,
    READ_ASSET,
    ContractError,
    ContractErrorKind,
    LedgerContract,
)
from .wallet import Credential


class InMemoryLedgerContract(LedgerContract):
    """Process-local implementation of the health-asset chaincode.

    Records are stored the way the chaincode marshals them
    (``ID``, ``Owner``, ``SPO2``, ``HeartRate``), so readers exercise the
    same field-name normalization as against a real peer. Creating an
    asset whose id already exists fails, like the chaincode does.
    """

    def __init__(self) -> None:
        self._assets: dict[str, dict] = {}
        self._lock = threading.Lock()
        self._identity: Optional[str] = None

    @property
    def is_connected(self) -> bool:
        return self._identity is not None

    @property
    def identity(self) -> Optional[str]:
        return self._identity

    def connect(self, credential: Credential) -> None:
        self._identity = credential.label

    def close(self) -> None:
        self._identity = None

    def ping(self) -> Optional[bool]:
        return True

    def submit_transaction(self, name: str, *args: str) -> bytes:
        self._require_connected()
        if name != CREATE_ASSET:
            raise ContractError(ContractErrorKind.REJECTED, f"Unknown transaction {name}")
        if len(args) != 4:
            raise ContractError(ContractErrorKind.REJECTED, f"{name} expects 4 args, got {len(args)}")

        asset_id, owner, spo2, heart_rate = args
        try:
            record = {
                "ID": asset_id,
                "Owner": owner,
                "SPO2": _to_number(spo2),
                "HeartRate": _to_number(heart_rate),
            }
        except ValueError as e:
            raise ContractError(ContractErrorKind.REJECTED, f"{name}: {e}") from e

        with self._lock:
            if asset_id in self._assets:
                raise ContractError(
                    ContractErrorKind.CONFLICT, f"the asset {asset_id} already exists"
                )
            self._assets[asset_id] = record
        return b""

    def evaluate_transaction(self, name: str, *args: str) -> bytes:
        self._require_connected()
        if name == READ_ASSET:
            asset_id = args[0] if args else ""
            with self._lock:
                record = self._assets.get(asset_id)
            if record is None:
                raise ContractError(
                    ContractErrorKind.NOT_FOUND, f"the asset {asset_id} does not exist"
                )
            return json.dumps(record).encode("utf-8")

        if name == LIST_ASSETS:
            with self._lock:
                records = list(self._assets.values())
            return json.dumps(records).encode("utf-8")

        raise ContractError(ContractErrorKind.REJECTED, f"Unknown transaction {name}")

    def _require_connected(self) -> None:
        if self._identity is None:
            raise ContractError(ContractErrorKind.TRANSPORT, "Ledger contract not connected")

    def __len__(self) -> int:
        with self._lock:
            return len(self._assets)


def _to_number(value: str):
    try:
        return int(value)
    except ValueError:
        return float(value)
