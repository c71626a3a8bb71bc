"""Ledger gateway: write / read-back / list of health assets.

The gateway owns one contract connection for its whole lifetime
(``connect()`` / ``close()`` or ``with LedgerGateway(...)``) instead of
connecting per transaction. Before the first connection it confirms the
ledger-access identity exists in the wallet.

Contract: a successful :meth:`LedgerGateway.write` is visible to an
immediately following :meth:`LedgerGateway.read` of the same asset id.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

import orjson

from ..domain.reading import LedgerAsset, Number
from ..errors import IdentityNotFoundError, LedgerReadError, LedgerWriteError
from ..resilience.retry import RetryConfig, RetryExecutor
from .adapter import MalformedAssetRecord, normalize_asset_record
from .contract import (
    CREATE_ASSET,
    LIST_ASSETS,
    READ_ASSET,
    ContractError,
    ContractErrorKind,
    LedgerContract,
)
from .wallet import FileSystemWallet

logger = logging.getLogger(__name__)


def format_number(value: Number) -> str:
    """Chaincode argument text: whole floats lose the trailing ".0"."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class LedgerGateway:
    """Client-facing gateway to the health-asset chaincode.

    Responsibilities:
    - Identity lookup before connecting
    - Connection lifecycle (one reusable connection)
    - Mapping contract failures to LedgerWriteError / LedgerReadError
    - Bounded retry of transport failures
    """

    def __init__(
        self,
        contract: LedgerContract,
        wallet: FileSystemWallet,
        identity: str,
        retry: Optional[RetryExecutor] = None,
    ):
        self._contract = contract
        self._wallet = wallet
        self._identity = identity
        self._retry = retry or RetryExecutor(RetryConfig(max_attempts=3))
        self._lock = threading.Lock()

    @property
    def identity(self) -> str:
        return self._identity

    @property
    def is_connected(self) -> bool:
        return self._contract.is_connected

    def connect(self) -> None:
        """Opens the contract connection if not already open.

        Raises:
            IdentityNotFoundError: identity missing from the wallet.
        """
        with self._lock:
            if self._contract.is_connected:
                return
            credential = self._wallet.get(self._identity)
            if credential is None:
                logger.error("[LEDGER] Identity '%s' not found in wallet %s",
                             self._identity, self._wallet.path)
                raise IdentityNotFoundError(
                    f"Identity '{self._identity}' not found in wallet"
                )
            self._contract.connect(credential)

    def close(self) -> None:
        with self._lock:
            self._contract.close()

    def __enter__(self) -> "LedgerGateway":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def write(self, asset_id: str, owner: str, spo2: Number, heart_rate: Number) -> None:
        """Submits CreateHealthAsset.

        Raises:
            IdentityNotFoundError: no ledger identity.
            LedgerWriteError: transaction failed (after retries for
                transport failures).
        """
        self.connect()
        try:
            self._retry.execute(
                self._submit, CREATE_ASSET, asset_id, owner,
                format_number(spo2), format_number(heart_rate),
            )
        except LedgerWriteError as e:
            e.device_id = owner
            raise
        logger.info("[LEDGER] Asset %s created owner=%s", asset_id, owner)

    def read(self, asset_id: str) -> LedgerAsset:
        """Evaluates ReadHealthAsset and normalizes the record.

        Raises:
            LedgerReadError: reason "not found" or "transport".
        """
        self.connect()
        raw = self._retry.execute(self._evaluate_read, asset_id)
        try:
            record = orjson.loads(raw)
            return normalize_asset_record(record, asset_id=asset_id)
        except (orjson.JSONDecodeError, MalformedAssetRecord) as e:
            raise LedgerReadError(
                LedgerReadError.TRANSPORT, f"Malformed asset {asset_id}: {e}"
            ) from e

    def list_assets(self) -> list[LedgerAsset]:
        """Evaluates GetAllHealthAssets."""
        self.connect()
        raw = self._retry.execute(self._evaluate_list)
        try:
            records = orjson.loads(raw) if raw else []
            return [normalize_asset_record(r) for r in records or []]
        except (orjson.JSONDecodeError, MalformedAssetRecord, TypeError) as e:
            raise LedgerReadError(LedgerReadError.TRANSPORT, f"Malformed asset list: {e}") from e

    def ping(self) -> bool:
        try:
            self.connect()
        except IdentityNotFoundError:
            return False
        return bool(self._contract.ping())

    @property
    def stats(self) -> dict:
        return {
            "identity": self._identity,
            "connected": self._contract.is_connected,
            "retry": self._retry.stats,
        }

    # ------------------------------------------------------------------
    # Single attempts, wrapped by the retry executor
    # ------------------------------------------------------------------

    def _submit(self, name: str, *args: str) -> bytes:
        try:
            return self._contract.submit_transaction(name, *args)
        except ContractError as e:
            raise LedgerWriteError(
                str(e), retryable=e.kind == ContractErrorKind.TRANSPORT
            ) from e

    def _evaluate_read(self, asset_id: str) -> bytes:
        try:
            return self._contract.evaluate_transaction(READ_ASSET, asset_id)
        except ContractError as e:
            reason = (
                LedgerReadError.NOT_FOUND
                if e.kind == ContractErrorKind.NOT_FOUND
                else LedgerReadError.TRANSPORT
            )
            raise LedgerReadError(reason, str(e)) from e

    def _evaluate_list(self) -> bytes:
        try:
            return self._contract.evaluate_transaction(LIST_ASSETS)
        except ContractError as e:
            raise LedgerReadError(LedgerReadError.TRANSPORT, str(e)) from e
