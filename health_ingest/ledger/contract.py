"""Abstract interface for the ledger smart contract.

This decouples the gateway from the transport used to reach the ledger.
Implementations:
- RestLedgerContract: REST ledger gateway over HTTP
- InMemoryLedgerContract: process-local ledger for development and tests
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from .wallet import Credential

CREATE_ASSET = "CreateHealthAsset"
READ_ASSET = "ReadHealthAsset"
LIST_ASSETS = "GetAllHealthAssets"


class ContractErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    REJECTED = "rejected"
    TRANSPORT = "transport"


class ContractError(Exception):
    """Transaction failed. ``kind`` tells the gateway how to classify it."""

    def __init__(self, kind: ContractErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


class LedgerContract(ABC):
    """Client-facing surface of the chaincode.

    A contract is connected once with an identity and reused for many
    transactions until :meth:`close`.
    """

    @abstractmethod
    def connect(self, credential: Credential) -> None:
        """Open the connection using ``credential``."""

    @abstractmethod
    def close(self) -> None:
        """Release the connection. Safe to call twice."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        ...

    @abstractmethod
    def submit_transaction(self, name: str, *args: str) -> bytes:
        """Ordered write; returns once the transaction is committed."""

    @abstractmethod
    def evaluate_transaction(self, name: str, *args: str) -> bytes:
        """Read-only query against the peer's world state."""

    def ping(self) -> Optional[bool]:
        """Reachability probe for readiness checks. None if unsupported."""
        return None
