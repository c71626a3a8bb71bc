"""Ledger access - gateway, contracts and identity wallet."""

from .adapter import normalize_asset_record
from .contract import ContractError, ContractErrorKind, LedgerContract
from .gateway import LedgerGateway
from .memory_contract import InMemoryLedgerContract
from .rest_contract import RestLedgerContract
from .wallet import Credential, FileSystemWallet

__all__ = [
    "ContractError",
    "ContractErrorKind",
    "Credential",
    "FileSystemWallet",
    "InMemoryLedgerContract",
    "LedgerContract",
    "LedgerGateway",
    "RestLedgerContract",
    "normalize_asset_record",
]
