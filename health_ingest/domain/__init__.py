"""Domain - Telemetry models and pipeline states."""

from .reading import AlertMessage, DecryptedReading, LedgerAsset, make_asset_id
from .stages import PipelineStage

__all__ = [
    "AlertMessage",
    "DecryptedReading",
    "LedgerAsset",
    "PipelineStage",
    "make_asset_id",
]
