"""Payload cryptography."""

from .codec import BLOCK_SIZE, CryptoCodec

__all__ = ["BLOCK_SIZE", "CryptoCodec"]
