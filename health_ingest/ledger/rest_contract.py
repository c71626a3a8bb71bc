"""Ledger contract reached through a REST ledger gateway.

Endpoints:
    POST {base}/channels/{channel}/chaincodes/{chaincode}/submit
    POST {base}/channels/{channel}/chaincodes/{chaincode}/evaluate
    GET  {base}/health

Body: ``{"function": "<name>", "args": ["..."]}``. The response body is
the raw transaction result. The calling identity travels in the
``X-Identity`` / ``X-Msp-Id`` headers.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .contract import ContractError, ContractErrorKind, LedgerContract
from .wallet import Credential

logger = logging.getLogger(__name__)


class RestLedgerContract(LedgerContract):
    """One pooled ``httpx.Client`` per contract, reused across calls."""

    def __init__(
        self,
        base_url: str,
        channel: str,
        chaincode: str,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._channel = channel
        self._chaincode = chaincode
        self._timeout = timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def connect(self, credential: Credential) -> None:
        if self._client is not None:
            return
        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=self._timeout,
            headers={
                "X-Identity": credential.label,
                "X-Msp-Id": credential.msp_id,
            },
            transport=self._transport,
        )
        logger.info(
            "[LEDGER] Connected to %s channel=%s chaincode=%s identity=%s",
            self._base_url, self._channel, self._chaincode, credential.label,
        )

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("[LEDGER] Connection closed")

    def submit_transaction(self, name: str, *args: str) -> bytes:
        return self._call("submit", name, args)

    def evaluate_transaction(self, name: str, *args: str) -> bytes:
        return self._call("evaluate", name, args)

    def ping(self) -> Optional[bool]:
        if self._client is None:
            return False
        try:
            return self._client.get("/health").status_code == 200
        except httpx.HTTPError:
            return False

    def _call(self, mode: str, name: str, args: tuple) -> bytes:
        if self._client is None:
            raise ContractError(ContractErrorKind.TRANSPORT, "Ledger contract not connected")

        path = f"/channels/{self._channel}/chaincodes/{self._chaincode}/{mode}"
        try:
            response = self._client.post(
                path, json={"function": name, "args": [str(a) for a in args]}
            )
        except httpx.HTTPError as e:
            raise ContractError(ContractErrorKind.TRANSPORT, f"{name}: {e}") from e

        if response.is_success:
            return response.content

        raise ContractError(_classify(response), f"{name}: HTTP {response.status_code} {response.text[:200]}")


def _classify(response: httpx.Response) -> ContractErrorKind:
    text = response.text.lower()
    if response.status_code == 404 or "does not exist" in text:
        return ContractErrorKind.NOT_FOUND
    if response.status_code == 409 or "already exists" in text:
        return ContractErrorKind.CONFLICT
    if response.status_code >= 500 or response.status_code in (408, 429):
        return ContractErrorKind.TRANSPORT
    return ContractErrorKind.REJECTED
