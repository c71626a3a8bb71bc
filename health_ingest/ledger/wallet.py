"""File-system wallet with ledger-access identities.

Each identity is stored as ``<label>.id`` holding JSON::

    {
        "credentials": {"certificate": "...", "privateKey": "..."},
        "mspId": "Org1MSP",
        "type": "X.509",
        "version": 1
    }

Enrollment against the certificate authority is done by an external
provisioning tool; this module only reads (and, for tooling, writes) the
resulting files.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

ID_SUFFIX = ".id"


@dataclass(frozen=True)
class Credential:
    label: str
    msp_id: str
    certificate: str
    private_key: str
    type: str = "X.509"

    def to_dict(self) -> dict:
        return {
            "credentials": {
                "certificate": self.certificate,
                "privateKey": self.private_key,
            },
            "mspId": self.msp_id,
            "type": self.type,
            "version": 1,
        }


class FileSystemWallet:
    """Identity lookup backed by a directory of ``.id`` files."""

    def __init__(self, path: str | Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def get(self, label: str) -> Optional[Credential]:
        """Returns the credential for ``label`` or None if absent."""
        file = self._path / f"{label}{ID_SUFFIX}"
        if not file.is_file():
            return None

        try:
            data = json.loads(file.read_text(encoding="utf-8"))
            creds = data["credentials"]
            return Credential(
                label=label,
                msp_id=data["mspId"],
                certificate=creds["certificate"],
                private_key=creds["privateKey"],
                type=data.get("type", "X.509"),
            )
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error("[WALLET] Unreadable identity label=%s err=%s", label, e)
            return None

    def exists(self, label: str) -> bool:
        return self.get(label) is not None

    def list(self) -> list[str]:
        """Labels of all identities in the wallet, sorted."""
        if not self._path.is_dir():
            return []
        return sorted(
            p.name[: -len(ID_SUFFIX)]
            for p in self._path.iterdir()
            if p.is_file() and p.name.endswith(ID_SUFFIX)
        )

    def put(self, credential: Credential) -> None:
        """Stores (or overwrites) an identity."""
        self._path.mkdir(parents=True, exist_ok=True)
        file = self._path / f"{credential.label}{ID_SUFFIX}"
        file.write_text(json.dumps(credential.to_dict()), encoding="utf-8")
        logger.info("[WALLET] Stored identity label=%s", credential.label)
