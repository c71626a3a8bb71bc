"""Device authentication gate for the MQTT broker's HTTP auth hook.

Flow:
1. The broker forwards the device's username/password
2. A valid session token short-circuits to "allow"
3. Otherwise credentials must match and the device identity must exist
   in the wallet
4. On allow a session token is issued for that device

Sessions are per device and expire; there is no process-wide
"authenticated" state.
"""

from __future__ import annotations

import hmac
import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Optional

from ..ledger.wallet import FileSystemWallet

logger = logging.getLogger(__name__)

ALLOW = "allow"
DENY = "deny"

DEFAULT_SESSION_TTL_SECONDS = 3600.0


@dataclass(frozen=True)
class AuthDecision:
    result: str
    is_superuser: bool = False
    session_token: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.result == ALLOW

    def to_dict(self) -> dict:
        body = {"result": self.result, "is_superuser": self.is_superuser}
        if self.session_token:
            body["session_token"] = self.session_token
        return body


class AuthGate:
    """Allow/deny decisions plus per-device sessions."""

    def __init__(
        self,
        username: str,
        password: str,
        wallet: FileSystemWallet,
        session_ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
    ):
        self._username = username
        self._password = password
        self._wallet = wallet
        self._ttl = session_ttl_seconds
        self._sessions: dict[str, tuple[str, float]] = {}
        self._empty_attempts = 0
        self._lock = threading.Lock()

    @property
    def empty_attempts(self) -> int:
        return self._empty_attempts

    def authenticate(
        self,
        username: Optional[str],
        password: Optional[str],
        session_token: Optional[str] = None,
    ) -> AuthDecision:
        if session_token:
            owner = self._session_owner(session_token)
            if owner is not None and (not username or username == owner):
                return AuthDecision(ALLOW)

        if not username or not password:
            with self._lock:
                self._empty_attempts += 1
                count = self._empty_attempts
            if count % 10 == 1:
                logger.info("[AUTH] Attempt with empty credentials (count=%d)", count)
            return AuthDecision(DENY)

        if not (
            hmac.compare_digest(username.encode(), self._username.encode())
            and hmac.compare_digest(password.encode(), self._password.encode())
        ):
            logger.info("[AUTH] Authentication failed for %s", username)
            return AuthDecision(DENY)

        if not self._wallet.exists(username):
            logger.warning("[AUTH] Identity %s not found in wallet", username)
            return AuthDecision(DENY)

        token = self._issue_session(username)
        logger.info("[AUTH] %s authenticated", username)
        return AuthDecision(ALLOW, session_token=token)

    @property
    def active_sessions(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _issue_session(self, username: str) -> str:
        """New token for ``username``; replaces its previous one and evicts
        expired sessions, so the map holds at most one entry per device."""
        token = secrets.token_urlsafe(32)
        now = time.monotonic()
        with self._lock:
            self._sessions = {
                t: (owner, expires_at)
                for t, (owner, expires_at) in self._sessions.items()
                if owner != username and expires_at > now
            }
            self._sessions[token] = (username, now + self._ttl)
        return token

    def _session_owner(self, token: str) -> Optional[str]:
        with self._lock:
            entry = self._sessions.get(token)
            if entry is None:
                return None
            owner, expires_at = entry
            if time.monotonic() >= expires_at:
                del self._sessions[token]
                return None
            return owner
