"""Dead-letter sink for telemetry the pipeline dropped.

Every dropped message is appended to a Redis Stream together with the
stage it failed to reach, so operators can inspect (and replay by hand)
what never made it to the ledger. Nothing here is reprocessed
automatically.

Entry fields: payload, error, error_type, stage, source, device_id
(when known), dropped_at.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Union

import orjson
import redis

logger = logging.getLogger(__name__)

PAYLOAD_LIMIT = 5000
ERROR_LIMIT = 1000


def _as_text(payload: Any) -> str:
    if isinstance(payload, bytes):
        return payload.decode("utf-8", errors="replace")
    if isinstance(payload, (dict, list)):
        return orjson.dumps(payload, default=str).decode()
    return str(payload)


def _text(value: Union[bytes, str]) -> str:
    return value.decode() if isinstance(value, bytes) else value


class DeadLetterQueue:
    """Redis Stream backed DLQ. Constructed without a client it only logs."""

    STREAM_NAME = "dlq:telemetry"
    DEFAULT_MAX_LEN = 10000

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        stream_name: str = STREAM_NAME,
        max_len: int = DEFAULT_MAX_LEN,
    ):
        self._redis = redis_client
        self._stream = stream_name
        self._max_len = max_len
        self._sent = 0
        self._errors = 0

    @classmethod
    def from_url(cls, url: Optional[str]) -> "DeadLetterQueue":
        """DLQ on ``url``; log-only when the URL is empty or Redis does
        not answer a PING."""
        if not url:
            return cls(None)
        client = redis.Redis.from_url(
            url,
            decode_responses=False,
            socket_timeout=5.0,
            socket_connect_timeout=5.0,
        )
        try:
            client.ping()
        except redis.RedisError as e:
            logger.warning("[DLQ] Redis unavailable, dead letters will only be logged: %s", e)
            return cls(None)
        logger.info("[DLQ] Writing to stream %s on %s", cls.STREAM_NAME, url.split("@")[-1])
        return cls(client)

    @property
    def enabled(self) -> bool:
        return self._redis is not None

    @property
    def stats(self) -> dict:
        return {
            "enabled": self.enabled,
            "stream_name": self._stream,
            "total_sent": self._sent,
            "send_errors": self._errors,
        }

    def send(
        self,
        payload: Any,
        error: str,
        error_type: str,
        stage: str,
        device_id: Optional[str] = None,
        source: str = "mqtt",
    ) -> bool:
        """Appends one dropped message. False when disabled or Redis failed."""
        if self._redis is None:
            logger.warning(
                "DLQ_DISABLED stage=%s error_type=%s device_id=%s error=%s",
                stage, error_type, device_id, error,
            )
            return False

        entry = {
            "payload": _as_text(payload)[:PAYLOAD_LIMIT],
            "error": str(error)[:ERROR_LIMIT],
            "error_type": error_type,
            "stage": stage,
            "source": source,
            "dropped_at": datetime.now(timezone.utc).isoformat(),
        }
        if device_id is not None:
            entry["device_id"] = device_id

        try:
            self._redis.xadd(self._stream, entry, maxlen=self._max_len, approximate=True)
        except redis.RedisError as e:
            self._errors += 1
            logger.error("DLQ_SEND_ERROR stage=%s device_id=%s err=%s", stage, device_id, e)
            return False

        self._sent += 1
        logger.info("DLQ_SENT stage=%s error_type=%s device_id=%s", stage, error_type, device_id)
        return True

    def get_recent(self, count: int = 10) -> list[dict]:
        """Newest entries first, decoded to text."""
        if self._redis is None:
            return []
        try:
            rows = self._redis.xrevrange(self._stream, count=count)
        except redis.RedisError as e:
            logger.error("DLQ_READ_ERROR err=%s", e)
            return []
        return [
            {"id": _text(entry_id), **{_text(k): _text(v) for k, v in fields.items()}}
            for entry_id, fields in rows
        ]

    def close(self) -> None:
        if self._redis is not None:
            self._redis.close()
