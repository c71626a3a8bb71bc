"""Validators for telemetry bus messages.

Two layers are validated:
- the envelope received on the bus (still encrypted)
- the decrypted health payload
"""

from __future__ import annotations

import logging
from typing import Union

import orjson
from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr
from pydantic import ValidationError as PydanticValidationError

from ..errors import ParseError, ValidationError

logger = logging.getLogger(__name__)

Numeric = Union[StrictInt, StrictFloat]


class RawEnvelope(BaseModel):
    """Bus message as published by the device.

    Expected format:
    {
        "deviceId": "<base64 ciphertext>",
        "encryptedData": "<base64 ciphertext>"
    }
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    device_id_cipher: StrictStr = Field(..., alias="deviceId", min_length=1)
    payload_cipher: StrictStr = Field(..., alias="encryptedData", min_length=1)


class HealthPayload(BaseModel):
    """Decrypted payload: ``{"spo2": <number>, "heartRate": <number>}``.

    Booleans and numeric strings are rejected.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    spo2: Numeric
    heart_rate: Numeric = Field(..., alias="heartRate")


def parse_envelope(raw: Union[bytes, str]) -> RawEnvelope:
    """Parse a bus message body into a :class:`RawEnvelope`.

    Raises:
        ParseError: body is not JSON or deviceId / encryptedData are
            missing, empty or not strings.
    """
    try:
        data = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ParseError(f"Expected JSON object, got {type(data).__name__}")

    try:
        return RawEnvelope.model_validate(data)
    except PydanticValidationError as e:
        raise ParseError(f"Missing deviceId or encryptedData: {_summarize(e)}") from e


def parse_health_payload(plaintext: str, device_id: str) -> HealthPayload:
    """Parse the decrypted payload.

    Raises:
        ValidationError: not JSON, or spo2 / heartRate missing or not numeric.
    """
    try:
        data = orjson.loads(plaintext)
    except orjson.JSONDecodeError as e:
        raise ValidationError(f"Decrypted payload is not JSON: {e}", device_id=device_id) from e

    if not isinstance(data, dict):
        raise ValidationError(
            f"Decrypted payload must be an object, got {type(data).__name__}",
            device_id=device_id,
        )

    try:
        return HealthPayload.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid health payload: {_summarize(e)}", device_id=device_id
        ) from e


def _summarize(error: PydanticValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{loc}: {item.get('msg')}")
    return "; ".join(parts)
