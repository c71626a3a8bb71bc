"""Tests for bus envelope and health payload validation."""

import json

import pytest

from health_ingest.errors import ParseError, ValidationError
from health_ingest.mqtt.validators import (
    RawEnvelope,
    parse_envelope,
    parse_health_payload,
)


# =============================================================================
# ENVELOPE
# =============================================================================

class TestParseEnvelope:

    def test_valid_envelope(self):
        env = parse_envelope(b'{"deviceId": "abc=", "encryptedData": "def="}')

        assert isinstance(env, RawEnvelope)
        assert env.device_id_cipher == "abc="
        assert env.payload_cipher == "def="

    def test_accepts_str_body(self):
        env = parse_envelope('{"deviceId": "a", "encryptedData": "b"}')
        assert env.device_id_cipher == "a"

    def test_extra_fields_ignored(self):
        env = parse_envelope(json.dumps({"deviceId": "a", "encryptedData": "b", "v": 2}))
        assert env.payload_cipher == "b"

    @pytest.mark.parametrize(
        "body",
        [
            b"not json",
            b"",
            b"[1, 2]",
            b'"string"',
            b'{"deviceId": "a"}',
            b'{"encryptedData": "b"}',
            b'{"deviceId": "", "encryptedData": "b"}',
            b'{"deviceId": 5, "encryptedData": "b"}',
            b'{"deviceId": "a", "encryptedData": null}',
        ],
    )
    def test_malformed_envelope(self, body):
        with pytest.raises(ParseError):
            parse_envelope(body)

    def test_parse_error_stage(self):
        with pytest.raises(ParseError) as exc_info:
            parse_envelope(b"{")
        assert exc_info.value.stage.value == "parsed"
        assert exc_info.value.device_id is None


# =============================================================================
# HEALTH PAYLOAD
# =============================================================================

class TestParseHealthPayload:

    def test_integers(self):
        payload = parse_health_payload('{"spo2": 97, "heartRate": 72}', device_id="dev-1")
        assert payload.spo2 == 97
        assert payload.heart_rate == 72

    def test_floats(self):
        payload = parse_health_payload('{"spo2": 96.5, "heartRate": 71.2}', device_id="dev-1")
        assert payload.spo2 == 96.5
        assert payload.heart_rate == 71.2

    @pytest.mark.parametrize(
        "plaintext",
        [
            "garbage",
            "[]",
            '{"spo2": 97}',
            '{"heartRate": 72}',
            '{"spo2": "97", "heartRate": 72}',
            '{"spo2": true, "heartRate": 72}',
            '{"spo2": 97, "heartRate": null}',
        ],
    )
    def test_invalid_payload(self, plaintext):
        with pytest.raises(ValidationError) as exc_info:
            parse_health_payload(plaintext, device_id="dev-1")
        assert exc_info.value.device_id == "dev-1"
        assert exc_info.value.stage.value == "validated"
