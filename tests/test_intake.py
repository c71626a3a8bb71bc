"""Tests for the telemetry intake state machine.

Scenarios:
1. Malformed JSON body -> dropped at PARSED, no ledger or alert calls
2. Breaching reading -> written, read back, alert published
3. Normal reading -> written, read back, no alert
4. Ledger write fails -> no read-back, no alert
5. Bus disconnected -> alert dropped, pipeline still terminates

Run:
    pytest tests/test_intake.py -v
"""

import json
from datetime import timedelta
from unittest.mock import MagicMock

import orjson
import pytest

from health_ingest.domain.reading import make_asset_id
from health_ingest.domain.stages import PipelineStage
from health_ingest.errors import LedgerReadError, LedgerWriteError
from health_ingest.mqtt.alert_publisher import PublishStatus
from health_ingest.pipeline.dispatcher import DeviceOrderedDispatcher
from health_ingest.pipeline.intake import TelemetryIntake
from health_ingest.pipeline.thresholds import ThresholdEvaluator

from .conftest import FIXED_MILLIS, FIXED_NOW


@pytest.fixture
def intake(codec, gateway, publisher) -> TelemetryIntake:
    return TelemetryIntake(codec, gateway, publisher, clock=lambda: FIXED_NOW)


@pytest.fixture
def spy_ledger(gateway):
    """Gateway wrapped so calls can be asserted while still hitting the ledger."""
    return MagicMock(wraps=gateway)


@pytest.fixture
def spy_intake(codec, spy_ledger, publisher) -> TelemetryIntake:
    return TelemetryIntake(codec, spy_ledger, publisher, clock=lambda: FIXED_NOW)


# =============================================================================
# SCENARIOS
# =============================================================================

class TestScenarios:

    def test_malformed_json_dropped_at_parse(self, codec, publisher, mock_bus):
        ledger = MagicMock()
        intake = TelemetryIntake(codec, ledger, publisher)

        result = intake.process_message(b"{not json")

        assert result.stage == PipelineStage.DROPPED
        assert result.failed_stage == PipelineStage.PARSED
        ledger.write.assert_not_called()
        ledger.read.assert_not_called()
        mock_bus.publish.assert_not_called()

    def test_breach_writes_reads_and_alerts(self, spy_intake, spy_ledger, mock_bus, make_message):
        result = spy_intake.process_message(make_message("dev-1", {"spo2": 85, "heartRate": 72}))

        asset_id = f"dev-1_{FIXED_MILLIS}"
        spy_ledger.write.assert_called_once_with(asset_id, "dev-1", 85, 72)
        spy_ledger.read.assert_called_once_with(asset_id)

        mock_bus.publish.assert_called_once()
        topic, payload = mock_bus.publish.call_args.args
        assert topic == "telemetry/alert/dev-1"
        assert orjson.loads(payload) == {"alert": "HEALTH_WARNING", "spo2": 85, "heartRate": 72}
        assert mock_bus.publish.call_args.kwargs["qos"] == 1

        assert result.stage == PipelineStage.ALERT_DISPATCHED
        assert result.breach is True
        assert result.alert_status == PublishStatus.DELIVERED
        assert result.asset_id == asset_id

    def test_normal_reading_no_alert(self, spy_intake, spy_ledger, mock_bus, make_message):
        result = spy_intake.process_message(make_message("dev-1", {"spo2": 97, "heartRate": 75}))

        spy_ledger.write.assert_called_once()
        spy_ledger.read.assert_called_once()
        mock_bus.publish.assert_not_called()
        assert result.stage == PipelineStage.NO_ALERT
        assert result.breach is False

    def test_ledger_write_failure_stops_before_read(self, codec, publisher, mock_bus, make_message):
        ledger = MagicMock()
        ledger.write.side_effect = LedgerWriteError("peer unavailable")
        intake = TelemetryIntake(codec, ledger, publisher)

        result = intake.process_message(make_message("dev-1", {"spo2": 40, "heartRate": 30}))

        ledger.read.assert_not_called()
        mock_bus.publish.assert_not_called()
        assert result.stage == PipelineStage.DROPPED
        assert result.failed_stage == PipelineStage.LEDGER_WRITTEN
        assert result.device_id == "dev-1"

    def test_disconnected_bus_drops_alert(self, intake, mock_bus, make_message):
        mock_bus.is_connected = False

        result = intake.process_message(make_message("dev-1", {"spo2": 85, "heartRate": 72}))

        mock_bus.publish.assert_not_called()
        assert result.stage == PipelineStage.ALERT_DROPPED
        assert result.alert_status == PublishStatus.DROPPED
        assert result.stage.is_terminal


# =============================================================================
# DROPS PER STAGE
# =============================================================================

class TestDrops:

    def test_missing_field_dropped_at_parse(self, intake, codec):
        body = json.dumps({"deviceId": codec.encrypt("dev-1")}).encode()
        result = intake.process_message(body)
        assert result.failed_stage == PipelineStage.PARSED

    def test_bad_ciphertext_dropped_at_decrypt(self, intake, gateway):
        body = json.dumps({"deviceId": "###", "encryptedData": "###"}).encode()

        result = intake.process_message(body)

        assert result.failed_stage == PipelineStage.DECRYPTED
        assert gateway.list_assets() == []

    def test_bad_payload_cipher_keeps_device_id(self, intake, codec):
        body = json.dumps({"deviceId": codec.encrypt("dev-9"), "encryptedData": "AAAA"}).encode()

        result = intake.process_message(body)

        assert result.failed_stage == PipelineStage.DECRYPTED
        assert result.device_id == "dev-9"

    @pytest.mark.parametrize(
        "payload",
        [
            "plain text",
            {"spo2": 85},
            {"spo2": "85", "heartRate": 72},
        ],
    )
    def test_invalid_payload_dropped_at_validate(self, intake, make_message, mock_bus, payload):
        result = intake.process_message(make_message("dev-1", payload))

        assert result.failed_stage == PipelineStage.VALIDATED
        assert result.device_id == "dev-1"
        mock_bus.publish.assert_not_called()

    def test_empty_device_id_dropped(self, intake, make_message):
        result = intake.process_message(make_message("", {"spo2": 85, "heartRate": 72}))
        assert result.failed_stage == PipelineStage.VALIDATED

    def test_read_back_failure_no_alert(self, codec, publisher, mock_bus, make_message):
        ledger = MagicMock()
        ledger.read.side_effect = LedgerReadError(LedgerReadError.NOT_FOUND)
        intake = TelemetryIntake(codec, ledger, publisher)

        result = intake.process_message(make_message("dev-1", {"spo2": 40, "heartRate": 30}))

        ledger.write.assert_called_once()
        mock_bus.publish.assert_not_called()
        assert result.failed_stage == PipelineStage.LEDGER_CONFIRMED

    def test_same_millisecond_collision(self, intake, make_message, mock_bus):
        """Second reading in the same millisecond collides on asset id."""
        first = intake.process_message(make_message("dev-1", {"spo2": 97, "heartRate": 75}))
        second = intake.process_message(make_message("dev-1", {"spo2": 85, "heartRate": 72}))

        assert first.stage == PipelineStage.NO_ALERT
        assert second.stage == PipelineStage.DROPPED
        assert second.failed_stage == PipelineStage.LEDGER_WRITTEN
        mock_bus.publish.assert_not_called()

    def test_dropped_messages_go_to_dlq(self, codec, gateway, publisher):
        dlq = MagicMock()
        intake = TelemetryIntake(codec, gateway, publisher, dlq=dlq)

        intake.process_message(b"garbage")

        dlq.send.assert_called_once()
        kwargs = dlq.send.call_args.kwargs
        assert kwargs["payload"] == b"garbage"
        assert kwargs["stage"] == "parsed"
        assert kwargs["error_type"] == "parse_error"


# =============================================================================
# EVALUATION
# =============================================================================

class TestEvaluation:

    def test_alert_uses_read_back_values(self, codec, publisher, mock_bus, make_message):
        """The ledger copy decides the alert, not the decrypted payload."""
        ledger = MagicMock()
        ledger.read.return_value = MagicMock(spo2=80, heart_rate=72)
        intake = TelemetryIntake(codec, ledger, publisher)

        result = intake.process_message(make_message("dev-1", {"spo2": 97, "heartRate": 75}))

        assert result.stage == PipelineStage.ALERT_DISPATCHED
        _, payload = mock_bus.publish.call_args.args
        assert orjson.loads(payload)["spo2"] == 80

    def test_custom_evaluator(self, codec, gateway, publisher, make_message):
        intake = TelemetryIntake(
            codec, gateway, publisher,
            evaluator=ThresholdEvaluator(spo2_min=98),
        )
        result = intake.process_message(make_message("dev-1", {"spo2": 97, "heartRate": 75}))
        assert result.stage == PipelineStage.ALERT_DISPATCHED

    def test_float_values(self, intake, make_message, mock_bus):
        result = intake.process_message(make_message("dev-1", {"spo2": 89.5, "heartRate": 72.0}))

        assert result.stage == PipelineStage.ALERT_DISPATCHED
        _, payload = mock_bus.publish.call_args.args
        assert orjson.loads(payload)["spo2"] == 89.5


# =============================================================================
# ASSET IDS
# =============================================================================

class TestAssetId:

    def test_deterministic(self):
        assert make_asset_id("dev-1", FIXED_NOW) == f"dev-1_{FIXED_MILLIS}"
        assert make_asset_id("dev-1", FIXED_NOW) == make_asset_id("dev-1", FIXED_NOW)

    def test_naive_datetime_treated_as_utc(self):
        naive = FIXED_NOW.replace(tzinfo=None)
        assert make_asset_id("dev-1", naive) == f"dev-1_{FIXED_MILLIS}"

    def test_sub_millisecond_truncated(self):
        later = FIXED_NOW + timedelta(microseconds=999)
        assert make_asset_id("dev-1", later) == f"dev-1_{FIXED_MILLIS}"

    def test_next_millisecond_differs(self):
        later = FIXED_NOW + timedelta(milliseconds=1)
        assert make_asset_id("dev-1", later) == f"dev-1_{FIXED_MILLIS + 1}"


# =============================================================================
# BUS CALLBACK / STATS
# =============================================================================

class TestOnMessage:

    def test_inline_without_dispatcher(self, intake, make_message, mock_bus):
        intake.on_message("telemetry/in", make_message("dev-1", {"spo2": 85, "heartRate": 72}))

        mock_bus.publish.assert_called_once()
        assert intake.stats.received == 1
        assert intake.stats.alerts_dispatched == 1

    def test_through_inline_dispatcher(self, codec, gateway, publisher, make_message, mock_bus):
        dispatcher = DeviceOrderedDispatcher(num_workers=0)
        intake = TelemetryIntake(codec, gateway, publisher, dispatcher=dispatcher)

        intake.on_message("telemetry/in", make_message("dev-1", {"spo2": 85, "heartRate": 72}))

        mock_bus.publish.assert_called_once()
        assert dispatcher.metrics["processed"] == 1

    def test_queue_full_drops(self, codec, gateway, publisher, make_message):
        dispatcher = MagicMock()
        dispatcher.submit.return_value = False
        dlq = MagicMock()
        intake = TelemetryIntake(codec, gateway, publisher, dlq=dlq, dispatcher=dispatcher)

        intake.on_message("telemetry/in", make_message("dev-1", {"spo2": 85, "heartRate": 72}))

        assert intake.stats.dropped == 1
        assert dlq.send.call_args.kwargs["device_id"] == "dev-1"
        assert gateway.list_assets() == []

    def test_malformed_never_reaches_dispatcher(self, codec, gateway, publisher):
        dispatcher = MagicMock()
        intake = TelemetryIntake(codec, gateway, publisher, dispatcher=dispatcher)

        intake.on_message("telemetry/in", b"[]")

        dispatcher.submit.assert_not_called()
        assert intake.stats.dropped_by_stage["parsed"] == 1

    def test_stats_to_dict(self, intake, make_message):
        intake.process_message(make_message("dev-1", {"spo2": 97, "heartRate": 75}))
        intake.process_message(b"bad")

        stats = intake.stats.to_dict()

        assert stats["received"] == 2
        assert stats["persisted"] == 1
        assert stats["no_alert"] == 1
        assert stats["dropped"] == {"parsed": 1}
