"""
Tests for the scan event recorder.
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from tagscan.errors import StoreError
from tagscan.models import ScanOutcome, ScanRequest
from tagscan.recorder import SCAN_EVENTS_COLLECTION, ScanRecorder


class TestRecord:

    def test_appends_one_document(self, store, clock):
        recorder = ScanRecorder(store, clock=clock)

        event = recorder.record(
            ScanRequest(pet_id="pet-001", lat=1.5, lng=2.5, ua="Mozilla/5.0"),
            ScanOutcome.NOTIFIED,
        )

        assert store.count(SCAN_EVENTS_COLLECTION) == 1
        doc = store.query_documents(SCAN_EVENTS_COLLECTION, [("petId", "==", "pet-001")])[0]
        assert doc["reason"] == "notified"
        assert doc["emailed"] is True
        assert doc["lat"] == 1.5
        assert doc["lng"] == 2.5
        assert doc["ua"] == "Mozilla/5.0"
        assert doc["createdAt"] == clock.now
        assert event.created_at == clock.now

    @pytest.mark.parametrize("outcome", [ScanOutcome.THROTTLED, ScanOutcome.FAILED])
    def test_only_notified_is_emailed(self, store, clock, outcome):
        event = ScanRecorder(store, clock=clock).record(ScanRequest(pet_id="pet-001"), outcome)

        assert event.emailed is False

    def test_missing_optional_fields_are_null(self, store, clock):
        ScanRecorder(store, clock=clock).record(ScanRequest(pet_id="pet-001", ua=""), ScanOutcome.THROTTLED)

        doc = store.query_documents(SCAN_EVENTS_COLLECTION, [])[0]
        assert doc["lat"] is None
        assert doc["lng"] is None
        assert doc["ua"] is None

    def test_history_is_ordered(self, store, clock):
        recorder = ScanRecorder(store, clock=clock)
        recorder.record(ScanRequest(pet_id="pet-001"), ScanOutcome.NOTIFIED)
        clock.advance(timedelta(minutes=1))
        recorder.record(ScanRequest(pet_id="pet-001"), ScanOutcome.THROTTLED)

        history = recorder.history("pet-001")

        assert [e.outcome for e in history] == [ScanOutcome.NOTIFIED, ScanOutcome.THROTTLED]


class TestStoreFailures:

    def test_store_error_propagates(self):
        store = MagicMock()
        store.append_document.side_effect = StoreError("write refused")

        with pytest.raises(StoreError, match="write refused"):
            ScanRecorder(store).record(ScanRequest(pet_id="pet-001"), ScanOutcome.NOTIFIED)

    def test_other_failures_become_store_errors(self):
        store = MagicMock()
        store.append_document.side_effect = ConnectionError("reset by peer")

        with pytest.raises(StoreError, match="reset by peer"):
            ScanRecorder(store).record(ScanRequest(pet_id="pet-001"), ScanOutcome.NOTIFIED)
