"""
Scan event recorder.

Appends exactly one ScanEvent per processed scan. Events are never updated
or deleted; the throttle gate reads this history as its only state.
"""

import logging
from datetime import datetime
from typing import Callable

from tagscan.data_store import DocumentStore
from tagscan.errors import StoreError
from tagscan.models import ScanEvent, ScanOutcome, ScanRequest, utc_now

logger = logging.getLogger("scan_recorder")

SCAN_EVENTS_COLLECTION = "scanEvents"


class ScanRecorder:
    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def record(self, request: ScanRequest, outcome: ScanOutcome) -> ScanEvent:
        """
        Append the event for a scan.

        ``emailed`` is derived from the outcome so the two can never disagree.

        Raises:
            StoreError: The append failed
        """
        event = ScanEvent(
            pet_id=request.pet_id,
            lat=request.lat,
            lng=request.lng,
            ua=request.ua or None,
            created_at=self.clock(),
            outcome=outcome,
            emailed=outcome == ScanOutcome.NOTIFIED,
        )
        try:
            self.store.append_document(SCAN_EVENTS_COLLECTION, event.to_document())
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to record scan event for pet {request.pet_id}: {e}") from e

        logger.info(f"Recorded scan for pet {request.pet_id}: {outcome.value}")
        return event

    def history(self, pet_id: str) -> list[ScanEvent]:
        """All events for a pet, oldest first."""
        docs = self.store.query_documents(
            SCAN_EVENTS_COLLECTION,
            [("petId", "==", pet_id)],
            order_by="createdAt",
        )
        return [ScanEvent.model_validate(doc) for doc in docs]
