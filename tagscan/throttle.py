"""
Throttle gate and per-pet scan lease.

The gate allows a notification only when the pet has no scan event newer
than ``now - window``. Checking the history and recording the outcome are
two separate store operations with an email send in between, so concurrent
scans for the same pet are serialized by a lease document in the
``scanLeases`` collection:

    with gate.hold(pet_id) as verdict:
        ...send if ALLOW...
        ...record the outcome...

A scan that finds the lease held by another request is denied outright:
that request will record an event inside the window anyway. A lease left
behind by a crashed process stops blocking once ``expiresAt`` passes.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Iterator, Optional
from uuid import uuid4

from tagscan.data_store import DocumentStore
from tagscan.errors import StoreError
from tagscan.models import ScanOutcome, utc_now
from tagscan.recorder import SCAN_EVENTS_COLLECTION

logger = logging.getLogger("throttle")

LEASES_COLLECTION = "scanLeases"


class GateVerdict(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


class ThrottlePolicy(str, Enum):
    """
    Which past events suppress a new notification.

    ANY_EVENT: any recent scan, including throttled and failed ones. A failed
        send is therefore not retried until the window has passed.
    NOTIFIED_ONLY: only a recent successful notification.
    """
    ANY_EVENT = "any_event"
    NOTIFIED_ONLY = "notified_only"


@dataclass(frozen=True)
class ScanLease:
    pet_id: str
    token: str
    expires_at: datetime


class ScanLeaseManager:
    """Mutual exclusion per pet, built on create-if-absent and compare-and-delete."""

    def __init__(
        self,
        store: DocumentStore,
        ttl: timedelta,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.ttl = ttl
        self.clock = clock

    def acquire(self, pet_id: str) -> Optional[ScanLease]:
        """Return a lease, or None while another request holds an unexpired one."""
        now = self.clock()
        lease = ScanLease(pet_id=pet_id, token=uuid4().hex, expires_at=now + self.ttl)
        fields = {"token": lease.token, "expiresAt": lease.expires_at}

        if self.store.create_document(LEASES_COLLECTION, pet_id, fields):
            return lease

        current = self.store.get_document(LEASES_COLLECTION, pet_id)
        if current is not None:
            if current["expiresAt"] > now:
                logger.info(f"Scan lease for pet {pet_id} is held by another request")
                return None
            logger.warning(
                f"Taking over expired scan lease for pet {pet_id} "
                f"(expired {current['expiresAt'].isoformat()})"
            )
            self.store.delete_document(
                LEASES_COLLECTION, pet_id, if_match={"token": current["token"]}
            )

        # Another request may have taken it over between the delete and here
        if self.store.create_document(LEASES_COLLECTION, pet_id, fields):
            return lease
        return None

    def release(self, lease: ScanLease) -> None:
        """
        Drop the lease if it is still ours.

        Runs after the outcome is recorded. A failed release is logged and
        the lease is left to expire.
        """
        try:
            released = self.store.delete_document(
                LEASES_COLLECTION, lease.pet_id, if_match={"token": lease.token}
            )
        except StoreError as e:
            logger.error(f"Could not release scan lease for pet {lease.pet_id}: {e}")
            return
        if not released:
            logger.warning(
                f"Scan lease for pet {lease.pet_id} expired before release; "
                f"raise SCAN_LEASE_SECONDS if sends regularly take this long"
            )


class ThrottleGate:
    """
    Decides whether a scan may notify the owner.

    The scan event history is the only state consulted; there is no
    separate "last notified" field.
    """

    def __init__(
        self,
        store: DocumentStore,
        window: timedelta,
        leases: ScanLeaseManager,
        policy: ThrottlePolicy = ThrottlePolicy.ANY_EVENT,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.window = window
        self.leases = leases
        self.policy = policy
        self.clock = clock

    def evaluate(self, pet_id: str) -> GateVerdict:
        """DENY if a qualifying event exists with ``createdAt > now - window``."""
        threshold = self.clock() - self.window
        filters = [
            ("petId", "==", pet_id),
            ("createdAt", ">", threshold),
        ]
        if self.policy == ThrottlePolicy.NOTIFIED_ONLY:
            filters.append(("reason", "==", ScanOutcome.NOTIFIED.value))

        recent = self.store.query_documents(SCAN_EVENTS_COLLECTION, filters, limit=1)
        if recent:
            logger.info(f"Pet {pet_id} has a scan event since {threshold.isoformat()}, throttling")
            return GateVerdict.DENY
        return GateVerdict.ALLOW

    @contextmanager
    def hold(self, pet_id: str) -> Iterator[GateVerdict]:
        """
        Evaluate the gate under the pet's lease.

        The caller must record the scan outcome before leaving the block so
        that the next lease holder sees it.
        """
        lease = self.leases.acquire(pet_id)
        if lease is None:
            yield GateVerdict.DENY
            return

        try:
            yield self.evaluate(pet_id)
        finally:
            self.leases.release(lease)
