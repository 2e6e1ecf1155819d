"""
Scan notification orchestrator.

Handles one scan end to end:

    Received -> Validated -> Resolved -> GateChecked
        DENY  -> Recorded(throttled)
        ALLOW -> Composed -> Dispatched -> Recorded(notified | failed)

Requests that fail validation or resolution leave no scan event, since
there is no pet context to record. Every request that gets past resolution
records exactly one event, while holding the pet's lease, so the next scan
for the same pet sees it.

There is no retry inside a request. A failed send is recorded as ``failed``
and surfaced; the next physical scan is the retry, subject to the window.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from tagscan.config import TagScanSettings
from tagscan.data_store import DocumentStore, InMemoryDocumentStore
from tagscan.errors import AuditTrailError, ScanValidationError, StoreError, TransportError
from tagscan.models import Owner, Pet, ScanOutcome, ScanRequest, ScanResult, utc_now
from tagscan.recorder import ScanRecorder
from tagscan.resolver import EntityResolver
from tagscan.templates import compose_message
from tagscan.throttle import GateVerdict, ScanLeaseManager, ThrottleGate
from tagscan.transports import DeliveryTransport, build_transport

logger = logging.getLogger("scan_notifier")


class ScanNotifier:
    """
    Decides whether a scan notifies the owner, sends, and records the outcome.

    Collaborators are passed in once at construction and not changed
    afterwards; the transport is whichever variant configuration selected.
    """

    def __init__(
        self,
        resolver: EntityResolver,
        gate: ThrottleGate,
        transport: DeliveryTransport,
        recorder: ScanRecorder,
    ):
        self.resolver = resolver
        self.gate = gate
        self.transport = transport
        self.recorder = recorder

    def handle_scan(self, request: Optional[ScanRequest]) -> ScanResult:
        """
        Process one scan.

        Returns:
            ScanResult with outcome NOTIFIED or THROTTLED

        Raises:
            ScanValidationError: No pet id in the request
            NotFoundError, MissingOwnerLinkError, MissingEmailError: Resolution failed
            TransportError: Send failed (a ``failed`` event was recorded)
            AuditTrailError: Email was sent but the event could not be recorded
            StoreError: Any other store failure
        """
        if request is None or not request.pet_id:
            raise ScanValidationError("Scan request without petId")

        logger.info(
            f"Scan for pet {request.pet_id} "
            f"(location={'yes' if request.has_location else 'no'})"
        )

        pet, owner = self.resolver.resolve(request.pet_id)

        with self.gate.hold(request.pet_id) as verdict:
            outcome, send_error = self._dispatch(verdict, request, pet, owner)
            try:
                event = self.recorder.record(request, outcome)
            except StoreError as e:
                if outcome == ScanOutcome.NOTIFIED:
                    logger.critical(
                        f"Email for pet {request.pet_id} was sent to owner {owner.id} "
                        f"but the scan event was not recorded: {e}"
                    )
                    raise AuditTrailError(
                        f"Sent but not recorded for pet {request.pet_id}: {e}"
                    ) from e
                logger.error(f"Could not record {outcome.value} scan for pet {request.pet_id}: {e}")
                raise

        if send_error is not None:
            raise send_error

        return ScanResult(outcome=outcome, event=event)

    def _dispatch(
        self,
        verdict: GateVerdict,
        request: ScanRequest,
        pet: Pet,
        owner: Owner,
    ) -> tuple[ScanOutcome, Optional[TransportError]]:
        """Compose and send when allowed. Transport errors are returned, not raised."""
        if verdict == GateVerdict.DENY:
            return ScanOutcome.THROTTLED, None

        message = compose_message(owner.full_name, pet.name, request.lat, request.lng)
        try:
            self.transport.send(owner.email, message.subject, message.html_body, message.text_body)
        except TransportError as e:
            logger.error(f"Notification for pet {request.pet_id} failed: {type(e).__name__}: {e}")
            return ScanOutcome.FAILED, e
        except Exception as e:
            logger.exception(f"Unexpected {self.transport.provider_name} failure for pet {request.pet_id}")
            error = TransportError(f"Unexpected transport failure: {e}", provider=self.transport.provider_name)
            error.__cause__ = e
            return ScanOutcome.FAILED, error

        return ScanOutcome.NOTIFIED, None


def build_notifier(
    settings: TagScanSettings,
    store: Optional[DocumentStore] = None,
    transport: Optional[DeliveryTransport] = None,
    clock: Callable[[], datetime] = utc_now,
) -> ScanNotifier:
    """
    Wire a notifier from settings.

    Raises:
        ConfigurationError: The selected transport is missing credentials
    """
    if store is None:
        store = InMemoryDocumentStore(data_dir=settings.data_dir)
    if transport is None:
        transport = build_transport(settings)

    leases = ScanLeaseManager(store, ttl=settings.scan_lease_ttl, clock=clock)
    gate = ThrottleGate(
        store,
        window=settings.throttle_window,
        leases=leases,
        policy=settings.throttle_policy,
        clock=clock,
    )
    logger.info(
        f"Scan notifier ready: transport={transport.provider_name}, "
        f"window={settings.throttle_minutes}m, policy={settings.throttle_policy.value}"
    )
    return ScanNotifier(
        resolver=EntityResolver(store),
        gate=gate,
        transport=transport,
        recorder=ScanRecorder(store, clock=clock),
    )
