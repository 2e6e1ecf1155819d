"""
Demonstration scenarios for the scan notifier.

Each scenario runs against the JSON fixtures in ./data with the console
transport, so nothing is actually emailed.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

from tagscan.config import TagScanSettings
from tagscan.data_store import InMemoryDocumentStore
from tagscan.errors import TagScanError
from tagscan.models import ScanRequest
from tagscan.notifier import build_notifier
from tagscan.recorder import ScanRecorder
from tagscan.transports import ConsoleTransport

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
    datefmt="%H:%M:%S",
)


class DemoClock:
    """Manually advanced clock so the demo can skip past the throttle window."""

    def __init__(self):
        self.now = datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


def _banner(title: str) -> None:
    print("\n" + "=" * 70)
    print(title)
    print("=" * 70 + "\n")


def run_repeat_scan_demo():
    """
    Scan the same tag three times: now, 5 minutes later, 31 minutes later.

    Expected: sent, throttled, sent.
    """
    _banner("DEMO: Repeated scans of Rex's tag (30 minute window)")

    clock = DemoClock()
    store = InMemoryDocumentStore()
    transport = ConsoleTransport()
    settings = TagScanSettings(_env_file=None, throttle_minutes=30)
    notifier = build_notifier(settings, store=store, transport=transport, clock=clock)

    for label, step in [("t+0m", timedelta()), ("t+5m", timedelta(minutes=5)), ("t+36m", timedelta(minutes=31))]:
        clock.advance(step)
        result = notifier.handle_scan(ScanRequest(pet_id="pet-001", lat=14.5995, lng=120.9842))
        print(f"  {label}: {result.message}")

    print("\nScan history:")
    for event in ScanRecorder(store).history("pet-001"):
        print(f"  {event.created_at:%H:%M:%S}  {event.outcome.value:<9}  emailed={event.emailed}")

    return transport.sent_messages


def run_concurrent_scan_demo(scans: int = 8):
    """
    Fire several scans for the same pet at once.

    Expected: one email, every other scan throttled.
    """
    _banner(f"DEMO: {scans} simultaneous scans of Mochi's tag")

    store = InMemoryDocumentStore()
    transport = ConsoleTransport()
    notifier = build_notifier(TagScanSettings(_env_file=None), store=store, transport=transport)

    with ThreadPoolExecutor(max_workers=scans) as pool:
        results = list(pool.map(
            lambda _: notifier.handle_scan(ScanRequest(pet_id="pet-002")),
            range(scans),
        ))

    for i, result in enumerate(results):
        print(f"  scan {i + 1}: {result.message}")
    print(f"\nEmails sent: {transport.get_sent_count()}")

    return transport.sent_messages


def run_rejected_scan_demo():
    """Scans that never reach the throttle gate: unknown pet, no owner, no email."""
    _banner("DEMO: Scans rejected before notification")

    notifier = build_notifier(
        TagScanSettings(_env_file=None),
        store=InMemoryDocumentStore(),
        transport=ConsoleTransport(),
    )
    for pet_id in ["pet-unknown", "pet-003", "pet-004", "pet-005"]:
        try:
            notifier.handle_scan(ScanRequest(pet_id=pet_id))
        except TagScanError as e:
            print(f"  {pet_id}: {e.status_code} {e.public_message}")


def run_all_demos():
    run_repeat_scan_demo()
    run_concurrent_scan_demo()
    run_rejected_scan_demo()


if __name__ == "__main__":
    run_all_demos()
