"""
Pet tag scan notifier.

When a pet's QR tag is scanned, the owner gets one email per throttle window:
- Entity resolution (pet -> owner) against the document store
- Throttle gate over the pet's scan event history, under a per-pet lease
- Message composition
- Delivery through Gmail (OAuth2), SendGrid, or the console
- One append-only scan event per processed scan
"""

from tagscan.models import Owner, Pet, ScanEvent, ScanOutcome, ScanRequest, ScanResult
from tagscan.data_store import DocumentStore, InMemoryDocumentStore
from tagscan.notifier import ScanNotifier, build_notifier
from tagscan.transports import (
    ConsoleTransport,
    DeliveryTransport,
    GmailTransport,
    SendGridTransport,
)

__all__ = [
    "Owner",
    "Pet",
    "ScanEvent",
    "ScanOutcome",
    "ScanRequest",
    "ScanResult",
    "DocumentStore",
    "InMemoryDocumentStore",
    "ScanNotifier",
    "build_notifier",
    "ConsoleTransport",
    "DeliveryTransport",
    "GmailTransport",
    "SendGridTransport",
]
