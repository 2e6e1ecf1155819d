"""
Domain models for the pet tag scan notifier.

Pets and owners are read from the document store and never written here.
Scan events are append-only facts; one is written per processed scan.

Stored documents keep the field names the existing collections use
(``ownerID``, ``fullName``, ``petId``, ``createdAt``, ``reason``), so every
model maps its Python attribute names onto those aliases.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# Enums
# =============================================================================

class ScanOutcome(str, Enum):
    """What happened to a scan after the owner was resolved."""
    THROTTLED = "throttled"     # Recent event inside the window, no email
    NOTIFIED = "notified"       # Email handed to the transport
    FAILED = "failed"           # Transport rejected the email


# =============================================================================
# Store-backed entities (read-only)
# =============================================================================

class Pet(BaseModel):
    """A tagged pet. ``owner_id`` must be set for a notification to go out."""
    id: str = Field(..., description="Pet document id, encoded in the tag")
    name: Optional[str] = Field(default=None, description="Display name")
    owner_id: Optional[str] = Field(default=None, alias="ownerID")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Owner(BaseModel):
    """
    The person notified when their pet is scanned.

    Older user documents store the address as ``email``, newer ones as
    ``emailAddress``; the newer field wins when both are present.
    """
    id: str
    full_name: Optional[str] = Field(default=None, alias="fullName")
    email: Optional[str] = Field(default=None)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _prefer_email_address(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("emailAddress"):
            data = {**data, "email": data["emailAddress"]}
        return data


# =============================================================================
# Scan request / event
# =============================================================================

class ScanRequest(BaseModel):
    """
    Body of an incoming scan.

    ``pet_id`` is optional at the model level so a missing id is reported by
    the orchestrator as a validation error rather than a schema error.
    """
    pet_id: Optional[str] = Field(default=None, alias="petId")
    lat: Optional[float] = None
    lng: Optional[float] = None
    ua: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    @property
    def has_location(self) -> bool:
        return self.lat is not None and self.lng is not None


class ScanEvent(BaseModel):
    """One immutable record of a processed scan."""
    pet_id: str = Field(..., alias="petId")
    lat: Optional[float] = None
    lng: Optional[float] = None
    ua: Optional[str] = None
    created_at: datetime = Field(..., alias="createdAt")
    outcome: ScanOutcome = Field(..., alias="reason")
    emailed: bool = False

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_document(self) -> dict[str, Any]:
        """Fields as written to the ``scanEvents`` collection."""
        doc = self.model_dump(by_alias=True)
        doc["reason"] = self.outcome.value
        return doc


@dataclass(frozen=True)
class ScanResult:
    """Outcome of a handled scan, returned to the HTTP layer."""
    outcome: ScanOutcome
    event: ScanEvent

    @property
    def message(self) -> str:
        if self.outcome == ScanOutcome.NOTIFIED:
            return "Email sent"
        if self.outcome == ScanOutcome.THROTTLED:
            return "Throttled"
        raise ValueError(f"No response message for outcome {self.outcome.value}")


def utc_now() -> datetime:
    """Timezone-aware current time; injected as ``clock`` where tests need control."""
    return datetime.now(timezone.utc)
