"""
FastAPI application for the pet tag scan notifier.

Endpoints:
1. POST /api/pet-found - called by the tag landing page when a tag is scanned
2. GET /health - liveness check

Responses are short plain text so the landing page can show them directly.
No stack traces or internal identifiers are ever returned.

Run with:
    uv run uvicorn api.main:app --reload

Then visit http://localhost:8000/docs for interactive API documentation.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse

from tagscan.config import get_settings
from tagscan.errors import AuditTrailError, TagScanError
from tagscan.models import ScanRequest
from tagscan.notifier import ScanNotifier, build_notifier

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
    datefmt="%H:%M:%S",
)

logger = logging.getLogger("scan_api")


# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logging.getLogger().setLevel(get_settings().log_level.upper())
    logger.info("Starting pet tag scan notifier")
    yield
    logger.info("Shutting down")


app = FastAPI(
    title="Pet Tag Scan Notifier",
    description="Emails a pet's owner when its tag is scanned, at most once per throttle window.",
    version="1.0.0",
    lifespan=lifespan,
)

# Built on first request from process settings (would use proper DI in production)
_notifier: Optional[ScanNotifier] = None


def get_notifier() -> ScanNotifier:
    """Get the process-wide notifier, building it on first use."""
    global _notifier
    if _notifier is None:
        _notifier = build_notifier(get_settings())
    return _notifier


def reset_api_state(notifier: Optional[ScanNotifier] = None) -> None:
    """Reset API state (for testing)."""
    global _notifier
    _notifier = notifier


# =============================================================================
# Error Mapping
# =============================================================================

@app.exception_handler(TagScanError)
def handle_scan_error(request: Request, exc: TagScanError) -> PlainTextResponse:
    if exc.status_code < 500:
        logger.info(f"{request.url.path} rejected ({exc.status_code}): {exc}")
    elif not isinstance(exc, AuditTrailError):  # notifier logs these as critical
        logger.error(f"{request.url.path} failed: {type(exc).__name__}: {exc}")
    return PlainTextResponse(exc.public_message, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
def handle_bad_body(request: Request, exc: RequestValidationError) -> PlainTextResponse:
    logger.info(f"{request.url.path} rejected malformed body: {exc.errors()}")
    return PlainTextResponse("Invalid request body", status_code=400)


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "pet-tag-scan-notifier"}


@app.post("/api/pet-found", response_class=PlainTextResponse, tags=["Scans"])
def pet_found(
    payload: Optional[ScanRequest] = None,
    notifier: ScanNotifier = Depends(get_notifier),
) -> PlainTextResponse:
    """
    Handle a tag scan.

    Body: ``{"petId": str, "lat"?: float, "lng"?: float, "ua"?: str}``

    Returns 200 "Email sent" or "Throttled"; 400 for a missing petId, a pet
    without an owner link or an owner without email; 404 for an unknown pet
    or owner; 500 for misconfiguration or delivery failure.
    """
    try:
        result = notifier.handle_scan(payload)
    except TagScanError:
        raise
    except Exception as e:
        logger.exception("Unhandled error while processing scan")
        raise TagScanError(f"Unhandled {type(e).__name__}") from e

    return PlainTextResponse(result.message, status_code=200)
