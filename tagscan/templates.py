"""
Notification message templates.

Builds the "your pet may have been found" email from owner, pet and location
data. Templates are plain strings with {variable} placeholders; names are
HTML-escaped before substitution into the HTML body.
"""

import html
from dataclasses import dataclass
from typing import Optional

DEFAULT_OWNER_NAME = "Pet owner"
DEFAULT_PET_NAME = "your pet"

MAPS_URL = "https://www.google.com/maps?q={lat},{lng}"


@dataclass(frozen=True)
class Message:
    """A composed notification, ready for any transport."""
    subject: str
    html_body: str
    text_body: str
    maps_url: Optional[str] = None


# =============================================================================
# Template Definitions
# =============================================================================

SUBJECT_TEMPLATE = "Your pet {pet_name} may have been found"

HTML_TEMPLATE = """\
<div style="font-family: system-ui, -apple-system, Segoe UI, Roboto, Arial; line-height:1.5; color:#111;">
  <h3 style="margin:0 0 8px">Hello {owner_name},</h3>
  <p>Your pet <strong>{pet_name}</strong> was scanned via its QR tag.</p>
{location_block}
  <hr style="border:none;border-top:1px solid #eee;margin:12px 0;">
  <p style="font-size:12px;color:#666;">If you didn't expect this, check the location or contact the scanner directly.</p>
</div>
"""

HTML_LOCATION_BLOCK = """\
  <p>Click the button to see the reported location:</p>
  <p><a href="{maps_url}" style="display:inline-block;background:#2563eb;color:#fff;padding:10px 14px;border-radius:8px;text-decoration:none;">View Location</a></p>
  <p style="font-size:12px;color:#555;">Or copy this link: {maps_url}</p>"""

HTML_NO_LOCATION_BLOCK = "  <p>The scanner did not share their location.</p>"

TEXT_TEMPLATE = """\
Hello {owner_name},

Your pet {pet_name} was scanned via its QR tag.

{location_line}

If you didn't expect this, check the location or contact the scanner directly.
"""


def build_maps_url(lat: Optional[float], lng: Optional[float]) -> Optional[str]:
    """Map link for the scan location, or None unless both coordinates are set."""
    if lat is None or lng is None:
        return None
    return MAPS_URL.format(lat=lat, lng=lng)


def compose_message(
    owner_name: Optional[str],
    pet_name: Optional[str],
    lat: Optional[float] = None,
    lng: Optional[float] = None,
) -> Message:
    """
    Compose the found-pet email.

    Args:
        owner_name: Owner display name, defaults to "Pet owner"
        pet_name: Pet display name, defaults to "your pet"
        lat: Scan latitude, if the scanner shared it
        lng: Scan longitude, if the scanner shared it

    Returns:
        Message with subject, HTML and plain-text bodies
    """
    owner_name = owner_name or DEFAULT_OWNER_NAME
    pet_name = pet_name or DEFAULT_PET_NAME
    maps_url = build_maps_url(lat, lng)

    if maps_url:
        location_block = HTML_LOCATION_BLOCK.format(maps_url=html.escape(maps_url))
        location_line = f"See the reported location: {maps_url}"
    else:
        location_block = HTML_NO_LOCATION_BLOCK
        location_line = "The scanner did not share their location."

    return Message(
        subject=SUBJECT_TEMPLATE.format(pet_name=pet_name),
        html_body=HTML_TEMPLATE.format(
            owner_name=html.escape(owner_name),
            pet_name=html.escape(pet_name),
            location_block=location_block,
        ),
        text_body=TEXT_TEMPLATE.format(
            owner_name=owner_name,
            pet_name=pet_name,
            location_line=location_line,
        ),
        maps_url=maps_url,
    )
