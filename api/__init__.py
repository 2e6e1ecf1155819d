"""
HTTP surface for the pet tag scan notifier.

Exposes the scan endpoint called by the tag landing page.
"""

from api.main import app

__all__ = ["app"]
