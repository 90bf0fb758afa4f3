"""Public interface for the review service HTTP adapter."""

from __future__ import annotations

from .client import HttpReviewBackend, ReviewServiceError
from .routes import FEED_WIRES, FeedWire, get_feed_wire
from .schema import ReconciliationPayload, RecordPayload
from .translator import build_request, parse_snapshot

__all__ = [
    "FEED_WIRES",
    "FeedWire",
    "HttpReviewBackend",
    "ReconciliationPayload",
    "RecordPayload",
    "ReviewServiceError",
    "build_request",
    "get_feed_wire",
    "parse_snapshot",
]
