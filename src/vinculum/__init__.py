"""
Client, shape negotiation and normalization for the Vinculum order API.
"""

from vinculum.config import Settings
from vinculum.handler import TrackingService, handle_tracking_request
from vinculum.models import TrackingQuery, TrackingResult

__all__ = [
    "Settings",
    "TrackingQuery",
    "TrackingResult",
    "TrackingService",
    "handle_tracking_request",
]
