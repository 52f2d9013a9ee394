"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability_service import AvailabilityService, BookingsClientProtocol, total_duration
from .realtime import (
    BookingSubscriptionOptions,
    ChannelTransportProtocol,
    RealtimeBookingService,
    Subscription,
)

__all__ = [
    "AvailabilityService",
    "BookingSubscriptionOptions",
    "BookingsClientProtocol",
    "ChannelTransportProtocol",
    "RealtimeBookingService",
    "Subscription",
    "total_duration",
]
