"""
Realtime booking updates over a pub/sub channel transport.

The service owns its channel registry. Every subscribe call returns a
``Subscription`` handle; unsubscribing through a handle only ever removes that
handle's own channel, even after the channel name was subscribed again.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

import pendulum

from ..domain.models import BookingUpdate

logger = logging.getLogger(__name__)

SUBSCRIBED = "SUBSCRIBED"
CHANNEL_ERROR = "CHANNEL_ERROR"

BROADCAST_EVENT = "broadcast"
POSTGRES_CHANGES_EVENT = "postgres_changes"

BookingCallback = Callable[[BookingUpdate], None]


class ChannelTransportProtocol(Protocol):
    """Protocol describing the pub/sub primitive the service needs."""

    def subscribe(
        self,
        channel_name: str,
        event: str,
        on_message: Callable[[Mapping[str, Any]], None],
        on_status: Callable[[str], None],
    ) -> Any:
        """Open a channel and return an opaque channel object."""

    def remove_channel(self, channel: Any) -> None:
        """Close a channel previously returned by ``subscribe``."""


@dataclass
class BookingSubscriptionOptions:
    """Callbacks for booking updates; any of them may be omitted."""
    on_insert: Optional[BookingCallback] = None
    on_update: Optional[BookingCallback] = None
    on_delete: Optional[BookingCallback] = None
    on_error: Optional[Callable[[Exception], None]] = None

    def dispatch(self, update: BookingUpdate) -> None:
        handler = {
            "INSERT": self.on_insert,
            "UPDATE": self.on_update,
            "DELETE": self.on_delete,
        }.get(update.operation)
        if handler is not None:
            handler(update)


class Subscription:
    """Handle returned to each subscriber."""

    def __init__(self, service: "RealtimeBookingService", token: int, channel_name: str):
        self._service = service
        self.token = token
        self.channel_name = channel_name

    @property
    def active(self) -> bool:
        return self._service.is_active(self)

    def unsubscribe(self) -> None:
        self._service.unsubscribe(self)


@dataclass
class _Registration:
    token: int
    channel: Any


def booking_update_from_change(payload: Mapping[str, Any]) -> BookingUpdate:
    """Transform a postgres-changes payload into a BookingUpdate."""
    record = payload.get("new") or payload.get("old") or {}
    return BookingUpdate(
        operation=str(payload.get("eventType", "")),
        booking_id=str(record.get("id", "")),
        shop_id=str(record.get("shop_id", "")),
        provider_id=str(record.get("provider_id", "")),
        customer_id=str(record.get("customer_id", "")),
        staff_id=str(record.get("staff_id", "")),
        status=str(record.get("status", "")),
        booking_date=str(record.get("booking_date", "")),
        start_time=str(record.get("start_time", "")),
        timestamp=pendulum.now("UTC").to_iso8601_string(),
    )


def booking_update_from_broadcast(payload: Mapping[str, Any]) -> BookingUpdate:
    """Read a BookingUpdate from a broadcast message body."""
    body = payload.get("payload", payload)
    fields = {name: str(body[name]) for name in BookingUpdate.__dataclass_fields__ if name in body}
    fields.setdefault("operation", "")
    fields.setdefault("booking_id", "")
    return BookingUpdate(**fields)


class RealtimeBookingService:
    """
    Subscribes callers to booking update channels.

    Meant to be created once and shared for the lifetime of the application.
    """

    def __init__(self, transport: ChannelTransportProtocol):
        self._transport = transport
        self._registry: Dict[str, _Registration] = {}
        self._tokens = itertools.count(1)

    def subscribe_to_customer_bookings(
        self, customer_id: str, options: BookingSubscriptionOptions
    ) -> Subscription:
        return self._subscribe_to_channel(f"bookings:customer:{customer_id}", options)

    def subscribe_to_provider_bookings(
        self, provider_id: str, options: BookingSubscriptionOptions
    ) -> Subscription:
        return self._subscribe_to_channel(f"bookings:provider:{provider_id}", options)

    def subscribe_to_shop_bookings(
        self, shop_id: str, options: BookingSubscriptionOptions
    ) -> Subscription:
        return self._subscribe_to_channel(f"bookings:shop:{shop_id}", options)

    def subscribe_to_all_bookings(self, options: BookingSubscriptionOptions) -> Subscription:
        """Subscribe to every booking update (admin only)."""
        return self._subscribe_to_channel("bookings:all", options)

    def subscribe_to_booking_table(
        self,
        options: BookingSubscriptionOptions,
        column: Optional[str] = None,
        value: Optional[str] = None,
    ) -> Subscription:
        """
        Subscribe to row changes of the bookings table directly.

        ``column``/``value`` narrow the feed to rows where ``column = value``.
        """
        channel_name = "booking-changes"
        if column and value is not None:
            channel_name = f"{channel_name}:{column}=eq.{value}"
        return self._subscribe_to_channel(
            channel_name,
            options,
            event=POSTGRES_CHANGES_EVENT,
            transform=booking_update_from_change,
        )

    def unsubscribe(self, subscription: Subscription) -> None:
        registration = self._registry.get(subscription.channel_name)
        if registration is None or registration.token != subscription.token:
            return

        logger.info("Unsubscribing from %s", subscription.channel_name)
        del self._registry[subscription.channel_name]
        self._transport.remove_channel(registration.channel)

    def unsubscribe_all(self) -> None:
        logger.info("Unsubscribing from all booking channels")
        for name, registration in list(self._registry.items()):
            logger.debug("Removing %s", name)
            self._transport.remove_channel(registration.channel)
        self._registry.clear()

    def is_active(self, subscription: Subscription) -> bool:
        registration = self._registry.get(subscription.channel_name)
        return registration is not None and registration.token == subscription.token

    def active_subscriptions(self) -> List[str]:
        return list(self._registry.keys())

    def _subscribe_to_channel(
        self,
        channel_name: str,
        options: BookingSubscriptionOptions,
        event: str = BROADCAST_EVENT,
        transform: Callable[[Mapping[str, Any]], BookingUpdate] = booking_update_from_broadcast,
    ) -> Subscription:
        existing = self._registry.pop(channel_name, None)
        if existing is not None:
            logger.warning("Already subscribed to %s, replacing channel", channel_name)
            self._transport.remove_channel(existing.channel)

        token = next(self._tokens)
        subscription = Subscription(self, token, channel_name)
        failed = False

        def on_message(payload: Mapping[str, Any]) -> None:
            logger.debug("Received on %s: %s", channel_name, payload)
            options.dispatch(transform(payload))

        def on_status(status: str) -> None:
            nonlocal failed
            if status == SUBSCRIBED:
                logger.info("Subscribed to %s", channel_name)
            elif status == CHANNEL_ERROR:
                failed = True
                logger.error("Failed to subscribe to %s", channel_name)
                self._drop(channel_name, token)
                if options.on_error is not None:
                    options.on_error(RuntimeError(f"Subscription failed for {channel_name}"))

        logger.info("Subscribing to %s", channel_name)
        channel = self._transport.subscribe(channel_name, event, on_message, on_status)
        if not failed:
            self._registry[channel_name] = _Registration(token=token, channel=channel)
        else:
            self._transport.remove_channel(channel)

        return subscription

    def _drop(self, channel_name: str, token: int) -> None:
        registration = self._registry.get(channel_name)
        if registration is not None and registration.token == token:
            del self._registry[channel_name]
            self._transport.remove_channel(registration.channel)
