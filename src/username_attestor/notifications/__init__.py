"""Notifications — inbound event dispatch and operator alerts."""

from __future__ import annotations

from username_attestor.notifications.admin import AdminNotifier
from username_attestor.notifications.dispatcher import EventDispatcher
from username_attestor.notifications.events import (
    IncomingPaymentsEvent,
    PairedEvent,
    PaymentsFinalizedEvent,
    RawEvent,
    TextEvent,
)

__all__ = [
    "AdminNotifier",
    "EventDispatcher",
    "IncomingPaymentsEvent",
    "PairedEvent",
    "PaymentsFinalizedEvent",
    "RawEvent",
    "TextEvent",
]
