"""In-memory users and orders service with real-time change notifications."""

from __future__ import annotations

from typing import Any

from .models import Order, OrderStatus, User
from .notifications import NotificationBus
from .store import EntityStore


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the HTTP + WebSocket application."""

    from .api import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "EntityStore",
    "NotificationBus",
    "Order",
    "OrderStatus",
    "User",
    "create_app",
]
