"""Domain records for users and orders."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional


class OrderStatus(str, Enum):
    """Lifecycle states an order can be in."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


ALLOWED_STATUSES = tuple(status.value for status in OrderStatus)


@dataclass(frozen=True)
class User:
    """A registered user. Instances are immutable snapshots owned by the store."""

    id: int
    name: str
    email: str
    created_at: datetime
    updated_at: datetime
    age: Optional[int] = None


@dataclass(frozen=True)
class Order:
    """An order placed by a user."""

    id: int
    user_id: int
    status: OrderStatus
    created_at: datetime
    updated_at: datetime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render ``value`` as an ISO-8601 UTC string with millisecond precision."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def user_to_payload(user: User) -> Dict[str, object]:
    payload: Dict[str, object] = {
        "id": user.id,
        "name": user.name,
        "email": user.email,
    }
    if user.age is not None:
        payload["age"] = user.age
    payload["createdAt"] = format_timestamp(user.created_at)
    payload["updatedAt"] = format_timestamp(user.updated_at)
    return payload


def order_to_payload(order: Order) -> Dict[str, object]:
    return {
        "id": order.id,
        "userId": order.user_id,
        "status": order.status.value,
        "createdAt": format_timestamp(order.created_at),
        "updatedAt": format_timestamp(order.updated_at),
    }


__all__ = [
    "ALLOWED_STATUSES",
    "Order",
    "OrderStatus",
    "User",
    "format_timestamp",
    "order_to_payload",
    "user_to_payload",
    "utcnow",
]
