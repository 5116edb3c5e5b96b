"""Authoritative in-memory storage for users and orders."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from .models import ALLOWED_STATUSES, Order, OrderStatus, User, utcnow


class StoreError(Exception):
    """Base class for failures raised by :class:`EntityStore`."""


class NotFoundError(StoreError):
    """Raised when a referenced record does not exist."""

    def __init__(self, kind: str, record_id: int) -> None:
        super().__init__(f"{kind} with id {record_id} not found.")
        self.kind = kind
        self.record_id = record_id


class DuplicateEmailError(StoreError):
    """Raised when an email address is already used by another user."""

    def __init__(self, email: str) -> None:
        super().__init__("Email already exists.")
        self.email = email


class InvalidReferenceError(StoreError):
    """Raised when an order refers to a user that does not exist."""

    def __init__(self, user_id: int) -> None:
        super().__init__(f"User with id {user_id} not found.")
        self.user_id = user_id


class InvalidStatusError(StoreError):
    """Raised when a status is not one of the known order states."""

    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid status. Allowed: {', '.join(ALLOWED_STATUSES)}")
        self.value = value


def parse_status(value: object) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    if not isinstance(value, str):
        raise InvalidStatusError(value)
    try:
        return OrderStatus(value)
    except ValueError as exc:
        raise InvalidStatusError(value) from exc


def _email_key(email: str) -> str:
    return email.strip().lower()


class EntityStore:
    """Holds every user and order record.

    All reads and writes happen under a single lock, so a uniqueness or
    reference check and the write that depends on it can never interleave
    with another mutation. Records are frozen dataclasses; callers always
    receive snapshots and updates swap in a new record.
    """

    def __init__(self, *, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock = clock or utcnow
        self._lock = threading.RLock()
        self._users: Dict[int, User] = {}
        self._email_index: Dict[str, int] = {}
        self._orders: Dict[int, Order] = {}
        self._next_user_id = 1
        self._next_order_id = 1

    def reset(self) -> None:
        """Drop every record and restart both id sequences at 1."""

        with self._lock:
            self._users = {}
            self._email_index = {}
            self._orders = {}
            self._next_user_id = 1
            self._next_order_id = 1

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    def create_user(self, *, name: str, email: str, age: Optional[int] = None) -> User:
        cleaned_name = name.strip()
        cleaned_email = email.strip()
        key = _email_key(cleaned_email)

        with self._lock:
            if key in self._email_index:
                raise DuplicateEmailError(cleaned_email)

            now = self._clock()
            user = User(
                id=self._next_user_id,
                name=cleaned_name,
                email=cleaned_email,
                age=age,
                created_at=now,
                updated_at=now,
            )
            self._users[user.id] = user
            self._email_index[key] = user.id
            self._next_user_id += 1
            return user

    def get_user(self, user_id: int) -> User:
        with self._lock:
            user = self._users.get(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def list_users(self) -> List[User]:
        with self._lock:
            return list(self._users.values())

    def update_user(
        self,
        user_id: int,
        *,
        name: Optional[str] = None,
        email: Optional[str] = None,
        age: Optional[int] = None,
    ) -> User:
        """Apply a partial update. ``None`` leaves a field unchanged."""

        with self._lock:
            existing = self._users.get(user_id)
            if existing is None:
                raise NotFoundError("User", user_id)

            changes: Dict[str, object] = {}
            new_key: Optional[str] = None
            if name is not None:
                changes["name"] = name.strip()
            if email is not None:
                cleaned_email = email.strip()
                new_key = _email_key(cleaned_email)
                owner = self._email_index.get(new_key)
                if owner is not None and owner != user_id:
                    raise DuplicateEmailError(cleaned_email)
                changes["email"] = cleaned_email
            if age is not None:
                changes["age"] = age

            updated = replace(existing, updated_at=self._clock(), **changes)
            if new_key is not None:
                self._email_index.pop(_email_key(existing.email), None)
                self._email_index[new_key] = user_id
            self._users[user_id] = updated
            return updated

    def delete_user(self, user_id: int) -> User:
        """Remove a user. Orders that reference it are left untouched."""

        with self._lock:
            user = self._users.pop(user_id, None)
            if user is None:
                raise NotFoundError("User", user_id)
            self._email_index.pop(_email_key(user.email), None)
            return user

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------
    def create_order(self, *, user_id: int, status: object = None) -> Order:
        with self._lock:
            if user_id not in self._users:
                raise InvalidReferenceError(user_id)
            resolved = OrderStatus.PENDING if status in (None, "") else parse_status(status)

            now = self._clock()
            order = Order(
                id=self._next_order_id,
                user_id=user_id,
                status=resolved,
                created_at=now,
                updated_at=now,
            )
            self._orders[order.id] = order
            self._next_order_id += 1
            return order

    def get_order(self, order_id: int) -> Order:
        with self._lock:
            order = self._orders.get(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    def list_orders(self) -> List[Order]:
        with self._lock:
            return list(self._orders.values())

    def update_order_status(self, order_id: int, status: object) -> Tuple[Order, OrderStatus]:
        """Move an order to ``status`` and return it with the status it had before."""

        resolved = parse_status(status)
        with self._lock:
            existing = self._orders.get(order_id)
            if existing is None:
                raise NotFoundError("Order", order_id)
            updated = replace(existing, status=resolved, updated_at=self._clock())
            self._orders[order_id] = updated
            return updated, existing.status


__all__ = [
    "DuplicateEmailError",
    "EntityStore",
    "InvalidReferenceError",
    "InvalidStatusError",
    "NotFoundError",
    "StoreError",
    "parse_status",
]
