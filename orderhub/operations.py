"""Operations that combine a store mutation with its change notification."""

from __future__ import annotations

import logging
import threading
from typing import List

from .models import Order, User, user_to_payload
from .notifications import EVENT_ORDER_STATUS_CHANGED, EVENT_USER_CREATED, NotificationBus
from .store import EntityStore
from .validation import OrderCreate, OrderStatusUpdate, UserCreate, UserUpdate

logger = logging.getLogger("orderhub.service")


class EntityService:
    """Entry point for every user and order operation.

    A mutation is committed to the store first and its event is published only
    if the commit succeeded. Both steps run under one lock so that listeners
    see events in the order the mutations were applied.
    """

    def __init__(self, store: EntityStore, bus: NotificationBus) -> None:
        self._store = store
        self._bus = bus
        self._lock = threading.RLock()

    @property
    def store(self) -> EntityStore:
        return self._store

    @property
    def bus(self) -> NotificationBus:
        return self._bus

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    def create_user(self, payload: UserCreate) -> User:
        with self._lock:
            user = self._store.create_user(name=payload.name, email=payload.email, age=payload.age)
            self._bus.publish(EVENT_USER_CREATED, user_to_payload(user))
        logger.info("Created user %s <%s>", user.id, user.email)
        return user

    def update_user(self, user_id: int, payload: UserUpdate) -> User:
        changes = payload.model_dump(exclude_unset=True)
        with self._lock:
            user = self._store.update_user(user_id, **changes)
        logger.info("Updated user %s (%s)", user.id, ", ".join(sorted(changes)) or "no fields")
        return user

    def delete_user(self, user_id: int) -> User:
        with self._lock:
            user = self._store.delete_user(user_id)
        logger.info("Deleted user %s", user.id)
        return user

    def get_user(self, user_id: int) -> User:
        return self._store.get_user(user_id)

    def list_users(self) -> List[User]:
        return self._store.list_users()

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------
    def create_order(self, payload: OrderCreate) -> Order:
        with self._lock:
            order = self._store.create_order(user_id=payload.user_id, status=payload.status)
        logger.info("Created order %s for user %s (%s)", order.id, order.user_id, order.status.value)
        return order

    def transition_order_status(self, order_id: int, payload: OrderStatusUpdate) -> Order:
        with self._lock:
            order, previous = self._store.update_order_status(order_id, payload.status)
            self._bus.publish(
                EVENT_ORDER_STATUS_CHANGED,
                {
                    "orderId": order.id,
                    "userId": order.user_id,
                    "oldStatus": previous.value,
                    "newStatus": order.status.value,
                },
            )
        logger.info(
            "Order %s moved from %s to %s",
            order.id,
            previous.value,
            order.status.value,
        )
        return order

    def get_order(self, order_id: int) -> Order:
        return self._store.get_order(order_id)

    def list_orders(self) -> List[Order]:
        return self._store.list_orders()


__all__ = ["EntityService"]
