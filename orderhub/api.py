"""FastAPI application exposing users, orders and the notification socket."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, FastAPI, Request, WebSocket, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import ServiceSettings
from .connections import ConnectionManager
from .models import order_to_payload, user_to_payload
from .notifications import NotificationBus
from .operations import EntityService
from .store import (
    DuplicateEmailError,
    EntityStore,
    InvalidReferenceError,
    InvalidStatusError,
    NotFoundError,
    StoreError,
)
from .validation import (
    OrderCreate,
    OrderStatusUpdate,
    UserCreate,
    UserUpdate,
    ValidationFailed,
    parse_payload,
    parse_positive_int,
)

logger = logging.getLogger("orderhub.api")

_STORE_ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidReferenceError: status.HTTP_404_NOT_FOUND,
    DuplicateEmailError: status.HTTP_400_BAD_REQUEST,
    InvalidStatusError: status.HTTP_400_BAD_REQUEST,
}


def success_response(data: Any, status_code: int = status.HTTP_200_OK, **extra: Any) -> JSONResponse:
    content: Dict[str, Any] = {"success": True}
    content.update(extra)
    content["data"] = data
    return JSONResponse(status_code=status_code, content=content)


def error_response(status_code: int, message: str, details: Optional[Dict[str, object]] = None) -> JSONResponse:
    error: Dict[str, object] = {"message": message}
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


async def _read_json(request: Request) -> Any:
    body = await request.body()
    if not body.strip():
        return None
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationFailed("Request body must be valid JSON.") from exc


def create_app(
    *,
    store: EntityStore | None = None,
    bus: NotificationBus | None = None,
    settings: ServiceSettings | None = None,
) -> FastAPI:
    if settings is None:
        settings = ServiceSettings()
    if store is None:
        store = EntityStore()
    if bus is None:
        bus = NotificationBus(buffer_size=settings.listener_buffer_size)

    service = EntityService(store, bus)
    connections = ConnectionManager(bus, handshake_message=settings.handshake_message)

    app = FastAPI(
        title="Order Hub",
        description="Users and orders API with real-time change notifications",
        version="1.0.0",
    )
    app.state.store = store
    app.state.bus = bus
    app.state.service = service
    app.state.connections = connections

    @app.get("/health")
    async def healthcheck() -> Dict[str, object]:
        return {
            "status": "ok",
            "listeners": bus.listener_count,
            "connections": connections.active_count,
        }

    users_router = APIRouter(prefix="/api/users")

    @users_router.post("")
    @users_router.post("/", include_in_schema=False)
    async def create_user(request: Request) -> JSONResponse:
        payload = parse_payload(UserCreate, await _read_json(request))
        user = service.create_user(payload)
        return success_response(user_to_payload(user), status.HTTP_201_CREATED)

    @users_router.get("")
    @users_router.get("/", include_in_schema=False)
    async def list_users() -> JSONResponse:
        return success_response([user_to_payload(user) for user in service.list_users()])

    @users_router.get("/{user_id}")
    async def read_user(user_id: str) -> JSONResponse:
        user = service.get_user(parse_positive_int(user_id, "user"))
        return success_response(user_to_payload(user))

    @users_router.put("/{user_id}")
    async def update_user(user_id: str, request: Request) -> JSONResponse:
        identifier = parse_positive_int(user_id, "user")
        payload = parse_payload(UserUpdate, await _read_json(request))
        user = service.update_user(identifier, payload)
        return success_response(user_to_payload(user))

    @users_router.delete("/{user_id}")
    async def delete_user(user_id: str) -> JSONResponse:
        user = service.delete_user(parse_positive_int(user_id, "user"))
        return success_response(user_to_payload(user), message="User deleted successfully.")

    orders_router = APIRouter(prefix="/api/orders")

    @orders_router.get("")
    @orders_router.get("/", include_in_schema=False)
    async def list_orders() -> JSONResponse:
        return success_response([order_to_payload(order) for order in service.list_orders()])

    @orders_router.post("")
    @orders_router.post("/", include_in_schema=False)
    async def create_order(request: Request) -> JSONResponse:
        payload = parse_payload(OrderCreate, await _read_json(request))
        order = service.create_order(payload)
        return success_response(order_to_payload(order), status.HTTP_201_CREATED)

    @orders_router.get("/{order_id}")
    async def read_order(order_id: str) -> JSONResponse:
        order = service.get_order(parse_positive_int(order_id, "order"))
        return success_response(order_to_payload(order))

    @orders_router.put("/{order_id}/status")
    async def transition_order_status(order_id: str, request: Request) -> JSONResponse:
        identifier = parse_positive_int(order_id, "order")
        payload = parse_payload(OrderStatusUpdate, await _read_json(request))
        order = service.transition_order_status(identifier, payload)
        return success_response(order_to_payload(order))

    app.include_router(users_router)
    app.include_router(orders_router)

    @app.websocket("/ws")
    async def notifications_socket(websocket: WebSocket):
        await connections.handle(websocket)

    @app.websocket("/")
    async def root_notifications_socket(websocket: WebSocket):
        await connections.handle(websocket)

    @app.exception_handler(ValidationFailed)
    async def handle_validation_failed(_: Request, exc: ValidationFailed):
        return error_response(status.HTTP_400_BAD_REQUEST, exc.message, exc.details)

    @app.exception_handler(StoreError)
    async def handle_store_error(_: Request, exc: StoreError):
        status_code = _STORE_ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
        return error_response(status_code, str(exc))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(_: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return error_response(exc.status_code, "Route not found.")
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error while serving %s %s", request.method, request.url.path)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error.")

    return app


app = create_app()


__all__ = ["app", "create_app", "error_response", "success_response"]
