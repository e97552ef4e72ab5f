"""Shared API helpers for request parsing and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

from flask import Response, current_app, jsonify, request
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from liten.core.logger import ensure_request_id
from liten.core.wiring import get_components
from liten.services import AuthService, ServiceContext
from liten.services._shared.errors import ServiceError

F = TypeVar("F", bound=Callable[..., Any])
T = TypeVar("T")


def json_body() -> dict[str, Any]:
    """Return the JSON request body, ``{}`` when absent or not an object."""

    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def get_auth_service() -> AuthService:
    """Build an :class:`AuthService` for the current request."""

    components = get_components()
    ctx = ServiceContext(request_id=ensure_request_id(), remote_addr=request.remote_addr)
    return AuthService(
        credential_store=components.credential_store,
        token_issuer=components.token_issuer,
        ledger=components.ledger,
        ctx=ctx,
    )


def call_service(service: AuthService, fn: Callable[..., T], *args: Any) -> T:
    """Run a service operation translating service errors into API errors."""

    try:
        return fn(*args)
    except ServiceError as exc:
        raise service.translate_exceptions(exc) from exc


def current_subject() -> str:
    """Return the ``sub`` claim (email) of the verified access token."""

    return str(get_jwt_identity())


def require_auth(func: F) -> F:
    """Ensure the request carries a valid JWT access token."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        verify_jwt_in_request(optional=False)
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]
