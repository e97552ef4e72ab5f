"""Authentication endpoints using the service layer."""

from __future__ import annotations

from flask import Blueprint, Response, current_app
from marshmallow import ValidationError

from liten.api.deps import (
    call_service,
    current_subject,
    get_auth_service,
    json_body,
    json_response,
    require_auth,
    timing,
)
from liten.core.extensions import limiter
from liten.schemas import (
    LoginSchema,
    LogoutSchema,
    RefreshSchema,
    RegisterSchema,
    SocialLoginSchema,
    TokenResponseSchema,
    UserSummarySchema,
)
from liten.services.auth.dto import LogoutIn

bp = Blueprint("auth", __name__, url_prefix="/auth")

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshSchema()
logout_schema = LogoutSchema()
social_login_schema = SocialLoginSchema()
token_schema = TokenResponseSchema()
user_schema = UserSummarySchema()


def _login_rate_limit() -> str:
    return str(current_app.config.get("AUTH_LOGIN_RATE_LIMIT", "5 per minute"))


@bp.post("/register")
@timing
def register():
    """Create a LOCAL account and return its first token pair."""

    dto = register_schema.load(json_body())
    service = get_auth_service()
    pair = call_service(service, service.register, dto)
    return json_response(token_schema.dump(pair))


@bp.post("/login")
@limiter.limit(_login_rate_limit)
@timing
def login():
    """Authenticate credentials and issue a token pair."""

    dto = login_schema.load(json_body())
    service = get_auth_service()
    pair = call_service(service, service.login, dto)
    return json_response(token_schema.dump(pair))


@bp.post("/refresh")
@timing
def refresh():
    """Rotate a refresh token."""

    dto = refresh_schema.load(json_body())
    service = get_auth_service()
    pair = call_service(service, service.refresh, dto)
    return json_response(token_schema.dump(pair))


@bp.post("/logout")
@timing
def logout():
    """Revoke the presented refresh token; always succeeds."""

    try:
        dto = logout_schema.load(json_body())
    except ValidationError:
        dto = LogoutIn()
    service = get_auth_service()
    call_service(service, service.logout, dto)
    return Response(status=200)


@bp.post("/logout/all")
@require_auth
@timing
def logout_all():
    """Revoke every session of the authenticated user."""

    service = get_auth_service()
    revoked = call_service(service, service.logout_all, current_subject())
    return json_response({"revoked": revoked})


@bp.get("/me")
@require_auth
@timing
def me():
    """Return the authenticated user's summary."""

    service = get_auth_service()
    summary = call_service(service, service.whoami, current_subject())
    return json_response(user_schema.dump(summary))


@bp.post("/social/login")
@timing
def social_login():
    """Provider sign-in; accepted for contract compatibility, never served."""

    dto = social_login_schema.load(json_body())
    service = get_auth_service()
    pair = call_service(service, service.social_login, dto)
    return json_response(token_schema.dump(pair))
