"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from typing import Any

from marshmallow import fields, post_dump, post_load, validate

from liten.models.refresh_token import DEVICE_INFO_MAX_LENGTH
from liten.services.auth.dto import LoginIn, LogoutIn, RefreshIn, RegisterIn, SocialLoginIn

from .common import RequestSchema, ResponseSchema


def _device_info() -> fields.String:
    return fields.String(
        data_key="deviceInfo",
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=DEVICE_INFO_MAX_LENGTH),
    )


class RegisterSchema(RequestSchema):
    """Input payload for account registration."""

    email = fields.Email(required=True, validate=validate.Length(max=255))
    password = fields.String(required=True, validate=validate.Length(min=8, max=128))
    nickname = fields.String(load_default=None, allow_none=True, validate=validate.Length(max=50))
    app_unique_id = fields.String(
        data_key="appUniqueId", required=True, validate=validate.Length(min=1, max=255)
    )
    language_code = fields.String(
        data_key="languageCode", load_default=None, validate=validate.Length(min=2, max=10)
    )
    theme = fields.String(load_default=None, validate=validate.Length(min=1, max=50))
    device_info = _device_info()

    @post_load
    def to_dto(self, data: dict[str, Any], **_: Any) -> RegisterIn:
        return RegisterIn(**data)


class LoginSchema(RequestSchema):
    """Input payload for authenticating a user."""

    email = fields.Email(required=True, validate=validate.Length(max=255))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))
    device_info = _device_info()

    @post_load
    def to_dto(self, data: dict[str, Any], **_: Any) -> LoginIn:
        return LoginIn(**data)


class RefreshSchema(RequestSchema):
    """Input payload carrying the refresh token to exchange."""

    refresh_token = fields.String(
        data_key="refreshToken",
        required=True,
        validate=validate.Length(min=1),
    )

    @post_load
    def to_dto(self, data: dict[str, Any], **_: Any) -> RefreshIn:
        return RefreshIn(**data)


class LogoutSchema(RequestSchema):
    """Optional refresh token; any body (even none) is accepted."""

    refresh_token = fields.String(data_key="refreshToken", load_default=None, allow_none=True)

    @post_load
    def to_dto(self, data: dict[str, Any], **_: Any) -> LogoutIn:
        return LogoutIn(**data)


class SocialLoginSchema(RequestSchema):
    """Provider sign-in payload."""

    provider = fields.String(
        required=True, validate=validate.OneOf(["google", "apple", "GOOGLE", "APPLE"])
    )
    access_token = fields.String(data_key="accessToken", required=True)
    app_unique_id = fields.String(data_key="appUniqueId", required=True)
    device_info = _device_info()

    @post_load
    def to_dto(self, data: dict[str, Any], **_: Any) -> SocialLoginIn:
        return SocialLoginIn(**data)


class UserSummarySchema(ResponseSchema):
    """Public identity summary returned with token pairs and by ``/auth/me``."""

    user_id = fields.Integer(data_key="userId")
    email = fields.String()
    nickname = fields.String(allow_none=True)
    profile_image_url = fields.String(data_key="profileImageUrl", allow_none=True)
    app_unique_id = fields.String(data_key="appUniqueId")
    provider = fields.String()
    subscription_type = fields.String(data_key="subscriptionType")
    subscription_end_date = fields.DateTime(data_key="subscriptionEndDate", allow_none=True)
    language_code = fields.String(data_key="languageCode")
    theme = fields.String()
    last_login_at = fields.DateTime(data_key="lastLoginAt", allow_none=True)
    created_at = fields.DateTime(data_key="createdAt", allow_none=True)


class TokenResponseSchema(ResponseSchema):
    """Response payload with the token pair."""

    access_token = fields.String(data_key="accessToken")
    refresh_token = fields.String(data_key="refreshToken")
    token_type = fields.String(data_key="tokenType")
    expires_in = fields.Integer(data_key="expiresIn")
    user = fields.Nested(UserSummarySchema, allow_none=True)

    @post_dump
    def drop_empty_user(self, data: dict[str, Any], **_: Any) -> dict[str, Any]:
        if data.get("user") is None:
            data.pop("user", None)
        return data
