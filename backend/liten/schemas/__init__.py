"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import (
    LoginSchema,
    LogoutSchema,
    RefreshSchema,
    RegisterSchema,
    SocialLoginSchema,
    TokenResponseSchema,
    UserSummarySchema,
)
from .common import RequestSchema, ResponseSchema

__all__ = [
    "LoginSchema",
    "LogoutSchema",
    "RefreshSchema",
    "RegisterSchema",
    "SocialLoginSchema",
    "TokenResponseSchema",
    "UserSummarySchema",
    "RequestSchema",
    "ResponseSchema",
]
