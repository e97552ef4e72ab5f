"""Service layer public API.

This package exposes the essential building blocks for the service layer so that
callers can import from :mod:`liten.services` without knowing internal structure.

Re-exports
----------
- Base primitives (from ``liten.services._shared.base``)
    * :class:`BaseService`
    * :class:`ServiceContext`

- Auth service (from ``liten.services.auth``)
    * :class:`AuthService`
    * DTOs: :class:`RegisterIn`, :class:`LoginIn`, :class:`RefreshIn`,
      :class:`LogoutIn`, :class:`SocialLoginIn`, :class:`TokenPairOut`,
      :class:`UserSummaryOut`
"""

from __future__ import annotations

# Base primitives (service base + request-scoped context)
from ._shared.base import BaseService, ServiceContext

# Auth service + DTOs
from .auth.dto import (
    LoginIn,
    LogoutIn,
    RefreshIn,
    RegisterIn,
    SocialLoginIn,
    TokenPairOut,
    UserSummaryOut,
)
from .auth.service import AuthService

__all__ = [
    # Base
    "BaseService",
    "ServiceContext",
    # Auth
    "AuthService",
    "RegisterIn",
    "LoginIn",
    "RefreshIn",
    "LogoutIn",
    "SocialLoginIn",
    "TokenPairOut",
    "UserSummaryOut",
]
