"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and never depend on Flask or HTTP.
They are the stable contract between repositories, ports and application
services. The translation to HTTP responses (RFC 7807) happens in
``BaseService.translate_exceptions()`` and ``liten/core/errors.py``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - They can be safely raised from repositories, ports or domain logic.
    """


class AuthFailure(str, Enum):
    """Why a credential check was rejected."""

    NOT_FOUND = "user_not_found"
    INVALID_CREDENTIALS = "invalid_credentials"


class TokenFailure(str, Enum):
    """Why a presented token was rejected."""

    INVALID = "token_invalid"
    EXPIRED = "token_expired"
    REVOKED = "token_revoked"


# --------------------------------------------------------------------------- #
# Specific domain-level errors
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found in the repository.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param key: Identifier or search key.
    :type key: str | int
    """

    entity: str
    key: str | int

    def __str__(self) -> str:
        return f"{self.entity} not found: {self.key}"


@dataclass(slots=True)
class ConflictError(ServiceError):
    """
    Raised when a unique constraint or business rule conflict occurs.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param detail: Short human-readable explanation.
    :type detail: str
    """

    entity: str
    detail: str

    def __str__(self) -> str:
        return f"Conflict on {self.entity}: {self.detail}"


class ValidationError(ServiceError):
    """Raised when input passes schema checks but breaks a service rule."""


@dataclass(slots=True)
class AuthenticationError(ServiceError):
    """
    Raised when credentials cannot be verified.

    :param reason: Which check failed.
    :type reason: AuthFailure
    """

    reason: AuthFailure

    def __str__(self) -> str:
        if self.reason is AuthFailure.NOT_FOUND:
            return "No active account for this email"
        return "Invalid email or password"


@dataclass(slots=True)
class TokenError(ServiceError):
    """
    Raised when a token is malformed, expired or no longer honoured.

    :param reason: Which check failed.
    :type reason: TokenFailure
    :param detail: Optional extra context for logs.
    :type detail: str | None
    """

    reason: TokenFailure
    detail: str | None = None

    def __str__(self) -> str:
        messages = {
            TokenFailure.INVALID: "Token is invalid",
            TokenFailure.EXPIRED: "Token has expired",
            TokenFailure.REVOKED: "Token has been revoked",
        }
        return messages[self.reason]


class NotImplementedFeatureError(ServiceError):
    """Raised by operations that are exposed but intentionally unsupported."""

    def __init__(self, message: str = "This feature is not available yet") -> None:
        super().__init__(message)
