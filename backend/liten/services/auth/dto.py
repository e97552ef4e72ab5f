# liten/services/auth/dto.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class RegisterIn:
    """
    Input DTO for local sign-up.

    :param email: User email (normalized by the model).
    :type email: str
    :param password: Raw password (hashed before persistence).
    :type password: str
    :param app_unique_id: Install identifier of the client app.
    :type app_unique_id: str
    :param nickname: Optional display name.
    :type nickname: str | None
    :param language_code: Optional locale, ``"ko"`` when omitted.
    :type language_code: str | None
    :param theme: Optional UI theme, ``"CLASSIC_BLUE"`` when omitted.
    :type theme: str | None
    :param device_info: Free-text client description stored with the session.
    :type device_info: str | None
    """

    email: str
    password: str
    app_unique_id: str
    nickname: str | None = None
    language_code: str | None = None
    theme: str | None = None
    device_info: str | None = None


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    Input DTO for login.

    :param email: User email.
    :type email: str
    :param password: Raw password (to be verified).
    :type password: str
    :param device_info: Free-text client description stored with the session.
    :type device_info: str | None
    """

    email: str
    password: str
    device_info: str | None = None


@dataclass(frozen=True, slots=True)
class RefreshIn:
    """
    Input DTO for token refresh.

    :param refresh_token: Encoded refresh JWT.
    :type refresh_token: str
    """

    refresh_token: str


@dataclass(frozen=True, slots=True)
class LogoutIn:
    """
    Input DTO for logout.

    :param refresh_token: Encoded refresh JWT; ``None`` makes logout a no-op.
    :type refresh_token: str | None
    """

    refresh_token: str | None = None


@dataclass(frozen=True, slots=True)
class SocialLoginIn:
    """Input DTO for provider sign-in (accepted but not supported)."""

    provider: str
    access_token: str
    app_unique_id: str
    device_info: str | None = None


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class UserSummaryOut:
    """
    Public projection of an identity returned with token pairs.

    :param user_id: Identity id.
    :type user_id: int
    :param email: Normalized email.
    :type email: str
    :param provider: ``LOCAL``, ``GOOGLE`` or ``APPLE``.
    :type provider: str
    :param subscription_type: ``FREE``, ``STANDARD`` or ``PREMIUM``.
    :type subscription_type: str
    """

    user_id: int
    email: str
    nickname: str | None
    profile_image_url: str | None
    app_unique_id: str
    provider: str
    subscription_type: str
    subscription_end_date: datetime | None
    language_code: str
    theme: str
    last_login_at: datetime | None
    created_at: datetime | None


@dataclass(frozen=True, slots=True)
class TokenPairOut:
    """
    Output DTO with access and refresh tokens.

    :param access_token: Encoded access JWT.
    :type access_token: str
    :param refresh_token: Encoded refresh JWT.
    :type refresh_token: str
    :param expires_in: Access token lifetime in seconds.
    :type expires_in: int
    :param token_type: Authorization scheme, always ``"Bearer"``.
    :type token_type: str
    :param user: Identity summary (omitted on refresh).
    :type user: UserSummaryOut | None
    """

    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "Bearer"
    user: UserSummaryOut | None = None
