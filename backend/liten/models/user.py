"""User identity model for the Liten mobile backend."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, String, text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from liten.core.extensions import db

from .base import PKMixin, ReprMixin, SoftDeleteMixin, TimestampMixin, as_utc, utcnow

if TYPE_CHECKING:
    from .refresh_token import RefreshToken

DEFAULT_LANGUAGE_CODE = "ko"
DEFAULT_THEME = "CLASSIC_BLUE"

_LIVE_ROWS = text("deleted_at IS NULL")
_ONE_MICROSECOND = timedelta(microseconds=1)


class AuthProvider(str, Enum):
    """Origin of the identity's credentials."""

    LOCAL = "LOCAL"
    GOOGLE = "GOOGLE"
    APPLE = "APPLE"


class SubscriptionType(str, Enum):
    """Subscription tier."""

    FREE = "FREE"
    STANDARD = "STANDARD"
    PREMIUM = "PREMIUM"


def normalize_email(value: str) -> str:
    """Return ``value`` trimmed and lower-cased (storage and lookup form)."""
    return value.strip().lower()


class User(PKMixin, ReprMixin, TimestampMixin, SoftDeleteMixin, db.Model):
    """
    Authentication identity of a Liten account.

    Fields
    ------
    email : str
        Login email, stored normalized. Unique among non-deleted rows.
    password_hash : str | None
        Salted one-way hash. ``None`` only for social-only identities.
    nickname : str | None
        Display name (max 50 chars).
    app_unique_id : str
        Per-install identifier sent by the mobile client. Unique among
        non-deleted rows.
    provider : AuthProvider
        ``LOCAL`` identities always carry a password hash.
    subscription_type : SubscriptionType
        Tier; ``FREE`` never expires.
    language_code, theme : str
        Client preferences with product defaults (``ko`` / ``CLASSIC_BLUE``).
    is_active : bool
        Inactive identities cannot authenticate.
    last_login_at : datetime | None
        Strictly increasing per identity; set by credential login.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    nickname: Mapped[str | None] = mapped_column(String(50), nullable=True)
    profile_image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    app_unique_id: Mapped[str] = mapped_column(String(255), nullable=False)
    provider: Mapped[AuthProvider] = mapped_column(
        SAEnum(AuthProvider, name="enum_auth_provider", native_enum=True, create_constraint=True),
        nullable=False,
        default=AuthProvider.LOCAL,
    )
    provider_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    subscription_type: Mapped[SubscriptionType] = mapped_column(
        SAEnum(
            SubscriptionType,
            name="enum_subscription_type",
            native_enum=True,
            create_constraint=True,
        ),
        nullable=False,
        default=SubscriptionType.FREE,
    )
    subscription_start_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    subscription_end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    language_code: Mapped[str] = mapped_column(
        String(10), nullable=False, default=DEFAULT_LANGUAGE_CODE
    )
    theme: Mapped[str] = mapped_column(String(50), nullable=False, default=DEFAULT_THEME)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    refresh_tokens: Mapped[list[RefreshToken]] = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index(
            "uq_users_email_live",
            "email",
            unique=True,
            sqlite_where=_LIVE_ROWS,
            postgresql_where=_LIVE_ROWS,
        ),
        Index(
            "uq_users_app_unique_id_live",
            "app_unique_id",
            unique=True,
            sqlite_where=_LIVE_ROWS,
            postgresql_where=_LIVE_ROWS,
        ),
        CheckConstraint(
            "provider <> 'LOCAL' OR password_hash IS NOT NULL",
            name="local_requires_password",
        ),
    )

    # -------------------- Subscription helpers --------------------
    def has_valid_subscription(self, now: datetime | None = None) -> bool:
        """
        Return ``True`` when the tier is free or the paid period is still open.

        :param now: Reference instant (defaults to the current UTC time).
        :type now: datetime | None
        :rtype: bool
        """
        if self.subscription_type == SubscriptionType.FREE:
            return True
        end = as_utc(self.subscription_end_date)
        return end is not None and end > (now or utcnow())

    @property
    def is_premium(self) -> bool:
        """Paid tiers (``STANDARD`` and ``PREMIUM``) count as premium."""
        return self.subscription_type in (SubscriptionType.STANDARD, SubscriptionType.PREMIUM)

    def touch_login(self, now: datetime | None = None) -> datetime:
        """
        Stamp ``last_login_at`` keeping it strictly increasing.

        Two logins within the clock's resolution still produce distinct,
        ordered values.

        :param now: Reference instant (defaults to the current UTC time).
        :returns: The stored timestamp.
        """
        stamp = now or utcnow()
        previous = as_utc(self.last_login_at)
        if previous is not None and stamp <= previous:
            stamp = previous + _ONE_MICROSECOND
        self.last_login_at = stamp
        return stamp

    # -------------------- Validators --------------------
    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        """
        Normalize and minimally validate email.

        :raises ValueError: If email is missing or malformed.
        """
        if not value or not isinstance(value, str):
            raise ValueError("Email is required.")
        v = normalize_email(value)
        if "@" not in v or "." not in v.split("@")[-1]:
            raise ValueError("Email format looks invalid.")
        return v

    @validates("app_unique_id")
    def _validate_app_unique_id(self, key: str, value: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("app_unique_id is required.")
        return value.strip()
