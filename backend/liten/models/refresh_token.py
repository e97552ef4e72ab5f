"""Session token record: server-side state of an issued refresh token."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from liten.core.extensions import db

from .base import PKMixin, ReprMixin, SoftDeleteMixin, TimestampMixin, as_utc, utcnow

if TYPE_CHECKING:
    from .user import User

TOKEN_MAX_LENGTH = 1024
DEVICE_INFO_MAX_LENGTH = 500


class RefreshToken(PKMixin, ReprMixin, TimestampMixin, SoftDeleteMixin, db.Model):
    """
    One issued refresh token and its revocation state.

    A record is *valid* iff it is not revoked, not soft-deleted and
    ``expires_at`` lies strictly in the future. Only the ledger adapters
    mutate ``is_revoked``.
    """

    __tablename__ = "refresh_tokens"

    token: Mapped[str] = mapped_column(String(TOKEN_MAX_LENGTH), nullable=False, unique=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_revoked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    device_info: Mapped[str | None] = mapped_column(String(DEVICE_INFO_MAX_LENGTH), nullable=True)

    user: Mapped[User] = relationship("User", back_populates="refresh_tokens")

    __table_args__ = (Index("ix_refresh_tokens_expires_at", "expires_at"),)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Expired at the boundary: ``expires_at <= now``."""
        return as_utc(self.expires_at) <= (now or utcnow())  # type: ignore[operator]

    def is_valid(self, now: datetime | None = None) -> bool:
        """Return ``True`` when the record can still be exchanged."""
        return not self.is_revoked and self.deleted_at is None and not self.is_expired(now)
