"""Reusable SQLAlchemy mixins and audit helpers shared by models (typed 2.0)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, func
from sqlalchemy.orm import Mapped, mapped_column


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Label naive datetimes as UTC.

    SQLite drops the offset on round-trip; every timestamp this application
    writes is UTC, so naive values read back are UTC by construction.

    :param value: Datetime read from the database (aware or naive).
    :returns: Aware datetime in UTC, or ``None``.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass(frozen=True, slots=True)
class AuditStamp:
    """
    Immutable snapshot of an entity's lifecycle timestamps.

    :param created_at: Insert time.
    :param updated_at: Last modification time.
    :param deleted_at: Soft-delete marker (``None`` while live).
    """

    created_at: datetime | None
    updated_at: datetime | None
    deleted_at: datetime | None = None


def is_deleted(stamp: AuditStamp) -> bool:
    """Return ``True`` when the stamp carries a soft-delete marker."""
    return stamp.deleted_at is not None


class TimestampMixin:
    """Provide ``created_at`` and ``updated_at`` timestamp columns.

    Attributes
    ----------
    created_at:
        Timezone-aware insert timestamp (Python default, DB fallback).
    updated_at:
        Timezone-aware timestamp refreshed on every ORM update.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )

    @property
    def audit(self) -> AuditStamp:
        """Compose the lifecycle columns into an :class:`AuditStamp`."""
        return AuditStamp(
            created_at=as_utc(self.created_at),
            updated_at=as_utc(self.updated_at),
            deleted_at=as_utc(getattr(self, "deleted_at", None)),
        )


class SoftDeleteMixin:
    """Expose a nullable ``deleted_at`` marker; rows are never hard-deleted by owners."""

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )


class PKMixin:
    """Expose an integer surrogate primary key column named ``id``."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True)


class ReprMixin:
    """Provide a concise ``__repr__`` including the class name and id."""

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        key = getattr(self, "id", None)
        return f"<{cls} id={key}>"
